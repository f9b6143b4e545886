"""
Domain Exceptions
Raised by engine components, translated to HTTP errors at the API edge
"""

from decimal import Decimal
from typing import Optional


class PortfolioEngineError(Exception):
    """Base class for all engine errors"""

    def to_detail(self) -> dict:
        return {"error": type(self).__name__, "message": str(self)}


class ValidationError(PortfolioEngineError, ValueError):
    """Bad input shape or range, rejected before any mutation"""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field

    def to_detail(self) -> dict:
        detail = super().to_detail()
        if self.field:
            detail["field"] = self.field
        return detail


class InsufficientFundsError(PortfolioEngineError):
    """Cash shortfall on a purchase"""

    def __init__(self, symbol: str, required: Decimal, available: Decimal):
        self.symbol = symbol
        self.required = required
        self.available = available
        self.shortfall = required - available
        super().__init__(
            f"Insufficient cash for {symbol}: required ₹{required:,.2f}, "
            f"available ₹{available:,.2f}, shortfall ₹{self.shortfall:,.2f}"
        )

    def to_detail(self) -> dict:
        detail = super().to_detail()
        detail.update({
            "symbol": self.symbol,
            "required": float(self.required),
            "available": float(self.available),
            "shortfall": float(self.shortfall),
        })
        return detail


class OverAllocationError(PortfolioEngineError):
    """Active weights or allocation cost exceed the allowed maximum"""

    def __init__(
        self,
        message: str,
        total_weight: Optional[Decimal] = None,
        max_allowed: Optional[Decimal] = None,
    ):
        super().__init__(message)
        self.total_weight = total_weight
        self.max_allowed = max_allowed

    def to_detail(self) -> dict:
        detail = super().to_detail()
        if self.total_weight is not None:
            detail["total_weight"] = float(self.total_weight)
        if self.max_allowed is not None:
            detail["max_allowed"] = float(self.max_allowed)
        return detail


class NotFoundError(PortfolioEngineError):
    """Unknown portfolio, holding or symbol"""


class TransientStorageError(PortfolioEngineError):
    """Retryable storage failure"""


class PriceUnavailableError(PortfolioEngineError):
    """No usable quote for a symbol"""

    def __init__(self, symbol: str, reason: str = "no quote available"):
        self.symbol = symbol
        super().__init__(f"Price unavailable for {symbol}: {reason}")

    def to_detail(self) -> dict:
        detail = super().to_detail()
        detail["symbol"] = self.symbol
        return detail


class ConcurrentModificationError(PortfolioEngineError):
    """Portfolio was modified by another writer"""

    def __init__(self, portfolio_id: int, expected_version: Optional[int] = None, actual_version: Optional[int] = None):
        self.portfolio_id = portfolio_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Portfolio {portfolio_id} was modified concurrently"
            + (f" (expected version {expected_version}, found {actual_version})" if expected_version is not None else "")
        )

    def to_detail(self) -> dict:
        detail = super().to_detail()
        detail["portfolio_id"] = self.portfolio_id
        if self.expected_version is not None:
            detail["expected_version"] = self.expected_version
            detail["actual_version"] = self.actual_version
        return detail
