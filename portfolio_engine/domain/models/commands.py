"""
Domain Models - Commands

A write against a portfolio is either an allocation (cash re-derived from
min_investment) or a transaction (wallet cash, adjusted incrementally).
The kind is declared by the caller and dispatched explicitly.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Literal, Optional, Tuple, Union

from portfolio_engine.domain.models.entities import SaleType, StockCapType


class AllocationAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    ADD = "add"
    DELETE = "delete"
    REPLACE = "replace"


class TransactionAction(str, Enum):
    BUY = "buy"
    SELL = "sell"


@dataclass(frozen=True)
class HoldingInput:
    """Allocation inputs for one holding. Never carries derived state."""
    symbol: str
    weight: Decimal
    buy_price: Decimal
    sector: str = ""
    stock_cap_type: Optional[StockCapType] = None


@dataclass(frozen=True)
class ClientTotals:
    """Totals a client computed locally; compared, never persisted."""
    cash_balance: Optional[Decimal] = None
    current_value: Optional[Decimal] = None
    quantities: Tuple[Tuple[str, int], ...] = ()


@dataclass(frozen=True)
class AllocateCommand:
    action: AllocationAction
    holdings: Tuple[HoldingInput, ...] = ()
    remove_symbols: Tuple[str, ...] = ()
    client_totals: Optional[ClientTotals] = None
    kind: Literal["Allocate"] = "Allocate"


@dataclass(frozen=True)
class TransactCommand:
    action: TransactionAction
    symbol: str
    quantity: Optional[int]
    price: Decimal
    sector: str = ""
    weight: Optional[Decimal] = None
    stock_cap_type: Optional[StockCapType] = None
    sale_type: SaleType = SaleType.PARTIAL
    kind: Literal["Transact"] = "Transact"


PortfolioCommand = Union[AllocateCommand, TransactCommand]
