"""
Domain Models Package
Export all domain entities
"""

from .entities import (
    # Enums
    HoldingStatus,
    PriceHistoryAction,
    SaleType,
    StockCapType,

    # Entities
    Holding,
    Portfolio,
    PriceHistoryEntry,
    PriceLogEntry,
)
from .calculations import (
    AllocationResult,
    ApplyOutcome,
    CashValidation,
    MinInvestmentValidation,
    PortfolioSummary,
    PurchaseResult,
    SaleResult,
    TamperIssue,
    TamperReport,
    ValuationBreakdown,
    WeightValidation,
)
from .commands import (
    AllocateCommand,
    AllocationAction,
    ClientTotals,
    HoldingInput,
    PortfolioCommand,
    TransactCommand,
    TransactionAction,
)

__all__ = [
    # Enums
    "HoldingStatus",
    "PriceHistoryAction",
    "SaleType",
    "StockCapType",
    "AllocationAction",
    "TransactionAction",

    # Entities
    "Holding",
    "Portfolio",
    "PriceHistoryEntry",
    "PriceLogEntry",

    # Results
    "AllocationResult",
    "ApplyOutcome",
    "CashValidation",
    "MinInvestmentValidation",
    "PortfolioSummary",
    "PurchaseResult",
    "SaleResult",
    "TamperIssue",
    "TamperReport",
    "ValuationBreakdown",
    "WeightValidation",

    # Commands
    "AllocateCommand",
    "ClientTotals",
    "HoldingInput",
    "PortfolioCommand",
    "TransactCommand",
]
