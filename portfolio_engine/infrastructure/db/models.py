"""
Database Models (SQLAlchemy ORM)
Portfolio aggregate tables + daily valuation log
"""

from sqlalchemy import (
    Column, Integer, String, Numeric, Date, DateTime,
    Boolean, ForeignKey, Text, Enum as SQLEnum, Index, JSON, UniqueConstraint
)
from sqlalchemy.orm import relationship
import enum

from portfolio_engine.infrastructure.db.database import Base
from portfolio_engine.utils.time import now_ist_naive


# Enums
class HoldingStatusEnum(str, enum.Enum):
    FRESH_BUY = "Fresh-Buy"
    HOLD = "Hold"
    ADDON_BUY = "addon-buy"
    SELL = "Sell"


class PriceHistoryActionEnum(str, enum.Enum):
    ALLOCATE = "allocate"
    BUY = "buy"
    PARTIAL_SELL = "partial_sell"
    COMPLETE_SELL = "complete_sell"


# Tables

class PortfolioModel(Base):
    """Model portfolio (aggregate root)"""
    __tablename__ = "portfolio"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False, unique=True, index=True)
    description = Column(Text, nullable=False, default="")
    category = Column(String(50), nullable=False, default="Basic")

    min_investment = Column(Numeric(14, 2), nullable=False)
    cash_balance = Column(Numeric(14, 2), nullable=False, default=0)
    current_value = Column(Numeric(14, 2), nullable=True)
    monthly_contribution = Column(Numeric(14, 2), nullable=False, default=0)

    duration_months = Column(Integer, nullable=False)
    expiry_date = Column(DateTime, nullable=True)
    compare_with = Column(String(50), nullable=True)
    time_horizon = Column(String(100), nullable=True)
    rebalancing = Column(String(100), nullable=True)
    index_name = Column(String(100), nullable=True)
    details = Column(Text, nullable=True)
    last_rebalance_date = Column(Date, nullable=True)
    next_rebalance_date = Column(Date, nullable=True)

    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, nullable=False, default=now_ist_naive)
    updated_at = Column(DateTime, nullable=False, default=now_ist_naive, onupdate=now_ist_naive)

    # Relationships
    holdings = relationship(
        "HoldingModel",
        back_populates="portfolio",
        cascade="all, delete-orphan",
        order_by="HoldingModel.id",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}


class HoldingModel(Base):
    """One symbol's position within a portfolio"""
    __tablename__ = "holding"

    id = Column(Integer, primary_key=True, autoincrement=True)
    portfolio_id = Column(Integer, ForeignKey("portfolio.id", ondelete="CASCADE"), nullable=False, index=True)
    symbol = Column(String(50), nullable=False)
    sector = Column(String(100), nullable=False, default="")
    stock_cap_type = Column(String(20), nullable=True)

    buy_price = Column(Numeric(14, 4), nullable=False)
    original_buy_price = Column(Numeric(14, 4), nullable=False)
    current_price = Column(Numeric(14, 4), nullable=True)
    quantity = Column(Integer, nullable=False)
    weight = Column(Numeric(8, 4), nullable=False, default=0)
    realized_pnl = Column(Numeric(14, 2), nullable=False, default=0)
    status = Column(
        SQLEnum(HoldingStatusEnum, name="holding_status", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )

    last_updated = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=now_ist_naive)

    # Relationships
    portfolio = relationship("PortfolioModel", back_populates="holdings")
    price_history = relationship(
        "HoldingPriceHistoryModel",
        back_populates="holding",
        cascade="all, delete-orphan",
        order_by="HoldingPriceHistoryModel.id",
        lazy="selectin",
    )

    __table_args__ = (
        UniqueConstraint("portfolio_id", "symbol", name="uq_holding_portfolio_symbol"),
    )


class HoldingPriceHistoryModel(Base):
    """Append-only buy/sell ledger of a holding"""
    __tablename__ = "holding_price_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    holding_id = Column(Integer, ForeignKey("holding.id", ondelete="CASCADE"), nullable=False, index=True)
    date = Column(DateTime, nullable=False)
    price = Column(Numeric(14, 4), nullable=False)
    quantity = Column(Integer, nullable=False)
    action = Column(
        SQLEnum(PriceHistoryActionEnum, name="price_history_action", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )

    holding = relationship("HoldingModel", back_populates="price_history")


class PriceLogModel(Base):
    """
    Daily portfolio valuation
    One row per portfolio per IST calendar day (upserted, never duplicated)
    """
    __tablename__ = "price_log"

    id = Column(Integer, primary_key=True, autoincrement=True)
    portfolio_id = Column(Integer, ForeignKey("portfolio.id", ondelete="CASCADE"), nullable=False)
    date = Column(DateTime, nullable=False, default=now_ist_naive)
    date_only = Column(Date, nullable=False)

    portfolio_value = Column(Numeric(14, 2), nullable=False)
    cash_remaining = Column(Numeric(14, 2), nullable=False)
    benchmark_value = Column(Numeric(14, 4), nullable=True)

    update_count = Column(Integer, nullable=False, default=1)
    used_closing_prices = Column(Boolean, nullable=False, default=False)
    data_verified = Column(Boolean, nullable=False, default=True)
    data_quality_issues = Column(JSON, nullable=False, default=list)

    __table_args__ = (
        Index("uq_price_log_portfolio_day", "portfolio_id", "date_only", unique=True),
        Index("idx_price_log_portfolio_date", "portfolio_id", "date"),
    )
