"""
Buy / Averaging Processor
Merge a purchase into an existing holding or open a new one
"""

import logging
from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional, Sequence

from portfolio_engine.domain.exceptions import InsufficientFundsError, ValidationError
from portfolio_engine.domain.models import (
    CashValidation,
    Holding,
    HoldingStatus,
    PriceHistoryAction,
    PriceHistoryEntry,
    PurchaseResult,
    StockCapType,
)
from portfolio_engine.domain.models.money import HUNDRED, ZERO, money, price, to_decimal, weight
from portfolio_engine.utils.time import now_ist_naive

logger = logging.getLogger(__name__)


def validate_quantity(quantity: Any, allow_zero: bool = True) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationError(f"Quantity must be a whole number, got {quantity!r}", field="quantity")
    if quantity < 0 or (quantity == 0 and not allow_zero):
        raise ValidationError(f"Quantity must be positive, got {quantity}", field="quantity")
    return quantity


def validate_cash_balance(available: Decimal, required: Decimal, symbol: str) -> CashValidation:
    """Check a purchase of ``required`` fits in ``available`` cash."""
    shortfall = max(ZERO, required - available)
    if shortfall > ZERO:
        message = (
            f"Insufficient cash for {symbol}: remaining ₹{available:,.2f}, "
            f"trying to add ₹{required:,.2f}"
        )
    else:
        message = f"Cash sufficient for {symbol}"
    return CashValidation(
        is_valid=shortfall == ZERO,
        required=money(required),
        available=money(available),
        shortfall=money(shortfall),
        message=message,
    )


def calculate_average_price(
    existing_quantity: int,
    existing_price: Decimal,
    new_quantity: int,
    new_price: Decimal,
) -> Decimal:
    """Weighted-average cost basis, rounded to 4dp."""
    total_quantity = existing_quantity + new_quantity
    if total_quantity <= 0:
        raise ValidationError("Cannot average a holding with zero total quantity", field="quantity")
    total_cost = existing_quantity * existing_price + new_quantity * new_price
    return price(total_cost / total_quantity)


class PurchaseProcessor:
    """Applies a single buy to a set of holdings under a cash constraint"""

    def process_purchase(
        self,
        holdings: Sequence[Holding],
        cash_balance: Decimal,
        symbol: str,
        buy_price: Any,
        quantity: Any,
        sector: str = "",
        weight_percent: Optional[Any] = None,
        stock_cap_type: Optional[StockCapType] = None,
        total_capital: Optional[Decimal] = None,
        now: Optional[datetime] = None,
    ) -> PurchaseResult:
        """
        Process a buy

        Args:
            holdings: Current holdings of the portfolio
            cash_balance: Wallet cash available for the purchase
            symbol: Stock symbol
            buy_price: Purchase price per share
            quantity: Shares to buy; 0 refreshes the price of an active holding
            weight_percent: Target weight; defaults to the existing weight, or
                cost / total_capital for a new holding
            total_capital: Capital base for deriving a new holding's weight

        Returns:
            PurchaseResult with the new holding state and cash after the buy

        Raises:
            ValidationError: bad symbol, price or quantity
            InsufficientFundsError: cash balance cannot cover the purchase
        """
        symbol = (symbol or "").strip().upper()
        if not symbol:
            raise ValidationError("Symbol is required", field="symbol")
        unit_price = to_decimal(buy_price, "buy_price")
        if unit_price <= ZERO:
            raise ValidationError(f"Buy price must be positive, got {unit_price}", field="buy_price")
        quantity = validate_quantity(quantity)
        requested_weight = to_decimal(weight_percent, "weight") if weight_percent is not None else None

        required = unit_price * quantity
        cash_check = validate_cash_balance(cash_balance, required, symbol)
        if not cash_check.is_valid:
            raise InsufficientFundsError(symbol, money(required), money(cash_balance))

        now = now or now_ist_naive()
        existing = next((h for h in holdings if h.symbol == symbol), None)

        if existing is not None and existing.is_active:
            if quantity == 0:
                refreshed = replace(existing, current_price=unit_price, last_updated=now)
                logger.info(f"🔄 Price refresh {symbol}: ₹{unit_price}")
                return PurchaseResult(
                    holding=refreshed,
                    is_new=False,
                    price_refresh_only=True,
                    quantity_bought=0,
                    cash_spent=ZERO,
                    cash_balance_after=money(cash_balance),
                )

            average = calculate_average_price(
                existing.quantity, existing.buy_price, quantity, unit_price
            )
            holding = replace(
                existing,
                buy_price=average,
                quantity=existing.quantity + quantity,
                status=HoldingStatus.ADDON_BUY,
                weight=requested_weight if requested_weight else existing.weight,
                sector=sector or existing.sector,
                stock_cap_type=stock_cap_type or existing.stock_cap_type,
                current_price=unit_price,
                last_updated=now,
                price_history=existing.price_history + (
                    PriceHistoryEntry(now, unit_price, quantity, PriceHistoryAction.BUY),
                ),
            )
            logger.info(
                f"➕ Averaged {symbol}: {existing.quantity}@{existing.buy_price} + "
                f"{quantity}@{unit_price} → {holding.quantity}@{average}"
            )
            return self._result(holding, False, quantity, required, cash_balance, existing.buy_price)

        if quantity == 0:
            raise ValidationError(
                f"Cannot refresh price of {symbol}: no active holding", field="quantity"
            )

        if requested_weight:
            new_weight = requested_weight
        elif total_capital and total_capital > ZERO:
            new_weight = weight(required / total_capital * HUNDRED)
        else:
            new_weight = ZERO

        entry = PriceHistoryEntry(now, unit_price, quantity, PriceHistoryAction.BUY)
        if existing is not None:
            # Re-entry into a previously sold symbol keeps its audit trail
            holding = replace(
                existing,
                buy_price=unit_price,
                quantity=quantity,
                weight=new_weight,
                status=HoldingStatus.FRESH_BUY,
                sector=sector or existing.sector,
                stock_cap_type=stock_cap_type or existing.stock_cap_type,
                current_price=unit_price,
                last_updated=now,
                price_history=existing.price_history + (entry,),
            )
            logger.info(f"🆕 Re-opened {symbol}: {quantity}@{unit_price}")
        else:
            holding = Holding(
                symbol=symbol,
                sector=sector,
                buy_price=unit_price,
                original_buy_price=unit_price,
                quantity=quantity,
                weight=new_weight,
                status=HoldingStatus.FRESH_BUY,
                current_price=unit_price,
                stock_cap_type=stock_cap_type,
                price_history=(entry,),
                last_updated=now,
            )
            logger.info(f"🆕 New holding {symbol}: {quantity}@{unit_price}")

        return self._result(holding, True, quantity, required, cash_balance, None)

    @staticmethod
    def _result(
        holding: Holding,
        is_new: bool,
        quantity: int,
        spent: Decimal,
        cash_balance: Decimal,
        previous_buy_price: Optional[Decimal],
    ) -> PurchaseResult:
        return PurchaseResult(
            holding=holding,
            is_new=is_new,
            price_refresh_only=False,
            quantity_bought=quantity,
            cash_spent=money(spent),
            cash_balance_after=money(cash_balance - spent),
            previous_buy_price=previous_buy_price,
        )
