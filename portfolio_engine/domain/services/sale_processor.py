"""
Sell / P&L Processor

Wallet semantics: the full sale proceeds are credited to cash. Profit or
loss against the cost basis is tracked as realized P&L and never adjusts
the cash credit.
"""

import logging
from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from portfolio_engine.domain.exceptions import ValidationError
from portfolio_engine.domain.models import (
    Holding,
    HoldingStatus,
    PriceHistoryAction,
    PriceHistoryEntry,
    SaleResult,
    SaleType,
)
from portfolio_engine.domain.models.money import ZERO, money, pct, to_decimal
from portfolio_engine.domain.services.purchase_processor import validate_quantity
from portfolio_engine.utils.time import now_ist_naive

logger = logging.getLogger(__name__)


class SaleProcessor:
    """Liquidates all or part of a holding at the current market price"""

    def process_sale(
        self,
        holding: Holding,
        quantity_to_sell: Optional[Any],
        market_price: Any,
        cash_balance: Decimal,
        sale_type: SaleType = SaleType.PARTIAL,
        now: Optional[datetime] = None,
    ) -> SaleResult:
        """
        Sell shares of a holding

        A ``complete`` sale liquidates the whole remaining quantity; a
        ``partial`` sale covering the remaining quantity is treated as
        complete.

        Raises:
            ValidationError: holding already sold, quantity out of range or
                non-positive market price
        """
        if not holding.is_active:
            raise ValidationError(f"{holding.symbol} has already been sold", field="symbol")

        sale_type = SaleType(sale_type)
        if quantity_to_sell is None:
            if sale_type != SaleType.COMPLETE:
                raise ValidationError("Quantity is required for a partial sale", field="quantity")
            quantity_to_sell = holding.quantity
        quantity_to_sell = validate_quantity(quantity_to_sell, allow_zero=False)
        if quantity_to_sell > holding.quantity:
            raise ValidationError(
                f"Cannot sell {quantity_to_sell} shares of {holding.symbol}. "
                f"Only {holding.quantity} shares available.",
                field="quantity",
            )

        sale_price = to_decimal(market_price, "market_price")
        if sale_price <= ZERO:
            raise ValidationError(f"Market price must be positive, got {sale_price}", field="market_price")

        is_complete = sale_type == SaleType.COMPLETE or quantity_to_sell >= holding.quantity
        if is_complete:
            quantity_to_sell = holding.quantity

        sale_value = money(quantity_to_sell * sale_price)
        cost_basis = money(quantity_to_sell * holding.buy_price)
        profit_loss = sale_value - cost_basis
        remaining = holding.quantity - quantity_to_sell
        now = now or now_ist_naive()

        if is_complete:
            updated = replace(
                holding,
                quantity=0,
                weight=ZERO,
                status=HoldingStatus.SELL,
                realized_pnl=holding.realized_pnl + profit_loss,
                current_price=sale_price,
                last_updated=now,
                price_history=holding.price_history + (
                    PriceHistoryEntry(now, sale_price, -quantity_to_sell, PriceHistoryAction.COMPLETE_SELL),
                ),
            )
        else:
            updated = replace(
                holding,
                quantity=remaining,
                status=HoldingStatus.HOLD,
                realized_pnl=holding.realized_pnl + profit_loss,
                current_price=sale_price,
                last_updated=now,
                price_history=holding.price_history + (
                    PriceHistoryEntry(now, sale_price, -quantity_to_sell, PriceHistoryAction.PARTIAL_SELL),
                ),
            )

        cash_after = money(cash_balance + sale_value)
        logger.info(
            f"💰 Sold {quantity_to_sell} {holding.symbol} @ ₹{sale_price}: "
            f"proceeds ₹{sale_value} credited, P&L ₹{profit_loss} "
            f"({'complete' if is_complete else 'partial'}, {remaining} left)"
        )

        return SaleResult(
            holding=updated,
            symbol=holding.symbol,
            quantity_sold=quantity_to_sell,
            sale_price=sale_price,
            sale_value=sale_value,
            cost_basis=cost_basis,
            profit_loss=profit_loss,
            profit_loss_percent=pct(profit_loss, cost_basis),
            is_complete_sale=is_complete,
            cash_balance_after=cash_after,
            remaining_quantity=0 if is_complete else remaining,
        )
