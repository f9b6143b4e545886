"""
INVESTMENT ALLOCATOR
Convert a target weight % → whole shares of a stock

RESPONSIBILITIES:
- Turn weight % of total capital into an allocated amount
- Floor() to whole shares
- Apply the tolerance rule (round up one share when the gap is small)
- Report the weight actually achieved

RULES (LOCKED):
❌ No fractional shares
❌ No I/O, no clock, no randomness
✅ Same inputs → same outputs (recomputed for tamper detection)
✅ Round up only when one more share costs ≤ tolerance % of its price
"""

from decimal import Decimal, ROUND_FLOOR
from typing import Any

from portfolio_engine.domain.exceptions import ValidationError
from portfolio_engine.domain.models import AllocationResult
from portfolio_engine.domain.models.money import HUNDRED, ZERO, money, to_decimal, weight


class InvestmentAllocator:
    """
    Investment Allocator
    Pure weight → quantity conversion
    """

    def __init__(
        self,
        tolerance_pct: Decimal = Decimal("10"),
        max_weight: Decimal = HUNDRED,
    ):
        """
        Args:
            tolerance_pct: Max idle cash, as % of one share's price, tolerated
                before rounding up by one share (default 10%)
            max_weight: Upper bound for a single holding's weight
        """
        self.tolerance_pct = Decimal(str(tolerance_pct))
        self.max_weight = Decimal(str(max_weight))

    def calculate_investment_details(
        self,
        weight_percent: Any,
        buy_price: Any,
        total_investment: Any,
    ) -> AllocationResult:
        """
        Calculate share quantity and actual cost for a weighted allocation

        Args:
            weight_percent: Target weight in (0, max_weight]
            buy_price: Price per share (> 0)
            total_investment: Total capital the weight applies to (> 0)

        Returns:
            AllocationResult with quantity, actual amount, leftover and
            accurate weight
        """
        weight_pct = to_decimal(weight_percent, "weight")
        price = to_decimal(buy_price, "buy_price")
        total = to_decimal(total_investment, "total_investment")

        if weight_pct <= ZERO or weight_pct > self.max_weight:
            raise ValidationError(
                f"Weight must be in (0, {self.max_weight}], got {weight_pct}", field="weight"
            )
        if price <= ZERO:
            raise ValidationError(f"Buy price must be positive, got {price}", field="buy_price")
        if total <= ZERO:
            raise ValidationError(
                f"Total investment must be positive, got {total}", field="total_investment"
            )

        allocated = weight_pct / HUNDRED * total
        quantity = int((allocated / price).to_integral_value(rounding=ROUND_FLOOR))
        leftover = allocated - quantity * price

        # Tolerance rule: one more share if the gap to it is small
        rounded_up = False
        gap = price - leftover
        if leftover >= ZERO and gap <= price * self.tolerance_pct / HUNDRED:
            quantity += 1
            leftover = allocated - quantity * price
            rounded_up = True

        actual = quantity * price

        return AllocationResult(
            weight_percent=weight_pct,
            buy_price=price,
            total_investment=total,
            allocated_amount=money(allocated),
            quantity=quantity,
            actual_investment_amount=money(actual),
            leftover_amount=money(leftover),
            accurate_weight=weight(actual / total * HUNDRED),
            rounded_up=rounded_up,
        )
