"""
Weight Validator
Active holdings' weights must never exceed the total capital
"""

import logging
from decimal import Decimal
from typing import Iterable

from portfolio_engine.domain.exceptions import OverAllocationError, ValidationError
from portfolio_engine.domain.models import HoldingStatus, WeightValidation
from portfolio_engine.domain.models.money import HUNDRED, ZERO, to_decimal, weight

logger = logging.getLogger(__name__)


class WeightValidator:
    """Validates holding weights against the allowed maximum"""

    def __init__(self, max_total_weight: Decimal = HUNDRED):
        self.max_total_weight = Decimal(str(max_total_weight))

    def validate(self, holdings: Iterable) -> WeightValidation:
        """
        Validate weights of anything exposing ``symbol``, ``weight`` and ``status``.

        Sold holdings are excluded from the total; a non-zero weight on a
        sold holding is reported as a warning only.
        """
        active = []
        sold = []
        for holding in holdings:
            if holding.status == HoldingStatus.SELL:
                sold.append(holding)
            else:
                active.append(holding)

        errors = []
        warnings = []

        total = ZERO
        for holding in active:
            w = to_decimal(holding.weight, "weight")
            if w < ZERO:
                errors.append(f"Negative weight {w}% for {holding.symbol}")
            total += w

        for holding in sold:
            w = to_decimal(holding.weight, "weight")
            if w != ZERO:
                warnings.append(f"Sold holding {holding.symbol} still carries weight {w}%")

        if total > self.max_total_weight:
            errors.append(
                f"Total weight {weight(total)}% exceeds maximum {self.max_total_weight}%"
            )

        for warning in warnings:
            logger.warning(f"⚠️  {warning}")

        return WeightValidation(
            is_valid=not errors,
            total_weight=weight(total),
            remaining_weight=weight(self.max_total_weight - total),
            max_allowed=self.max_total_weight,
            active_count=len(active),
            sold_count=len(sold),
            errors=tuple(errors),
            warnings=tuple(warnings),
        )

    def ensure_valid(self, holdings: Iterable) -> WeightValidation:
        """Validate and raise on failure. Used before any write is persisted."""
        result = self.validate(holdings)
        if result.is_valid:
            return result
        if result.total_weight > self.max_total_weight:
            raise OverAllocationError(
                "; ".join(result.errors),
                total_weight=result.total_weight,
                max_allowed=self.max_total_weight,
            )
        raise ValidationError("; ".join(result.errors), field="weight")
