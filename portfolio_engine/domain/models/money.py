"""
Decimal helpers shared by the engine components.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from portfolio_engine.domain.exceptions import ValidationError

MONEY = Decimal("0.01")
PRICE = Decimal("0.0001")
WEIGHT = Decimal("0.0001")
ZERO = Decimal("0")
HUNDRED = Decimal("100")


def to_decimal(value: Any, field: str = "value") -> Decimal:
    """Coerce ints, floats and numeric strings to Decimal via str()."""
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be numeric", field=field)
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, ValueError):
            raise ValidationError(f"{field} must be numeric, got {value!r}", field=field)
    if not result.is_finite():
        raise ValidationError(f"{field} must be a finite number", field=field)
    return result


def money(value: Decimal) -> Decimal:
    return value.quantize(MONEY, rounding=ROUND_HALF_UP)


def price(value: Decimal) -> Decimal:
    return value.quantize(PRICE, rounding=ROUND_HALF_UP)


def weight(value: Decimal) -> Decimal:
    return value.quantize(WEIGHT, rounding=ROUND_HALF_UP)


def pct(numerator: Decimal, denominator: Decimal) -> Decimal:
    """Percentage rounded to 2dp, zero when the denominator is zero."""
    if denominator == ZERO:
        return ZERO
    return money(numerator / denominator * HUNDRED)
