import pytest
from decimal import Decimal

from portfolio_engine.domain.exceptions import OverAllocationError, ValidationError
from portfolio_engine.domain.models import Holding, HoldingStatus
from portfolio_engine.domain.services.weight_validator import WeightValidator


def _holding(symbol, weight, quantity=10, status=HoldingStatus.FRESH_BUY):
    return Holding(
        symbol=symbol,
        sector="",
        buy_price=Decimal("100"),
        original_buy_price=Decimal("100"),
        quantity=quantity,
        weight=Decimal(str(weight)),
        status=status,
    )


class _LooseHolding:
    """Stand-in for rows that never went through Holding validation"""

    def __init__(self, symbol, weight, status):
        self.symbol = symbol
        self.weight = weight
        self.status = status


@pytest.fixture
def validator():
    return WeightValidator()


class TestWeightValidator:

    def test_valid_total(self, validator):
        result = validator.validate([_holding("A", 60), _holding("B", 40)])

        assert result.is_valid
        assert result.total_weight == Decimal("100.0000")
        assert result.remaining_weight == Decimal("0.0000")
        assert result.active_count == 2
        assert result.errors == ()

    def test_sold_holdings_excluded(self, validator):
        holdings = [
            _holding("A", 70),
            _holding("B", 0, quantity=0, status=HoldingStatus.SELL),
        ]
        result = validator.validate(holdings)

        assert result.is_valid
        assert result.total_weight == Decimal("70.0000")
        assert result.remaining_weight == Decimal("30.0000")
        assert result.sold_count == 1

    def test_over_allocation_reported(self, validator):
        result = validator.validate([_holding("A", 60), _holding("B", "40.5")])

        assert not result.is_valid
        assert result.total_weight == Decimal("100.5000")
        assert "exceeds maximum" in result.errors[0]

    def test_negative_weight_is_error(self, validator):
        result = validator.validate([_LooseHolding("A", Decimal("-1"), HoldingStatus.HOLD)])
        assert not result.is_valid
        assert "Negative weight" in result.errors[0]

    def test_sold_with_weight_is_warning_only(self, validator):
        result = validator.validate([
            _LooseHolding("A", Decimal("50"), HoldingStatus.HOLD),
            _LooseHolding("B", Decimal("5"), HoldingStatus.SELL),
        ])
        assert result.is_valid
        assert len(result.warnings) == 1
        assert "B" in result.warnings[0]

    def test_ensure_valid_raises_over_allocation(self, validator):
        with pytest.raises(OverAllocationError) as exc:
            validator.ensure_valid([_holding("A", 80), _holding("B", 30)])
        assert exc.value.total_weight == Decimal("110.0000")

    def test_ensure_valid_raises_validation_for_negative(self, validator):
        with pytest.raises(ValidationError):
            validator.ensure_valid([_LooseHolding("A", Decimal("-3"), HoldingStatus.HOLD)])

    def test_custom_maximum(self):
        validator = WeightValidator(max_total_weight=Decimal("80"))
        result = validator.validate([_holding("A", 85)])
        assert not result.is_valid
        assert result.max_allowed == Decimal("80")
