"""
Unit Tests for the buy / averaging processor
"""

import pytest
from datetime import datetime
from decimal import Decimal

from portfolio_engine.domain.exceptions import InsufficientFundsError, ValidationError
from portfolio_engine.domain.models import (
    Holding,
    HoldingStatus,
    PriceHistoryAction,
    PriceHistoryEntry,
)
from portfolio_engine.domain.services.purchase_processor import (
    PurchaseProcessor,
    calculate_average_price,
    validate_cash_balance,
)

NOW = datetime(2026, 3, 2, 11, 0)


@pytest.fixture
def processor():
    return PurchaseProcessor()


@pytest.fixture
def infy():
    return Holding(
        symbol="INFY",
        sector="IT",
        buy_price=Decimal("100"),
        original_buy_price=Decimal("100"),
        quantity=10,
        weight=Decimal("10"),
        status=HoldingStatus.FRESH_BUY,
        price_history=(PriceHistoryEntry(NOW, Decimal("100"), 10, PriceHistoryAction.ALLOCATE),),
    )


class TestPurchaseProcessor:

    def test_averaging(self, processor, infy):
        """10@100 + 10@120 → 20@110"""
        result = processor.process_purchase(
            [infy], Decimal("5000"), "INFY", Decimal("120"), 10, now=NOW
        )

        assert result.holding.quantity == 20
        assert result.holding.buy_price == Decimal("110.0000")
        assert result.holding.original_buy_price == Decimal("100")
        assert result.holding.status == HoldingStatus.ADDON_BUY
        assert result.holding.weight == Decimal("10")
        assert result.previous_buy_price == Decimal("100")
        assert result.cash_spent == Decimal("1200.00")
        assert result.cash_balance_after == Decimal("3800.00")
        assert result.holding.price_history[-1] == PriceHistoryEntry(
            NOW, Decimal("120"), 10, PriceHistoryAction.BUY
        )
        assert not result.is_new

    def test_new_holding_weight_from_capital(self, processor):
        result = processor.process_purchase(
            [], Decimal("10000"), "hdfc", Decimal("250"), 8,
            sector="Banking", total_capital=Decimal("20000"), now=NOW,
        )

        assert result.is_new
        assert result.holding.symbol == "HDFC"
        assert result.holding.status == HoldingStatus.FRESH_BUY
        assert result.holding.weight == Decimal("10.0000")
        assert result.cash_balance_after == Decimal("8000.00")

    def test_requested_weight_wins(self, processor, infy):
        result = processor.process_purchase(
            [infy], Decimal("5000"), "INFY", Decimal("100"), 5,
            weight_percent=Decimal("15"), now=NOW,
        )
        assert result.holding.weight == Decimal("15")

    def test_insufficient_funds(self, processor, infy):
        with pytest.raises(InsufficientFundsError) as exc:
            processor.process_purchase([infy], Decimal("500"), "INFY", Decimal("120"), 10, now=NOW)

        assert exc.value.required == Decimal("1200.00")
        assert exc.value.available == Decimal("500.00")
        assert exc.value.shortfall == Decimal("700.00")

    def test_zero_quantity_refreshes_price_only(self, processor, infy):
        result = processor.process_purchase([infy], Decimal("0"), "INFY", Decimal("130"), 0, now=NOW)

        assert result.price_refresh_only
        assert result.holding.quantity == 10
        assert result.holding.buy_price == Decimal("100")
        assert result.holding.current_price == Decimal("130")
        assert result.cash_spent == Decimal("0")
        assert result.holding.price_history == infy.price_history

    def test_zero_quantity_on_unknown_symbol(self, processor):
        with pytest.raises(ValidationError):
            processor.process_purchase([], Decimal("1000"), "WIPRO", Decimal("100"), 0, now=NOW)

    def test_rebuy_after_complete_sale_reopens_row(self, processor):
        sold = Holding(
            symbol="ITC",
            sector="FMCG",
            buy_price=Decimal("400"),
            original_buy_price=Decimal("380"),
            quantity=0,
            weight=Decimal("0"),
            status=HoldingStatus.SELL,
            realized_pnl=Decimal("250"),
            price_history=(
                PriceHistoryEntry(NOW, Decimal("380"), 5, PriceHistoryAction.BUY),
                PriceHistoryEntry(NOW, Decimal("430"), -5, PriceHistoryAction.COMPLETE_SELL),
            ),
        )
        result = processor.process_purchase([sold], Decimal("5000"), "ITC", Decimal("410"), 3, now=NOW)

        assert result.is_new
        assert result.holding.status == HoldingStatus.FRESH_BUY
        assert result.holding.quantity == 3
        assert result.holding.buy_price == Decimal("410")
        assert result.holding.original_buy_price == Decimal("380")
        assert result.holding.realized_pnl == Decimal("250")
        assert len(result.holding.price_history) == 3

    @pytest.mark.parametrize(
        "quantity, new_price",
        [(1, "250"), (7, "99.5"), (30, "12.3456"), (10, "100"), (500, "100.0001")],
    )
    def test_average_stays_between_old_and_new_price(self, processor, infy, quantity, new_price):
        new_price = Decimal(new_price)
        result = processor.process_purchase(
            [infy], Decimal("1000000"), "INFY", new_price, quantity, now=NOW
        )

        low, high = sorted((infy.buy_price, new_price))
        assert low <= result.holding.buy_price <= high

    @pytest.mark.parametrize("quantity", [-1, 1.5, "3", True])
    def test_bad_quantity(self, processor, infy, quantity):
        with pytest.raises(ValidationError):
            processor.process_purchase([infy], Decimal("5000"), "INFY", Decimal("100"), quantity, now=NOW)


def test_calculate_average_price_rounds_to_four_places():
    assert calculate_average_price(3, Decimal("100"), 1, Decimal("101")) == Decimal("100.2500")
    assert calculate_average_price(2, Decimal("10"), 1, Decimal("11")) == Decimal("10.3333")


def test_validate_cash_balance_message():
    check = validate_cash_balance(Decimal("100"), Decimal("150"), "ABC")
    assert not check.is_valid
    assert check.shortfall == Decimal("50.00")
    assert "remaining ₹100.00" in check.message


@pytest.mark.parametrize(
    "old_qty, old_price, new_qty, new_price",
    [
        (1, "1", 1, "3"),
        (3, "120.75", 1, "80"),
        (1000, "0.05", 1, "999.9999"),
        (4, "500", 4, "500"),
    ],
)
def test_calculate_average_price_is_bounded(old_qty, old_price, new_qty, new_price):
    old_price, new_price = Decimal(old_price), Decimal(new_price)

    average = calculate_average_price(old_qty, old_price, new_qty, new_price)

    assert min(old_price, new_price) <= average <= max(old_price, new_price)
