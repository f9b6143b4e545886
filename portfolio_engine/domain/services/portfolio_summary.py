"""
Portfolio Summary
Financial summary of a portfolio at buy and at market
"""

from decimal import Decimal
from typing import Mapping, Optional

from portfolio_engine.domain.models import MinInvestmentValidation, Portfolio, PortfolioSummary
from portfolio_engine.domain.models.money import ZERO, money, pct
from portfolio_engine.domain.services.weight_validator import WeightValidator


def validate_min_investment_with_profits(portfolio: Portfolio) -> MinInvestmentValidation:
    """
    Active cost may grow beyond min_investment by the realized profits
    booked so far; realized losses never shrink the limit.
    """
    realized = portfolio.realized_pnl
    effective = portfolio.min_investment + max(ZERO, realized)
    total_cost = portfolio.holdings_value_at_buy
    errors = []
    if total_cost > effective:
        errors.append(
            f"Total holdings cost ₹{total_cost:,.2f} exceeds effective minimum "
            f"investment ₹{effective:,.2f}"
        )
    if portfolio.cash_balance < ZERO:
        errors.append(f"Cash balance is negative: ₹{portfolio.cash_balance:,.2f}")
    return MinInvestmentValidation(
        is_valid=not errors,
        min_investment=portfolio.min_investment,
        realized_pnl=money(realized),
        effective_min_investment=money(effective),
        total_cost=money(total_cost),
        cash_balance=money(portfolio.cash_balance),
        errors=tuple(errors),
    )


class PortfolioSummaryService:
    def __init__(self, weight_validator: Optional[WeightValidator] = None):
        self.weight_validator = weight_validator or WeightValidator()

    def summarize(
        self,
        portfolio: Portfolio,
        market_prices: Optional[Mapping[str, Decimal]] = None,
    ) -> PortfolioSummary:
        market_prices = market_prices or {}

        at_buy = ZERO
        at_market = ZERO
        for holding in portfolio.active_holdings:
            at_buy += holding.investment_value_at_buy
            market_price = market_prices.get(holding.symbol) or holding.market_price
            at_market += money(market_price * holding.quantity)

        cash = portfolio.cash_balance
        spendable = max(ZERO, cash)
        realized = portfolio.realized_pnl
        unrealized = at_market - at_buy
        total_pnl = realized + unrealized

        return PortfolioSummary(
            holdings_value_at_buy=money(at_buy),
            holdings_value_at_market=money(at_market),
            cash_balance=money(cash),
            total_value_at_buy=money(at_buy + spendable),
            total_value_at_market=money(at_market + spendable),
            realized_pnl=money(realized),
            unrealized_pnl=money(unrealized),
            total_pnl=money(total_pnl),
            total_pnl_percent=pct(total_pnl, portfolio.min_investment),
            max_purchase_amount=money(spendable),
            active_holdings=len(portfolio.active_holdings),
            sold_holdings=len(portfolio.sold_holdings),
            weight_validation=self.weight_validator.validate(portfolio.holdings),
            min_investment_validation=validate_min_investment_with_profits(portfolio),
        )
