"""
PORTFOLIO AGGREGATE
Sole mutator of a portfolio's holdings and cash balance

CASH REGIMES (never mixed within one write):
1. Allocation (create / update / add / delete / replace):
   cash = max(0, min_investment - Σ active cost), recomputed from scratch
2. Wallet (buy / sell):
   cash adjusted incrementally, debit on buy, full proceeds credited on sell

Every write passes the weight validator before it is returned for
persistence. Client-supplied cash / value totals are never applied.
"""

import logging
from dataclasses import replace
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple

from portfolio_engine.domain.exceptions import NotFoundError, OverAllocationError, ValidationError
from portfolio_engine.domain.models import (
    AllocateCommand,
    AllocationAction,
    AllocationResult,
    ApplyOutcome,
    Holding,
    HoldingInput,
    HoldingStatus,
    Portfolio,
    PortfolioCommand,
    PriceHistoryAction,
    PriceHistoryEntry,
    TransactCommand,
    TransactionAction,
)
from portfolio_engine.domain.models.money import ZERO, money, to_decimal
from portfolio_engine.domain.services.allocation_engine import InvestmentAllocator
from portfolio_engine.domain.services.purchase_processor import PurchaseProcessor
from portfolio_engine.domain.services.sale_processor import SaleProcessor
from portfolio_engine.domain.services.tamper_detection import detect_tampering
from portfolio_engine.domain.services.weight_validator import WeightValidator
from portfolio_engine.utils.time import now_ist_naive

logger = logging.getLogger(__name__)

ALLOCATION_REGIME = "allocation"
WALLET_REGIME = "wallet"

_AllocationResultMap = Dict[str, AllocationResult]


class PortfolioAggregate:
    """
    Applies commands to a Portfolio snapshot and returns the new snapshot.
    Pure: no I/O; persistence is the caller's job.
    """

    def __init__(
        self,
        allocator: Optional[InvestmentAllocator] = None,
        weight_validator: Optional[WeightValidator] = None,
        purchase_processor: Optional[PurchaseProcessor] = None,
        sale_processor: Optional[SaleProcessor] = None,
        clock: Callable[[], datetime] = now_ist_naive,
    ):
        self.allocator = allocator or InvestmentAllocator()
        self.weight_validator = weight_validator or WeightValidator()
        self.purchase_processor = purchase_processor or PurchaseProcessor()
        self.sale_processor = sale_processor or SaleProcessor()
        self.clock = clock

        self._regimes = {
            "Allocate": self._apply_allocation,
            "Transact": self._apply_transaction,
        }
        self._allocation_actions = {
            AllocationAction.CREATE: self._allocate_create,
            AllocationAction.UPDATE: self._allocate_update,
            AllocationAction.ADD: self._allocate_add,
            AllocationAction.DELETE: self._allocate_delete,
            AllocationAction.REPLACE: self._allocate_replace,
        }
        self._transaction_actions = {
            TransactionAction.BUY: self._buy,
            TransactionAction.SELL: self._sell,
        }

    def apply(self, portfolio: Portfolio, command: PortfolioCommand) -> Tuple[Portfolio, ApplyOutcome]:
        handler = self._regimes.get(command.kind)
        if handler is None:
            raise ValidationError(f"Unknown command kind: {command.kind}", field="kind")
        return handler(portfolio, command)

    # ------------------------------------------------------------------
    # Allocation regime
    # ------------------------------------------------------------------

    def _apply_allocation(self, portfolio: Portfolio, command: AllocateCommand) -> Tuple[Portfolio, ApplyOutcome]:
        action = AllocationAction(command.action)
        handler = self._allocation_actions.get(action)
        if handler is None:
            raise ValidationError(f"Unknown allocation action: {command.action}", field="action")

        inputs = _normalize_inputs(command.holdings)
        now = self.clock()
        holdings, allocations = handler(portfolio, inputs, command, now)

        weights = self.weight_validator.ensure_valid(holdings)

        total_cost = sum((h.buy_price * h.quantity for h in holdings if h.is_active), ZERO)
        if total_cost > portfolio.min_investment:
            raise OverAllocationError(
                f"Total holdings cost ₹{money(total_cost):,.2f} exceeds minimum "
                f"investment ₹{portfolio.min_investment:,.2f}",
                total_weight=weights.total_weight,
                max_allowed=self.weight_validator.max_total_weight,
            )

        updated = replace(
            portfolio,
            holdings=tuple(holdings),
            cash_balance=money(max(ZERO, portfolio.min_investment - total_cost)),
        )
        updated = replace(updated, current_value=updated.computed_value())

        tamper = detect_tampering(command.client_totals, updated)

        logger.info(
            f"📊 Allocation '{action.value}' on {portfolio.name}: "
            f"{len(updated.active_holdings)} active holdings, cost ₹{money(total_cost):,.2f}, "
            f"cash ₹{updated.cash_balance:,.2f}, weight {weights.total_weight}%"
        )
        return updated, ApplyOutcome(
            regime=ALLOCATION_REGIME,
            allocations=allocations,
            weight_validation=weights,
            tamper_report=tamper,
        )

    def _allocate_create(self, portfolio, inputs, command, now):
        if portfolio.holdings:
            raise ValidationError("Portfolio already has holdings; use update or replace", field="action")
        allocations: _AllocationResultMap = {}
        holdings = [self._allocate_holding(portfolio, item, None, now, allocations) for item in inputs]
        return holdings, allocations

    def _allocate_update(self, portfolio, inputs, command, now):
        """Merge inputs by symbol; holdings not mentioned stay as they are."""
        allocations: _AllocationResultMap = {}
        by_symbol = {item.symbol: item for item in inputs}
        holdings = []
        for holding in portfolio.holdings:
            item = by_symbol.pop(holding.symbol, None)
            if item is None:
                holdings.append(holding)
            else:
                holdings.append(self._allocate_holding(portfolio, item, holding, now, allocations))
        for item in by_symbol.values():
            holdings.append(self._allocate_holding(portfolio, item, None, now, allocations))
        return holdings, allocations

    def _allocate_add(self, portfolio, inputs, command, now):
        if not inputs:
            raise ValidationError("No holdings to add", field="holdings")
        allocations: _AllocationResultMap = {}
        holdings = list(portfolio.holdings)
        for item in inputs:
            existing = portfolio.find_holding(item.symbol)
            if existing is not None and existing.is_active:
                raise ValidationError(f"{item.symbol} is already held; use buy to add shares", field="symbol")
            new_holding = self._allocate_holding(portfolio, item, existing, now, allocations)
            holdings = _put_holding(holdings, new_holding)
        return holdings, allocations

    def _allocate_delete(self, portfolio, inputs, command, now):
        symbols = {s.strip().upper() for s in command.remove_symbols} | {i.symbol for i in inputs}
        if not symbols:
            raise ValidationError("No symbols to delete", field="remove_symbols")
        missing = sorted(s for s in symbols if portfolio.find_holding(s) is None)
        if missing:
            raise NotFoundError(f"Holdings not found: {', '.join(missing)}")
        return [h for h in portfolio.holdings if h.symbol not in symbols], {}

    def _allocate_replace(self, portfolio, inputs, command, now):
        """New active set is exactly the inputs; sold rows are kept for audit."""
        allocations: _AllocationResultMap = {}
        holdings = []
        input_symbols = {item.symbol for item in inputs}
        for holding in portfolio.holdings:
            if holding.symbol not in input_symbols and not holding.is_active:
                holdings.append(holding)
        for item in inputs:
            existing = portfolio.find_holding(item.symbol)
            holdings.append(self._allocate_holding(portfolio, item, existing, now, allocations))
        return holdings, allocations

    def _allocate_holding(
        self,
        portfolio: Portfolio,
        item: HoldingInput,
        existing: Optional[Holding],
        now: datetime,
        allocations: _AllocationResultMap,
    ) -> Holding:
        result = self.allocator.calculate_investment_details(
            item.weight, item.buy_price, portfolio.min_investment
        )
        if result.quantity == 0:
            raise ValidationError(
                f"Weight {item.weight}% of ₹{portfolio.min_investment:,.2f} cannot buy one share "
                f"of {item.symbol} at ₹{result.buy_price}",
                field="weight",
            )
        allocations[item.symbol] = result

        entry = PriceHistoryEntry(now, result.buy_price, result.quantity, PriceHistoryAction.ALLOCATE)
        if existing is None:
            return Holding(
                symbol=item.symbol,
                sector=item.sector,
                buy_price=result.buy_price,
                original_buy_price=result.buy_price,
                quantity=result.quantity,
                weight=result.weight_percent,
                status=HoldingStatus.FRESH_BUY,
                stock_cap_type=item.stock_cap_type,
                price_history=(entry,),
                last_updated=now,
            )

        unchanged = (
            existing.is_active
            and existing.quantity == result.quantity
            and existing.buy_price == result.buy_price
        )
        return replace(
            existing,
            sector=item.sector or existing.sector,
            stock_cap_type=item.stock_cap_type or existing.stock_cap_type,
            buy_price=result.buy_price,
            quantity=result.quantity,
            weight=result.weight_percent,
            status=existing.status if existing.is_active else HoldingStatus.FRESH_BUY,
            price_history=existing.price_history if unchanged else existing.price_history + (entry,),
            last_updated=existing.last_updated if unchanged else now,
        )

    # ------------------------------------------------------------------
    # Wallet regime
    # ------------------------------------------------------------------

    def _apply_transaction(self, portfolio: Portfolio, command: TransactCommand) -> Tuple[Portfolio, ApplyOutcome]:
        handler = self._transaction_actions.get(TransactionAction(command.action))
        if handler is None:
            raise ValidationError(f"Unknown transaction action: {command.action}", field="action")
        return handler(portfolio, command)

    def _buy(self, portfolio: Portfolio, command: TransactCommand) -> Tuple[Portfolio, ApplyOutcome]:
        result = self.purchase_processor.process_purchase(
            holdings=portfolio.holdings,
            cash_balance=portfolio.cash_balance,
            symbol=command.symbol,
            buy_price=command.price,
            quantity=command.quantity,
            sector=command.sector,
            weight_percent=command.weight,
            stock_cap_type=command.stock_cap_type,
            total_capital=portfolio.cash_balance + portfolio.holdings_value_at_buy,
            now=self.clock(),
        )
        holdings = _put_holding(portfolio.holdings, result.holding)
        weights = self.weight_validator.ensure_valid(holdings)

        updated = replace(portfolio, holdings=tuple(holdings), cash_balance=result.cash_balance_after)
        updated = replace(updated, current_value=updated.computed_value())
        return updated, ApplyOutcome(regime=WALLET_REGIME, purchase=result, weight_validation=weights)

    def _sell(self, portfolio: Portfolio, command: TransactCommand) -> Tuple[Portfolio, ApplyOutcome]:
        symbol = (command.symbol or "").strip().upper()
        holding = portfolio.find_holding(symbol)
        if holding is None:
            raise NotFoundError(f"Holding {symbol} not found in portfolio {portfolio.name}")

        result = self.sale_processor.process_sale(
            holding=holding,
            quantity_to_sell=command.quantity,
            market_price=command.price,
            cash_balance=portfolio.cash_balance,
            sale_type=command.sale_type,
            now=self.clock(),
        )
        holdings = _put_holding(portfolio.holdings, result.holding)
        weights = self.weight_validator.ensure_valid(holdings)

        updated = replace(portfolio, holdings=tuple(holdings), cash_balance=result.cash_balance_after)
        updated = replace(updated, current_value=updated.computed_value())
        return updated, ApplyOutcome(regime=WALLET_REGIME, sale=result, weight_validation=weights)


def _normalize_inputs(items) -> List[HoldingInput]:
    normalized = []
    seen = set()
    for item in items:
        symbol = (item.symbol or "").strip().upper()
        if not symbol:
            raise ValidationError("Holding symbol is required", field="symbol")
        if symbol in seen:
            raise ValidationError(f"Duplicate symbol {symbol} in request", field="symbol")
        seen.add(symbol)
        normalized.append(replace(
            item,
            symbol=symbol,
            weight=to_decimal(item.weight, "weight"),
            buy_price=to_decimal(item.buy_price, "buy_price"),
        ))
    return normalized


def _put_holding(holdings, holding: Holding) -> List[Holding]:
    result = []
    replaced = False
    for existing in holdings:
        if existing.symbol == holding.symbol:
            result.append(holding)
            replaced = True
        else:
            result.append(existing)
    if not replaced:
        result.append(holding)
    return result
