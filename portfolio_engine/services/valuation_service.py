"""
DAILY VALUATION LOGGER

State per portfolio per IST day: absent → created (update_count=1) → updated (update_count=N)

RULES (LOCKED):
✅ One price_log row per (portfolio, date_only), upserted
✅ Transient storage failures retried with doubling backoff, bounded attempts
✅ One portfolio failing never aborts the batch
✅ Missing quotes fall back to buy price with a warning
"""

import asyncio
import logging
from datetime import datetime
from typing import Awaitable, Callable, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from portfolio_engine.domain.exceptions import NotFoundError, PriceUnavailableError, TransientStorageError
from portfolio_engine.domain.models import Portfolio, ValuationBreakdown
from portfolio_engine.domain.models.money import ZERO, money
from portfolio_engine.infrastructure.db.repositories.portfolio_repository import PortfolioRepository
from portfolio_engine.infrastructure.db.repositories.price_log_repository import PriceLogRepository
from portfolio_engine.infrastructure.market_data.types import PriceQuote, PriceSource
from portfolio_engine.utils.time import now_ist_naive, start_of_day

logger = logging.getLogger(__name__)

PRICE_SOURCE_CLOSING = "closing"
PRICE_SOURCE_CURRENT = "current"
PRICE_SOURCE_BUY = "buy_price"


class DailyValuationService:
    """Values portfolios against the price source and writes the daily log"""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        price_source: PriceSource,
        max_attempts: int = 3,
        base_delay_seconds: float = 1.0,
        concurrency: int = 4,
        clock: Callable[[], datetime] = now_ist_naive,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.session_factory = session_factory
        self.price_source = price_source
        self.max_attempts = max(1, max_attempts)
        self.base_delay_seconds = base_delay_seconds
        self.concurrency = max(1, concurrency)
        self.clock = clock
        self.sleep = sleep

    # ------------------------------------------------------------------
    # Valuation
    # ------------------------------------------------------------------

    async def _quote(self, symbol: str) -> Optional[PriceQuote]:
        try:
            return await self.price_source.get_price(symbol)
        except PriceUnavailableError as e:
            logger.warning(f"⚠️  {e}")
            return None

    async def value_portfolio(self, portfolio: Portfolio, use_closing_prices: bool = False) -> ValuationBreakdown:
        """
        portfolio_value = cash + Σ quantity × price over active holdings

        Price priority: closing (when requested) → current → buy price.
        """
        holdings_value = ZERO
        fallback = []
        sources: Dict[str, int] = {PRICE_SOURCE_CLOSING: 0, PRICE_SOURCE_CURRENT: 0, PRICE_SOURCE_BUY: 0}

        for holding in portfolio.active_holdings:
            quote = await self._quote(holding.symbol)
            if quote is not None and use_closing_prices and quote.closing_price:
                unit_price = quote.closing_price
                sources[PRICE_SOURCE_CLOSING] += 1
            elif quote is not None and quote.current_price:
                unit_price = quote.current_price
                sources[PRICE_SOURCE_CURRENT] += 1
            else:
                unit_price = holding.buy_price
                sources[PRICE_SOURCE_BUY] += 1
                fallback.append(holding.symbol)
                logger.warning(
                    f"⚠️  No quote for {holding.symbol} in {portfolio.name}; using buy price ₹{unit_price}"
                )
            holdings_value += unit_price * holding.quantity

        benchmark = None
        if portfolio.compare_with:
            quote = await self._quote(portfolio.compare_with)
            if quote is not None:
                benchmark = (quote.closing_price if use_closing_prices and quote.closing_price else None) or quote.current_price

        holdings_value = money(holdings_value)
        return ValuationBreakdown(
            portfolio_value=money(portfolio.cash_balance + holdings_value),
            cash_balance=money(portfolio.cash_balance),
            holdings_value=holdings_value,
            used_closing_prices=use_closing_prices,
            benchmark_value=benchmark,
            fallback_symbols=tuple(fallback),
            price_sources=sources,
        )

    # ------------------------------------------------------------------
    # Logging (single portfolio)
    # ------------------------------------------------------------------

    async def _load(self, portfolio_id: int) -> Portfolio:
        async with self.session_factory() as session:
            portfolio = await PortfolioRepository(session).get(portfolio_id)
        if portfolio is None:
            raise NotFoundError(f"Portfolio {portfolio_id} not found")
        return portfolio

    async def _write_once(self, portfolio: Portfolio, breakdown: ValuationBreakdown, at: datetime):
        async with self.session_factory() as session:
            try:
                logs = PriceLogRepository(session)
                previous = await logs.get_for_day(portfolio.id, start_of_day(at))
                entry = await logs.upsert_daily(
                    portfolio_id=portfolio.id,
                    at=at,
                    date_only=start_of_day(at),
                    portfolio_value=breakdown.portfolio_value,
                    cash_remaining=breakdown.cash_balance,
                    used_closing_prices=breakdown.used_closing_prices,
                    benchmark_value=breakdown.benchmark_value,
                    data_verified=breakdown.data_verified,
                    data_quality_issues=breakdown.fallback_symbols,
                )
                await PortfolioRepository(session).update_current_value(portfolio.id, breakdown.portfolio_value)
                await session.commit()
            except TransientStorageError:
                await session.rollback()
                raise
            except SQLAlchemyError as e:
                await session.rollback()
                raise TransientStorageError(f"Valuation write failed for portfolio {portfolio.id}: {e}") from e
        return previous, entry

    async def log_portfolio_value(self, portfolio_id: int, use_closing_prices: bool = False) -> dict:
        """
        Value one portfolio and upsert today's row

        Raises:
            NotFoundError: unknown portfolio
            TransientStorageError: every write attempt failed
        """
        portfolio = await self._load(portfolio_id)
        breakdown = await self.value_portfolio(portfolio, use_closing_prices)
        at = self.clock()

        last_error: Optional[TransientStorageError] = None
        for attempt in range(self.max_attempts):
            try:
                previous, entry = await self._write_once(portfolio, breakdown, at)
                break
            except TransientStorageError as e:
                last_error = e
                if attempt + 1 < self.max_attempts:
                    delay = self.base_delay_seconds * (2 ** attempt)
                    logger.warning(
                        f"🔁 Valuation write for {portfolio.name} failed "
                        f"(attempt {attempt + 1}/{self.max_attempts}), retrying in {delay}s: {e}"
                    )
                    await self.sleep(delay)
        else:
            logger.error(f"❌ Valuation write for {portfolio.name} failed after {self.max_attempts} attempts")
            raise last_error

        if previous is not None:
            action = "updated"
            value_change = entry.portfolio_value - previous.portfolio_value
            logger.info(
                f"📝 UPDATED {portfolio.name}: ₹{previous.portfolio_value} → ₹{entry.portfolio_value} "
                f"(Δ ₹{value_change}, update #{entry.update_count})"
            )
        else:
            action = "created"
            value_change = None
            logger.info(f"📝 LOGGED {portfolio.name}: ₹{entry.portfolio_value} for {entry.date_only}")

        return {
            "portfolio": portfolio.id,
            "portfolio_name": portfolio.name,
            "status": "success",
            "value": float(entry.portfolio_value),
            "cash": float(entry.cash_remaining),
            "action": action,
            "value_change": float(value_change) if value_change is not None else None,
            "update_count": entry.update_count,
            "date_only": entry.date_only.isoformat(),
            "used_closing_prices": entry.used_closing_prices,
            "data_verified": entry.data_verified,
            "data_quality_issues": list(entry.data_quality_issues),
            "price_sources": dict(breakdown.price_sources),
        }

    async def recalculate(self, portfolio_id: int) -> dict:
        """On-demand revaluation with live prices."""
        return await self.log_portfolio_value(portfolio_id, use_closing_prices=False)

    # ------------------------------------------------------------------
    # Batch
    # ------------------------------------------------------------------

    async def log_all_portfolios(self, use_closing_prices: bool = False) -> List[dict]:
        """
        Value every portfolio with bounded concurrency

        Returns:
            One result per portfolio: {portfolio, status: success|failed, value?, error?}
        """
        async with self.session_factory() as session:
            portfolio_ids = await PortfolioRepository(session).list_ids()

        logger.info(
            f"🔄 Daily valuation for {len(portfolio_ids)} portfolios "
            f"({'closing' if use_closing_prices else 'live'} prices)"
        )
        semaphore = asyncio.Semaphore(self.concurrency)

        async def run(portfolio_id: int) -> dict:
            async with semaphore:
                try:
                    return await self.log_portfolio_value(portfolio_id, use_closing_prices)
                except Exception as e:
                    logger.error(f"❌ Valuation failed for portfolio {portfolio_id}: {e}")
                    return {"portfolio": portfolio_id, "status": "failed", "error": str(e)}

        results = await asyncio.gather(*(run(pid) for pid in portfolio_ids))

        succeeded = sum(1 for r in results if r["status"] == "success")
        logger.info(f"✅ Daily valuation done: {succeeded} succeeded, {len(results) - succeeded} failed")
        return list(results)

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    async def deduplicate(self) -> dict:
        """
        Keep the best row per (portfolio, date_only): highest update_count,
        then most recent date. Delete the rest.
        """
        async with self.session_factory() as session:
            groups = await PriceLogRepository(session).find_duplicate_groups()

        found = sum(count - 1 for _, _, count in groups)
        removed = 0
        errors = []
        for portfolio_id, date_only, _ in groups:
            async with self.session_factory() as session:
                try:
                    logs = PriceLogRepository(session)
                    rows = await logs.group_rows(portfolio_id, date_only)
                    if len(rows) < 2:
                        # already cleaned by a concurrent sweep
                        continue
                    keep, drop = rows[0], rows[1:]
                    removed += await logs.delete_ids([r.id for r in drop])
                    await session.commit()
                    logger.info(
                        f"🧹 Portfolio {portfolio_id} {date_only}: kept log {keep.id} "
                        f"(update #{keep.update_count}), removed {len(drop)}"
                    )
                except SQLAlchemyError as e:
                    await session.rollback()
                    logger.error(f"❌ Dedup failed for portfolio {portfolio_id} {date_only}: {e}")
                    errors.append({"portfolio": portfolio_id, "date_only": date_only.isoformat(), "error": str(e)})

        remaining = (await self.integrity())["duplicate_groups"]
        if remaining:
            logger.warning(f"⚠️  {remaining} duplicate groups remain after dedup")
        logger.info(f"🧹 Dedup sweep: found {found}, removed {removed}, errors {len(errors)}")
        return {
            "duplicates_found": found,
            "duplicates_removed": removed,
            "errors": errors,
            "remaining_duplicate_groups": remaining,
        }

    async def integrity(self) -> dict:
        async with self.session_factory() as session:
            logs = PriceLogRepository(session)
            total = await logs.count()
            duplicate_groups = await logs.count_duplicate_groups()
        return {
            "total_logs": total,
            "duplicate_groups": duplicate_groups,
            "healthy": duplicate_groups == 0,
        }
