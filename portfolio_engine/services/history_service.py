"""
History Reader
Downsampled valuation series and performance metrics from price_log
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from portfolio_engine.domain.exceptions import NotFoundError, ValidationError
from portfolio_engine.domain.models import Portfolio, PriceLogEntry
from portfolio_engine.domain.models.money import ZERO, pct
from portfolio_engine.infrastructure.db.repositories.portfolio_repository import PortfolioRepository
from portfolio_engine.infrastructure.db.repositories.price_log_repository import PriceLogRepository
from portfolio_engine.utils.time import now_ist_naive

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PeriodConfig:
    days: Optional[int]
    interval_hours: Optional[int] = None
    interval_days: Optional[int] = None

    @property
    def interval(self) -> Optional[timedelta]:
        """Minimum spacing between kept points, None when every row is kept."""
        if self.interval_hours and self.interval_hours > 1:
            return timedelta(hours=self.interval_hours)
        if self.interval_days and self.interval_days > 1:
            return timedelta(days=self.interval_days)
        return None


PERIOD_CONFIG: Dict[str, PeriodConfig] = {
    "1d": PeriodConfig(days=1, interval_hours=1),
    "1w": PeriodConfig(days=7, interval_hours=12),
    "1m": PeriodConfig(days=30, interval_days=1),
    "3m": PeriodConfig(days=90, interval_days=7),
    "6m": PeriodConfig(days=180, interval_days=7),
    "1y": PeriodConfig(days=365, interval_days=14),
    "all": PeriodConfig(days=None, interval_days=7),
}

# (period days, metric name, minimum portfolio age in days)
PERIOD_GAINS = (
    (30, "one_month_gain", 14),
    (365, "one_year_gain", 90),
)
CAGR_MIN_AGE_DAYS = 730


def downsample(rows: Sequence[PriceLogEntry], interval: Optional[timedelta]) -> List[PriceLogEntry]:
    """
    Greedy thinning of a date-ordered series: keep the first row, then every
    row at least ``interval`` after the last kept one, and always the last row.
    """
    if not rows:
        return []
    if interval is None:
        return list(rows)

    kept = [rows[0]]
    for row in rows[1:]:
        if row.date - kept[-1].date >= interval:
            kept.append(row)
    if kept[-1] is not rows[-1]:
        kept.append(rows[-1])
    return kept


def build_points(rows: Sequence[PriceLogEntry]) -> List[dict]:
    if not rows:
        return []
    baseline = rows[0].portfolio_value
    points = []
    previous: Optional[PriceLogEntry] = None
    for row in rows:
        point = {
            "date": row.date.isoformat(),
            "value": float(row.portfolio_value),
            "cash": float(row.cash_remaining),
            "change": None,
            "change_percent": None,
            "gain": float(row.portfolio_value - baseline),
            "gain_percent": float(pct(row.portfolio_value - baseline, baseline)),
        }
        if previous is not None:
            change = row.portfolio_value - previous.portfolio_value
            point["change"] = float(change)
            point["change_percent"] = float(pct(change, previous.portfolio_value))
        points.append(point)
        previous = row
    return points


def closest_to(rows: Sequence[PriceLogEntry], target: datetime) -> PriceLogEntry:
    return min(rows, key=lambda r: abs((r.date - target).total_seconds()))


def performance_metrics(portfolio: Portfolio, rows: Sequence[PriceLogEntry], now: datetime) -> dict:
    """Period gains and CAGR, each 0.0 until enough history exists."""
    created = portfolio.created_at or (rows[0].date if rows else now)
    age_days = max(0, (now - created).days)
    if rows:
        current_value = rows[-1].portfolio_value
    else:
        current_value = portfolio.current_value if portfolio.current_value is not None else portfolio.computed_value()

    metrics = {
        "portfolio_id": portfolio.id,
        "age_days": age_days,
        "current_value": float(current_value),
        "data_points": len(rows),
    }

    for period_days, name, min_age in PERIOD_GAINS:
        gain = ZERO
        if age_days >= min_age and len(rows) >= 2:
            reference = closest_to(rows, now - timedelta(days=min(period_days, age_days)))
            gain = pct(current_value - reference.portfolio_value, reference.portfolio_value)
        metrics[name] = float(gain)

    cagr = 0.0
    if age_days >= CAGR_MIN_AGE_DAYS and portfolio.min_investment > ZERO and current_value > ZERO:
        years = age_days / 365.25
        ratio = float(current_value / portfolio.min_investment)
        cagr = round((ratio ** (1 / years) - 1) * 100, 2)
    metrics["cagr"] = cagr
    return metrics


class HistoryService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.portfolios = PortfolioRepository(session)
        self.logs = PriceLogRepository(session)

    async def _portfolio(self, portfolio_id: int) -> Portfolio:
        portfolio = await self.portfolios.get(portfolio_id)
        if portfolio is None:
            raise NotFoundError(f"Portfolio {portfolio_id} not found")
        return portfolio

    async def get_history(self, portfolio_id: int, period: str = "1m", now: Optional[datetime] = None) -> dict:
        config = PERIOD_CONFIG.get(period)
        if config is None:
            raise ValidationError(
                f"Unknown period '{period}'. Use one of: {', '.join(PERIOD_CONFIG)}", field="period"
            )
        await self._portfolio(portfolio_id)

        now = now or now_ist_naive()
        since = now - timedelta(days=config.days) if config.days else None
        rows = await self.logs.history(portfolio_id, since=since)
        kept = downsample(rows, config.interval)

        logger.debug(f"History {portfolio_id} {period}: {len(rows)} rows → {len(kept)} points")
        return {
            "portfolio_id": portfolio_id,
            "period": period,
            "data_points": len(kept),
            "baseline_value": float(kept[0].portfolio_value) if kept else None,
            "baseline_date": kept[0].date.isoformat() if kept else None,
            "data": build_points(kept),
        }

    async def get_performance(self, portfolio_id: int, now: Optional[datetime] = None) -> dict:
        portfolio = await self._portfolio(portfolio_id)
        rows = await self.logs.history(portfolio_id)
        return performance_metrics(portfolio, rows, now or now_ist_naive())
