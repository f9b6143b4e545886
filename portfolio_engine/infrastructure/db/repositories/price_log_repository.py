"""
Price Log Repository
Daily valuation rows: idempotent upsert, history reads, dedup maintenance
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, delete
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import InterfaceError, OperationalError
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, List, Sequence, Tuple

from portfolio_engine.domain.exceptions import TransientStorageError
from portfolio_engine.domain.models import PriceLogEntry
from portfolio_engine.infrastructure.db.models import PriceLogModel

_TRANSIENT_ERRORS = (OperationalError, InterfaceError)


class PriceLogRepository:
    """Repository for PriceLog rows"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _insert(self):
        dialect = self.session.bind.dialect.name if self.session.bind is not None else "postgresql"
        if dialect == "sqlite":
            return sqlite.insert(PriceLogModel)
        return postgresql.insert(PriceLogModel)

    async def upsert_daily(
        self,
        portfolio_id: int,
        at: datetime,
        date_only: date,
        portfolio_value: Decimal,
        cash_remaining: Decimal,
        used_closing_prices: bool,
        benchmark_value: Optional[Decimal] = None,
        data_verified: bool = True,
        data_quality_issues: Sequence[str] = (),
    ) -> PriceLogEntry:
        """
        Create today's row or update it in place, incrementing update_count

        Raises:
            TransientStorageError: retryable database failure
        """
        values = dict(
            portfolio_id=portfolio_id,
            date=at,
            date_only=date_only,
            portfolio_value=portfolio_value,
            cash_remaining=cash_remaining,
            used_closing_prices=used_closing_prices,
            benchmark_value=benchmark_value,
            data_verified=data_verified,
            data_quality_issues=list(data_quality_issues),
            update_count=1,
        )
        stmt = self._insert().values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[PriceLogModel.portfolio_id, PriceLogModel.date_only],
            set_={
                "date": stmt.excluded.date,
                "portfolio_value": stmt.excluded.portfolio_value,
                "cash_remaining": stmt.excluded.cash_remaining,
                "used_closing_prices": stmt.excluded.used_closing_prices,
                "benchmark_value": stmt.excluded.benchmark_value,
                "data_verified": stmt.excluded.data_verified,
                "data_quality_issues": stmt.excluded.data_quality_issues,
                "update_count": PriceLogModel.__table__.c.update_count + 1,
            },
        )
        try:
            await self.session.execute(stmt)
            entry = await self.get_for_day(portfolio_id, date_only)
        except _TRANSIENT_ERRORS as e:
            raise TransientStorageError(f"Price log upsert failed for portfolio {portfolio_id}: {e}") from e
        return entry

    async def get_for_day(self, portfolio_id: int, date_only: date) -> Optional[PriceLogEntry]:
        result = await self.session.execute(
            select(PriceLogModel)
            .where(PriceLogModel.portfolio_id == portfolio_id)
            .where(PriceLogModel.date_only == date_only)
            .order_by(PriceLogModel.update_count.desc(), PriceLogModel.date.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        model = result.scalar_one_or_none()
        return self._to_domain(model) if model else None

    async def get(self, log_id: int) -> Optional[PriceLogEntry]:
        model = await self.session.get(PriceLogModel, log_id, populate_existing=True)
        return self._to_domain(model) if model else None

    async def list(
        self,
        portfolio_id: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[PriceLogEntry], int]:
        """Paginated listing, newest first. Returns (rows, total)."""
        query = select(PriceLogModel)
        count_query = select(func.count(PriceLogModel.id))
        conditions = []
        if portfolio_id is not None:
            conditions.append(PriceLogModel.portfolio_id == portfolio_id)
        if start_date is not None:
            conditions.append(PriceLogModel.date_only >= start_date)
        if end_date is not None:
            conditions.append(PriceLogModel.date_only <= end_date)
        for condition in conditions:
            query = query.where(condition)
            count_query = count_query.where(condition)

        total = (await self.session.execute(count_query)).scalar() or 0
        result = await self.session.execute(
            query.order_by(PriceLogModel.date.desc(), PriceLogModel.id.desc())
            .limit(limit)
            .offset(offset)
            .execution_options(populate_existing=True)
        )
        return [self._to_domain(m) for m in result.scalars().all()], int(total)

    async def history(self, portfolio_id: int, since: Optional[datetime] = None) -> List[PriceLogEntry]:
        """Rows for one portfolio ordered by date ascending."""
        query = select(PriceLogModel).where(PriceLogModel.portfolio_id == portfolio_id)
        if since is not None:
            query = query.where(PriceLogModel.date >= since)
        result = await self.session.execute(
            query.order_by(PriceLogModel.date.asc(), PriceLogModel.id.asc())
            .execution_options(populate_existing=True)
        )
        return [self._to_domain(m) for m in result.scalars().all()]

    async def find_duplicate_groups(self) -> List[Tuple[int, date, int]]:
        """(portfolio_id, date_only, row count) for every group with more than one row."""
        result = await self.session.execute(
            select(
                PriceLogModel.portfolio_id,
                PriceLogModel.date_only,
                func.count(PriceLogModel.id).label("row_count"),
            )
            .group_by(PriceLogModel.portfolio_id, PriceLogModel.date_only)
            .having(func.count(PriceLogModel.id) > 1)
        )
        return [(row.portfolio_id, row.date_only, int(row.row_count)) for row in result]

    async def group_rows(self, portfolio_id: int, date_only: date) -> List[PriceLogEntry]:
        """Rows of one (portfolio, day) group, best first: highest update_count, then latest date."""
        result = await self.session.execute(
            select(PriceLogModel)
            .where(PriceLogModel.portfolio_id == portfolio_id)
            .where(PriceLogModel.date_only == date_only)
            .order_by(
                PriceLogModel.update_count.desc(),
                PriceLogModel.date.desc(),
                PriceLogModel.id.desc(),
            )
        )
        return [self._to_domain(m) for m in result.scalars().all()]

    async def delete_ids(self, ids: Sequence[int]) -> int:
        if not ids:
            return 0
        result = await self.session.execute(delete(PriceLogModel).where(PriceLogModel.id.in_(list(ids))))
        return int(result.rowcount or 0)

    async def count_duplicate_groups(self) -> int:
        return len(await self.find_duplicate_groups())

    async def count(self) -> int:
        result = await self.session.execute(select(func.count(PriceLogModel.id)))
        return int(result.scalar() or 0)

    async def delete_for_portfolio(self, portfolio_id: int) -> int:
        result = await self.session.execute(
            delete(PriceLogModel).where(PriceLogModel.portfolio_id == portfolio_id)
        )
        return int(result.rowcount or 0)

    @staticmethod
    def _to_domain(model: PriceLogModel) -> PriceLogEntry:
        return PriceLogEntry(
            id=model.id,
            portfolio_id=model.portfolio_id,
            date=model.date,
            date_only=model.date_only,
            portfolio_value=Decimal(str(model.portfolio_value)),
            cash_remaining=Decimal(str(model.cash_remaining)),
            update_count=int(model.update_count),
            used_closing_prices=bool(model.used_closing_prices),
            benchmark_value=Decimal(str(model.benchmark_value)) if model.benchmark_value is not None else None,
            data_verified=bool(model.data_verified),
            data_quality_issues=tuple(model.data_quality_issues or ()),
        )
