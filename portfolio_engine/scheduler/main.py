"""
Scheduler
Daily closing-price valuation and the duplicate-log sweep
"""

import asyncio
import logging
from typing import Optional

import pytz
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from portfolio_engine.config import settings
from portfolio_engine.services.valuation_service import DailyValuationService

logger = logging.getLogger(__name__)


class ValuationScheduler:
    """
    Runs the valuation jobs on IST wall-clock time

    Jobs log their failures and never raise into the scheduler.
    """

    def __init__(self, valuation: DailyValuationService, use_closing_prices: Optional[bool] = None):
        self.valuation = valuation
        if use_closing_prices is None:
            use_closing_prices = settings.VALUATION_USE_CLOSING_PRICES
        self.use_closing_prices = use_closing_prices
        self.scheduler = AsyncIOScheduler(timezone=pytz.timezone(settings.TIMEZONE))

    async def daily_valuation_job(self):
        """Value every portfolio, then sweep duplicates"""
        logger.info("🔄 Starting daily valuation job...")
        try:
            results = await self.valuation.log_all_portfolios(use_closing_prices=self.use_closing_prices)
            failed = [r for r in results if r["status"] != "success"]
            if failed:
                logger.warning(f"⚠️  {len(failed)} of {len(results)} portfolios failed to value")
            else:
                logger.info(f"✅ Daily valuation complete for {len(results)} portfolios")
        except Exception as e:
            logger.error(f"❌ Daily valuation job failed: {e}", exc_info=True)

        await self.dedup_job()

    async def dedup_job(self):
        try:
            report = await self.valuation.deduplicate()
            if report["duplicates_removed"]:
                logger.info(f"🧹 Removed {report['duplicates_removed']} duplicate price logs")
        except Exception as e:
            logger.error(f"❌ Dedup job failed: {e}", exc_info=True)

    def start(self):
        """Start the scheduler"""
        logger.info("🚀 Starting valuation scheduler...")

        # Daily valuation after market close, Monday-Friday
        self.scheduler.add_job(
            self.daily_valuation_job,
            CronTrigger(
                hour=settings.DAILY_VALUATION_HOUR,
                minute=settings.DAILY_VALUATION_MINUTE,
                day_of_week="mon-fri",
            ),
            id="daily_valuation",
            name="Daily Portfolio Valuation",
            replace_existing=True,
        )

        self.scheduler.add_job(
            self.dedup_job,
            CronTrigger(hour=settings.DEDUP_SWEEP_HOUR, minute=settings.DEDUP_SWEEP_MINUTE),
            id="dedup_sweep",
            name="Price Log Dedup Sweep",
            replace_existing=True,
        )

        self.scheduler.start()
        logger.info("✅ Scheduler started successfully")

        for job in self.scheduler.get_jobs():
            logger.info(f"  • {job.name} - Next run: {job.next_run_time}")

    def stop(self):
        """Stop the scheduler"""
        logger.info("🛑 Stopping scheduler...")
        self.scheduler.shutdown()
        logger.info("✅ Scheduler stopped")


async def main():
    """Standalone entry point"""
    from portfolio_engine.core.logging import setup_logging
    from portfolio_engine.infrastructure.db.database import async_session_factory, close_db
    from portfolio_engine.infrastructure.market_data.provider_factory import build_price_source

    setup_logging(settings.LOG_LEVEL, settings.LOG_FILE or None, settings.LOG_MAX_BYTES, settings.LOG_BACKUP_COUNT)
    valuation = DailyValuationService(
        async_session_factory,
        build_price_source(settings),
        max_attempts=settings.VALUATION_MAX_ATTEMPTS,
        base_delay_seconds=settings.VALUATION_RETRY_BASE_DELAY_SECONDS,
        concurrency=settings.VALUATION_CONCURRENCY,
    )
    scheduler = ValuationScheduler(valuation)
    scheduler.start()

    try:
        while True:
            await asyncio.sleep(1)
    except (KeyboardInterrupt, SystemExit):
        scheduler.stop()
    finally:
        await close_db()


if __name__ == "__main__":
    asyncio.run(main())
