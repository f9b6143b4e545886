"""
FastAPI Main Application
Portfolio engine API, price source and valuation scheduler in one process
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from portfolio_engine.api.deps import build_aggregate
from portfolio_engine.api.routes import health, market_data, portfolio, price_logs, transactions
from portfolio_engine.config import settings
from portfolio_engine.core.logging import setup_logging
from portfolio_engine.infrastructure.db.database import async_session_factory, close_db, init_db
from portfolio_engine.infrastructure.market_data.provider_factory import build_price_source
from portfolio_engine.scheduler.main import ValuationScheduler
from portfolio_engine.services.valuation_service import DailyValuationService

setup_logging(
    settings.LOG_LEVEL,
    settings.LOG_FILE or None,
    settings.LOG_MAX_BYTES,
    settings.LOG_BACKUP_COUNT,
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager
    Handles startup and shutdown of all services
    """
    # ===================
    # STARTUP
    # ===================
    logger.info("=" * 60)
    logger.info(f"🚀 Starting Portfolio Engine ({settings.APP_ENV})")
    logger.info("=" * 60)

    logger.info("📊 Step 1/3: Initializing database...")
    await init_db()
    logger.info("✅ Database initialized")

    logger.info("🏗️  Step 2/3: Building engine components...")
    price_source = build_price_source(settings)
    app.state.price_source = price_source
    app.state.aggregate = build_aggregate()
    app.state.valuation_service = DailyValuationService(
        async_session_factory,
        price_source,
        max_attempts=settings.VALUATION_MAX_ATTEMPTS,
        base_delay_seconds=settings.VALUATION_RETRY_BASE_DELAY_SECONDS,
        concurrency=settings.VALUATION_CONCURRENCY,
    )
    logger.info(f"✅ Price source: {settings.PRICE_SOURCE}")

    logger.info("🚀 Step 3/3: Starting background services...")
    scheduler = None
    if settings.SCHEDULER_ENABLED:
        try:
            scheduler = ValuationScheduler(app.state.valuation_service)
            scheduler.start()
        except Exception as e:
            logger.error(f"❌ Failed to start scheduler: {e}")
            scheduler = None
    else:
        logger.info("⏰ Scheduler disabled")
    app.state.scheduler = scheduler

    logger.info(f"🎯 API Server: http://{settings.API_HOST}:{settings.API_PORT}")

    yield

    # ===================
    # SHUTDOWN
    # ===================
    logger.info("🛑 Shutting down Portfolio Engine...")
    if scheduler:
        scheduler.stop()

    logger.info("📊 Closing database connections...")
    await close_db()
    logger.info("👋 Portfolio Engine shutdown complete")


app = FastAPI(
    title="Portfolio Engine",
    description="Model portfolio holdings, transactions and daily valuation",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
async def root():
    return {
        "message": "Portfolio Engine",
        "version": "1.0.0",
        "docs": "/docs",
    }


app.include_router(health.router, tags=["Health"])
app.include_router(portfolio.router, prefix="/api/v1/portfolios", tags=["Portfolios"])
app.include_router(transactions.router, prefix="/api/v1/portfolios", tags=["Transactions"])
app.include_router(price_logs.router, prefix="/api/v1/price-logs", tags=["Price Logs"])
app.include_router(market_data.router, prefix="/api/v1/market-data", tags=["Market Data"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("portfolio_engine.main:app", host=settings.API_HOST, port=settings.API_PORT, reload=settings.DEBUG)
