"""
FastAPI Main Application
Wires the valuation engine, quote poll scheduler and identity provider
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator

from app.config import settings
from app.infrastructure.auth.identity_client import IdentityClient
from app.infrastructure.db.database import init_db, close_db, get_session_factory
from app.infrastructure.db.portfolio_store import SqlPortfolioStore
from app.infrastructure.market_data.finnhub_provider import FinnhubQuoteProvider
from app.realtime.runtime import ValuationEngine
from app.scheduler.scheduler import QuotePollScheduler
from app.utils.logging_redaction import install_redaction_filter

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)
install_redaction_filter()

# Reduce noisy loggers in production
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("apscheduler").setLevel(logging.WARNING)


def build_engine_from_settings() -> ValuationEngine:
    provider = FinnhubQuoteProvider(
        api_base_url=settings.QUOTE_API_BASE_URL,
        api_key=settings.QUOTE_API_KEY,
        timeout_seconds=settings.QUOTE_TIMEOUT_SECONDS,
        max_concurrency=settings.QUOTE_MAX_CONCURRENCY,
    )
    if not provider.is_configured:
        logger.warning("⚠️  QUOTE_API_KEY not set; prices will not load")
    store = SqlPortfolioStore(get_session_factory())
    return ValuationEngine(provider, store)


def build_identity_client_from_settings() -> IdentityClient:
    return IdentityClient(
        base_url=settings.AUTH_BASE_URL,
        api_key=settings.AUTH_API_KEY,
        redirect_url=settings.AUTH_REDIRECT_URL,
        timeout_seconds=settings.AUTH_TIMEOUT_SECONDS,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager
    Handles startup and shutdown of all services
    """
    logger.info("=" * 60)
    logger.info("🚀 Starting Asset Dashboard")
    logger.info("=" * 60)

    logger.info("📊 Step 1/3: Initializing database...")
    await init_db()
    logger.info("✅ Database initialized")

    logger.info("🏗️  Step 2/3: Initializing valuation engine...")
    engine = build_engine_from_settings()
    app.state.valuation_engine = engine
    app.state.identity_client = build_identity_client_from_settings()
    logger.info("✅ Valuation engine ready")

    poll_scheduler = None
    if settings.SCHEDULER_ENABLED:
        logger.info("⏰ Step 3/3: Starting quote poll scheduler...")
        poll_scheduler = QuotePollScheduler(
            engine,
            interval_seconds=settings.POLL_INTERVAL_SECONDS,
            timezone=settings.TIMEZONE,
        )
        poll_scheduler.start()
    else:
        logger.info("⏭️  Step 3/3: Scheduler disabled (SCHEDULER_ENABLED=false)")
    app.state.poll_scheduler = poll_scheduler

    yield

    logger.info("🛑 Shutting down Asset Dashboard...")
    if poll_scheduler:
        poll_scheduler.shutdown()

    logger.info("📊 Closing database connections...")
    await close_db()
    logger.info("👋 Shutdown complete")


# Create FastAPI app
app = FastAPI(
    title="Asset Dashboard",
    description="Live portfolio valuation with scheduled quote polling",
    version="1.0.0",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Import and include routers
from app.api.routes import auth, health, portfolio  # noqa: E402

app.include_router(health.router, tags=["Health"])
app.include_router(auth.router, prefix="/api/v1/auth", tags=["Auth"])
app.include_router(portfolio.router, prefix="/api/v1/portfolio", tags=["Portfolio"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("app.main:app", host=settings.API_HOST, port=settings.API_PORT, reload=settings.DEBUG)
