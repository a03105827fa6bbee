"""
FastAPI application and entry point.

This module creates and configures the FastAPI application:
  1. Lifespan manager — builds the process-wide handles (engine, session
     factory, event publisher, transaction processor), creates tables,
     and disposes of the engine on shutdown
  2. Middleware — the per-IP rate limiter, wrapped by CORS for frontend origins
  3. Exception handlers — maps domain errors to HTTP responses
  4. Router registration — mounts all API endpoint groups

Running locally:
    uvicorn app.main:app --reload
"""

from contextlib import asynccontextmanager
from pathlib import Path

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy.engine import make_url

from app import models  # noqa: F401  (registers every table on Base.metadata)
from app.config import settings
from app.database import Base, create_engine_and_sessionmaker
from app.exceptions import register_exception_handlers
from app.logging_config import configure_logging
from app.rate_limit import build_limiter
from app.routers import accounts, auth, transactions
from app.services.account_locks import AccountLocks
from app.services.event_publisher import build_publisher
from app.services.transaction_service import TransactionProcessor

log = structlog.get_logger(__name__)


def _ensure_sqlite_directory(database_url: str) -> None:
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite" and url.database not in (None, "", ":memory:"):
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup:
      Builds every shared handle exactly once and stores it on app.state,
      then creates all database tables if they don't exist.

    Shutdown:
      Disposes of the database engine, closing all connections cleanly.
    """
    # --- Startup ---
    configure_logging(settings.LOG_LEVEL)
    _ensure_sqlite_directory(settings.DATABASE_URL)

    engine, session_factory = create_engine_and_sessionmaker(
        settings.DATABASE_URL, echo=settings.DEBUG
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    app.state.session_factory = session_factory
    # Shared by the processor and PUT /accounts/{id}
    app.state.account_locks = AccountLocks()
    app.state.transaction_processor = TransactionProcessor(
        session_factory=session_factory,
        publisher=build_publisher(settings),
        locks=app.state.account_locks,
        max_retries=settings.BALANCE_UPDATE_MAX_RETRIES,
    )
    log.info(
        "ledger_api_started",
        version=settings.APP_VERSION,
        events_enabled=settings.EVENTS_ENABLED,
    )
    yield
    # --- Shutdown ---
    await engine.dispose()


# Create the FastAPI application instance
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Account and transaction ledger API with multi-currency balances",
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------

app.state.limiter = build_limiter(settings)
app.add_middleware(SlowAPIMiddleware)

# Added last so it wraps the limiter and 429s carry CORS headers
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------

register_exception_handlers(app)

# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------

app.include_router(auth.router, prefix="/auth", tags=["Auth"])
app.include_router(accounts.router, prefix="/accounts", tags=["Accounts"])
app.include_router(transactions.router, tags=["Transactions"])


# ---------------------------------------------------------------------------
# Health check
# ---------------------------------------------------------------------------

@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for deployment probes."""
    return {"status": "ok", "version": settings.APP_VERSION}
