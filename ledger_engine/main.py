"""
Ledger Transaction Engine: FastAPI application.

This is the entry point for the application.
All routers are registered here, and core errors are translated
to HTTP responses by a single exception handler.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ledger_engine.api.accounts import router as accounts_router
from ledger_engine.api.health import router as health_router
from ledger_engine.api.transactions import router as transactions_router
from ledger_engine.config import get_settings
from ledger_engine.exceptions import (
    AccountNotActive,
    BankingError,
    ConcurrentModification,
    CustomerNotActive,
    InsufficientFunds,
    InvalidAccountState,
    InvalidInput,
    InvalidReversalState,
    NotFound,
    PermissionDenied,
    StorageFailure,
)
from ledger_engine.logging_config import configure_logging, get_logger
from ledger_engine.models.base import SessionLocal, init_db
from ledger_engine.services.scheduler import BankingScheduler

settings = get_settings()
logger = get_logger("api")

# Checked in order; the first matching class wins.
STATUS_BY_ERROR: list[tuple[type[BankingError], int]] = [
    (NotFound, 404),
    (InvalidInput, 400),
    (PermissionDenied, 403),
    (InsufficientFunds, 422),
    (AccountNotActive, 409),
    (CustomerNotActive, 409),
    (InvalidAccountState, 409),
    (InvalidReversalState, 409),
    (ConcurrentModification, 409),
    (StorageFailure, 503),
]


def status_for(error: BankingError) -> int:
    for error_type, status_code in STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return status_code
    return 400


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.LOG_LEVEL, settings.LOG_JSON)
    init_db()
    if settings.SCHEDULER_ENABLED:
        app.state.scheduler = BankingScheduler(SessionLocal)
        app.state.scheduler.start()
    yield
    if getattr(app.state, "scheduler", None) is not None:
        app.state.scheduler.stop()


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    debug=settings.DEBUG,
    description="Account balances, money movement and scheduled banking jobs",
    lifespan=lifespan,
)


@app.exception_handler(BankingError)
async def banking_error_handler(request: Request, exc: BankingError):
    status_code = status_for(exc)
    if status_code >= 500:
        logger.error("request_failed", extra={"path": request.url.path, "error_code": exc.code})
    return JSONResponse(
        status_code=status_code,
        content={"error": exc.code, "detail": exc.message},
    )


# Register routers
app.include_router(health_router)
app.include_router(accounts_router)
app.include_router(transactions_router)
