"""
Main FastAPI application - shipping back-office ledger.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from shipledger import __version__
from shipledger.api.routers import (
    app_settings,
    creditors,
    customers,
    deposits,
    expenses,
    orders,
    reports,
    representatives,
    temp_orders,
)
from shipledger.core.config import get_settings
from shipledger.core.logging import setup_logging
from shipledger.domain.errors import DoubleMerge, IllegalTransition, LedgerError, NotFound, OverPayment
from shipledger.infrastructure.database import init_db

logger = logging.getLogger(__name__)

settings = get_settings()

CONFLICT_ERRORS = (IllegalTransition, OverPayment, DoubleMerge)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """Application lifespan - startup and shutdown events."""
    setup_logging(settings.log_level, settings.log_dir, process_name="shipledger-api")
    init_db()
    logger.info("%s %s started", settings.app_name, __version__)
    yield
    logger.info("%s stopped", settings.app_name)


app = FastAPI(
    title=settings.app_name,
    description="""
## Shipping back-office ledger

### Features:
- **Orders**: lifecycle state machine, payments, remaining amounts derived from the ledger
- **Deposits**: earnest money kept apart from order balances
- **Representatives**: custody of cash to collect and cash collected
- **Creditors**: running balance per external party
- **Bulk invoices**: sub-order tracking and merge into canonical orders
- **Expenses & instant sales**: operating costs and over-the-counter sales
- **Reports**: revenue, debt, expenses and net profit per period
- **Settings**: LYD/USD rates per channel, quotes

### Rules:
- Transactions are never edited; corrections are new entries
- Every write runs in one database transaction
- Administrative status overrides are logged and audited
    """,
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_allowed_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

for module in (
    orders, customers, deposits, representatives, creditors, temp_orders, expenses, reports, app_settings,
):
    app.include_router(module.router, prefix=settings.api_prefix)


@app.get("/")
def root():
    return {
        "name": settings.app_name,
        "version": __version__,
        "docs": "/docs",
    }


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


def _error_response(status_code: int, exc: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "error": type(exc).__name__},
    )


@app.exception_handler(NotFound)
async def not_found_handler(request: Request, exc: NotFound):
    return _error_response(404, exc)


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError):
    """Conflicts with the current ledger state map to 409, bad input to 400."""
    if isinstance(exc, CONFLICT_ERRORS):
        logger.info("Rejected %s %s: %s", request.method, request.url.path, exc)
        return _error_response(409, exc)
    return _error_response(400, exc)


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    """Handle validation errors."""
    return _error_response(400, exc)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
