"""
FastAPI Application Entry Point.

Relief Ledger Backend: ledger integrity service for donations, expenses,
cash custody and in-kind inventory.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import SQLAlchemyError
from ledger_backend.app.core.config import settings
from ledger_backend.app.api.v1.router import router as api_v1_router
from ledger_backend.app.core.observability import ObservabilityMiddleware, configure_logging, logger
from ledger_backend.app.core.redis_client import ping_redis
from ledger_backend.app.db.session import init_models
from ledger_backend.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    database_exception_handler,
    generic_exception_handler
)

# Import models to ensure they are registered with Base
from ledger_backend.app.models.currency import Currency
from ledger_backend.app.models.volunteer import Volunteer
from ledger_backend.app.models.donor import Donor
from ledger_backend.app.models.cause import Cause
from ledger_backend.app.models.bank_account import BankAccount
from ledger_backend.app.models.ledger_entry import LedgerEntry
from ledger_backend.app.models.audit_event import AuditEvent
from ledger_backend.app.models.inventory_history import InventoryHistory
from ledger_backend.app.models.inventory_consumption import InventoryConsumption
from ledger_backend.app.models.custody_transfer import CustodyTransfer

configure_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create database tables on startup."""
    await init_models()
    logger.info("%s started", settings.app_name)
    yield


app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Ledger integrity service: entries, void/restore, audit and inventory trails",
    lifespan=lifespan,
)

app.add_middleware(ObservabilityMiddleware)

# Register global exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(SQLAlchemyError, database_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint.

    Redis is reported but not required; the cache degrades to misses.
    """
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.api_version,
        "redis": "up" if await ping_redis() else "down",
    }


app.include_router(api_v1_router, prefix=f"/{settings.api_version}")


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": "Welcome to Relief Ledger Backend API",
        "docs": "/docs",
        "health": "/health",
    }
