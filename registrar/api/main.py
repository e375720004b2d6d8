"""
FastAPI application factory and configuration.

This module creates the FastAPI application instance,
configures middleware and lifespan events.
"""

import logging
import secrets
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request, status
from psycopg_pool import ConnectionPool
from starlette.middleware.sessions import SessionMiddleware

from registrar.adapters.repository.memory import InMemoryAccountStore, InMemoryTokenStore
from registrar.adapters.repository.postgres import (
    PostgresAccountStore,
    PostgresTokenStore,
    run_migrations,
)
from registrar.api.v1 import router as v1_router
from registrar.config.settings import get_settings
from registrar.domain.events import DomainEvent, EventPublisher
from registrar.domain.exceptions import StoreUnavailable

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("registrar.audit")

# OpenAPI tags for documentation grouping
tags_metadata = [
    {
        "name": "v1",
        "description": "Registration API v1 - Register, confirm and log in accounts",
    },
]


def log_event(event: DomainEvent) -> None:
    """Audit observer: one log line per domain event."""
    audit_logger.info("%s %s", type(event).__name__, event)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    FastAPI lifespan context manager.

    Manages application startup and shutdown:
    - Creates the stores for the configured backend
    - For PostgreSQL: opens the connection pool and runs migrations
    - Closes the connection pool on shutdown
    """
    settings = get_settings()
    logging.getLogger("registrar").setLevel(settings.log_level.upper())

    logger.info("Starting application...")

    if settings.session_secret is None:
        if settings.storage_backend == "postgres":
            raise RuntimeError("SESSION_SECRET must be set when storage_backend is postgres")
        logger.warning("SESSION_SECRET not set; sessions are signed with a per-process random key")

    events = EventPublisher()
    events.subscribe(log_event)
    app.state.events = events

    pool = None
    if settings.storage_backend == "memory":
        logger.info("Using in-memory storage")
        app.state.account_store = InMemoryAccountStore()
        app.state.token_store = InMemoryTokenStore()
    else:
        logger.info("Connecting to database...")
        # Create connection pool with explicit sizing
        pool = ConnectionPool(
            conninfo=settings.database_url,
            min_size=settings.pool_min_size,
            max_size=settings.pool_max_size,
        )

        logger.info("Running database migrations...")
        run_migrations(pool)

        app.state.account_store = PostgresAccountStore(pool)
        app.state.token_store = PostgresTokenStore(pool)

    logger.info("Application startup complete")

    yield

    # Shutdown
    logger.info("Shutting down application...")
    if pool is not None:
        pool.close()
        logger.info("Database connection pool closed")


app = FastAPI(
    title="registrar",
    description="Self-service registration API - accounts stay inactive until the emailed link is confirmed",
    version="0.1.0",
    openapi_tags=tags_metadata,
    lifespan=lifespan,
)

# Without a configured secret, session cookies stop verifying on restart
app.add_middleware(
    SessionMiddleware,
    secret_key=get_settings().session_secret or secrets.token_urlsafe(32),
)

# Include v1 API routes
app.include_router(v1_router, prefix="/v1")


@app.get("/health")
def health_check(request: Request) -> dict[str, str]:
    """
    Health check endpoint with storage validation.

    Returns 200 OK if application and storage are healthy, 503 otherwise.
    """
    try:
        request.app.state.account_store.ping()
    except StoreUnavailable:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Storage unavailable",
        ) from None

    return {"status": "healthy"}
