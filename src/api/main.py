"""
FastAPI application factory and configuration.

This module creates the FastAPI application instance,
configures middleware, exception handlers, and lifespan events.
"""

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager, suppress
from datetime import timedelta

from fastapi import FastAPI, Request
from psycopg_pool import ConnectionPool

from src.adapters.festival.http import HttpFestivalApi
from src.adapters.storage.memory import InMemoryStorage
from src.adapters.storage.postgres import PostgresStorage, run_migrations
from src.api.v1 import router as v1_router
from src.config.settings import get_settings
from src.domain.ports import ExpiringStorage
from src.domain.replication import BestEffortReplicator

logger = logging.getLogger(__name__)

# OpenAPI tags for documentation grouping
tags_metadata = [
    {
        "name": "v1",
        "description": "Festival Registration API v1 - Student and institution wizards",
    },
]


async def purge_expired_sessions(
    storage: ExpiringStorage, max_age: timedelta, interval_seconds: float
) -> None:
    """Drop abandoned sessions now and then every interval_seconds."""
    while True:
        try:
            removed = await asyncio.to_thread(storage.purge_expired, max_age)
        except Exception as e:
            logger.error("Session purge failed: %s", e)
        else:
            if removed:
                logger.info("Purged %s key(s) of expired sessions", removed)
        await asyncio.sleep(interval_seconds)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    FastAPI lifespan context manager.

    Manages application startup and shutdown:
    - Creates the progress store (in memory, or PostgreSQL with migrations)
    - Creates the festival backend client and checkpoint replicator
    - Starts the periodic purge of abandoned sessions
    - Drains pending replication and closes connections on shutdown
    """
    settings = get_settings()
    logging.getLogger("src").setLevel(settings.log_level)

    logger.info("Starting application...")

    pool = None
    if settings.storage_backend == "postgres":
        logger.info("Connecting to database...")
        pool = ConnectionPool(
            conninfo=settings.database_url,
            min_size=settings.pool_min_size,
            max_size=settings.pool_max_size,
        )
        logger.info("Running database migrations...")
        run_migrations(pool)
        app.state.storage = PostgresStorage(pool)
    else:
        app.state.storage = InMemoryStorage()

    app.state.pool = pool
    app.state.festival_api = HttpFestivalApi(
        settings.festival_api_url,
        token=settings.festival_api_token,
        timeout=settings.http_timeout_seconds,
    )
    app.state.replicator = BestEffortReplicator(max_workers=settings.replication_workers)
    purge_task = asyncio.create_task(
        purge_expired_sessions(
            app.state.storage,
            timedelta(hours=settings.session_ttl_hours),
            settings.session_purge_interval_seconds,
        )
    )

    logger.info("Application startup complete")

    yield

    # Shutdown
    logger.info("Shutting down application...")
    purge_task.cancel()
    with suppress(asyncio.CancelledError):
        await purge_task
    app.state.replicator.drain(timeout=settings.http_timeout_seconds)
    app.state.replicator.shutdown()
    app.state.festival_api.close()
    if pool is not None:
        pool.close()
        logger.info("Database connection pool closed")


app = FastAPI(
    title="festreg",
    description="Sports festival registration API - Multi-step wizards with resumable progress",
    version="0.1.0",
    openapi_tags=tags_metadata,
    lifespan=lifespan,
)

# Include v1 API routes
app.include_router(v1_router, prefix="/v1")


@app.get("/health")
async def health_check(request: Request) -> dict[str, str]:
    """
    Health check endpoint.

    Returns 200 OK if the application is up. With the PostgreSQL backend the
    database connection is validated too.
    """
    pool = request.app.state.pool
    if pool is not None:
        with pool.connection() as conn:
            conn.execute("SELECT 1")

    return {"status": "healthy", "storage": get_settings().storage_backend}
