"""FastAPI application factory.

Creates the app with deadline middleware, logging middleware, metrics
middleware, CORS, Sentry, the error reporter, lifespan events for the
document store connection, and the v1 API router.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from collections.abc import AsyncGenerator

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.requests import Request
from fastapi.responses import Response
from pymongo import AsyncMongoClient

from src.scheduler.api.errors import register_error_handlers
from src.scheduler.api.middleware import DeadlineMiddleware, LoggingMiddleware
from src.scheduler.api.middleware.logging import configure_structlog
from src.scheduler.api.v1.router import router as v1_router
from src.scheduler.config import get_settings
from src.scheduler.core.errors import SchedulerError
from src.scheduler.core.monitoring import MetricsMiddleware, get_metrics_response, init_sentry
from src.scheduler.meetings.store import MeetingStore


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: connect the store on startup, close it on shutdown.

    A store already placed on app.state (tests, embedding) is left alone.
    """
    log = structlog.get_logger(__name__)
    settings = get_settings()
    configure_structlog()

    if settings.SENTRY_DSN:
        init_sentry(dsn=settings.SENTRY_DSN, environment=settings.ENVIRONMENT.value)

    client = None
    if getattr(app.state, "meeting_store", None) is None:
        client = AsyncMongoClient(settings.MONGODB_URI)
        collection = client[settings.MONGODB_DATABASE][settings.MONGODB_COLLECTION]
        store = MeetingStore(collection)

        # The service still starts without the index; conflict checks then
        # rely on the query alone until the next restart.
        try:
            await store.ensure_indexes()
        except SchedulerError:
            log.warning("store.index_setup_failed", exc_info=True)

        app.state.meeting_store = store
        log.info(
            "store.initialized",
            database=settings.MONGODB_DATABASE,
            collection=settings.MONGODB_COLLECTION,
        )

    yield

    if client is not None:
        await client.close()
        app.state.meeting_store = None
        log.info("store.closed")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Meeting Scheduler API",
        version="0.1.0",
        description="Create, list, update and delete meetings with RSVP conflict checks",
        lifespan=lifespan,
    )

    # Middleware is added in reverse order (last added = outermost)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Logging middleware (logs every request with timing)
    app.add_middleware(LoggingMiddleware)

    # Metrics middleware (records Prometheus metrics for all requests)
    app.add_middleware(MetricsMiddleware)

    # Deadline middleware (outermost -- stamps the request deadline and
    # cancels the request when the client disconnects)
    app.add_middleware(DeadlineMiddleware, timeout_seconds=settings.REQUEST_TIMEOUT_SECONDS)

    register_error_handlers(app)

    app.include_router(v1_router)

    # Prometheus metrics endpoint (infrastructure route, outside v1 router)
    @app.get("/metrics", include_in_schema=False)
    async def metrics(request: Request) -> Response:
        """Prometheus metrics endpoint."""
        return get_metrics_response()

    return app


def serve() -> None:
    """Run the API under uvicorn on the configured HOST and PORT."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "src.scheduler.main:app",
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )


# Module-level app for uvicorn
app = create_app()
