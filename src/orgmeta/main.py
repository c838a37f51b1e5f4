"""FastAPI application factory.

Creates the app with logging middleware, CORS, lifespan events for database
initialization and the weekly metadata scheduler, and the v1 API router.
"""

from __future__ import annotations

import functools
from contextlib import asynccontextmanager
from collections.abc import AsyncGenerator

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.orgmeta.config import get_settings
from src.orgmeta.core.database import close_db, get_session, init_db
from src.orgmeta.api.middleware.logging import LoggingMiddleware, configure_structlog
from src.orgmeta.api.v1.router import router as v1_router
from src.orgmeta.metadata.client import SalesforceClient
from src.orgmeta.metadata.credentials import SalesforceAuthRepository
from src.orgmeta.metadata.heuristics import load_heuristics
from src.orgmeta.metadata.repository import MetadataCacheStore
from src.orgmeta.metadata.scheduler import MetadataSyncScheduler
from src.orgmeta.metadata.sync import MetadataSyncService


def build_sync_service() -> MetadataSyncService:
    """Wire the cache store, credential source and client settings together."""
    settings = get_settings()
    heuristics = load_heuristics(settings.CATALOG_HEURISTICS_FILE)

    return MetadataSyncService(
        cache_store=MetadataCacheStore(get_session, heuristics),
        credential_source=SalesforceAuthRepository(get_session),
        heuristics=heuristics,
        client_factory=functools.partial(
            SalesforceClient,
            timeout=settings.SALESFORCE_HTTP_TIMEOUT,
            max_attempts=settings.SALESFORCE_MAX_RETRIES,
        ),
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: init DB and scheduler on startup, close on shutdown."""
    log = structlog.get_logger(__name__)
    settings = get_settings()
    configure_structlog()
    await init_db()

    sync_service = build_sync_service()
    app.state.sync_service = sync_service
    app.state.metadata_scheduler = None

    if settings.METADATA_SYNC_ENABLED:
        try:
            scheduler = MetadataSyncScheduler(
                sync_service,
                day_of_week=settings.METADATA_SYNC_DAY_OF_WEEK,
                hour=settings.METADATA_SYNC_HOUR,
                minute=settings.METADATA_SYNC_MINUTE,
            )
            scheduler.start()
            app.state.metadata_scheduler = scheduler
        except Exception:
            log.warning("metadata_scheduler.start_failed", exc_info=True)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    scheduler = getattr(app.state, "metadata_scheduler", None)
    if scheduler is not None:
        scheduler.stop()

    await close_db()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Org Metadata API",
        version="0.1.0",
        description="Salesforce org schema discovery and metadata cache",
        lifespan=lifespan,
    )

    # Middleware is added in reverse order (last added = outermost)

    # CORS middleware
    if settings.CORS_ALLOWED_ORIGINS == "*":
        origins = ["*"]
    else:
        origins = [o.strip() for o in settings.CORS_ALLOWED_ORIGINS.split(",")]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Logging middleware (logs every request with timing)
    app.add_middleware(LoggingMiddleware)

    app.include_router(v1_router)

    return app


# Module-level app for uvicorn
app = create_app()
