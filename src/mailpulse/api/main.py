"""FastAPI application entry point."""

import threading
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from mailpulse.infrastructure import get_settings
from mailpulse.infrastructure.container import Container


def _start_ingestion(app: FastAPI, container: Container) -> None:
    accounts = container.settings.accounts()
    if not accounts:
        logger.warning("No EMAIL_ACCOUNTS configured, ingestion not started")
        return

    coordinator = container.build_coordinator()
    app.state.coordinator = coordinator

    # Backfill can take minutes; keep serving reads meanwhile
    thread = threading.Thread(
        target=coordinator.start,
        args=(accounts,),
        name="ingestion-startup",
        daemon=True,
    )
    thread.start()
    logger.info(f"Ingestion starting in background for {len(accounts)} account(s)")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    container: Container = app.state.container
    settings = container.settings
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Environment: {settings.environment}")

    try:
        container.ensure_schema()
        logger.info(f"Search index ready ({settings.index_backend})")
    except Exception as e:
        logger.warning(f"Search index setup failed (non-fatal): {e}")

    app.state.coordinator = None
    if settings.api_start_ingestion:
        _start_ingestion(app, container)

    yield

    # Cleanup on shutdown
    logger.info("Shutting down...")
    if app.state.coordinator is not None:
        app.state.coordinator.shutdown()
    container.close()
    logger.info("Shutdown complete")


def create_app(container: Container | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    container = container or Container(get_settings())
    settings = container.settings

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Multi-account email ingestion, categorization and search",
        lifespan=lifespan,
    )
    app.state.container = container
    app.state.coordinator = None
    app.state.resolver = None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    from mailpulse.api.routes import router

    app.include_router(router, prefix="/api")

    return app


# Create app instance
app = create_app()
