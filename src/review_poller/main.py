"""
Main application entry point for the App Review Poller.

This module sets up the FastAPI application, configures logging, and owns
the lifecycle of the polling scheduler.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .api import ReviewsAPI
from .config import settings
from .feed_client import FeedClient
from .polling import PollingManager
from .repository import RepositoryFactory


def setup_logging() -> None:
    """Configure structured logging."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level), format="%(message)s"
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            (
                structlog.processors.JSONRenderer()
                if settings.log_format == "json"
                else structlog.dev.ConsoleRenderer()
            ),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    setup_logging()
    logger = structlog.get_logger()

    logger.info("Starting App Review Poller")
    logger.info(
        "Configuration loaded",
        database_url=settings.database_url,
        default_poll_interval=settings.default_poll_interval,
        debug=settings.debug,
    )

    polling_config = settings.polling_config

    # Initialize services
    repository = RepositoryFactory.create_repository(
        settings.database_url,
        seed_app_id=settings.seed_app_id or None,
        seed_interval=polling_config.default_interval,
    )
    feed_client = FeedClient(settings.feed_config)
    polling_manager = PollingManager(repository, feed_client, polling_config)

    # Store services in app state
    app.state.repository = repository
    app.state.feed_client = feed_client
    app.state.polling_manager = polling_manager
    app.state.polling_config = polling_config

    try:
        await polling_manager.start_all()
    except Exception:
        await feed_client.close()
        await repository.close()
        raise

    try:
        yield
    finally:
        logger.info("Shutting down App Review Poller")
        await polling_manager.stop_all()
        await feed_client.close()
        await repository.close()


# Create FastAPI application
app = FastAPI(
    title="App Review Poller",
    description="Periodic App Store review collection with per-app scheduling",
    version=__version__,
    lifespan=lifespan,
)

# Configure CORS
if settings.enable_cors:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_allowed_origins(),
        allow_credentials=False,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

# Include API routes
reviews_api = ReviewsAPI()
app.include_router(reviews_api.router, prefix="/api", tags=["reviews"])


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {"message": "App Review Poller", "version": __version__, "status": "active"}


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy", "time": datetime.now(UTC).isoformat()}


def main() -> None:
    """Main entry point."""
    import uvicorn

    setup_logging()
    logger = structlog.get_logger()

    logger.info(
        "Starting server", host=settings.host, port=settings.port, debug=settings.debug
    )

    uvicorn.run(
        "review_poller.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_config=None,  # We handle logging ourselves
    )


if __name__ == "__main__":
    main()
