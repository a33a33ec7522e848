"""
Logpush OTel bridge FastAPI application.

Receives Workers Logpush deliveries and forwards their logs over OTLP/HTTP.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from logpush_otel import __version__
from logpush_otel.api.routes import logpush
from logpush_otel.config import settings
from logpush_otel.logging_config import setup_logging
from logpush_otel.startup import run_all_startup_checks

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for FastAPI application.

    Configures logging and runs startup checks before the application
    starts serving requests.
    """
    setup_logging(context="api")

    logger.info("Running startup checks...")
    run_all_startup_checks()
    logger.info("Application startup complete (destination: %s)", settings.destination)

    yield

    logger.info("Application shutdown complete")


app = FastAPI(
    lifespan=lifespan,
    title="Logpush OTel Bridge",
    description="Forwards Cloudflare Workers Logpush deliveries to an OTLP/HTTP log backend",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)


@app.get("/health")
async def health() -> dict[str, str]:
    """Health check endpoint."""
    return {
        "status": "healthy" if settings.destination else "degraded",
        "destination": "configured" if settings.destination else "missing",
        "version": __version__,
    }


app.include_router(logpush.router)
