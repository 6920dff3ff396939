"""
FastAPI application entry point for the rollup-chain API.

Provides the health endpoint and serves as the root application factory.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from rollup_chain import __version__
from rollup_chain.api.aggregates import router as aggregates_router
from rollup_chain.api.deps import init_registry
from rollup_chain.config import get_settings
from rollup_chain.logging_config import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: configure logging and load aggregates eagerly."""
    setup_logging(get_settings().log_level)
    registry = init_registry()
    logger.info("Continuous aggregates loaded at startup: %d views", len(registry))
    yield


app = FastAPI(
    title="rollup-chain API",
    description="TimescaleDB continuous aggregate chains.",
    version=__version__,
    lifespan=lifespan,
)

app.include_router(aggregates_router)


@app.get("/")
async def health() -> dict:
    """Health check endpoint.

    Returns:
        dict: JSON object with application status.
    """
    return {"status": "ok"}
