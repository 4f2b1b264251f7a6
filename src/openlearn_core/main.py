"""
Application Entry Point

This module defines the FastAPI application instance, registers all routers,
configures logging and global exception handling, and provides a
test-friendly application factory.

Design Goals
------------
- Deterministic startup
- Centralized router registration
- Expected errors mapped to stable status codes
- Global exception safety net
- Test-friendly via create_app()
"""

from __future__ import annotations

import contextlib
import logging
from typing import AsyncIterator

from fastapi import FastAPI

from .config import settings
from .core.errors import (
    OpenLearnError,
    openlearn_error_handler,
    unhandled_exception_handler,
)
from .core.logging import configure_logging

from .api import (
    curriculum_routes,
    health_routes,
    storage_routes,
    users_routes,
)


logger = logging.getLogger("openlearn.app")


# ---------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------

@contextlib.asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Startup validation and shutdown logging.

    A missing token is not fatal: reads of public repositories still work,
    but every write will fail at the storage backend.
    """
    logger.info(
        "Starting openlearn-core (repository %s/%s, branch %s)",
        settings.github_owner or "<unset>",
        settings.github_repo or "<unset>",
        settings.github_branch,
    )

    if settings.github_token is None:
        logger.warning("GITHUB_TOKEN is not configured; storage writes will fail")
    if not (settings.github_owner and settings.github_repo):
        logger.warning("GITHUB_OWNER/GITHUB_REPO are not configured")

    yield

    logger.info("Shutting down openlearn-core")


# ---------------------------------------------------------------------
# Application Factory (Test-Friendly)
# ---------------------------------------------------------------------

def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns
    -------
    FastAPI
        Fully configured FastAPI application.
    """
    configure_logging(settings.log_level)

    app = FastAPI(
        title="openlearn-core",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # --------------------------------------------------------------
    # Exception Handling
    # --------------------------------------------------------------

    app.add_exception_handler(OpenLearnError, openlearn_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # --------------------------------------------------------------
    # Router Registration
    # --------------------------------------------------------------

    app.include_router(health_routes.router)
    app.include_router(storage_routes.router)
    app.include_router(curriculum_routes.router)
    app.include_router(users_routes.router)

    return app


# ---------------------------------------------------------------------
# Default Application Instance (for Uvicorn/Gunicorn)
# ---------------------------------------------------------------------

app = create_app()
