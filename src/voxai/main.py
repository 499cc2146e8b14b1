"""
FastAPI application entry point.

Usage:
    uvicorn voxai.main:app --host 0.0.0.0 --port 3000

    # or through the CLI
    voxai --serve --port 3000
"""

from __future__ import annotations

from fastapi import FastAPI

from voxai import __version__
from voxai.api.auth import router as auth_router
from voxai.api.routes import router
from voxai.core.logging import configure_logging, get_logger, info


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

        1. Configures structured logging (VOXAI_LOG_LEVEL etc.)
        2. Creates the FastAPI instance
        3. Registers the API and auth routers
    """
    configure_logging()

    app = FastAPI(title="voxai", version=__version__)

    app.include_router(router)       # /api/..., /metrics
    app.include_router(auth_router)  # /api/auth/..., /auth/...

    info(get_logger("voxai.main"), "app_created", version=__version__)
    return app


# Global application instance for ASGI servers
app = create_app()
