"""FastAPI application composing the kanban API routers."""

from __future__ import annotations

import sys

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from dotenv import find_dotenv, load_dotenv

from ._paths import ensure_local_packages_importable

ensure_local_packages_importable()
load_dotenv(find_dotenv(usecwd=True))

from .config import settings
from db_core import ping
from kanban_api import checklists_router, install_error_handlers, router as kanban_router


def _configure_logging() -> None:
    logger.remove()
    logger.add(sys.stderr, level=settings.log_level)
    logger.info("Logger configured at {level} level", level=settings.log_level)


def create_app() -> FastAPI:
    app = FastAPI(title=settings.api_title, version=settings.api_version)

    # Allow the front-end origins (with credentials) to talk to this API.
    if settings.cors_allow_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_allow_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
        logger.info("CORS middleware added {origins}", origins=settings.cors_allow_origins)

    @app.get("/health", tags=["health"])
    async def health() -> dict[str, str]:
        """Simple liveness endpoint for load balancers and probes."""

        return {"status": "ok"}

    @app.get("/health/db", tags=["health"])
    async def health_db() -> dict:
        """Readiness probe that round-trips to MongoDB."""

        return await ping()

    install_error_handlers(app)
    app.include_router(kanban_router)
    app.include_router(checklists_router)
    return app


_configure_logging()

app = create_app()

"""Run with:

    uvicorn kanban_server.main:app --host 0.0.0.0 --port 8000 --reload
"""
