"""FastAPI application for MediBook."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from medibook import __version__
from medibook.api.errors import install_error_handlers
from medibook.api.middleware import APIKeyMiddleware, RequestLoggingMiddleware
from medibook.api.routes import appointments, availability, health
from medibook.config import get_settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("Starting MediBook API")

    settings = get_settings()
    if settings.auto_create_tables:
        from medibook.core.database import init_db

        await init_db()

    logger.info("MediBook API started successfully")

    yield

    logger.info("Shutting down MediBook API")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="MediBook API",
        description="Appointment booking with doctor availability and slot search",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_middleware(RequestLoggingMiddleware)

    if settings.has_api_key:
        app.add_middleware(APIKeyMiddleware, api_key=settings.api_key)

    app.include_router(health.router, tags=["health"])
    app.include_router(availability.router, prefix="/api/v1", tags=["availability"])
    app.include_router(appointments.router, prefix="/api/v1", tags=["appointments"])

    install_error_handlers(app)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled exception: {exc}")
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal server error",
                "detail": str(exc) if settings.debug_mode else None,
            },
        )

    return app
