"""FastAPI application factory.

Creates the FastAPI app with lifespan management, exception handlers,
and per-application state (rate limit store, run lock registry).
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from schools_api.core.config import get_settings
from schools_api.core.database import dispose_engine, init_engine
from schools_api.core.logging import setup_logging
from schools_api.core.rate_limit import RateLimitStore
from schools_api.core.run_locks import RunLockRegistry
from schools_api.services.import_service import ImportJobNotFoundError, ImportJobStateError


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Manage application lifecycle: init engine on startup, dispose on shutdown."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_dir)
    init_engine(settings.database_url, echo=False, schema=settings.database_schema)

    yield

    await dispose_engine()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Schools API",
        description="NCES school and district directory import service",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.rate_limit_store = RateLimitStore(
        settings.rate_limit_per_minute, max_clients=settings.rate_limit_max_clients
    )
    app.state.run_locks = RunLockRegistry()

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(ImportJobStateError)
    async def import_state_error_handler(request: Request, exc: ImportJobStateError) -> JSONResponse:
        return JSONResponse(status_code=409, content={"detail": str(exc)})

    @app.exception_handler(ImportJobNotFoundError)
    async def import_not_found_handler(request: Request, exc: ImportJobNotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    from schools_api.api.router import create_router, setup_middleware

    setup_middleware(app, settings)
    app.include_router(create_router(settings))

    return app
