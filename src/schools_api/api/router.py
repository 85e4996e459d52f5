"""Root API router with /api/v1 prefix and middleware registration."""

from fastapi import APIRouter, FastAPI

from schools_api.api.middleware import RateLimitMiddleware, SecurityHeadersMiddleware, setup_cors
from schools_api.core.config import Settings


def create_router(settings: Settings) -> APIRouter:
    """Create the root API router with all sub-routers included."""
    from schools_api.api.v1.auth import router as auth_router
    from schools_api.api.v1.imports import router as imports_router
    from schools_api.api.v1.schools import router as schools_router

    root_router = APIRouter(prefix=settings.api_v1_prefix)
    root_router.include_router(auth_router)
    root_router.include_router(imports_router)
    root_router.include_router(schools_router)

    return root_router


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Register all middleware on the FastAPI app.

    The rate limiter uses the store held on ``app.state.rate_limit_store``.
    """
    setup_cors(app, settings)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        store=app.state.rate_limit_store,
        trusted_proxy_headers=settings.trusted_proxy_header_list,
    )
