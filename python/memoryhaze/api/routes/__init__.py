"""API route definitions.

Uses a factory pattern to avoid import-time settings loading.
This allows tests to import modules without requiring all environment
variables to be configured upfront.
"""

from fastapi import APIRouter

from memoryhaze.api.routes.admin import router as admin_router
from memoryhaze.api.routes.gifts import router as gifts_router
from memoryhaze.api.routes.health import router as health_router
from memoryhaze.api.routes.me import router as me_router


def create_api_router() -> APIRouter:
    """Create and configure the API router."""
    api_router = APIRouter()
    api_router.include_router(health_router, tags=["health"])
    api_router.include_router(me_router, tags=["user"])
    api_router.include_router(gifts_router, tags=["gifts"])
    api_router.include_router(admin_router, tags=["admin"])
    return api_router


__all__ = ["create_api_router"]
