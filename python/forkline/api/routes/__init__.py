"""API route definitions.

Uses a factory pattern to avoid import-time settings loading.
This allows tests to import modules without requiring all environment
variables to be configured upfront.
"""

from fastapi import APIRouter

from forkline.api.routes.analytics import router as analytics_router
from forkline.api.routes.health import router as health_router
from forkline.api.routes.stories import router as stories_router


def create_api_router() -> APIRouter:
    """Create and configure the API router.

    Returns:
        Configured APIRouter with all routes registered.
    """
    api_router = APIRouter()
    api_router.include_router(health_router, tags=["health"])
    api_router.include_router(stories_router, tags=["stories"])
    api_router.include_router(analytics_router, tags=["analytics"])
    return api_router


__all__ = ["create_api_router"]
