"""
Main API router - aggregates all sub-routers.
"""

from fastapi import APIRouter


def create_router(prefix: str = "/api") -> APIRouter:
    """
    Create the main API router.

    Args:
        prefix: URL prefix for all routes (default: "/api")
    """
    from .routes import chats, health, runs

    router = APIRouter(prefix=prefix)

    router.include_router(health.router, tags=["Health"])
    router.include_router(chats.router, tags=["Chats"])
    router.include_router(runs.router, tags=["Runs"])

    return router
