"""Top-level API router composition."""

from fastapi import APIRouter

from callback_dispatch.api.routes import health_router

api_router = APIRouter()
api_router.include_router(health_router)

__all__ = ["api_router"]
