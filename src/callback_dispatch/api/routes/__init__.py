"""Route modules public API."""

from callback_dispatch.api.routes.health import router as health_router

__all__ = ["health_router"]
