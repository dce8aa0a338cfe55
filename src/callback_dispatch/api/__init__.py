"""HTTP surface of the callback engine."""

from callback_dispatch.api.router import api_router

__all__ = ["api_router"]
