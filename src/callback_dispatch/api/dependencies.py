"""Dependency providers for FastAPI routes."""

from functools import lru_cache

from callback_dispatch.bootstrap import CallbackRuntime, build_callback_runtime
from callback_dispatch.config import Settings


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return singleton settings."""

    return Settings()


@lru_cache(maxsize=1)
def get_callback_runtime() -> CallbackRuntime:
    """Return singleton callback engine graph."""

    return build_callback_runtime(get_settings())


__all__ = ["get_callback_runtime", "get_settings"]
