"""Callback store implementations."""

from callback_dispatch.infrastructure.stores.in_memory_callback_store import InMemoryCallbackStore
from callback_dispatch.infrastructure.stores.postgres_callback_store import PostgresCallbackStore

__all__ = ["InMemoryCallbackStore", "PostgresCallbackStore"]
