"""Callback queue implementations."""

from callback_dispatch.infrastructure.queue.in_memory_callback_queue import InMemoryCallbackQueue

__all__ = ["InMemoryCallbackQueue"]
