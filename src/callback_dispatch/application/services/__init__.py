"""Application services public API."""

from callback_dispatch.application.services.callback_dispatcher import CallbackDispatcher

__all__ = ["CallbackDispatcher"]
