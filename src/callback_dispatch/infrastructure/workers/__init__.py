"""Callback delivery workers."""

from callback_dispatch.infrastructure.workers.callback_worker import CallbackWorker, RedeliveryMode

__all__ = ["CallbackWorker", "RedeliveryMode"]
