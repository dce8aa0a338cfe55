"""Retry policies."""

from callback_dispatch.infrastructure.retry.default_retry_policy import DefaultCallbackRetryPolicy

__all__ = ["DefaultCallbackRetryPolicy"]
