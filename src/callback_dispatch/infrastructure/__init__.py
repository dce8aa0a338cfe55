"""Infrastructure layer public API."""

from callback_dispatch.infrastructure.http import HmacCallbackSigner, HttpCallbackSender
from callback_dispatch.infrastructure.queue import InMemoryCallbackQueue
from callback_dispatch.infrastructure.resolution import DefaultCallbackUrlResolver
from callback_dispatch.infrastructure.retry import DefaultCallbackRetryPolicy
from callback_dispatch.infrastructure.serialization import JsonCallbackBodySerializer
from callback_dispatch.infrastructure.stores import InMemoryCallbackStore, PostgresCallbackStore
from callback_dispatch.infrastructure.workers import CallbackWorker, RedeliveryMode

__all__ = [
    "CallbackWorker",
    "DefaultCallbackRetryPolicy",
    "DefaultCallbackUrlResolver",
    "HmacCallbackSigner",
    "HttpCallbackSender",
    "InMemoryCallbackQueue",
    "InMemoryCallbackStore",
    "JsonCallbackBodySerializer",
    "PostgresCallbackStore",
    "RedeliveryMode",
]
