"""Ports for callback delivery collaborators."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from callback_dispatch.domain.models import (
    CallbackRecord,
    CallbackRequest,
    CallbackResult,
    CallbackRuntimeContext,
    RetryDecision,
)
from callback_dispatch.domain.plans import CallbackPlan


@runtime_checkable
class CallbackStore(Protocol):
    """Persistence port for callback lifecycle transitions."""

    async def save_new(self, request: CallbackRequest) -> None:
        """Persist a newly created callback request."""

    async def mark_in_flight(self, request: CallbackRequest) -> bool:
        """Claim the current attempt; return `False` when it is finished or already claimed."""

    async def mark_succeeded(self, request: CallbackRequest, result: CallbackResult) -> None:
        """Record a successful delivery."""

    async def mark_retry_scheduled(
        self, request: CallbackRequest, result: CallbackResult
    ) -> None:
        """Record a failed attempt that will be retried at `request.next_attempt_at`."""

    async def mark_failed_permanent(
        self, request: CallbackRequest, result: CallbackResult
    ) -> None:
        """Record a delivery that will not be retried."""

    async def dequeue_due(self, max_items: int) -> list[CallbackRequest]:
        """Claim up to `max_items` requests whose next attempt is due."""

    async def get_record(self, request_id: str) -> CallbackRecord | None:
        """Return the stored snapshot for one request."""


class CallbackSender(Protocol):
    """Outbound delivery port."""

    async def send(self, request: CallbackRequest) -> CallbackResult:
        """Perform one delivery attempt."""


class CallbackSigner(Protocol):
    """Hook that adds authenticity headers to an outgoing HTTP message."""

    def sign(self, message: Any, request: CallbackRequest) -> None:
        """Mutate `message` headers in place."""


class CallbackUrlResolver(Protocol):
    """Resolve URL templates against runtime contexts."""

    def resolve(self, url_template: str, context: CallbackRuntimeContext) -> str:
        """Return an absolute URL."""


class CallbackBodySerializer(Protocol):
    """Render callback request bodies."""

    def serialize(
        self, plan: CallbackPlan, context: CallbackRuntimeContext
    ) -> tuple[str, bytes]:
        """Return `(content_type, body)`."""


class CallbackRetryPolicy(Protocol):
    """Classify failed deliveries."""

    def evaluate(self, request: CallbackRequest, result: CallbackResult) -> RetryDecision:
        """Return a retry/stop decision."""


class CallbackQueue(Protocol):
    """In-process hand-off between producers and workers."""

    async def enqueue(self, request: CallbackRequest) -> None:
        """Queue a request, waiting while the queue is full."""

    async def dequeue(self) -> CallbackRequest:
        """Wait for the next request."""


__all__ = [
    "CallbackBodySerializer",
    "CallbackQueue",
    "CallbackRetryPolicy",
    "CallbackSender",
    "CallbackSigner",
    "CallbackStore",
    "CallbackUrlResolver",
]
