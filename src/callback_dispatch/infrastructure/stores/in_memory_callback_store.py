"""In-memory callback store for single-process deployments and tests."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from datetime import UTC, datetime, timedelta

from callback_dispatch.domain.models import (
    TERMINAL_CALLBACK_STATES,
    CallbackRecord,
    CallbackRequest,
    CallbackResult,
    CallbackState,
)
from callback_dispatch.domain.ports import CallbackStore

_DEFAULT_LEASE_SECONDS = 30.0
_CLAIMABLE_STATES = frozenset({CallbackState.PENDING, CallbackState.RETRY_SCHEDULED})

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _InMemoryCallbackEntry:
    request: CallbackRequest
    state: CallbackState
    visible_at: datetime
    updated_at: datetime
    last_result: CallbackResult | None = None


class InMemoryCallbackStore(CallbackStore):
    """Keep callback lifecycle state in a dict guarded by one lock."""

    def __init__(self, lease_seconds: float = _DEFAULT_LEASE_SECONDS) -> None:
        self._lease = timedelta(seconds=max(lease_seconds, 0.0))
        self._entries: dict[str, _InMemoryCallbackEntry] = {}
        self._lock = asyncio.Lock()

    async def save_new(self, request: CallbackRequest) -> None:
        """Persist a new request; it becomes recoverable once the lease expires."""

        now = datetime.now(tz=UTC)
        async with self._lock:
            self._entries[request.request_id] = _InMemoryCallbackEntry(
                request=request,
                state=CallbackState.PENDING,
                visible_at=now + self._lease,
                updated_at=now,
            )

    async def mark_in_flight(self, request: CallbackRequest) -> bool:
        """Claim the request's current attempt for one sender.

        Only pending or retry-scheduled entries whose stored attempt matches
        `request.attempt` can be claimed. Stale queue copies are refused.
        """

        now = datetime.now(tz=UTC)
        async with self._lock:
            current = self._entries.get(request.request_id)
            if current is not None and (
                current.state not in _CLAIMABLE_STATES
                or current.request.attempt != request.attempt
            ):
                logger.info(
                    "Refusing claim of callback request %s attempt %s; stored state is %s "
                    "at attempt %s.",
                    request.request_id,
                    request.attempt,
                    current.state,
                    current.request.attempt,
                )
                return False

            entry = self._transition(request, CallbackState.IN_FLIGHT, now)
            if entry is None:
                return False
            entry.visible_at = now + timedelta(seconds=request.timeout_seconds) + self._lease
            return True

    async def mark_succeeded(self, request: CallbackRequest, result: CallbackResult) -> None:
        now = datetime.now(tz=UTC)
        async with self._lock:
            entry = self._transition(request, CallbackState.SUCCEEDED, now)
            if entry is not None:
                entry.last_result = result

    async def mark_retry_scheduled(
        self, request: CallbackRequest, result: CallbackResult
    ) -> None:
        now = datetime.now(tz=UTC)
        async with self._lock:
            entry = self._transition(request, CallbackState.RETRY_SCHEDULED, now)
            if entry is None:
                return
            entry.last_result = result
            entry.visible_at = request.next_attempt_at or now

    async def mark_failed_permanent(
        self, request: CallbackRequest, result: CallbackResult
    ) -> None:
        now = datetime.now(tz=UTC)
        async with self._lock:
            entry = self._transition(request, CallbackState.FAILED_PERMANENT, now)
            if entry is not None:
                entry.last_result = result

    async def dequeue_due(self, max_items: int) -> list[CallbackRequest]:
        """Claim due requests in `visible_at` order and hide them for one lease."""

        if max_items <= 0:
            return []

        now = datetime.now(tz=UTC)
        async with self._lock:
            due = [
                entry
                for entry in self._entries.values()
                if entry.state not in TERMINAL_CALLBACK_STATES and entry.visible_at <= now
            ]
            due.sort(key=lambda entry: (entry.visible_at, entry.request.created_at))

            claimed = due[:max_items]
            for entry in claimed:
                entry.state = CallbackState.PENDING
                entry.visible_at = now + self._lease
                entry.updated_at = now
            # Copies, so a claimed request never shares attempt state with one still queued.
            return [replace(entry.request) for entry in claimed]

    async def get_record(self, request_id: str) -> CallbackRecord | None:
        async with self._lock:
            entry = self._entries.get(request_id)
            if entry is None:
                return None
            return self._to_record(entry)

    async def list_records(self, state: CallbackState | None = None) -> list[CallbackRecord]:
        """Return stored records in creation order, optionally filtered by state."""

        async with self._lock:
            return [
                self._to_record(entry)
                for entry in self._entries.values()
                if state is None or entry.state is state
            ]

    def _transition(
        self,
        request: CallbackRequest,
        state: CallbackState,
        now: datetime,
    ) -> _InMemoryCallbackEntry | None:
        entry = self._entries.get(request.request_id)
        if entry is None:
            # Requests queued without save_new are tracked from their first transition.
            entry = _InMemoryCallbackEntry(
                request=request,
                state=state,
                visible_at=now + self._lease,
                updated_at=now,
            )
            self._entries[request.request_id] = entry
            return entry
        if entry.state in TERMINAL_CALLBACK_STATES:
            logger.warning(
                "Ignoring %s transition for callback request %s already in state %s.",
                state,
                request.request_id,
                entry.state,
            )
            return None
        entry.request = request
        entry.state = state
        entry.updated_at = now
        return entry

    def _to_record(self, entry: _InMemoryCallbackEntry) -> CallbackRecord:
        request = entry.request
        return CallbackRecord(
            request_id=request.request_id,
            callback_id=request.callback_id,
            operation_id=request.operation_id,
            idempotency_key=request.idempotency_key,
            target_url=request.target_url,
            state=entry.state,
            attempt=request.attempt,
            next_attempt_at=request.next_attempt_at or request.created_at,
            updated_at=entry.updated_at,
            last_result=entry.last_result,
        )


__all__ = ["InMemoryCallbackStore"]
