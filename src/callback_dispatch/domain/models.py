"""Runtime callback models: contexts, requests, results and retry decisions."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any
from uuid import uuid4


class VariableBag(Mapping[str, Any]):
    """Read-only mapping with case-insensitive keys that keeps names as given."""

    __slots__ = ("_items",)

    def __init__(self, values: Mapping[str, Any] | None = None) -> None:
        self._items: dict[str, tuple[str, Any]] = {}
        if values is not None:
            for name, value in values.items():
                self._items[name.casefold()] = (name, value)

    def __getitem__(self, name: str) -> Any:
        return self._items[name.casefold()][1]

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.casefold() in self._items

    def __iter__(self) -> Iterator[str]:
        return (name for name, _ in self._items.values())

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        return f"VariableBag({dict(self.items())!r})"

    def merged(self, overrides: Mapping[str, Any]) -> VariableBag:
        """Return a new bag where `overrides` replace entries with the same name."""

        merged = VariableBag()
        merged._items = dict(self._items)
        for name, value in overrides.items():
            merged._items[name.casefold()] = (name, value)
        return merged


@dataclass(slots=True, frozen=True)
class CallbackRuntimeContext:
    """Per-invocation values used to resolve callback URLs and bodies."""

    correlation_id: str
    idempotency_key_seed: str
    default_base_url: str | None = None
    vars: VariableBag = field(default_factory=VariableBag)
    callback_payload: Any = None

    def __post_init__(self) -> None:
        if not isinstance(self.vars, VariableBag):
            object.__setattr__(self, "vars", VariableBag(self.vars))


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


@dataclass(slots=True)
class CallbackRequest:
    """One logical outbound callback delivery, reused across retry attempts."""

    callback_id: str
    operation_id: str
    target_url: str
    http_method: str
    headers: dict[str, str]
    content_type: str
    body: bytes | None
    correlation_id: str
    idempotency_key: str
    timeout_seconds: float
    signature_key_id: str | None = None
    attempt: int = 0
    created_at: datetime = field(default_factory=_utc_now)
    next_attempt_at: datetime | None = None
    request_id: str = field(default_factory=lambda: uuid4().hex)

    def __post_init__(self) -> None:
        if self.next_attempt_at is None:
            self.next_attempt_at = self.created_at

    def schedule_retry(self, next_attempt_at: datetime) -> None:
        """Advance to the next attempt, due at `next_attempt_at`."""

        self.attempt += 1
        self.next_attempt_at = next_attempt_at


class CallbackErrorType(StrEnum):
    """Failure kinds reported by callback senders."""

    HTTP_ERROR = "HttpError"
    HTTP_REQUEST_EXCEPTION = "HttpRequestException"
    TIMEOUT = "Timeout"


@dataclass(slots=True, frozen=True)
class CallbackResult:
    """Outcome of one delivery attempt."""

    success: bool
    status_code: int | None = None
    error_type: str | None = None
    error_message: str | None = None
    completed_at: datetime = field(default_factory=_utc_now)


class RetryDecisionKind(StrEnum):
    """Retry policy verdicts."""

    RETRY = "Retry"
    STOP = "Stop"


@dataclass(slots=True, frozen=True)
class RetryDecision:
    """Whether and when a failed delivery should be attempted again."""

    kind: RetryDecisionKind
    next_attempt_at: datetime
    delay_seconds: float
    reason: str

    @property
    def should_retry(self) -> bool:
        return self.kind is RetryDecisionKind.RETRY


class CallbackState(StrEnum):
    """Lifecycle states persisted by callback stores."""

    PENDING = "PENDING"
    IN_FLIGHT = "IN_FLIGHT"
    RETRY_SCHEDULED = "RETRY_SCHEDULED"
    SUCCEEDED = "SUCCEEDED"
    FAILED_PERMANENT = "FAILED_PERMANENT"


TERMINAL_CALLBACK_STATES = frozenset(
    {
        CallbackState.SUCCEEDED,
        CallbackState.FAILED_PERMANENT,
    }
)


@dataclass(slots=True, frozen=True)
class CallbackRecord:
    """Stored snapshot of one callback request and its delivery state."""

    request_id: str
    callback_id: str
    operation_id: str
    idempotency_key: str
    target_url: str
    state: CallbackState
    attempt: int
    next_attempt_at: datetime
    updated_at: datetime
    last_result: CallbackResult | None = None


__all__ = [
    "CallbackErrorType",
    "CallbackRecord",
    "CallbackRequest",
    "CallbackResult",
    "CallbackRuntimeContext",
    "CallbackState",
    "RetryDecision",
    "RetryDecisionKind",
    "TERMINAL_CALLBACK_STATES",
    "VariableBag",
]
