"""Default retry policy: exponential backoff with bounded jitter."""

from __future__ import annotations

import random
from datetime import UTC, datetime, timedelta

from callback_dispatch.domain.models import (
    CallbackErrorType,
    CallbackRequest,
    CallbackResult,
    RetryDecision,
    RetryDecisionKind,
)
from callback_dispatch.domain.ports import CallbackRetryPolicy

PERMANENT_FAILURE_STATUS_CODES = frozenset({400, 401, 403, 404, 409, 422})
RETRYABLE_STATUS_CODES = frozenset({408, 429})
RETRYABLE_ERROR_TYPES = (CallbackErrorType.HTTP_REQUEST_EXCEPTION, CallbackErrorType.TIMEOUT)

REASON_MAX_ATTEMPTS_REACHED = "MaxAttemptsReached"
REASON_PERMANENT_FAILURE = "PermanentFailure"
REASON_NOT_RETRYABLE = "NotRetryable"
REASON_RETRYABLE_FAILURE = "RetryableFailure"


class DefaultCallbackRetryPolicy(CallbackRetryPolicy):
    """Retry transient delivery failures up to `max_attempts` total attempts."""

    def __init__(
        self,
        *,
        max_attempts: int = 3,
        base_delay_seconds: float = 2.0,
        max_delay_seconds: float = 30.0,
        jitter_ratio: float = 0.125,
    ) -> None:
        self._max_attempts = max(max_attempts, 1)
        self._base_delay_seconds = max(base_delay_seconds, 0.0)
        self._max_delay_seconds = max(max_delay_seconds, self._base_delay_seconds)
        self._jitter_ratio = max(min(jitter_ratio, 1.0), 0.0)

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    def evaluate(self, request: CallbackRequest, result: CallbackResult) -> RetryDecision:
        if request.attempt + 1 >= self._max_attempts:
            return self._stop(request, REASON_MAX_ATTEMPTS_REACHED)
        if result.status_code in PERMANENT_FAILURE_STATUS_CODES:
            return self._stop(request, REASON_PERMANENT_FAILURE)
        if not self._is_retryable(result):
            return self._stop(request, REASON_NOT_RETRYABLE)

        delay_seconds = self.backoff_seconds(request.attempt)
        return RetryDecision(
            kind=RetryDecisionKind.RETRY,
            next_attempt_at=datetime.now(tz=UTC) + timedelta(seconds=delay_seconds),
            delay_seconds=delay_seconds,
            reason=REASON_RETRYABLE_FAILURE,
        )

    def backoff_seconds(self, attempt: int) -> float:
        """Return `base * 2**attempt` capped at the max delay, plus jitter."""

        delay = min(
            self._base_delay_seconds * (2 ** max(attempt, 0)),
            self._max_delay_seconds,
        )
        if self._jitter_ratio > 0:
            delay += random.uniform(0.0, self._base_delay_seconds * self._jitter_ratio)
        return delay

    def _is_retryable(self, result: CallbackResult) -> bool:
        status_code = result.status_code
        if status_code is not None:
            return status_code in RETRYABLE_STATUS_CODES or 500 <= status_code <= 599
        return result.error_type in RETRYABLE_ERROR_TYPES

    def _stop(self, request: CallbackRequest, reason: str) -> RetryDecision:
        next_attempt_at = request.next_attempt_at or request.created_at
        return RetryDecision(
            kind=RetryDecisionKind.STOP,
            next_attempt_at=next_attempt_at,
            delay_seconds=0.0,
            reason=reason,
        )


__all__ = [
    "DefaultCallbackRetryPolicy",
    "PERMANENT_FAILURE_STATUS_CODES",
    "REASON_MAX_ATTEMPTS_REACHED",
    "REASON_NOT_RETRYABLE",
    "REASON_PERMANENT_FAILURE",
    "REASON_RETRYABLE_FAILURE",
    "RETRYABLE_STATUS_CODES",
]
