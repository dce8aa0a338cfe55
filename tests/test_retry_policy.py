from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from callback_dispatch.domain import (
    CallbackErrorType,
    CallbackRequest,
    CallbackResult,
    RetryDecisionKind,
)
from callback_dispatch.infrastructure.retry import DefaultCallbackRetryPolicy


def _request(attempt: int = 0) -> CallbackRequest:
    return CallbackRequest(
        callback_id="paymentStatus",
        operation_id="paymentStatusChanged",
        target_url="https://hooks.example.com/status",
        http_method="POST",
        headers={},
        content_type="",
        body=None,
        correlation_id="corr-1",
        idempotency_key="corr-1:paymentStatus:paymentStatusChanged",
        timeout_seconds=1.0,
        attempt=attempt,
    )


def _failure(status_code: int | None = None, error_type: str | None = None) -> CallbackResult:
    return CallbackResult(
        success=False,
        status_code=status_code,
        error_type=error_type or CallbackErrorType.HTTP_ERROR,
    )


@pytest.mark.parametrize("status_code", [400, 401, 403, 404, 409, 422])
def test_permanent_client_errors_stop(status_code: int) -> None:
    decision = DefaultCallbackRetryPolicy().evaluate(_request(), _failure(status_code))

    assert decision.kind is RetryDecisionKind.STOP
    assert decision.reason == "PermanentFailure"


@pytest.mark.parametrize("status_code", [408, 429, 500, 502, 503, 599])
def test_transient_statuses_retry(status_code: int) -> None:
    decision = DefaultCallbackRetryPolicy().evaluate(_request(), _failure(status_code))

    assert decision.should_retry
    assert decision.reason == "RetryableFailure"


@pytest.mark.parametrize(
    "error_type",
    [CallbackErrorType.TIMEOUT, CallbackErrorType.HTTP_REQUEST_EXCEPTION],
)
def test_transport_failures_retry(error_type: CallbackErrorType) -> None:
    decision = DefaultCallbackRetryPolicy().evaluate(
        _request(),
        _failure(error_type=error_type),
    )

    assert decision.kind is RetryDecisionKind.RETRY


@pytest.mark.parametrize(
    ("status_code", "error_type"),
    [(418, None), (302, None), (None, "RuntimeError")],
)
def test_other_failures_are_not_retryable(status_code: int | None, error_type: str | None) -> None:
    decision = DefaultCallbackRetryPolicy().evaluate(
        _request(),
        _failure(status_code, error_type),
    )

    assert decision.kind is RetryDecisionKind.STOP
    assert decision.reason == "NotRetryable"


@pytest.mark.parametrize("status_code", [500, 404, 418])
def test_last_attempt_stops_regardless_of_status(status_code: int) -> None:
    request = _request(attempt=2)

    decision = DefaultCallbackRetryPolicy(max_attempts=3).evaluate(request, _failure(status_code))

    assert decision.kind is RetryDecisionKind.STOP
    assert decision.reason == "MaxAttemptsReached"
    assert decision.delay_seconds == 0.0
    assert decision.next_attempt_at == request.next_attempt_at


def test_first_retry_delay_is_base_plus_bounded_jitter() -> None:
    policy = DefaultCallbackRetryPolicy()
    before = datetime.now(tz=UTC)

    decision = policy.evaluate(_request(), _failure(503))

    assert 2.0 <= decision.delay_seconds <= 2.25
    assert decision.next_attempt_at >= before + timedelta(seconds=2.0)


def test_backoff_doubles_and_is_capped() -> None:
    policy = DefaultCallbackRetryPolicy(
        max_attempts=10,
        base_delay_seconds=2.0,
        max_delay_seconds=30.0,
        jitter_ratio=0.0,
    )

    assert [policy.backoff_seconds(attempt) for attempt in range(6)] == [
        2.0,
        4.0,
        8.0,
        16.0,
        30.0,
        30.0,
    ]
