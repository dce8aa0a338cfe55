from __future__ import annotations

import json
from datetime import UTC, datetime

from pydantic import BaseModel, Field

from callback_dispatch.domain import CallbackBodyPlan, CallbackPlan, CallbackRuntimeContext
from callback_dispatch.infrastructure.serialization import JsonCallbackBodySerializer


def _plan(media_type: str | None) -> CallbackPlan:
    return CallbackPlan(
        callback_id="paymentStatus",
        url_template="https://hooks.example.com/status",
        method="POST",
        operation_id="paymentStatus",
        body=None if media_type is None else CallbackBodyPlan(media_type=media_type),
    )


def _context(payload: object) -> CallbackRuntimeContext:
    return CallbackRuntimeContext(
        correlation_id="corr-1",
        idempotency_key_seed="corr-1",
        callback_payload=payload,
    )


def test_serialize_dict_payload_as_json_with_plan_media_type() -> None:
    content_type, body = JsonCallbackBodySerializer().serialize(
        _plan("application/vnd.payment+json"),
        _context({"paymentId": "p1", "amount": 10}),
    )

    assert content_type == "application/vnd.payment+json"
    assert json.loads(body) == {"paymentId": "p1", "amount": 10}


def test_serialize_pydantic_model_uses_aliases() -> None:
    class StatusEvent(BaseModel):
        payment_id: str = Field(alias="paymentId")
        occurred_at: datetime = Field(alias="occurredAt")

    event = StatusEvent(paymentId="p1", occurredAt=datetime(2024, 1, 2, 3, 4, 5, tzinfo=UTC))

    _, body = JsonCallbackBodySerializer().serialize(_plan("application/json"), _context(event))

    assert json.loads(body) == {"paymentId": "p1", "occurredAt": "2024-01-02T03:04:05Z"}


def test_serialize_without_body_plan_returns_empty_json_body() -> None:
    content_type, body = JsonCallbackBodySerializer().serialize(_plan(None), _context({"a": 1}))

    assert content_type == "application/json"
    assert body == b""


def test_serialize_null_payload_returns_empty_body() -> None:
    content_type, body = JsonCallbackBodySerializer().serialize(
        _plan("application/json"),
        _context(None),
    )

    assert content_type == "application/json"
    assert body == b""


def test_serialize_passes_raw_bytes_through() -> None:
    _, body = JsonCallbackBodySerializer().serialize(
        _plan("application/json"),
        _context(b'{"raw":true}'),
    )

    assert body == b'{"raw":true}'


def test_serialize_logs_payload_dropped_without_body_plan(caplog) -> None:
    with caplog.at_level("DEBUG", logger="callback_dispatch.infrastructure.serialization"):
        _, body = JsonCallbackBodySerializer().serialize(_plan(None), _context({"a": 1}))

    assert body == b""
    assert "declares no request body" in caplog.text
