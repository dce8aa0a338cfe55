"""HMAC-SHA256 signing of outgoing callback requests."""

from __future__ import annotations

import hashlib
import hmac
import time

import httpx

from callback_dispatch.domain.models import CallbackRequest
from callback_dispatch.domain.ports import CallbackSigner

SIGNATURE_HEADER = "X-Kestrun-Signature"
TIMESTAMP_HEADER = "X-Kestrun-Timestamp"
KEY_ID_HEADER = "X-Kestrun-Signature-KeyId"
_SIGNATURE_PREFIX = "sha256="


def compute_signature(secret: bytes, timestamp: str, idempotency_key: str, body: bytes) -> str:
    """Return the signature receivers recompute to verify a callback.

    The signed message is `"{timestamp}.{idempotency_key}."` followed by the raw body.
    """

    message = f"{timestamp}.{idempotency_key}.".encode() + body
    digest = hmac.new(secret, message, hashlib.sha256).hexdigest()
    return f"{_SIGNATURE_PREFIX}{digest}"


def verify_signature(
    secret: bytes,
    timestamp: str,
    idempotency_key: str,
    body: bytes,
    signature: str,
) -> bool:
    """Constant-time check of a received signature header."""

    expected = compute_signature(secret, timestamp, idempotency_key, body)
    return hmac.compare_digest(expected, signature)


class HmacCallbackSigner(CallbackSigner):
    """Add timestamp and HMAC signature headers to callback HTTP messages."""

    def __init__(self, secret: str | bytes, key_id: str | None = None) -> None:
        secret_bytes = secret.encode() if isinstance(secret, str) else secret
        if not secret_bytes:
            raise ValueError("Callback signing secret cannot be empty.")
        self._secret = secret_bytes
        self._key_id = key_id

    def sign(self, message: httpx.Request, request: CallbackRequest) -> None:
        timestamp = str(int(time.time()))
        message.headers[TIMESTAMP_HEADER] = timestamp
        message.headers[SIGNATURE_HEADER] = compute_signature(
            self._secret,
            timestamp,
            request.idempotency_key,
            request.body or b"",
        )
        key_id = request.signature_key_id or self._key_id
        if key_id:
            message.headers[KEY_ID_HEADER] = key_id


__all__ = [
    "HmacCallbackSigner",
    "KEY_ID_HEADER",
    "SIGNATURE_HEADER",
    "TIMESTAMP_HEADER",
    "compute_signature",
    "verify_signature",
]
