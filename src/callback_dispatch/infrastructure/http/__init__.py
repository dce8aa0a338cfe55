"""HTTP delivery adapters."""

from callback_dispatch.infrastructure.http.hmac_callback_signer import (
    KEY_ID_HEADER,
    SIGNATURE_HEADER,
    TIMESTAMP_HEADER,
    HmacCallbackSigner,
    compute_signature,
    verify_signature,
)
from callback_dispatch.infrastructure.http.http_callback_sender import (
    CORRELATION_ID_HEADER,
    IDEMPOTENCY_KEY_HEADER,
    HttpCallbackSender,
)

__all__ = [
    "CORRELATION_ID_HEADER",
    "HmacCallbackSigner",
    "HttpCallbackSender",
    "IDEMPOTENCY_KEY_HEADER",
    "KEY_ID_HEADER",
    "SIGNATURE_HEADER",
    "TIMESTAMP_HEADER",
    "compute_signature",
    "verify_signature",
]
