"""HTTP delivery of callback requests."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime

import httpx

from callback_dispatch.domain.models import CallbackErrorType, CallbackRequest, CallbackResult
from callback_dispatch.domain.ports import CallbackSender, CallbackSigner

CORRELATION_ID_HEADER = "X-Correlation-Id"
IDEMPOTENCY_KEY_HEADER = "Idempotency-Key"


class HttpCallbackSender(CallbackSender):
    """Send callback requests with httpx and map outcomes to callback results."""

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        signer: CallbackSigner | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = client
        self._owns_client = client is None
        self._signer = signer
        self._transport = transport

    async def send(self, request: CallbackRequest) -> CallbackResult:
        """Perform one attempt bounded by `request.timeout_seconds`."""

        client = self._get_client()
        message = self._build_message(client, request)
        if self._signer is not None:
            self._signer.sign(message, request)

        try:
            status_code, reason = await asyncio.wait_for(
                self._send_message(client, message),
                timeout=request.timeout_seconds,
            )
        except (TimeoutError, httpx.TimeoutException) as exc:
            return self._failure(
                CallbackErrorType.TIMEOUT,
                str(exc) or f"Callback timed out after {request.timeout_seconds}s.",
            )
        except httpx.HTTPError as exc:
            return self._failure(
                CallbackErrorType.HTTP_REQUEST_EXCEPTION,
                str(exc) or type(exc).__name__,
            )

        if 200 <= status_code <= 299:
            return CallbackResult(
                success=True,
                status_code=status_code,
                completed_at=datetime.now(tz=UTC),
            )
        return CallbackResult(
            success=False,
            status_code=status_code,
            error_type=CallbackErrorType.HTTP_ERROR,
            error_message=reason,
            completed_at=datetime.now(tz=UTC),
        )

    async def aclose(self) -> None:
        """Close the underlying client when this sender created it."""

        client = self._client
        if client is None or not self._owns_client:
            return
        self._client = None
        await client.aclose()

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(transport=self._transport, timeout=None)
        return self._client

    def _build_message(self, client: httpx.AsyncClient, request: CallbackRequest) -> httpx.Request:
        headers = httpx.Headers(request.headers)
        headers[CORRELATION_ID_HEADER] = request.correlation_id
        headers[IDEMPOTENCY_KEY_HEADER] = request.idempotency_key
        if request.body is not None and request.content_type:
            headers["Content-Type"] = request.content_type

        return client.build_request(
            request.http_method,
            request.target_url,
            headers=headers,
            content=request.body,
        )

    async def _send_message(
        self, client: httpx.AsyncClient, message: httpx.Request
    ) -> tuple[int, str]:
        # Only the status line matters; the response body is never read.
        response = await client.send(message, stream=True)
        try:
            return response.status_code, response.reason_phrase
        finally:
            await response.aclose()

    def _failure(self, error_type: CallbackErrorType, message: str) -> CallbackResult:
        return CallbackResult(
            success=False,
            status_code=None,
            error_type=error_type,
            error_message=message,
            completed_at=datetime.now(tz=UTC),
        )


__all__ = ["CORRELATION_ID_HEADER", "HttpCallbackSender", "IDEMPOTENCY_KEY_HEADER"]
