"""PostgreSQL callback store."""

from __future__ import annotations

import asyncio
import json
from typing import Any

import asyncpg  # type: ignore[import-untyped]

from callback_dispatch.domain.models import (
    CallbackRecord,
    CallbackRequest,
    CallbackResult,
    CallbackState,
)
from callback_dispatch.domain.ports import CallbackStore

_REQUEST_COLUMNS = """
    request_id,
    callback_id,
    operation_id,
    target_url,
    http_method,
    headers,
    content_type,
    body,
    correlation_id,
    idempotency_key,
    timeout_seconds,
    signature_key_id,
    attempt,
    created_at,
    next_attempt_at
"""

_RECORD_COLUMNS = """
    request_id,
    callback_id,
    operation_id,
    idempotency_key,
    target_url,
    state,
    attempt,
    next_attempt_at,
    updated_at,
    last_success,
    last_status_code,
    last_error_type,
    last_error_message,
    last_completed_at
"""


class PostgresCallbackStore(CallbackStore):
    """Callback store backed by PostgreSQL."""

    def __init__(
        self,
        dsn: str,
        min_pool_size: int = 1,
        max_pool_size: int = 10,
        lease_seconds: float = 30.0,
    ) -> None:
        self._dsn = dsn
        self._min_pool_size = min_pool_size
        self._max_pool_size = max_pool_size
        self._lease_seconds = max(lease_seconds, 0.0)
        self._pool: asyncpg.Pool | None = None
        self._pool_lock = asyncio.Lock()

    async def save_new(self, request: CallbackRequest) -> None:
        """Insert one request as pending, visible to recovery after one lease."""

        pool = await self._get_pool()
        await pool.execute(
            """
            INSERT INTO callback_requests (
                request_id,
                callback_id,
                operation_id,
                target_url,
                http_method,
                headers,
                content_type,
                body,
                correlation_id,
                idempotency_key,
                timeout_seconds,
                signature_key_id,
                attempt,
                created_at,
                next_attempt_at,
                state,
                visible_at,
                updated_at
            ) VALUES (
                $1, $2, $3, $4, $5, $6::jsonb, $7, $8, $9, $10, $11, $12, $13, $14, $15,
                'PENDING',
                NOW() + ($16::double precision * INTERVAL '1 second'),
                NOW()
            )
            ON CONFLICT (request_id) DO NOTHING
            """,
            request.request_id,
            request.callback_id,
            request.operation_id,
            request.target_url,
            request.http_method,
            json.dumps(request.headers),
            request.content_type,
            request.body,
            request.correlation_id,
            request.idempotency_key,
            request.timeout_seconds,
            request.signature_key_id,
            request.attempt,
            request.created_at,
            request.next_attempt_at,
            self._lease_seconds,
        )

    async def mark_in_flight(self, request: CallbackRequest) -> bool:
        """Claim the current attempt; rows never saved are claimable as-is."""

        pool = await self._get_pool()
        claimed = await pool.fetchval(
            """
            WITH claimed AS (
                UPDATE callback_requests
                SET
                    state = 'IN_FLIGHT',
                    visible_at = NOW() + (($3::double precision + $4::double precision)
                        * INTERVAL '1 second'),
                    updated_at = NOW()
                WHERE request_id = $1
                  AND state IN ('PENDING', 'RETRY_SCHEDULED')
                  AND attempt = $2
                RETURNING request_id
            )
            SELECT EXISTS (SELECT 1 FROM claimed)
                OR NOT EXISTS (SELECT 1 FROM callback_requests WHERE request_id = $1)
            """,
            request.request_id,
            request.attempt,
            request.timeout_seconds,
            self._lease_seconds,
        )
        return bool(claimed)

    async def mark_succeeded(self, request: CallbackRequest, result: CallbackResult) -> None:
        await self._record_result(request, result, CallbackState.SUCCEEDED)

    async def mark_retry_scheduled(
        self, request: CallbackRequest, result: CallbackResult
    ) -> None:
        await self._record_result(request, result, CallbackState.RETRY_SCHEDULED)

    async def mark_failed_permanent(
        self, request: CallbackRequest, result: CallbackResult
    ) -> None:
        await self._record_result(request, result, CallbackState.FAILED_PERMANENT)

    async def dequeue_due(self, max_items: int) -> list[CallbackRequest]:
        """Claim due non-terminal requests and move their visibility window via lease."""

        if max_items <= 0:
            return []

        pool = await self._get_pool()
        rows = await pool.fetch(
            f"""
            WITH due AS (
                SELECT request_id
                FROM callback_requests
                WHERE state NOT IN ('SUCCEEDED', 'FAILED_PERMANENT')
                  AND visible_at <= NOW()
                ORDER BY visible_at ASC, created_at ASC
                FOR UPDATE SKIP LOCKED
                LIMIT $1
            )
            UPDATE callback_requests AS requests
            SET
                state = 'PENDING',
                visible_at = NOW() + ($2::double precision * INTERVAL '1 second'),
                updated_at = NOW()
            FROM due
            WHERE requests.request_id = due.request_id
            RETURNING {_prefixed(_REQUEST_COLUMNS, "requests")}
            """,
            max_items,
            self._lease_seconds,
        )
        return [self._to_request(row) for row in rows]

    async def get_record(self, request_id: str) -> CallbackRecord | None:
        pool = await self._get_pool()
        row = await pool.fetchrow(
            f"SELECT {_RECORD_COLUMNS} FROM callback_requests WHERE request_id = $1",
            request_id,
        )
        if row is None:
            return None
        return self._to_record(row)

    async def close(self) -> None:
        """Close the pool if it was initialized."""

        pool = self._pool
        self._pool = None
        if pool is not None:
            await pool.close()

    async def _record_result(
        self,
        request: CallbackRequest,
        result: CallbackResult,
        state: CallbackState,
    ) -> None:
        pool = await self._get_pool()
        await pool.execute(
            """
            UPDATE callback_requests
            SET
                state = $2,
                attempt = $3,
                next_attempt_at = $4,
                visible_at = $4,
                last_success = $5,
                last_status_code = $6,
                last_error_type = $7,
                last_error_message = $8,
                last_completed_at = $9,
                updated_at = NOW()
            WHERE request_id = $1
              AND state NOT IN ('SUCCEEDED', 'FAILED_PERMANENT')
            """,
            request.request_id,
            state.value,
            request.attempt,
            request.next_attempt_at,
            result.success,
            result.status_code,
            None if result.error_type is None else str(result.error_type),
            result.error_message,
            result.completed_at,
        )

    async def _get_pool(self) -> asyncpg.Pool:
        if self._pool is not None:
            return self._pool

        async with self._pool_lock:
            if self._pool is None:
                pool = await asyncpg.create_pool(
                    dsn=self._dsn,
                    min_size=self._min_pool_size,
                    max_size=self._max_pool_size,
                )
                await self._ensure_schema(pool)
                self._pool = pool
        assert self._pool is not None
        return self._pool

    async def _ensure_schema(self, pool: asyncpg.Pool) -> None:
        await pool.execute(
            """
            CREATE TABLE IF NOT EXISTS callback_requests (
                request_id TEXT PRIMARY KEY,
                callback_id TEXT NOT NULL,
                operation_id TEXT NOT NULL,
                target_url TEXT NOT NULL,
                http_method TEXT NOT NULL,
                headers JSONB NOT NULL DEFAULT '{}'::jsonb,
                content_type TEXT NOT NULL DEFAULT '',
                body BYTEA,
                correlation_id TEXT NOT NULL,
                idempotency_key TEXT NOT NULL,
                timeout_seconds DOUBLE PRECISION NOT NULL,
                signature_key_id TEXT,
                attempt INTEGER NOT NULL DEFAULT 0,
                state TEXT NOT NULL,
                next_attempt_at TIMESTAMPTZ NOT NULL,
                visible_at TIMESTAMPTZ NOT NULL,
                last_success BOOLEAN,
                last_status_code INTEGER,
                last_error_type TEXT,
                last_error_message TEXT,
                last_completed_at TIMESTAMPTZ,
                created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
            );
            CREATE INDEX IF NOT EXISTS idx_callback_requests_due
                ON callback_requests (visible_at, created_at)
                WHERE state NOT IN ('SUCCEEDED', 'FAILED_PERMANENT');
            CREATE INDEX IF NOT EXISTS idx_callback_requests_idempotency_key
                ON callback_requests (idempotency_key);
            """
        )

    def _to_request(self, row: asyncpg.Record) -> CallbackRequest:
        body = row["body"]
        return CallbackRequest(
            request_id=str(row["request_id"]),
            callback_id=str(row["callback_id"]),
            operation_id=str(row["operation_id"]),
            target_url=str(row["target_url"]),
            http_method=str(row["http_method"]),
            headers=self._decode_headers(row["headers"]),
            content_type=str(row["content_type"]),
            body=None if body is None else bytes(body),
            correlation_id=str(row["correlation_id"]),
            idempotency_key=str(row["idempotency_key"]),
            timeout_seconds=float(row["timeout_seconds"]),
            signature_key_id=row["signature_key_id"],
            attempt=int(row["attempt"]),
            created_at=row["created_at"],
            next_attempt_at=row["next_attempt_at"],
        )

    def _to_record(self, row: asyncpg.Record) -> CallbackRecord:
        last_result = None
        if row["last_completed_at"] is not None:
            last_result = CallbackResult(
                success=bool(row["last_success"]),
                status_code=row["last_status_code"],
                error_type=row["last_error_type"],
                error_message=row["last_error_message"],
                completed_at=row["last_completed_at"],
            )
        return CallbackRecord(
            request_id=str(row["request_id"]),
            callback_id=str(row["callback_id"]),
            operation_id=str(row["operation_id"]),
            idempotency_key=str(row["idempotency_key"]),
            target_url=str(row["target_url"]),
            state=CallbackState(str(row["state"])),
            attempt=int(row["attempt"]),
            next_attempt_at=row["next_attempt_at"],
            updated_at=row["updated_at"],
            last_result=last_result,
        )

    def _decode_headers(self, value: object) -> dict[str, str]:
        decoded: Any = json.loads(value) if isinstance(value, str) else value
        if decoded is None:
            return {}
        if not isinstance(decoded, dict):
            raise TypeError(f"Expected dict payload for headers, got {type(decoded)!r}.")
        return {str(name): str(header) for name, header in decoded.items()}


def _prefixed(columns: str, alias: str) -> str:
    names = [name.strip() for name in columns.split(",") if name.strip()]
    return ", ".join(f"{alias}.{name}" for name in names)


__all__ = ["PostgresCallbackStore"]
