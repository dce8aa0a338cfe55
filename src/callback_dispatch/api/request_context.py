"""Adapt inbound FastAPI requests into callback runtime inputs."""

from __future__ import annotations

import json
from typing import Any
from uuid import uuid4

from fastapi import HTTPException, Request

from callback_dispatch.application.runtime_context import (
    CallbackRuntimeContextFactory,
    ResolvedRequestParameters,
)
from callback_dispatch.domain.models import CallbackRuntimeContext

CORRELATION_ID_HEADERS = ("X-Correlation-Id", "X-Request-Id")


def correlation_id_from(request: Request) -> str:
    """Reuse the caller's correlation id, or mint a new one."""

    for header in CORRELATION_ID_HEADERS:
        value = request.headers.get(header)
        if value is not None and value.strip():
            return value.strip()
    return uuid4().hex


async def resolve_request_parameters(request: Request) -> ResolvedRequestParameters:
    """Collect query and path parameters (path wins) plus the decoded JSON body."""

    values: dict[str, Any] = dict(request.query_params)
    values.update(request.path_params)
    return ResolvedRequestParameters(values=values, body=await _json_body(request))


async def build_runtime_context(
    request: Request,
    factory: CallbackRuntimeContextFactory,
    url_template: str | None = None,
) -> CallbackRuntimeContext:
    """Build the runtime context for callbacks triggered by `request`."""

    parameters = await resolve_request_parameters(request)
    return factory.from_parameters(
        parameters,
        correlation_id=correlation_id_from(request),
        url_template=url_template,
    )


async def _json_body(request: Request) -> Any:
    content_type = request.headers.get("content-type", "")
    if "json" not in content_type.lower():
        return None

    raw = await request.body()
    if not raw.strip():
        return None
    try:
        return json.loads(raw)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=f"Invalid JSON body: {exc}") from exc


__all__ = [
    "CORRELATION_ID_HEADERS",
    "build_runtime_context",
    "correlation_id_from",
    "resolve_request_parameters",
]
