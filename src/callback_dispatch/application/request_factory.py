"""Build callback requests from execution plans and runtime contexts."""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field

from callback_dispatch.application.runtime_context import build_idempotency_seed
from callback_dispatch.domain.models import CallbackRequest, CallbackRuntimeContext
from callback_dispatch.domain.plans import CallbackExecutionPlan
from callback_dispatch.domain.ports import CallbackBodySerializer, CallbackUrlResolver

CALLBACK_ID_HEADER = "X-Kestrun-CallbackId"
_DEFAULT_TIMEOUT_SECONDS = 30.0

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class CallbackDispatchOptions:
    """Request-building options shared by all callbacks of one dispatcher."""

    default_timeout_seconds: float = _DEFAULT_TIMEOUT_SECONDS
    timeouts: Mapping[str, float] = field(default_factory=dict)
    headers: Mapping[str, str] = field(default_factory=dict)
    signature_key_id: str | None = None

    def timeout_for(self, callback_id: str) -> float:
        """Return the per-callback timeout override or the default timeout."""

        return self.timeouts.get(callback_id, self.default_timeout_seconds)


def build_callback_request(
    execution_plan: CallbackExecutionPlan,
    context: CallbackRuntimeContext,
    url_resolver: CallbackUrlResolver,
    body_serializer: CallbackBodySerializer,
    options: CallbackDispatchOptions,
) -> CallbackRequest:
    """Create one callback request; resolver and serializer errors propagate unchanged."""

    plan = execution_plan.plan

    # Execution-plan bindings win over request-derived vars.
    merged_vars = context.vars.merged(execution_plan.parameters)
    seed = build_idempotency_seed(
        plan.url_template,
        merged_vars,
        fallback=context.correlation_id,
    )
    runtime_context = dataclasses.replace(
        context,
        vars=merged_vars,
        idempotency_key_seed=seed,
    )

    target_url = url_resolver.resolve(plan.url_template, runtime_context)

    content_type = ""
    body: bytes | None = None
    if execution_plan.body_parameter_name is not None:
        body_context = dataclasses.replace(
            runtime_context,
            callback_payload=execution_plan.body_value,
        )
        content_type, body = body_serializer.serialize(plan, body_context)

    headers = dict(options.headers)
    headers[CALLBACK_ID_HEADER] = plan.callback_id
    idempotency_key = f"{runtime_context.idempotency_key_seed}:{plan.callback_id}:{plan.operation_id}"

    request = CallbackRequest(
        callback_id=plan.callback_id,
        operation_id=plan.operation_id,
        target_url=target_url,
        http_method=plan.method.upper(),
        headers=headers,
        content_type=content_type,
        body=body,
        correlation_id=runtime_context.correlation_id,
        idempotency_key=idempotency_key,
        timeout_seconds=options.timeout_for(plan.callback_id),
        signature_key_id=options.signature_key_id,
    )
    logger.debug(
        "Created callback request %s (%s %s, operation=%s, body_length=%s, idempotency_key=%s).",
        request.callback_id,
        request.http_method,
        request.target_url,
        request.operation_id,
        0 if body is None else len(body),
        request.idempotency_key,
    )
    return request


__all__ = ["CALLBACK_ID_HEADER", "CallbackDispatchOptions", "build_callback_request"]
