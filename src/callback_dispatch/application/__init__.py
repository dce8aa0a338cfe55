"""Application layer public API."""

from callback_dispatch.application.callback_registry import CallbackRegistry
from callback_dispatch.application.plan_compiler import compile_callback_plans
from callback_dispatch.application.request_factory import (
    CALLBACK_ID_HEADER,
    CallbackDispatchOptions,
    build_callback_request,
)
from callback_dispatch.application.runtime_context import (
    CallbackRuntimeContextFactory,
    ResolvedRequestParameters,
    build_idempotency_seed,
    extract_template_params,
)
from callback_dispatch.application.services import CallbackDispatcher

__all__ = [
    "CALLBACK_ID_HEADER",
    "CallbackDispatchOptions",
    "CallbackDispatcher",
    "CallbackRegistry",
    "CallbackRuntimeContextFactory",
    "ResolvedRequestParameters",
    "build_callback_request",
    "build_idempotency_seed",
    "compile_callback_plans",
    "extract_template_params",
]
