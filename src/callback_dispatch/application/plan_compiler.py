"""Compile callback descriptions into immutable callback plans."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from callback_dispatch.domain.descriptions import (
    SUPPORTED_HTTP_METHODS,
    CallbackDescription,
    OperationDescription,
)
from callback_dispatch.domain.errors import CallbackCompilationError
from callback_dispatch.domain.plans import (
    PATH_LOCATION,
    CallbackBodyPlan,
    CallbackParamPlan,
    CallbackPlan,
)

_PREFERRED_MEDIA_TYPE = "application/json"


def compile_callback_plans(
    description: CallbackDescription | Mapping[str, Any],
    callback_id: str,
) -> list[CallbackPlan]:
    """Emit one plan per (URL expression, method, operation) of a callback description."""

    if not callback_id or not callback_id.strip():
        raise CallbackCompilationError("callback_id is required.")

    path_items = _validated_path_items(description, callback_id)
    plans: list[CallbackPlan] = []
    for expression, operations in path_items.items():
        if not operations:
            continue
        for method, operation in operations.items():
            if operation is None:
                continue
            normalized_method = method.strip().lower()
            if normalized_method not in SUPPORTED_HTTP_METHODS:
                raise CallbackCompilationError(
                    f"Callback '{callback_id}' declares unsupported HTTP method '{method}' "
                    f"for '{expression}'."
                )
            plans.append(
                CallbackPlan(
                    callback_id=callback_id,
                    url_template=expression,
                    method=normalized_method.upper(),
                    operation_id=_operation_id(operation, callback_id, normalized_method),
                    path_params=_path_params(operation),
                    body=_body_plan(operation),
                )
            )
    return plans


def _validated_path_items(
    description: CallbackDescription | Mapping[str, Any],
    callback_id: str,
) -> dict[str, dict[str, OperationDescription | None]]:
    if isinstance(description, CallbackDescription):
        return description.root
    try:
        return CallbackDescription.model_validate(dict(description)).root
    except ValidationError as exc:
        raise CallbackCompilationError(
            f"Callback '{callback_id}' description is invalid: {exc}"
        ) from exc


def _operation_id(operation: OperationDescription, callback_id: str, method: str) -> str:
    if operation.operation_id:
        return operation.operation_id
    return f"{callback_id}__{method}"


def _path_params(operation: OperationDescription) -> tuple[CallbackParamPlan, ...]:
    # Query and header parameters are not substituted into callback URLs.
    return tuple(
        CallbackParamPlan(name=parameter.name, location=PATH_LOCATION)
        for parameter in operation.parameters
        if (parameter.location or "").lower() == PATH_LOCATION
        and parameter.name
        and parameter.name.strip()
    )


def _body_plan(operation: OperationDescription) -> CallbackBodyPlan | None:
    request_body = operation.request_body
    if request_body is None or not request_body.content:
        return None

    media_types = list(request_body.content)
    for media_type in media_types:
        if media_type.lower() == _PREFERRED_MEDIA_TYPE:
            return CallbackBodyPlan(media_type=media_type)
    return CallbackBodyPlan(media_type=media_types[0])


__all__ = ["compile_callback_plans"]
