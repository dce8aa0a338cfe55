"""JSON body serializer for callback requests."""

from __future__ import annotations

import logging
from typing import Any

from pydantic import TypeAdapter

from callback_dispatch.domain.models import CallbackRuntimeContext
from callback_dispatch.domain.plans import CallbackPlan
from callback_dispatch.domain.ports import CallbackBodySerializer

DEFAULT_CONTENT_TYPE = "application/json"
_BODY_ADAPTER: TypeAdapter[Any] = TypeAdapter(Any)

logger = logging.getLogger(__name__)


class JsonCallbackBodySerializer(CallbackBodySerializer):
    """Serialize `context.callback_payload` as UTF-8 JSON.

    Pydantic models, dataclasses, datetimes and UUIDs are rendered the way
    pydantic dumps them in JSON mode. A payload bound to a plan that declares no
    request body is dropped, and the request goes out with an empty body.
    """

    def serialize(
        self, plan: CallbackPlan, context: CallbackRuntimeContext
    ) -> tuple[str, bytes]:
        content_type = DEFAULT_CONTENT_TYPE if plan.body is None else plan.body.media_type
        if plan.body is None:
            if context.callback_payload is not None:
                logger.debug(
                    "Dropping payload for callback %s (%s): operation declares no request body.",
                    plan.callback_id,
                    plan.operation_id,
                )
            return content_type, b""
        if context.callback_payload is None:
            return content_type, b""

        payload = context.callback_payload
        if isinstance(payload, bytes):
            return content_type, payload
        return content_type, _BODY_ADAPTER.dump_json(payload, by_alias=True)


__all__ = ["DEFAULT_CONTENT_TYPE", "JsonCallbackBodySerializer"]
