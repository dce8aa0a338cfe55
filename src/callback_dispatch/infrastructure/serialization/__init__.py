"""Callback body serializers."""

from callback_dispatch.infrastructure.serialization.json_body_serializer import (
    DEFAULT_CONTENT_TYPE,
    JsonCallbackBodySerializer,
)

__all__ = ["DEFAULT_CONTENT_TYPE", "JsonCallbackBodySerializer"]
