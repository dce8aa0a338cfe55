"""Pydantic models mapped from the OpenAPI Callback Object."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, RootModel, model_validator

SUPPORTED_HTTP_METHODS = frozenset(
    {"get", "put", "post", "delete", "options", "head", "patch", "trace"}
)
# Path Item fields that sit next to the operations.
PATH_ITEM_FIELDS = frozenset({"$ref", "summary", "description", "servers", "parameters"})


class DescriptionModel(BaseModel):
    """Base model for callback description fragments."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)


class ParameterDescription(DescriptionModel):
    """Operation parameter declaration."""

    name: str | None = None
    location: str | None = Field(default=None, alias="in")
    required: bool = False


class MediaTypeDescription(DescriptionModel):
    """Media type entry of a request body."""

    schema_: dict[str, Any] | None = Field(default=None, alias="schema")


class RequestBodyDescription(DescriptionModel):
    """Request body declaration with content keyed by media type."""

    content: dict[str, MediaTypeDescription | None] = Field(default_factory=dict)
    required: bool = False


class OperationDescription(DescriptionModel):
    """One callback operation."""

    operation_id: str | None = Field(default=None, alias="operationId")
    summary: str | None = None
    parameters: list[ParameterDescription] = Field(default_factory=list)
    request_body: RequestBodyDescription | None = Field(default=None, alias="requestBody")


class CallbackDescription(RootModel[dict[str, dict[str, OperationDescription | None]]]):
    """Callback object: URL expression -> HTTP method -> operation.

    Path Item fields other than operations, and `x-` extensions, are dropped.
    Any other key is kept so the compiler can reject it as an unknown method.
    """

    @model_validator(mode="before")
    @classmethod
    def drop_path_item_fields(cls, value: Any) -> Any:
        if not isinstance(value, dict):
            return value
        return {
            expression: _operations_only(path_item)
            for expression, path_item in value.items()
        }


def _operations_only(path_item: Any) -> Any:
    if not isinstance(path_item, dict):
        return path_item
    return {
        key: operation
        for key, operation in path_item.items()
        if not (
            isinstance(key, str)
            and (key.lower() in PATH_ITEM_FIELDS or key.lower().startswith("x-"))
        )
    }


__all__ = [
    "CallbackDescription",
    "MediaTypeDescription",
    "OperationDescription",
    "ParameterDescription",
    "RequestBodyDescription",
    "PATH_ITEM_FIELDS",
    "SUPPORTED_HTTP_METHODS",
]
