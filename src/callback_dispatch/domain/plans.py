"""Compiled callback plans."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

PATH_LOCATION = "path"


@dataclass(slots=True, frozen=True)
class CallbackParamPlan:
    """One templated parameter of a callback URL."""

    name: str
    location: str = PATH_LOCATION


@dataclass(slots=True, frozen=True)
class CallbackBodyPlan:
    """Expected request body of a callback operation."""

    media_type: str


@dataclass(slots=True, frozen=True)
class CallbackPlan:
    """Static description of one deliverable callback notification."""

    callback_id: str
    url_template: str
    method: str
    operation_id: str
    path_params: tuple[CallbackParamPlan, ...] = ()
    body: CallbackBodyPlan | None = None


@dataclass(slots=True, frozen=True)
class CallbackExecutionPlan:
    """A compiled plan bound to the values of one invocation."""

    callback_id: str
    plan: CallbackPlan
    body_parameter_name: str | None = None
    parameters: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "parameters", MappingProxyType(dict(self.parameters)))

    @property
    def body_value(self) -> Any:
        """Return the bound body value, or `None` when no body is attached."""

        if self.body_parameter_name is None:
            return None
        return self.parameters.get(self.body_parameter_name)


__all__ = [
    "CallbackBodyPlan",
    "CallbackExecutionPlan",
    "CallbackParamPlan",
    "CallbackPlan",
    "PATH_LOCATION",
]
