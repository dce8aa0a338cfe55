"""Build callback runtime contexts from resolved inbound request parameters."""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from callback_dispatch.domain.models import CallbackRuntimeContext, VariableBag

# Matches {id} and {id:int}; skips {$request.body#/...} because of '/' and '#'.
_TEMPLATE_PARAM_PATTERN = re.compile(r"\{(?P<name>[^{}:/?]+)(?::[^{}]+)?\}")


@dataclass(slots=True, frozen=True)
class ResolvedRequestParameters:
    """Parameters of a triggering request after the server pipeline resolved them."""

    values: Mapping[str, Any] = field(default_factory=dict)
    body: Any = None


def extract_template_params(url_template: str | None) -> list[str]:
    """Return placeholder names of a URL template, sorted case-insensitively."""

    if not url_template or not url_template.strip():
        return []

    names: dict[str, str] = {}
    for match in _TEMPLATE_PARAM_PATTERN.finditer(url_template):
        name = match.group("name").strip()
        if not name or name.startswith("$"):
            continue
        names.setdefault(name.casefold(), name)
    return sorted(names.values(), key=str.casefold)


def build_idempotency_seed(
    url_template: str | None,
    values: Mapping[str, Any],
    fallback: str,
) -> str:
    """Join `name=value` for every resolved template placeholder, or return `fallback`."""

    bag = values if isinstance(values, VariableBag) else VariableBag(values)
    parts: list[str] = []
    for name in extract_template_params(url_template):
        value = bag.get(name)
        if value is None:
            continue
        text = str(value)
        if not text.strip():
            continue
        parts.append(f"{name}={text}")
    return "&".join(parts) if parts else fallback


class CallbackRuntimeContextFactory:
    """Create runtime contexts for callbacks triggered by one inbound request."""

    def __init__(self, default_base_url: str | None = None) -> None:
        self._default_base_url = _normalized_base_url(default_base_url)

    def from_parameters(
        self,
        parameters: ResolvedRequestParameters,
        *,
        correlation_id: str,
        url_template: str | None = None,
    ) -> CallbackRuntimeContext:
        """Build a context whose seed reflects `url_template` placeholders, if given."""

        variables = VariableBag(parameters.values)
        return CallbackRuntimeContext(
            correlation_id=correlation_id,
            idempotency_key_seed=build_idempotency_seed(
                url_template,
                variables,
                fallback=correlation_id,
            ),
            default_base_url=self._default_base_url,
            vars=variables,
            callback_payload=parameters.body,
        )


def _normalized_base_url(base_url: str | None) -> str | None:
    if base_url is None:
        return None
    normalized = base_url.strip()
    return normalized or None


__all__ = [
    "CallbackRuntimeContextFactory",
    "ResolvedRequestParameters",
    "build_idempotency_seed",
    "extract_template_params",
]
