"""Default resolver for callback URL templates."""

from __future__ import annotations

import json
import re
from typing import Any
from urllib.parse import quote, urljoin, urlsplit

from pydantic import TypeAdapter

from callback_dispatch.domain.errors import CallbackResolutionError
from callback_dispatch.domain.json_pointer import resolve_json_pointer
from callback_dispatch.domain.models import CallbackRuntimeContext
from callback_dispatch.domain.ports import CallbackUrlResolver

_RUNTIME_EXPRESSION_PATTERN = re.compile(r"\{\$request\.body#(?P<pointer>/[^}]*)\}")
_TOKEN_PATTERN = re.compile(r"\{(?P<name>[A-Za-z_][A-Za-z0-9_]*)\}")
_PAYLOAD_ADAPTER: TypeAdapter[Any] = TypeAdapter(Any)


class DefaultCallbackUrlResolver(CallbackUrlResolver):
    """Resolve runtime expressions, `{token}` placeholders and relative URLs."""

    def resolve(self, url_template: str, context: CallbackRuntimeContext) -> str:
        if not url_template or not url_template.strip():
            raise CallbackResolutionError("Callback url template is empty.")

        resolved = _RUNTIME_EXPRESSION_PATTERN.sub(
            lambda match: self._runtime_expression_value(match.group("pointer"), context),
            url_template.strip(),
        )
        resolved = _TOKEN_PATTERN.sub(
            lambda match: self._token_value(match.group("name"), context),
            resolved,
        )

        if self._is_absolute(resolved):
            return resolved
        if context.default_base_url is None:
            raise CallbackResolutionError(
                f"Callback url resolved to '{resolved}' (not absolute) "
                "and DefaultBaseUri is null (default_base_url not configured)."
            )
        return urljoin(context.default_base_url, resolved)

    def _runtime_expression_value(self, pointer: str, context: CallbackRuntimeContext) -> str:
        if context.callback_payload is None:
            raise CallbackResolutionError(
                f"Callback url uses request.body pointer '{pointer}' "
                "but the request body is null."
            )
        try:
            document = _PAYLOAD_ADAPTER.dump_python(context.callback_payload, mode="json")
        except ValueError as exc:
            raise CallbackResolutionError(
                f"Failed to serialize request body for evaluating pointer '{pointer}'."
            ) from exc

        value = resolve_json_pointer(document, pointer)
        # Strings are inserted raw; other values use their compact JSON text.
        if isinstance(value, str):
            return value
        return json.dumps(value, separators=(",", ":"))

    def _token_value(self, name: str, context: CallbackRuntimeContext) -> str:
        value = context.vars.get(name)
        if value is None:
            raise CallbackResolutionError(
                f"Callback url requires token '{name}' but it was not found in runtime vars."
            )
        return quote(str(value), safe="")

    def _is_absolute(self, url: str) -> bool:
        parts = urlsplit(url)
        return bool(parts.scheme) and bool(parts.netloc)


__all__ = ["DefaultCallbackUrlResolver"]
