"""Minimal RFC 6901 JSON pointer evaluation over plain Python trees."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from callback_dispatch.domain.errors import JsonPointerError


def _unescape(segment: str) -> str:
    return segment.replace("~1", "/").replace("~0", "~")


def resolve_json_pointer(document: Any, pointer: str) -> Any:
    """Return the value addressed by `pointer` inside `document`.

    `document` is a tree of mappings, sequences and scalars. Empty segments are
    skipped, so `""` and `"/"` both address the root.
    """

    if pointer in ("", "/"):
        return document
    if not pointer.startswith("/"):
        raise JsonPointerError(f"Invalid JSON pointer '{pointer}'.")

    current = document
    for raw_segment in pointer.split("/"):
        if not raw_segment:
            continue
        segment = _unescape(raw_segment)

        if isinstance(current, Mapping):
            if segment not in current:
                raise JsonPointerError(f"JSON pointer segment '{segment}' not found.")
            current = current[segment]
        elif isinstance(current, Sequence) and not isinstance(current, (str, bytes)):
            if not (segment.isascii() and segment.isdigit()):
                raise JsonPointerError(
                    f"JSON pointer segment '{segment}' is not a valid array index."
                )
            index = int(segment)
            if index >= len(current):
                raise JsonPointerError(f"JSON pointer index {index} out of range.")
            current = current[index]
        else:
            raise JsonPointerError(
                f"Cannot traverse JSON pointer through {type(current).__name__}."
            )

    return current


__all__ = ["resolve_json_pointer"]
