"""Key path evaluation against parsed source trees.

A key path is one or more segments separated by ``.``:

    "name"                -> node["name"]
    "user.address.city"   -> node["user"]["address"]["city"]
    "orders.id"           -> [order["id"] for order in node["orders"]]

A segment that meets a sequence is distributed over its elements.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from functools import lru_cache
from typing import Any

from tree_mapper.core.exceptions import KeyPathError

_SEGMENT_PATTERN = re.compile(r"^[^.\s]+$")


class _Missing:
    """Sentinel for an absent key path (distinct from an explicit null)."""

    _instance: _Missing | None = None

    def __new__(cls) -> _Missing:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()


@lru_cache(maxsize=512)
def parse_key_path(key_path: str) -> tuple[str, ...]:
    """Split a key path into its segments.

    Raises:
        KeyPathError: If the path is empty or contains an empty or
            whitespace-bearing segment.
    """
    if not key_path:
        raise KeyPathError(key_path, "key path is empty")
    segments = tuple(key_path.split("."))
    for segment in segments:
        if not segment:
            raise KeyPathError(key_path, "empty segment")
        if not _SEGMENT_PATTERN.match(segment):
            raise KeyPathError(key_path, f"segment '{segment}' contains whitespace")
    return segments


def is_sequence(node: Any) -> bool:
    """Return True for list-like source nodes (strings and bytes excluded)."""
    return isinstance(node, Sequence) and not isinstance(node, (str, bytes, bytearray))


def value_for_key_path(node: Any, key_path: str) -> Any:
    """Evaluate *key_path* against *node*.

    Returns:
        The addressed value, which may be ``None`` for an explicit null, or
        ``MISSING`` when the path does not exist in the tree.
    """
    return _walk(node, parse_key_path(key_path))


def has_key_path(node: Any, key_path: str) -> bool:
    """Check whether *key_path* resolves to something (null included)."""
    return value_for_key_path(node, key_path) is not MISSING


def _walk(node: Any, segments: tuple[str, ...]) -> Any:
    if not segments:
        return node

    if isinstance(node, Mapping):
        head = segments[0]
        if head not in node:
            return MISSING
        return _walk(node[head], segments[1:])

    if is_sequence(node):
        values = []
        for element in node:
            value = _walk(element, segments)
            if value is not MISSING:
                values.append(value)
        return values if values else MISSING

    # Scalars have no children
    return MISSING
