"""Mapping delegate interface.

The engine calls every hook on every event; the defaults do nothing, so a
delegate overrides only what it needs.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from tree_mapper.core.exceptions import MappingError
    from tree_mapper.mapping.attribute import AttributeMapping
    from tree_mapper.mapping.operation import MappingOperation


class MappingDelegate:
    """Receives per-attribute events from mapping operations."""

    def did_find_mapping(
        self, operation: MappingOperation, mapping: AttributeMapping, key_path: str
    ) -> None:
        """A source value exists for *key_path*."""

    def did_not_find_mapping(self, operation: MappingOperation, key_path: str) -> None:
        """No source value exists for *key_path*; the attribute is left untouched."""

    def did_set_value(
        self, operation: MappingOperation, value: Any, key_path: str, mapping: AttributeMapping
    ) -> None:
        """*value* was assigned to the destination at *key_path*."""

    def did_fail_with_error(self, operation: MappingOperation, error: MappingError) -> None:
        """A failure was recorded; mapping continues."""

