"""Mapping provider - object mappings registered by root key path.

When a payload is mapped without an explicit mapping, the provider tells the
mapper which registered key paths occur in it:

    provider.set_mapping("articles", article_mapping)
    provider.set_mapping("meta.authors", author_mapping)
    provider.mappable_key_paths({"articles": [...]})  -> [("articles", article_mapping)]
"""

from __future__ import annotations

from typing import Any

from tree_mapper.core.exceptions import FatalMappingConfiguration
from tree_mapper.core.keypath import has_key_path, parse_key_path
from tree_mapper.mapping.object_mapping import ObjectMapping


class MappingProvider:
    """Registry of object mappings keyed by the key path they map.

    Populate at configuration time; read-only afterwards.

    Args:
        mappings: Optional mappings registered under their own root key path.
    """

    def __init__(self, *mappings: ObjectMapping) -> None:
        self._mappings: dict[str, ObjectMapping] = {}
        for item in mappings:
            self.register(item)

    def set_mapping(self, key_path: str, mapping: ObjectMapping) -> None:
        """Register *mapping* for content found at *key_path*."""
        parse_key_path(key_path)
        self._mappings[key_path] = mapping

    def register(self, mapping: ObjectMapping) -> None:
        """Register a mapping under its own root key path.

        Raises:
            FatalMappingConfiguration: If the mapping has no root key path.
        """
        if mapping.root_key_path is None:
            raise FatalMappingConfiguration(
                f"{mapping!r} has no root key path; use set_mapping() instead"
            )
        self.set_mapping(mapping.root_key_path, mapping)

    def mapping_for_key_path(self, key_path: str) -> ObjectMapping | None:
        return self._mappings.get(key_path)

    def mapping_for_type(self, destination_type: type) -> ObjectMapping | None:
        """First registered mapping producing *destination_type*."""
        for item in self._mappings.values():
            if item.destination_type is destination_type:
                return item
        return None

    def mappable_key_paths(self, payload: Any) -> list[tuple[str, ObjectMapping]]:
        """Registered key paths present in *payload*, in registration order."""
        return [(kp, m) for kp, m in self._mappings.items() if has_key_path(payload, kp)]

    def has(self, key_path: str) -> bool:
        return key_path in self._mappings

    @property
    def key_paths(self) -> list[str]:
        """Registered key paths, sorted alphabetically."""
        return sorted(self._mappings.keys())

    def __len__(self) -> int:
        """Number of registered mappings."""
        return len(self._mappings)
