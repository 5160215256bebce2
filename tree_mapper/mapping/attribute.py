"""Attribute and relationship mapping rules.

Frozen dataclasses pairing a source key path with a destination key path.
Used by ObjectMapping definitions and read by MappingOperation at mapping time.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from tree_mapper.core.enums import RelationshipCardinality
from tree_mapper.core.keypath import parse_key_path

if TYPE_CHECKING:
    from tree_mapper.mapping.object_mapping import ObjectMapping

# Source key path recorded for the "key of nested dictionary" mapping
NESTING_KEY = "(key)"


@dataclass(frozen=True)
class AttributeMapping:
    """Maps the value at ``source_key_path`` onto ``destination_key_path``."""

    source_key_path: str
    destination_key_path: str
    is_nested_key_mapping: bool = False

    def __post_init__(self) -> None:
        if not self.is_nested_key_mapping:
            parse_key_path(self.source_key_path)
        parse_key_path(self.destination_key_path)

    @classmethod
    def nested_key(cls, destination_key_path: str) -> AttributeMapping:
        """A mapping that receives the key of the enclosing nested dictionary."""
        return cls(NESTING_KEY, destination_key_path, is_nested_key_mapping=True)

    def is_mapping_for_key_of_nested_dictionary(self) -> bool:
        return self.is_nested_key_mapping


@dataclass(frozen=True, eq=False)
class RelationshipMapping:
    """An attribute mapping whose source holds nested objects.

    ``cardinality`` of None lets the shape of the source node and the
    destination field decide between a single object, a list and a set.
    """

    attribute: AttributeMapping
    mapping: ObjectMapping
    cardinality: RelationshipCardinality | None = None

    @property
    def source_key_path(self) -> str:
        return self.attribute.source_key_path

    @property
    def destination_key_path(self) -> str:
        return self.attribute.destination_key_path
