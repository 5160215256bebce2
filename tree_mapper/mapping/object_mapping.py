"""Object mapping DSL builder.

Provides a fluent builder for the mapping rules of one destination type:

    article = (
        mapping(Article, "title", "body", primary_key="article_id")
        .map_attribute("id", "article_id")
        .has_one("author", mapping(Person, "name"))
    )

Definitions are built once at configuration time and only read while mapping.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from tree_mapper.core.enums import RelationshipCardinality
from tree_mapper.core.exceptions import FatalMappingConfiguration
from tree_mapper.core.keypath import parse_key_path
from tree_mapper.mapping.attribute import AttributeMapping, RelationshipMapping

if TYPE_CHECKING:
    from tree_mapper.core.registry import EntityRegistry


def mapping(
    destination_type: type | None,
    *attributes: str,
    primary_key: str | None = None,
    root_key_path: str | None = None,
) -> ObjectMapping:
    """Entry point for the mapping DSL.

    Args:
        destination_type: Class the mapping produces.
        attributes: Names mapped one-to-one (source key == destination key).
        primary_key: Destination attribute used for uniquing.
        root_key_path: Key path locating the mappable content in a payload.

    Returns:
        A builder for chaining mapping declarations.
    """
    result = ObjectMapping(destination_type).map_attributes(*attributes)
    if primary_key is not None:
        result.primary_key(primary_key)
    if root_key_path is not None:
        result.at_key_path(root_key_path)
    return result


class ObjectMapping:
    """Mapping rules for one destination type."""

    def __init__(self, destination_type: type | None) -> None:
        self.destination_type = destination_type
        self._attribute_mappings: list[AttributeMapping] = []
        self._relationship_mappings: list[RelationshipMapping] = []
        self.primary_key_attribute: str | None = None
        self.root_key_path: str | None = None
        self.is_strict = False

    def __repr__(self) -> str:
        name = self.destination_type.__name__ if self.destination_type else None
        return (
            f"ObjectMapping({name}, attributes={len(self._attribute_mappings)}, "
            f"relationships={len(self._relationship_mappings)})"
        )

    @property
    def attribute_mappings(self) -> tuple[AttributeMapping, ...]:
        return tuple(self._attribute_mappings)

    @property
    def relationship_mappings(self) -> tuple[RelationshipMapping, ...]:
        return tuple(self._relationship_mappings)

    @property
    def nested_key_mapping(self) -> AttributeMapping | None:
        """The attribute mapping receiving nested dictionary keys, if any."""
        for attribute in self._attribute_mappings:
            if attribute.is_nested_key_mapping:
                return attribute
        return None

    @property
    def is_nested_key_mode(self) -> bool:
        return self.nested_key_mapping is not None

    def attribute_for_destination(self, destination_key_path: str) -> AttributeMapping | None:
        for attribute in self._attribute_mappings:
            if attribute.destination_key_path == destination_key_path:
                return attribute
        return None

    # --- Attributes ---

    def add_attribute_mapping(self, attribute: AttributeMapping) -> ObjectMapping:
        """Append an attribute mapping.

        Raises:
            FatalMappingConfiguration: On a second mapping for the same
                destination, or a second nested-key mapping.
        """
        if self.attribute_for_destination(attribute.destination_key_path) is not None:
            raise FatalMappingConfiguration(
                f"Destination '{attribute.destination_key_path}' is already mapped in {self!r}"
            )
        if attribute.is_nested_key_mapping and self.is_nested_key_mode:
            raise FatalMappingConfiguration(
                f"{self!r} already maps the key of a nested dictionary"
            )
        self._attribute_mappings.append(attribute)
        return self

    def map_attribute(self, source_key_path: str, destination_key_path: str | None = None) -> ObjectMapping:
        """Map a single source key path onto a destination attribute."""
        return self.add_attribute_mapping(
            AttributeMapping(source_key_path, destination_key_path or source_key_path)
        )

    def map_attributes(self, *names: str) -> ObjectMapping:
        """Map several attributes whose source and destination names agree."""
        for name in names:
            self.map_attribute(name)
        return self

    def map_key_of_nested_dictionary(self, destination_key_path: str) -> ObjectMapping:
        """Treat the payload as ``{key: object}`` and store each key here."""
        return self.add_attribute_mapping(AttributeMapping.nested_key(destination_key_path))

    # --- Relationships ---

    def add_relationship_mapping(self, relationship: RelationshipMapping) -> ObjectMapping:
        for existing in self._relationship_mappings:
            if existing.destination_key_path == relationship.destination_key_path:
                raise FatalMappingConfiguration(
                    f"Relationship '{relationship.destination_key_path}' is already mapped in {self!r}"
                )
        self._relationship_mappings.append(relationship)
        return self

    def map_relationship(
        self,
        source_key_path: str,
        mapping: ObjectMapping,
        destination_key_path: str | None = None,
        cardinality: RelationshipCardinality | None = None,
    ) -> ObjectMapping:
        """Map nested objects found at *source_key_path* with *mapping*."""
        attribute = AttributeMapping(source_key_path, destination_key_path or source_key_path)
        return self.add_relationship_mapping(RelationshipMapping(attribute, mapping, cardinality))

    def has_one(self, name: str, mapping: ObjectMapping, source_key_path: str | None = None) -> ObjectMapping:
        """Declare a to-one relationship."""
        return self.map_relationship(
            source_key_path or name, mapping, name, RelationshipCardinality.TO_ONE
        )

    def has_many(
        self,
        name: str,
        mapping: ObjectMapping,
        source_key_path: str | None = None,
        ordered: bool = True,
    ) -> ObjectMapping:
        """Declare a to-many relationship held as a list (or a set when not ordered)."""
        cardinality = RelationshipCardinality.TO_MANY if ordered else RelationshipCardinality.TO_MANY_SET
        return self.map_relationship(source_key_path or name, mapping, name, cardinality)

    # --- Identity and location ---

    def primary_key(self, attribute: str) -> ObjectMapping:
        """Set the destination attribute used to unique instances."""
        parse_key_path(attribute)
        self.primary_key_attribute = attribute
        return self

    def at_key_path(self, root_key_path: str) -> ObjectMapping:
        """Set the key path where this mapping's content lives in a payload."""
        parse_key_path(root_key_path)
        self.root_key_path = root_key_path
        return self

    def strict(self, enabled: bool = True) -> ObjectMapping:
        """Record missing source key paths as errors instead of skipping them."""
        self.is_strict = enabled
        return self

    # --- Validation ---

    def validate(self, registry: EntityRegistry) -> None:
        """Check the definition before any attribute is mapped.

        Raises:
            FatalMappingConfiguration: For a missing destination type, a
                relationship to a mapping without one, or a destination
                attribute the type does not declare.
        """
        if self.destination_type is None:
            raise FatalMappingConfiguration(f"{self!r} has no destination type")

        descriptor = registry.describe(self.destination_type)
        for attribute in self._attribute_mappings:
            descriptor.check_key_path(attribute.destination_key_path)

        for relationship in self._relationship_mappings:
            if relationship.mapping.destination_type is None:
                raise FatalMappingConfiguration(
                    f"Relationship '{relationship.destination_key_path}' of {self!r} "
                    "references a mapping with no destination type"
                )
            descriptor.check_key_path(relationship.destination_key_path)

        if self.primary_key_attribute is not None:
            descriptor.check_key_path(self.primary_key_attribute)
