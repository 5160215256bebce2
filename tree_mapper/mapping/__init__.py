"""Mapping layer - map parsed payload trees onto typed objects."""

from __future__ import annotations

from tree_mapper.mapping.attribute import AttributeMapping, RelationshipMapping
from tree_mapper.mapping.mapper import MappingResult, ObjectMapper
from tree_mapper.mapping.object_mapping import ObjectMapping, mapping
from tree_mapper.mapping.operation import MappingOperation
from tree_mapper.mapping.protocol import MappingDelegate
from tree_mapper.mapping.provider import MappingProvider
from tree_mapper.mapping.queue import MappingOperationQueue
from tree_mapper.mapping.resolver import EntityResolver

__all__ = [
    "ObjectMapping",
    "mapping",
    "AttributeMapping",
    "RelationshipMapping",
    "MappingProvider",
    "MappingOperation",
    "MappingOperationQueue",
    "EntityResolver",
    "MappingDelegate",
    "ObjectMapper",
    "MappingResult",
]
