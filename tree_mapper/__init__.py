"""TreeMapper - declarative key-path object mapping for remote payloads."""

from __future__ import annotations

from tree_mapper.adapters.memory import MemoryStore
from tree_mapper.adapters.protocol import Request, Response
from tree_mapper.adapters.sqlite import SqliteStore
from tree_mapper.core.config import ClientConfig
from tree_mapper.core.context import ObjectContext
from tree_mapper.core.enums import AttributeType, RelationshipCardinality, ResponseClass
from tree_mapper.core.exceptions import (
    AdapterError,
    AggregateMappingError,
    AttributeNotFound,
    CommitError,
    ContextError,
    ContextStateError,
    DuplicateEntityError,
    EntityNotRegisteredError,
    FatalMappingConfiguration,
    HookError,
    KeyPathError,
    LoaderError,
    LoaderStateError,
    MappingError,
    MappingStateError,
    ParseError,
    RegistryError,
    ResponseError,
    StoreError,
    TransportError,
    TreeMapperError,
    TypeCoercionFailure,
    UnexpectedResponseError,
    UnmappableContentError,
    ValidationFailure,
)
from tree_mapper.core.loader import ObjectLoader
from tree_mapper.core.manager import ObjectManager
from tree_mapper.core.parsers import JsonParser, ParserRegistry
from tree_mapper.core.registry import EntityRegistry
from tree_mapper.mapping.mapper import MappingResult, ObjectMapper
from tree_mapper.mapping.object_mapping import ObjectMapping, mapping
from tree_mapper.mapping.operation import MappingOperation
from tree_mapper.mapping.protocol import MappingDelegate
from tree_mapper.mapping.provider import MappingProvider

__all__ = [
    # Mapping definitions
    "ObjectMapping",
    "mapping",
    "MappingProvider",
    # Mapping
    "MappingOperation",
    "MappingDelegate",
    "ObjectMapper",
    "MappingResult",
    # Registry
    "EntityRegistry",
    # Context
    "ObjectContext",
    "MemoryStore",
    "SqliteStore",
    # Loading
    "ClientConfig",
    "ObjectManager",
    "ObjectLoader",
    "Request",
    "Response",
    "ParserRegistry",
    "JsonParser",
    # Enums
    "AttributeType",
    "RelationshipCardinality",
    "ResponseClass",
    # Exceptions
    "TreeMapperError",
    "KeyPathError",
    "RegistryError",
    "EntityNotRegisteredError",
    "DuplicateEntityError",
    "MappingError",
    "AttributeNotFound",
    "TypeCoercionFailure",
    "ValidationFailure",
    "FatalMappingConfiguration",
    "UnmappableContentError",
    "MappingStateError",
    "AggregateMappingError",
    "ContextError",
    "CommitError",
    "ContextStateError",
    "LoaderError",
    "TransportError",
    "UnexpectedResponseError",
    "ResponseError",
    "ParseError",
    "LoaderStateError",
    "HookError",
    "AdapterError",
    "StoreError",
]
