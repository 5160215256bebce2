"""Mapping operations - one source node onto one destination instance.

An operation walks the attribute mappings of its ObjectMapping in declared
order, coerces and assigns every value it finds, then resolves relationship
mappings by creating nested operations. Nested work for a type that is
already being mapped higher in the stack is deferred to the queue, which
breaks relationship cycles.

Failures are recorded and mapping continues; only a malformed mapping
definition stops an operation before it starts.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from tree_mapper.core.coercion import CoercionError, coerce_value
from tree_mapper.core.descriptor import EntityDescriptor
from tree_mapper.core.enums import AttributeType, RelationshipCardinality
from tree_mapper.core.exceptions import (
    AggregateMappingError,
    AttributeNotFound,
    FatalMappingConfiguration,
    MappingError,
    MappingStateError,
    TypeCoercionFailure,
)
from tree_mapper.core.keypath import MISSING, is_sequence, value_for_key_path
from tree_mapper.core.registry import EntityRegistry
from tree_mapper.mapping.attribute import NESTING_KEY, AttributeMapping, RelationshipMapping
from tree_mapper.mapping.object_mapping import ObjectMapping
from tree_mapper.mapping.protocol import MappingDelegate
from tree_mapper.mapping.queue import MappingOperationQueue
from tree_mapper.mapping.resolver import EntityResolver

if TYPE_CHECKING:
    from tree_mapper.core.context import ObjectContext

logger = logging.getLogger(__name__)


def validate_mapping_graph(mapping: ObjectMapping, registry: EntityRegistry) -> None:
    """Validate *mapping* and every mapping reachable through relationships."""
    seen: set[int] = set()
    pending = [mapping]
    while pending:
        current = pending.pop()
        if id(current) in seen:
            continue
        seen.add(id(current))
        current.validate(registry)
        pending.extend(r.mapping for r in current.relationship_mappings)


class MappingOperation:
    """Maps *source* onto *destination* according to *mapping*.

    An operation is single-use: construct a fresh one for every pass.

    Args:
        source: Source node (normally a mapping of keys to values).
        destination: Instance receiving the values.
        mapping: Rules for the destination type.
        delegate: Receives per-attribute events.
        queue: Shared queue for deferred work. Without one, the operation
            creates its own and drains it before returning.
        resolver: Identity map for the pass.
        context: Persistence context owning created instances.
        registry: Accessor tables; defaults to the context's.
        nested_substitutions: Values overriding source key paths, used for
            the key of a nested dictionary.
        validate: Check the whole mapping graph before mapping. Nested
            operations skip it because their root already did.
    """

    def __init__(
        self,
        source: Any,
        destination: Any,
        mapping: ObjectMapping,
        *,
        delegate: MappingDelegate | None = None,
        queue: MappingOperationQueue | None = None,
        resolver: EntityResolver | None = None,
        context: ObjectContext | None = None,
        registry: EntityRegistry | None = None,
        nested_substitutions: Mapping[str, Any] | None = None,
        validate: bool = True,
    ) -> None:
        if registry is None:
            if context is not None:
                registry = context.registry
            elif resolver is not None:
                registry = resolver.registry
            else:
                registry = EntityRegistry()
        self.source = source
        self.destination = destination
        self.mapping = mapping
        self.delegate = delegate if delegate is not None else MappingDelegate()
        self._owns_queue = queue is None
        self.queue = queue if queue is not None else MappingOperationQueue()
        self.context = context
        self.registry = registry
        self.resolver = resolver if resolver is not None else EntityResolver(registry)
        self.nested_substitutions = dict(nested_substitutions or {})
        self.errors: list[MappingError] = []
        self._validate = validate
        self._performed = False

    def __repr__(self) -> str:
        return f"MappingOperation({type(self.destination).__name__} <- {self.mapping!r})"

    @property
    def error(self) -> AggregateMappingError | None:
        """Every recorded failure as one error, or None."""
        if not self.errors:
            return None
        return AggregateMappingError(self.errors)

    @property
    def destination_type(self) -> type:
        return self.mapping.destination_type or type(self.destination)

    def perform_mapping(self) -> bool:
        """Map every attribute and relationship.

        Returns:
            True when nothing was recorded; otherwise False, with the failures
            in ``errors`` and ``error``.

        Raises:
            FatalMappingConfiguration: If the mapping definition is malformed.
            MappingStateError: If the operation was already performed.
        """
        if self._performed:
            raise MappingStateError(
                f"{self!r} was already performed; create a new operation for each pass"
            )
        self._performed = True

        if self._validate:
            validate_mapping_graph(self.mapping, self.registry)
        nested_key = self.mapping.nested_key_mapping
        if nested_key is not None and nested_key.source_key_path not in self.nested_substitutions:
            raise FatalMappingConfiguration(
                f"{self.mapping!r} maps the keys of a nested dictionary; map it through "
                "ObjectMapper or a relationship so each key is supplied"
            )

        # Back-references to this key must resolve to the destination itself
        key = self.resolver.primary_key_value(self.mapping, self.source, self.nested_substitutions)
        self.resolver.adopt(self.mapping, key, self.destination)

        descriptor = self.registry.describe(type(self.destination))
        logger.debug("Starting %r", self)
        with self.queue.mapping(self):
            for attribute in self.mapping.attribute_mappings:
                self._map_attribute(attribute, descriptor)
            for relationship in self.mapping.relationship_mappings:
                self._map_relationship(relationship, descriptor)
            if self.context is not None:
                for failure in self.context.validate_object(self.destination):
                    self._record(failure)

        if self._owns_queue:
            self.errors.extend(self.queue.drain())

        if self.errors:
            logger.warning("%r finished with %d error(s)", self, len(self.errors))
        else:
            logger.debug("Finished %r", self)
        return not self.errors

    # --- Attributes ---

    def _source_value(self, attribute: AttributeMapping) -> Any:
        key_path = attribute.source_key_path
        if key_path in self.nested_substitutions:
            return self.nested_substitutions[key_path]
        if attribute.is_nested_key_mapping:
            return MISSING
        return value_for_key_path(self.source, key_path)

    def _map_attribute(self, attribute: AttributeMapping, descriptor: EntityDescriptor) -> None:
        key_path = attribute.source_key_path
        value = self._source_value(attribute)
        if value is MISSING:
            # Nested-key mappings only apply when the key is substituted in
            if attribute.is_nested_key_mapping:
                return
            self.delegate.did_not_find_mapping(self, key_path)
            logger.debug("Did not find mappable attribute value keyPath '%s'", key_path)
            if self.mapping.is_strict:
                self._record(AttributeNotFound(key_path))
            return

        self.delegate.did_find_mapping(self, attribute, key_path)
        destination_key_path = attribute.destination_key_path
        spec = descriptor.field_for_key_path(destination_key_path)

        try:
            if spec.collection is not None:
                if value is not None and not is_sequence(value):
                    raise CoercionError("expected a collection")
                coerced = None if value is None else spec.collection(value)
            elif is_sequence(value) or isinstance(value, Mapping):
                if spec.attribute_type is not AttributeType.ANY:
                    raise CoercionError(f"expected a scalar, got {type(value).__name__}")
                coerced = value
            else:
                coerced = coerce_value(value, spec.attribute_type)
        except (CoercionError, TypeError) as e:
            expected = spec.collection.__name__ if spec.collection else spec.attribute_type.value
            self._record(
                TypeCoercionFailure(destination_key_path, value, expected, key_path, str(e))
            )
            return

        self._assign(attribute, destination_key_path, coerced, descriptor)

    def _assign(
        self,
        attribute: AttributeMapping,
        destination_key_path: str,
        value: Any,
        descriptor: EntityDescriptor,
    ) -> None:
        try:
            descriptor.set_key_path(self.destination, destination_key_path, value)
        except (AttributeError, TypeError, ValueError) as e:
            self._record(
                TypeCoercionFailure(
                    destination_key_path, value, "an assignable value", attribute.source_key_path, str(e)
                )
            )
            return
        self.delegate.did_set_value(self, value, destination_key_path, attribute)
        logger.debug(
            "Mapped value from keyPath '%s' to '%s': %r",
            attribute.source_key_path,
            destination_key_path,
            value,
        )

    # --- Relationships ---

    def _cardinality(
        self, relationship: RelationshipMapping, value: Any, descriptor: EntityDescriptor
    ) -> RelationshipCardinality:
        if relationship.cardinality is not None:
            return relationship.cardinality
        spec = descriptor.field_for_key_path(relationship.destination_key_path)
        if spec.collection is set:
            return RelationshipCardinality.TO_MANY_SET
        if spec.collection is list:
            return RelationshipCardinality.TO_MANY
        if is_sequence(value):
            return RelationshipCardinality.TO_MANY
        if relationship.mapping.is_nested_key_mode and isinstance(value, Mapping):
            return RelationshipCardinality.TO_MANY
        return RelationshipCardinality.TO_ONE

    def _map_relationship(self, relationship: RelationshipMapping, descriptor: EntityDescriptor) -> None:
        attribute = relationship.attribute
        key_path = relationship.source_key_path
        value = self._source_value(attribute)
        if value is MISSING:
            self.delegate.did_not_find_mapping(self, key_path)
            logger.debug("Did not find mappable relationship value keyPath '%s'", key_path)
            if self.mapping.is_strict:
                self._record(AttributeNotFound(key_path))
            return

        self.delegate.did_find_mapping(self, attribute, key_path)
        destination_key_path = relationship.destination_key_path
        cardinality = self._cardinality(relationship, value, descriptor)
        nested = relationship.mapping

        if value is None:
            empty: Any = {
                RelationshipCardinality.TO_ONE: None,
                RelationshipCardinality.TO_MANY: [],
                RelationshipCardinality.TO_MANY_SET: set(),
            }[cardinality]
            self._assign(attribute, destination_key_path, empty, descriptor)
            return

        if nested.is_nested_key_mode:
            if not isinstance(value, Mapping):
                self._record(
                    TypeCoercionFailure(destination_key_path, value, "a keyed dictionary", key_path)
                )
                return
            objects = [self._map_nested_entry(k, v, nested) for k, v in value.items()]
        elif isinstance(value, Mapping):
            objects = [self._map_nested(value, nested)]
        elif is_sequence(value):
            if cardinality is RelationshipCardinality.TO_ONE:
                self._record(
                    TypeCoercionFailure(
                        destination_key_path, value, "a single object", key_path,
                        "to-one relationship received a collection",
                    )
                )
                return
            objects = [self._map_nested(element, nested) for element in value]
        else:
            self._record(TypeCoercionFailure(destination_key_path, value, "an object", key_path))
            return

        found = [obj for obj in objects if obj is not None]
        try:
            if cardinality is RelationshipCardinality.TO_ONE:
                result: Any = found[0] if found else None
            elif cardinality is RelationshipCardinality.TO_MANY_SET:
                result = set(found)
            else:
                result = unique_instances(found)
        except TypeError as e:
            self._record(TypeCoercionFailure(destination_key_path, found, "a set", key_path, str(e)))
            return
        self._assign(attribute, destination_key_path, result, descriptor)

    def _map_nested_entry(self, key: Any, value: Any, nested: ObjectMapping) -> Any:
        return self._map_nested(value, nested, {NESTING_KEY: key})

    def _map_nested(
        self,
        node: Any,
        nested: ObjectMapping,
        substitutions: Mapping[str, Any] | None = None,
    ) -> Any:
        """Resolve and populate one nested object; returns the instance or None."""
        if not isinstance(node, Mapping):
            self._record(
                TypeCoercionFailure(
                    nested.destination_type.__name__ if nested.destination_type else "?",
                    node,
                    "an object",
                    detail="nested value is not a mapping",
                )
            )
            return None

        key = self.resolver.primary_key_value(nested, node, substitutions)
        instance, _ = self.resolver.resolve(self.context, nested, key)
        operation = MappingOperation(
            node,
            instance,
            nested,
            delegate=self.delegate,
            queue=self.queue,
            resolver=self.resolver,
            context=self.context,
            registry=self.registry,
            nested_substitutions=substitutions,
            validate=False,
        )

        if self.queue.is_mapping_type(nested.destination_type):
            self.queue.add_operation(operation)
        else:
            operation.perform_mapping()
            self.errors.extend(operation.errors)
        return instance

    def _record(self, error: MappingError) -> None:
        self.errors.append(error)
        self.delegate.did_fail_with_error(self, error)
        logger.debug("Recorded mapping error: %s", error)


def unique_instances(objects: list[Any]) -> list[Any]:
    """Drop None and repeated instances, keeping first-seen order."""
    seen: set[int] = set()
    result = []
    for obj in objects:
        if obj is not None and id(obj) not in seen:
            seen.add(id(obj))
            result.append(obj)
    return result
