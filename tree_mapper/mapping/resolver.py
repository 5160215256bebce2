"""Entity resolution - one destination instance per primary key per pass."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from tree_mapper.adapters.protocol import record_key
from tree_mapper.core.coercion import CoercionError, coerce_value
from tree_mapper.core.exceptions import FatalMappingConfiguration
from tree_mapper.core.keypath import MISSING, is_sequence, value_for_key_path
from tree_mapper.core.registry import EntityRegistry

if TYPE_CHECKING:
    from tree_mapper.core.context import ObjectContext
    from tree_mapper.mapping.object_mapping import ObjectMapping

logger = logging.getLogger(__name__)


class EntityResolver:
    """Finds or creates destination instances, uniquing them by primary key.

    Holds an identity map for the lifetime of one mapping pass: repeated
    requests for the same ``(type, key)`` return the identical instance even
    before it has been populated, which is what closes relationship cycles.

    Args:
        registry: Accessor tables used to create and key new instances.
    """

    def __init__(self, registry: EntityRegistry | None = None) -> None:
        self.registry = registry if registry is not None else EntityRegistry()
        self._identity: dict[tuple[type, str, str], Any] = {}

    def primary_key_value(
        self,
        mapping: ObjectMapping,
        node: Any,
        substitutions: Mapping[str, Any] | None = None,
    ) -> Any:
        """Read the primary key a source node carries for *mapping*.

        The value is coerced to the key attribute's type so that ``"1"`` and
        ``1`` unique to the same instance when the attribute is an int.
        Returns None when the mapping has no usable key.
        """
        key_attribute = mapping.primary_key_attribute
        if key_attribute is None or mapping.destination_type is None:
            return None
        attribute = mapping.attribute_for_destination(key_attribute)
        if attribute is None:
            return None

        subs = substitutions or {}
        if attribute.source_key_path in subs:
            value = subs[attribute.source_key_path]
        elif attribute.is_nested_key_mapping:
            return None
        else:
            value = value_for_key_path(node, attribute.source_key_path)

        if value is MISSING or value is None or is_sequence(value) or isinstance(value, Mapping):
            return None

        spec = self.registry.describe(mapping.destination_type).field_for_key_path(key_attribute)
        try:
            return coerce_value(value, spec.attribute_type)
        except CoercionError:
            return value

    def resolve(
        self,
        context: ObjectContext | None,
        mapping: ObjectMapping,
        primary_key_value: Any,
    ) -> tuple[Any, bool]:
        """Existing or new instance for ``(mapping.destination_type, primary_key_value)``.

        Returns:
            ``(instance, was_created)``.
        """
        cls = mapping.destination_type
        if cls is None:
            raise FatalMappingConfiguration(f"{mapping!r} has no destination type")
        key_attribute = mapping.primary_key_attribute
        descriptor = self.registry.describe(cls)

        if key_attribute is None or primary_key_value is None:
            if context is not None:
                return context.create(cls), True
            return descriptor.new_instance(), True

        index = (cls, key_attribute, record_key(primary_key_value))
        existing = self._identity.get(index)
        if existing is not None:
            return existing, False

        created = False
        instance = None
        if context is not None:
            instance = context.find(cls, key_attribute, primary_key_value)
        if instance is None:
            if context is not None:
                instance = context.create(cls, key_attribute, primary_key_value)
            else:
                instance = descriptor.new_instance()
                descriptor.set_key_path(instance, key_attribute, primary_key_value)
            created = True
            logger.debug("Created %s with %s=%r", cls.__name__, key_attribute, primary_key_value)

        self._identity[index] = instance
        return instance, created

    def adopt(self, mapping: ObjectMapping, primary_key_value: Any, instance: Any) -> None:
        """Make *instance* the resolution of its key for the rest of the pass."""
        if mapping.destination_type is None or mapping.primary_key_attribute is None:
            return
        if primary_key_value is None:
            return
        index = (mapping.destination_type, mapping.primary_key_attribute, record_key(primary_key_value))
        self._identity.setdefault(index, instance)
