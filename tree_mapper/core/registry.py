"""Entity registry - accessor tables for every destination type.

Naming convention:
    class Article           -> "Article"
    register(Article, "news.article") -> "news.article"

Stores persist records under the entity name, so a name must map to exactly
one class for the lifetime of the registry.
"""

from __future__ import annotations

from tree_mapper.core.descriptor import EntityDescriptor
from tree_mapper.core.exceptions import DuplicateEntityError, EntityNotRegisteredError


class EntityRegistry:
    """Builds and caches one EntityDescriptor per destination type.

    Register types once at configuration time; lookups during mapping are
    read-only. Types met for the first time by ``describe`` are registered
    on the spot under their class name.

    Args:
        types: Optional classes to register up front.
    """

    def __init__(self, *types: type) -> None:
        self._by_name: dict[str, EntityDescriptor] = {}
        self._by_class: dict[type, EntityDescriptor] = {}
        for cls in types:
            self.register(cls)

    def register(self, cls: type, name: str | None = None) -> EntityDescriptor:
        """Register a destination type.

        Raises:
            DuplicateEntityError: If *name* already belongs to another class.
        """
        existing = self._by_class.get(cls)
        if existing is not None and (name is None or existing.name == name):
            return existing

        descriptor = EntityDescriptor(cls, name)
        other = self._by_name.get(descriptor.name)
        if other is not None and other.cls is not cls:
            raise DuplicateEntityError(descriptor.name, other.cls, cls)

        self._by_name[descriptor.name] = descriptor
        self._by_class[cls] = descriptor
        return descriptor

    def describe(self, cls: type) -> EntityDescriptor:
        """Accessor table for *cls*, registering it if needed."""
        descriptor = self._by_class.get(cls)
        if descriptor is None:
            descriptor = self.register(cls)
        return descriptor

    def get(self, entity_name: str) -> EntityDescriptor:
        """Look up a descriptor by entity name.

        Raises:
            EntityNotRegisteredError: If no type is registered under the name.
        """
        try:
            return self._by_name[entity_name]
        except KeyError:
            raise EntityNotRegisteredError(entity_name) from None

    def has(self, entity: str | type) -> bool:
        """Check if an entity name or class is registered."""
        if isinstance(entity, str):
            return entity in self._by_name
        return entity in self._by_class

    @property
    def entity_names(self) -> list[str]:
        """List all registered entity names, sorted alphabetically."""
        return sorted(self._by_name.keys())

    def __len__(self) -> int:
        """Number of registered entity types."""
        return len(self._by_name)
