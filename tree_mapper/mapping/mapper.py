"""Object mapper - maps a whole parsed payload.

Locates the mappable content of a payload (via an explicit mapping or the
MappingProvider), runs one root MappingOperation per source object and
collects the results per root key path.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from tree_mapper.core.exceptions import (
    AggregateMappingError,
    FatalMappingConfiguration,
    MappingError,
    TypeCoercionFailure,
    UnmappableContentError,
)
from tree_mapper.core.keypath import MISSING, is_sequence, value_for_key_path
from tree_mapper.core.registry import EntityRegistry
from tree_mapper.mapping.attribute import NESTING_KEY
from tree_mapper.mapping.object_mapping import ObjectMapping
from tree_mapper.mapping.operation import (
    MappingOperation,
    unique_instances,
    validate_mapping_graph,
)
from tree_mapper.mapping.protocol import MappingDelegate
from tree_mapper.mapping.provider import MappingProvider
from tree_mapper.mapping.queue import MappingOperationQueue
from tree_mapper.mapping.resolver import EntityResolver

if TYPE_CHECKING:
    from tree_mapper.core.context import ObjectContext

logger = logging.getLogger(__name__)


@dataclass
class MappingResult:
    """Objects produced by one ObjectMapper pass, keyed by root key path.

    The empty string is the key for content mapped at the payload root.
    """

    objects_by_key_path: dict[str, list[Any]] = field(default_factory=dict)
    errors: list[MappingError] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return not self.errors

    @property
    def error(self) -> AggregateMappingError | None:
        if not self.errors:
            return None
        return AggregateMappingError(self.errors)

    def as_list(self) -> list[Any]:
        """Every mapped root object, in key path order then source order."""
        result: list[Any] = []
        for objects in self.objects_by_key_path.values():
            result.extend(objects)
        return result

    def as_dict(self) -> dict[str, list[Any]]:
        return dict(self.objects_by_key_path)

    def first(self) -> Any | None:
        objects = self.as_list()
        return objects[0] if objects else None


class ObjectMapper:
    """Maps parsed payloads onto destination objects.

    Each call to ``map`` is one mapping pass: it gets a fresh identity map
    and queue, so the same mapper may be reused for several payloads.

    Args:
        provider: Mappings discovered by root key path when ``map`` is called
            without an explicit mapping.
        context: Persistence context receiving the created objects.
        registry: Accessor tables; defaults to the context's.
        delegate: Receives per-attribute events from every operation.
    """

    def __init__(
        self,
        provider: MappingProvider | None = None,
        *,
        context: ObjectContext | None = None,
        registry: EntityRegistry | None = None,
        delegate: MappingDelegate | None = None,
    ) -> None:
        if registry is None:
            registry = context.registry if context is not None else EntityRegistry()
        self.provider = provider
        self.context = context
        self.registry = registry
        self.delegate = delegate if delegate is not None else MappingDelegate()

    def map(
        self,
        payload: Any,
        mapping: ObjectMapping | None = None,
        target: Any = None,
    ) -> MappingResult:
        """Map *payload*.

        Args:
            payload: Parsed tree of maps, sequences and scalars.
            mapping: Mapping to use. Its root key path (if any) locates the
                content; otherwise the whole payload is mapped.
            target: Existing object receiving a single mapped source object
                instead of a newly resolved one.

        Raises:
            FatalMappingConfiguration: If no mapping can be determined, or a
                mapping definition is malformed.
        """
        targets = self._targets(payload, mapping)
        result = MappingResult()
        if not targets:
            known = self.provider.key_paths if self.provider is not None else []
            result.errors.append(UnmappableContentError(known))
            logger.warning("No mappable content found; known key paths: %s", known)
            return result

        for _, item in targets:
            validate_mapping_graph(item, self.registry)

        resolver = EntityResolver(self.registry)
        queue = MappingOperationQueue()
        for key_path, item in targets:
            content = payload if key_path == "" else value_for_key_path(payload, key_path)
            if content is MISSING:
                continue
            objects = self._map_content(content, item, target, resolver, queue, result)
            result.objects_by_key_path[key_path] = unique_instances(objects)

        logger.debug(
            "Mapped %d object(s) from %d key path(s) with %d error(s)",
            len(result.as_list()),
            len(result.objects_by_key_path),
            len(result.errors),
        )
        return result

    def _targets(
        self, payload: Any, mapping: ObjectMapping | None
    ) -> list[tuple[str, ObjectMapping]]:
        if mapping is not None:
            return [(mapping.root_key_path or "", mapping)]
        if self.provider is None:
            raise FatalMappingConfiguration(
                "ObjectMapper.map() needs a mapping or a mapping provider"
            )
        return self.provider.mappable_key_paths(payload)

    def _map_content(
        self,
        content: Any,
        mapping: ObjectMapping,
        target: Any,
        resolver: EntityResolver,
        queue: MappingOperationQueue,
        result: MappingResult,
    ) -> list[Any]:
        if content is None:
            return []
        if mapping.is_nested_key_mode:
            if not isinstance(content, Mapping):
                result.errors.append(
                    TypeCoercionFailure(
                        mapping.destination_type.__name__ if mapping.destination_type else "?",
                        content,
                        "a keyed dictionary",
                        detail="nested dictionary mapping received a non-mapping root",
                    )
                )
                return []
            return [
                self._map_object(value, mapping, None, resolver, queue, result, {NESTING_KEY: key})
                for key, value in content.items()
            ]
        if is_sequence(content):
            return [
                self._map_object(element, mapping, None, resolver, queue, result)
                for element in content
            ]
        return [self._map_object(content, mapping, target, resolver, queue, result)]

    def _map_object(
        self,
        node: Any,
        mapping: ObjectMapping,
        target: Any,
        resolver: EntityResolver,
        queue: MappingOperationQueue,
        result: MappingResult,
        substitutions: Mapping[str, Any] | None = None,
    ) -> Any:
        if not isinstance(node, Mapping):
            error = TypeCoercionFailure(
                mapping.destination_type.__name__ if mapping.destination_type else "?",
                node,
                "an object",
                detail="root value is not a mapping",
            )
            result.errors.append(error)
            return None

        key = resolver.primary_key_value(mapping, node, substitutions)
        if target is not None:
            destination = target
            resolver.adopt(mapping, key, target)
        else:
            destination, _ = resolver.resolve(self.context, mapping, key)

        operation = MappingOperation(
            node,
            destination,
            mapping,
            delegate=self.delegate,
            queue=queue,
            resolver=resolver,
            context=self.context,
            registry=self.registry,
            nested_substitutions=substitutions,
            validate=False,
        )
        operation.perform_mapping()
        result.errors.extend(operation.errors)
        result.errors.extend(queue.drain())
        return destination

