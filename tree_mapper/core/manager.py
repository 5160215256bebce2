"""Object manager.

The ObjectManager wires a transport, the parser registry, the mapping
provider and the main ObjectContext together and creates loaders against
them.
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from typing import Any

from tree_mapper.adapters.protocol import ObjectStore, Request, Transport
from tree_mapper.core.config import ClientConfig, _load_transport
from tree_mapper.core.context import ObjectContext
from tree_mapper.core.loader import ObjectLoader
from tree_mapper.core.parsers import ParserRegistry
from tree_mapper.core.registry import EntityRegistry
from tree_mapper.mapping.provider import MappingProvider

logger = logging.getLogger(__name__)


class ObjectManager:
    """Entry point for loading remote objects.

    Args:
        transport: Sends requests (see ``Transport``).
        provider: Mappings discovered by root key path.
        context: Main context receiving merged results. Defaults to a fresh
            in-memory context.
        parsers: Parsers by MIME type. Defaults to JSON only.
        registry: Accessor tables; defaults to the context's.
        config: Client configuration; defaults to the transport's.
    """

    def __init__(
        self,
        transport: Transport,
        *,
        provider: MappingProvider | None = None,
        context: ObjectContext | None = None,
        parsers: ParserRegistry | None = None,
        registry: EntityRegistry | None = None,
        config: ClientConfig | None = None,
    ) -> None:
        if config is None:
            config = getattr(transport, "config", None)
            if not isinstance(config, ClientConfig):
                config = ClientConfig(base_url="")
        if context is None:
            context = ObjectContext(registry=registry)
        self.transport = transport
        self.provider = provider if provider is not None else MappingProvider()
        self.context = context
        self.parsers = parsers if parsers is not None else ParserRegistry()
        self.registry = context.registry
        self.config = config
        self._locks: weakref.WeakValueDictionary[int, asyncio.Lock] = weakref.WeakValueDictionary()

    @classmethod
    def from_config(
        cls,
        config: ClientConfig,
        *,
        provider: MappingProvider | None = None,
        store: ObjectStore | None = None,
        registry: EntityRegistry | None = None,
    ) -> ObjectManager:
        """Create an ObjectManager from a ClientConfig.

        Args:
            config: ClientConfig instance
            provider: MappingProvider instance
            store: Store behind the main context

        Returns:
            ObjectManager instance
        """
        transport = _load_transport(config)
        context = ObjectContext(store, registry)
        return cls(transport, provider=provider, context=context, config=config)

    def loader(
        self,
        path: str,
        *,
        method: str = "GET",
        params: dict[str, Any] | None = None,
        json: Any = None,
        headers: dict[str, str] | None = None,
        **options: Any,
    ) -> ObjectLoader:
        """Create a loader for *path*; ``options`` are passed to ObjectLoader."""
        request = Request(method=method, path=path, params=params, json=json, headers=headers)
        return ObjectLoader(self, request, **options)

    async def load_objects(self, path: str, **options: Any) -> list[Any]:
        """Load *path* and return the mapped objects.

        Raises:
            TreeMapperError: The classified failure of the load (transport,
                unexpected response, error response or mapping).
        """
        loader = self.loader(path, **options)
        objects = await loader.load()
        if loader.error is not None:
            raise loader.error
        return objects if objects is not None else []

    def lock_for(self, target: Any) -> asyncio.Lock:
        """Lock serializing loads onto *target*; untargeted loads never wait."""
        if target is None:
            return asyncio.Lock()
        lock = self._locks.get(id(target))
        if lock is None:
            lock = asyncio.Lock()
            self._locks[id(target)] = lock
        return lock

    async def aclose(self) -> None:
        """Close the transport and the main context's store."""
        await self.transport.aclose()
        self.context.store.close()
        logger.debug("Closed %r", self)
