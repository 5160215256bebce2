"""httpx transport adapter.

Wraps ``httpx.AsyncClient``. Timeouts and connection handling belong to the
client; any ``httpx.HTTPError`` surfaces as TransportError.
"""

from __future__ import annotations

import logging

import httpx

from tree_mapper.adapters.protocol import Request, Response
from tree_mapper.core.config import ClientConfig
from tree_mapper.core.exceptions import TransportError

logger = logging.getLogger(__name__)


class HttpxTransport:
    """Asynchronous transport backed by httpx.

    Args:
        config: Client configuration, or just a base URL.
        client: Preconfigured client (e.g. one using ``httpx.MockTransport``).
            The transport closes it on ``aclose``.
    """

    def __init__(
        self,
        config: ClientConfig | str,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if isinstance(config, str):
            config = ClientConfig(base_url=config)
        self.config = config
        if client is None:
            client = httpx.AsyncClient(
                base_url=config.base_url.rstrip("/"),
                timeout=httpx.Timeout(config.timeout),
                headers={"Accept": config.default_mime_type, **config.headers},
            )
        self._client = client

    async def send(self, request: Request) -> Response:
        logger.debug("%s %s", request.method, request.path)
        try:
            response = await self._client.request(
                request.method,
                request.path,
                params=request.params,
                json=request.json,
                headers=request.headers,
            )
        except httpx.HTTPError as e:
            raise TransportError(f"{request.method} {request.path} failed: {e}") from e

        return Response(
            status_code=response.status_code,
            body=response.content,
            content_type=response.headers.get("content-type"),
            headers=dict(response.headers),
            url=str(response.url),
        )

    async def aclose(self) -> None:
        await self._client.aclose()
