"""
Example 03: Remote Loading

This example demonstrates loading objects over HTTP with ObjectManager.
Requests are answered by an in-process httpx.MockTransport, so the example
runs without a network.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

import httpx

from tree_mapper import ClientConfig, MappingProvider, ObjectManager, ResponseError, mapping
from tree_mapper.adapters.httpx_transport import HttpxTransport

BASE_URL = "https://api.example.com"


@dataclass(eq=False)
class Issue:
    id: int | None = None
    title: str | None = None
    open: bool | None = None


def handle(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/issues":
        return httpx.Response(200, json={"issues": [{"id": 1, "title": "Crash", "open": "true"}]})
    if request.url.path == "/issues/1":
        return httpx.Response(200, json={"issues": {"id": 1, "open": False}})
    return httpx.Response(404, json={"errors": [{"message": "Not found"}]})


async def main():
    config = ClientConfig(base_url=BASE_URL)
    client = httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(handle))
    issue = mapping(Issue, "id", "title", "open", primary_key="id", root_key_path="issues")
    manager = ObjectManager(HttpxTransport(config, client=client), provider=MappingProvider(issue))

    print("=== Remote Loading ===\n")

    print("1. Load a collection:")
    issues = await manager.load_objects("/issues")
    for item in issues:
        print(f"   - #{item.id} {item.title} (open={item.open})")
    print()

    print("2. Refresh an object in place:")
    target = issues[0]
    await manager.load_objects("/issues/1", target=target)
    print(f"   #{target.id} {target.title} (open={target.open})\n")

    print("3. Callbacks:")

    def on_failure(loader, error):
        print(f"   Failed: {error}")

    await manager.loader("/missing", on_failure=on_failure).load()

    try:
        await manager.load_objects("/missing")
    except ResponseError as e:
        print(f"   Raised: HTTP {e.status_code} {e.messages}")

    await manager.aclose()


if __name__ == "__main__":
    asyncio.run(main())
