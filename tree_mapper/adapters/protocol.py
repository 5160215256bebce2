"""Adapter protocols for the collaborators around the mapping core.

Stores persist committed objects, transports fetch remote payloads and
parsers turn response bodies into source trees. Every adapter MUST
implement the matching protocol so contexts and loaders can swap them.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable


@dataclass(frozen=True)
class EntityRef:
    """Stored reference from one record to another keyed object."""

    entity: str
    key_attribute: str
    key: Any


@dataclass(frozen=True)
class StoredRecord:
    """Snapshot of one object's declared fields, as written by a commit."""

    entity: str
    key_attribute: str
    key: Any
    values: dict[str, Any] = field(default_factory=dict)

    @property
    def ref(self) -> EntityRef:
        return EntityRef(self.entity, self.key_attribute, self.key)


@dataclass(frozen=True)
class Request:
    """A remote resource request handed to a transport."""

    method: str = "GET"
    path: str = ""
    params: dict[str, Any] | None = None
    json: Any = None
    headers: dict[str, str] | None = None


@dataclass(frozen=True)
class Response:
    """A transport response, before parsing."""

    status_code: int
    body: bytes = b""
    content_type: str | None = None
    headers: dict[str, str] = field(default_factory=dict)
    url: str = ""


@runtime_checkable
class ObjectStore(Protocol):
    """Durable storage behind a persistence context."""

    def load(self, entity: str, key_attribute: str, key: Any) -> dict[str, Any] | None:
        """Return the stored field values for one key, or None."""
        ...

    def save(self, records: list[StoredRecord], deletions: list[EntityRef]) -> None:
        """Write records and remove deletions atomically."""
        ...

    def close(self) -> None:
        """Release any resources held by the store."""
        ...


@runtime_checkable
class Transport(Protocol):
    """Asynchronous request transport."""

    async def send(self, request: Request) -> Response:
        """Send a request and return the raw response."""
        ...

    async def aclose(self) -> None:
        """Close the underlying client."""
        ...


@runtime_checkable
class Parser(Protocol):
    """Wire-format parser producing a source tree."""

    def parse(self, body: bytes) -> Any:
        """Parse a response body into maps, sequences and scalars."""
        ...


def record_key(key: Any) -> str:
    """Stable text form of a primary key value ("1" and 1 stay distinct)."""
    return json.dumps(key, sort_keys=True, default=str)
