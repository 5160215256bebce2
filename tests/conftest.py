"""Shared test fixtures."""

from __future__ import annotations

from typing import Any

import pytest

from tree_mapper.core.context import ObjectContext
from tree_mapper.core.registry import EntityRegistry
from tree_mapper.mapping.protocol import MappingDelegate


class RecordingDelegate(MappingDelegate):
    """Delegate that records every event as a tuple."""

    def __init__(self) -> None:
        self.events: list[tuple[Any, ...]] = []

    def did_find_mapping(self, operation, mapping, key_path) -> None:  # type: ignore[no-untyped-def]
        self.events.append(("found", key_path))

    def did_not_find_mapping(self, operation, key_path) -> None:  # type: ignore[no-untyped-def]
        self.events.append(("not_found", key_path))

    def did_set_value(self, operation, value, key_path, mapping) -> None:  # type: ignore[no-untyped-def]
        self.events.append(("set", key_path, value))

    def did_fail_with_error(self, operation, error) -> None:  # type: ignore[no-untyped-def]
        self.events.append(("error", error))

    def of_kind(self, kind: str) -> list[tuple[Any, ...]]:
        return [e for e in self.events if e[0] == kind]


@pytest.fixture
def delegate() -> RecordingDelegate:
    return RecordingDelegate()


@pytest.fixture
def registry() -> EntityRegistry:
    return EntityRegistry()


@pytest.fixture
def context(registry: EntityRegistry) -> ObjectContext:
    """Main context over a fresh in-memory store."""
    return ObjectContext(registry=registry)


@pytest.fixture
def json_headers() -> dict[str, str]:
    return {"content-type": "application/json; charset=utf-8"}
