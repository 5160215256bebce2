"""Integration test for mapping into a SQLite-backed context.

Covers: provider discovery, uniquing against stored objects, commit, reload
from a fresh context, relationship references surviving the round trip.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

import pytest

from tree_mapper.adapters.sqlite import SqliteStore
from tree_mapper.core.context import ObjectContext
from tree_mapper.core.registry import EntityRegistry
from tree_mapper.mapping.mapper import ObjectMapper
from tree_mapper.mapping.object_mapping import mapping
from tree_mapper.mapping.provider import MappingProvider

# --- Test models ---


@dataclass(eq=False)
class Author:
    id: int | None = None
    name: str | None = None
    articles: list[Article] = field(default_factory=list)


@dataclass(eq=False)
class Article:
    id: int | None = None
    title: str | None = None
    published: datetime | None = None
    author: Author | None = None


# --- Fixtures ---


@pytest.fixture
def store(tmp_path: Path) -> SqliteStore:
    return SqliteStore(str(tmp_path / "objects.db"))


@pytest.fixture
def registry() -> EntityRegistry:
    return EntityRegistry(Author, Article)


@pytest.fixture
def provider() -> MappingProvider:
    author = mapping(Author, "name", primary_key="id").map_attribute("author_id", "id")
    article = mapping(Article, "id", "title", "published", primary_key="id", root_key_path="articles")
    article.has_one("author", author)
    author.has_many("articles", article)
    return MappingProvider(article)


PAYLOAD = {
    "articles": [
        {
            "id": 1,
            "title": "First",
            "published": "2024-02-01T09:00:00Z",
            "author": {"author_id": "10", "name": "Ann"},
        },
        {
            "id": "2",
            "title": "Second",
            "author": {"author_id": 10, "articles": [{"id": 1}]},
        },
    ]
}


class TestSqliteWorkflow:
    def test_map_commit_reload(
        self, store: SqliteStore, registry: EntityRegistry, provider: MappingProvider
    ) -> None:
        context = ObjectContext(store, registry)
        result = ObjectMapper(provider, context=context).map(PAYLOAD)
        assert result.succeeded, result.error

        first, second = result.as_list()
        assert first.author is second.author
        assert first.author.name == "Ann"
        assert first.author.articles == [first]
        assert second.id == 2

        context.commit()
        assert store.count("Article") == 2
        assert store.count("Author") == 1

        fresh = ObjectContext(store, registry)
        article = fresh.find(Article, "id", 1)
        assert article is not None
        assert article.title == "First"
        assert article.published == datetime.fromisoformat("2024-02-01T09:00:00+00:00")
        assert article.author.name == "Ann"
        assert article.author.articles[0] is article

    def test_second_pass_updates_stored_objects(
        self, store: SqliteStore, registry: EntityRegistry, provider: MappingProvider
    ) -> None:
        first_context = ObjectContext(store, registry)
        ObjectMapper(provider, context=first_context).map(PAYLOAD)
        first_context.commit()

        context = ObjectContext(store, registry)
        result = ObjectMapper(provider, context=context).map(
            {"articles": [{"id": 1, "title": "Renamed"}]}
        )
        (article,) = result.as_list()
        assert not context.is_new(article)
        assert article.title == "Renamed"
        assert article.author.name == "Ann"
        context.commit()

        assert ObjectContext(store, registry).find(Article, "id", 1).title == "Renamed"
        assert store.count("Article") == 2

    def test_validation_blocks_commit(
        self, store: SqliteStore, registry: EntityRegistry, provider: MappingProvider
    ) -> None:
        context = ObjectContext(store, registry)
        context.add_validator(Article, lambda a: None if a.title else "title required")
        result = ObjectMapper(provider, context=context).map({"articles": [{"id": 5}]})
        assert not result.succeeded
        assert result.error is not None
        assert "title required" in str(result.error)
        context.discard()
        assert store.count() == 0
