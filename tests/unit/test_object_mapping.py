"""Unit tests for the mapping definition builder and provider."""

from __future__ import annotations

from dataclasses import dataclass, field

import pytest

from tree_mapper.core.enums import RelationshipCardinality
from tree_mapper.core.exceptions import FatalMappingConfiguration, KeyPathError
from tree_mapper.core.registry import EntityRegistry
from tree_mapper.mapping.attribute import NESTING_KEY, AttributeMapping
from tree_mapper.mapping.object_mapping import ObjectMapping, mapping
from tree_mapper.mapping.operation import validate_mapping_graph
from tree_mapper.mapping.provider import MappingProvider


@dataclass
class Author:
    id: int | None = None
    name: str | None = None
    articles: list[Article] = field(default_factory=list)


@dataclass
class Article:
    id: int | None = None
    title: str | None = None
    author: Author | None = None
    tags: list[str] = field(default_factory=list)


class TestAttributeMapping:
    def test_value_equality(self) -> None:
        assert AttributeMapping("id", "identifier") == AttributeMapping("id", "identifier")
        assert AttributeMapping("id", "identifier") != AttributeMapping("id", "id")

    def test_nested_key_mapping(self) -> None:
        attribute = AttributeMapping.nested_key("id")
        assert attribute.is_mapping_for_key_of_nested_dictionary()
        assert attribute.source_key_path == NESTING_KEY

    def test_invalid_key_path(self) -> None:
        with pytest.raises(KeyPathError):
            AttributeMapping("bad path", "title")


class TestObjectMappingBuilder:
    def test_entry_point(self) -> None:
        m = mapping(Article, "title", primary_key="id", root_key_path="articles")
        assert m.destination_type is Article
        assert m.primary_key_attribute == "id"
        assert m.root_key_path == "articles"
        assert [a.destination_key_path for a in m.attribute_mappings] == ["title"]

    def test_chaining_preserves_declared_order(self) -> None:
        m = ObjectMapping(Article).map_attribute("article_id", "id").map_attributes("title", "tags")
        assert [a.source_key_path for a in m.attribute_mappings] == ["article_id", "title", "tags"]
        assert m.attribute_for_destination("id") == AttributeMapping("article_id", "id")

    def test_duplicate_destination_rejected(self) -> None:
        m = mapping(Article, "title")
        with pytest.raises(FatalMappingConfiguration, match="already mapped"):
            m.map_attribute("headline", "title")

    def test_second_nested_key_mapping_rejected(self) -> None:
        m = ObjectMapping(Author).map_key_of_nested_dictionary("id")
        assert m.is_nested_key_mode
        with pytest.raises(FatalMappingConfiguration):
            m.map_key_of_nested_dictionary("name")

    def test_relationship_declarations(self) -> None:
        author = mapping(Author, "name")
        m = mapping(Article).has_one("author", author, source_key_path="writer").has_many("tags", author)
        one, many = m.relationship_mappings
        assert one.source_key_path == "writer"
        assert one.destination_key_path == "author"
        assert one.cardinality is RelationshipCardinality.TO_ONE
        assert many.cardinality is RelationshipCardinality.TO_MANY

    def test_unordered_has_many(self) -> None:
        m = mapping(Article).has_many("tags", mapping(Author), ordered=False)
        assert m.relationship_mappings[0].cardinality is RelationshipCardinality.TO_MANY_SET

    def test_strict_flag(self) -> None:
        assert not mapping(Article).is_strict
        assert mapping(Article).strict().is_strict


class TestValidation:
    def test_missing_destination_type(self) -> None:
        with pytest.raises(FatalMappingConfiguration, match="no destination type"):
            ObjectMapping(None).validate(EntityRegistry())

    def test_relationship_without_destination_type(self) -> None:
        m = mapping(Article).has_one("author", ObjectMapping(None))
        with pytest.raises(FatalMappingConfiguration, match="references a mapping"):
            m.validate(EntityRegistry())

    def test_undeclared_destination_attribute(self) -> None:
        m = mapping(Article, "subtitle")
        with pytest.raises(FatalMappingConfiguration, match="subtitle"):
            m.validate(EntityRegistry())

    def test_graph_validation_reaches_nested_mappings(self) -> None:
        m = mapping(Article, "title").has_one("author", mapping(Author, "nickname"))
        m.validate(EntityRegistry())
        with pytest.raises(FatalMappingConfiguration, match="nickname"):
            validate_mapping_graph(m, EntityRegistry())

    def test_graph_validation_handles_cycles(self) -> None:
        article = mapping(Article, "title")
        author = mapping(Author, "name")
        article.has_one("author", author)
        author.has_many("articles", article)
        validate_mapping_graph(article, EntityRegistry())


class TestMappingProvider:
    def test_register_by_root_key_path(self) -> None:
        articles = mapping(Article, "title", root_key_path="articles")
        provider = MappingProvider(articles)
        assert provider.mapping_for_key_path("articles") is articles
        assert provider.mapping_for_type(Article) is articles
        assert provider.has("articles")
        assert len(provider) == 1

    def test_register_requires_root_key_path(self) -> None:
        with pytest.raises(FatalMappingConfiguration):
            MappingProvider().register(mapping(Article))

    def test_mappable_key_paths_in_registration_order(self) -> None:
        provider = MappingProvider()
        authors = mapping(Author, "name")
        articles = mapping(Article, "title")
        provider.set_mapping("meta.authors", authors)
        provider.set_mapping("articles", articles)
        payload = {"articles": [], "meta": {"authors": []}, "other": 1}
        assert provider.mappable_key_paths(payload) == [
            ("meta.authors", authors),
            ("articles", articles),
        ]
        assert provider.key_paths == ["articles", "meta.authors"]

    def test_no_mappable_key_paths(self) -> None:
        provider = MappingProvider(mapping(Article, root_key_path="articles"))
        assert provider.mappable_key_paths({"unrelated": []}) == []
