"""Unit tests for ObjectMapper and MappingResult."""

from __future__ import annotations

from dataclasses import dataclass, field

import pytest

from tree_mapper.core.context import ObjectContext
from tree_mapper.core.exceptions import (
    FatalMappingConfiguration,
    TypeCoercionFailure,
    UnmappableContentError,
)
from tree_mapper.mapping.mapper import MappingResult, ObjectMapper
from tree_mapper.mapping.object_mapping import ObjectMapping, mapping
from tree_mapper.mapping.provider import MappingProvider


@dataclass(eq=False)
class User:
    id: str | None = None
    name: str | None = None


@dataclass(eq=False)
class Post:
    id: int | None = None
    title: str | None = None
    author: User | None = None
    comments: list[Comment] = field(default_factory=list)


@dataclass(eq=False)
class Comment:
    id: int | None = None
    body: str | None = None
    post: Post | None = None


def user_mapping() -> ObjectMapping:
    return mapping(User, "id", "name", primary_key="id")


class TestNestedDictionaryKeyMode:
    def test_keys_become_attributes(self) -> None:
        m = ObjectMapping(User).map_key_of_nested_dictionary("id").map_attribute("name")
        result = ObjectMapper().map({"1": {"name": "a"}, "2": {"name": "b"}}, m)
        assert result.succeeded
        users = {(u.id, u.name) for u in result.as_list()}
        assert users == {("1", "a"), ("2", "b")}

    def test_key_is_used_for_uniquing(self) -> None:
        m = ObjectMapping(User).map_key_of_nested_dictionary("id").map_attribute("name").primary_key("id")
        context = ObjectContext()
        existing = context.create(User, "id", "1")
        result = ObjectMapper(context=context).map({"1": {"name": "a"}, "2": {"name": "b"}}, m)
        objects = result.as_list()
        assert objects[0] is existing
        assert existing.name == "a"
        assert len(objects) == 2

    def test_list_root_is_a_failure(self) -> None:
        m = ObjectMapping(User).map_key_of_nested_dictionary("id").map_attribute("name")
        result = ObjectMapper().map([{"name": "a"}], m)
        assert result.as_list() == []
        assert len(result.errors) == 1
        assert isinstance(result.errors[0], TypeCoercionFailure)


class TestExplicitMapping:
    def test_sequence_at_root(self) -> None:
        result = ObjectMapper().map([{"id": "u1", "name": "a"}, {"id": "u2"}], user_mapping())
        assert [u.id for u in result.as_list()] == ["u1", "u2"]
        assert list(result.as_dict()) == [""]

    def test_root_key_path_locates_content(self) -> None:
        m = user_mapping().at_key_path("data.users")
        result = ObjectMapper().map({"data": {"users": [{"id": "a"}]}}, m)
        assert result.as_dict() == {"data.users": result.as_list()}
        assert result.first().id == "a"

    def test_duplicate_roots_are_returned_once(self) -> None:
        result = ObjectMapper().map([{"id": "u1", "name": "a"}, {"id": "u1", "name": "b"}], user_mapping())
        users = result.as_list()
        assert len(users) == 1
        assert users[0].name == "b"

    def test_roots_share_instances_with_relationships(self) -> None:
        post = mapping(Post, "id", "title", primary_key="id").has_one("author", user_mapping())
        payload = [
            {"id": 1, "title": "a", "author": {"id": "u1", "name": "Ann"}},
            {"id": 2, "title": "b", "author": {"id": "u1"}},
        ]
        first, second = ObjectMapper().map(payload, post).as_list()
        assert first.author is second.author
        assert first.author.name == "Ann"

    def test_cycle_across_roots(self) -> None:
        post = mapping(Post, "id", "title", primary_key="id")
        comment = mapping(Comment, "id", "body", primary_key="id").has_one("post", post)
        post.has_many("comments", comment)
        payload = {"id": 1, "title": "t", "comments": [{"id": 10, "body": "hi", "post": {"id": 1}}]}
        result = ObjectMapper().map(payload, post)
        assert result.succeeded
        root = result.first()
        assert root.comments[0].post is root

    def test_target_receives_single_object(self) -> None:
        target = User(id="me")
        result = ObjectMapper().map({"id": "me", "name": "Target"}, user_mapping(), target=target)
        assert result.first() is target
        assert target.name == "Target"

    def test_non_mapping_root_elements(self) -> None:
        result = ObjectMapper().map([{"id": "a"}, "junk"], user_mapping())
        assert not result.succeeded
        assert isinstance(result.errors[0], TypeCoercionFailure)
        assert [u.id for u in result.as_list()] == ["a"]

    def test_null_content_maps_nothing(self) -> None:
        result = ObjectMapper().map({"users": None}, user_mapping().at_key_path("users"))
        assert result.succeeded
        assert result.as_list() == []

    def test_missing_mapping_and_provider(self) -> None:
        with pytest.raises(FatalMappingConfiguration):
            ObjectMapper().map({"users": []})


class TestProviderDiscovery:
    def test_maps_every_registered_key_path_found(self) -> None:
        provider = MappingProvider()
        provider.set_mapping("users", user_mapping())
        provider.set_mapping("posts", mapping(Post, "id", "title", primary_key="id"))
        payload = {"users": [{"id": "u"}], "posts": [{"id": 1}, {"id": 2}], "ignored": {}}
        result = ObjectMapper(provider).map(payload)
        assert [type(o) for o in result.as_dict()["users"]] == [User]
        assert [p.id for p in result.as_dict()["posts"]] == [1, 2]
        assert len(result.as_list()) == 3

    def test_unmappable_content(self) -> None:
        provider = MappingProvider(user_mapping().at_key_path("users"))
        result = ObjectMapper(provider).map({"other": 1})
        assert not result.succeeded
        assert isinstance(result.errors[0], UnmappableContentError)
        assert result.errors[0].key_paths == ["users"]

    def test_objects_are_inserted_into_context(self) -> None:
        context = ObjectContext()
        provider = MappingProvider(user_mapping().at_key_path("users"))
        result = ObjectMapper(provider, context=context).map({"users": [{"id": "x"}]})
        user = result.first()
        assert context.owns(user)
        assert context.find(User, "id", "x") is user


class TestMappingResult:
    def test_empty_result(self) -> None:
        result = MappingResult()
        assert result.succeeded
        assert result.error is None
        assert result.first() is None
        assert result.as_list() == []

    def test_error_aggregates(self) -> None:
        result = MappingResult(errors=[UnmappableContentError([])])
        assert result.error is not None
        assert result.error.errors == result.errors
