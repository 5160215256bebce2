"""Unit tests for ObjectContext."""

from __future__ import annotations

from dataclasses import dataclass, field

import pytest

from tree_mapper.adapters.memory import MemoryStore
from tree_mapper.core.context import ObjectContext
from tree_mapper.core.exceptions import CommitError, ContextStateError, ValidationFailure
from tree_mapper.core.registry import EntityRegistry


@dataclass(eq=False)
class Author:
    id: int | None = None
    name: str | None = None
    books: list[Book] = field(default_factory=list)


@dataclass(eq=False)
class Book:
    isbn: str | None = None
    title: str | None = None
    author: Author | None = None

    def validate_for_commit(self) -> str | None:
        if self.title == "":
            return "title must not be empty"
        return None


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def main(store: MemoryStore) -> ObjectContext:
    return ObjectContext(store, EntityRegistry(Author, Book))


class TestLifecycle:
    def test_create_registers_new_object(self, main: ObjectContext) -> None:
        author = main.create(Author, "id", 1)
        assert author.id == 1
        assert main.owns(author)
        assert main.is_new(author)
        assert main.key_of(author) == ("id", 1)
        assert main.registered_objects == [author]

    def test_find_by_key(self, main: ObjectContext) -> None:
        author = main.create(Author, "id", 1)
        assert main.find(Author, "id", 1) is author
        assert main.find(Author, "id", 2) is None

    def test_commit_writes_to_store(self, main: ObjectContext, store: MemoryStore) -> None:
        main.create(Author, "id", 1).name = "Le Guin"
        main.commit()
        assert len(store) == 1
        assert store.load("Author", "id", 1) == {"id": 1, "name": "Le Guin", "books": []}
        assert main.state == "committed"
        assert not main.has_changes

    def test_committed_objects_are_not_new(self, main: ObjectContext) -> None:
        author = main.create(Author, "id", 1)
        main.commit()
        assert not main.is_new(author)

    def test_find_rehydrates_from_store(self, store: MemoryStore) -> None:
        registry = EntityRegistry(Author, Book)
        writer = ObjectContext(store, registry)
        author = writer.create(Author, "id", 1)
        book = writer.create(Book, "isbn", "x1")
        book.author = author
        author.books = [book]
        writer.commit()

        reader = ObjectContext(store, registry)
        loaded = reader.find(Book, "isbn", "x1")
        assert loaded is not book
        assert loaded.author.id == 1
        assert loaded.author.books[0] is loaded

    def test_delete_removes_from_store(self, main: ObjectContext, store: MemoryStore) -> None:
        author = main.create(Author, "id", 1)
        main.commit()
        main.delete(author)
        assert main.find(Author, "id", 1) is None
        main.commit()
        assert store.load("Author", "id", 1) is None

    def test_delete_of_uncommitted_object(self, main: ObjectContext, store: MemoryStore) -> None:
        author = main.create(Author, "id", 1)
        main.delete(author)
        main.commit()
        assert len(store) == 0

    def test_discard_drops_everything(self, main: ObjectContext, store: MemoryStore) -> None:
        main.create(Author, "id", 1)
        main.discard()
        assert main.registered_objects == []
        assert len(store) == 0
        with pytest.raises(ContextStateError) as exc_info:
            main.create(Author)
        assert exc_info.value.current_state == "discarded"


class TestValidation:
    def test_instance_hook_rejects_commit(self, main: ObjectContext, store: MemoryStore) -> None:
        book = main.create(Book, "isbn", "x")
        book.title = ""
        with pytest.raises(CommitError) as exc_info:
            main.commit()
        assert exc_info.value.failures[0].message == "title must not be empty"
        assert len(store) == 0

    def test_registered_validators(self, main: ObjectContext) -> None:
        def named(author: Author) -> list[str]:
            return [] if author.name else ["name missing", "name required"]

        def raises(author: Author) -> None:
            raise ValueError("always wrong")

        main.add_validator(Author, named)
        main.add_validator(Author, raises)
        failures = main.validate_object(Author(id=1))
        assert [f.message for f in failures] == ["name missing", "name required", "always wrong"]
        assert all(isinstance(f, ValidationFailure) for f in failures)
        assert failures[0].entity_name == "Author"

    def test_validation_failure_passthrough(self, main: ObjectContext) -> None:
        def check(author: Author) -> None:
            raise ValidationFailure("Author", "bad id", attribute="id")

        main.add_validator(Author, check)
        (failure,) = main.validate_object(Author())
        assert failure.attribute == "id"


class TestBackgroundContexts:
    def test_commit_then_merge(self, main: ObjectContext, store: MemoryStore) -> None:
        background = main.new_background_context()
        author = background.create(Author, "id", 7)
        author.name = "Butler"
        book = background.create(Book, "isbn", "k")
        book.author = author
        author.books = [book]

        with pytest.raises(ContextStateError):
            main.merge_changes(background)

        background.commit()
        counterparts = main.merge_changes(background)
        merged_author = counterparts[id(author)]
        merged_book = counterparts[id(book)]
        assert merged_author is not author
        assert main.find(Author, "id", 7) is merged_author
        assert merged_author.name == "Butler"
        assert merged_book.author is merged_author
        assert merged_author.books == [merged_book]
        assert store.load("Author", "id", 7) is not None

    def test_merge_updates_existing_main_objects(self, main: ObjectContext) -> None:
        existing = main.create(Author, "id", 1)
        main.commit()

        background = main.new_background_context()
        copy = background.find(Author, "id", 1)
        assert copy is not existing
        copy.name = "renamed"
        background.commit()

        counterparts = main.merge_changes(background)
        assert counterparts[id(copy)] is existing
        assert existing.name == "renamed"

    def test_import_object_links_origin(self, main: ObjectContext) -> None:
        target = Author(name="unsaved")
        main.insert(target)
        background = main.new_background_context()
        imported = background.import_object(target)
        assert imported is not target
        assert imported.name == "unsaved"
        imported.name = "mapped"
        background.commit()
        main.merge_changes(background)
        assert target.name == "mapped"

    def test_background_inherits_validators(self, main: ObjectContext) -> None:
        main.add_validator(Author, lambda a: "nope")
        background = main.new_background_context()
        background.create(Author, "id", 1)
        with pytest.raises(CommitError):
            background.commit()

    def test_background_deletions_merge(self, main: ObjectContext) -> None:
        main.create(Author, "id", 1)
        main.commit()
        background = main.new_background_context()
        background.delete(background.find(Author, "id", 1))
        background.commit()
        main.merge_changes(background)
        assert main.registered_objects == []

    def test_merged_deletion_is_not_written_back(self, main: ObjectContext, store: MemoryStore) -> None:
        main.create(Author, "id", 1)
        main.commit()
        background = main.new_background_context()
        background.delete(background.find(Author, "id", 1))
        background.commit()
        main.merge_changes(background)
        main.commit()
        assert store.load("Author", "id", 1) is None
        assert main.find(Author, "id", 1) is None
