"""
Example 02: Persistence

This example demonstrates mapping into a SQLite-backed context, validating
on commit, and updating stored objects from a later payload.
"""

from __future__ import annotations

import tempfile
from dataclasses import dataclass, field
from pathlib import Path

from tree_mapper import CommitError, ObjectContext, ObjectMapper, SqliteStore, mapping


@dataclass(eq=False)
class Project:
    id: int | None = None
    name: str | None = None
    tags: list[str] = field(default_factory=list)


def require_name(project):
    if not project.name:
        return "name is required"
    return None


def main():
    db_path = Path(tempfile.mkdtemp()) / "objects.db"
    store = SqliteStore(str(db_path))
    project = mapping(Project, "id", "name", "tags", primary_key="id")

    print("=== Persistence ===\n")

    # Map and commit
    print("1. Initial import:")
    context = ObjectContext(store)
    context.add_validator(Project, require_name)
    result = ObjectMapper(context=context).map(
        [{"id": 1, "name": "api", "tags": ["core"]}, {"id": 2, "name": "web"}], project
    )
    context.commit()
    print(f"   Stored projects: {store.count('Project')}\n")

    # A later payload updates the stored object in place
    print("2. Update:")
    context = ObjectContext(store)
    (updated,) = ObjectMapper(context=context).map({"id": 1, "name": "api-v2"}, project).as_list()
    print(f"   Existing object: {not context.is_new(updated)}")
    print(f"   Name: {updated.name}, tags kept: {updated.tags}")
    context.commit()
    print()

    # Validation rejects the whole commit
    print("3. Validation:")
    context = ObjectContext(store)
    context.add_validator(Project, require_name)
    context.insert(Project(id=3), "id")
    try:
        context.commit()
    except CommitError as e:
        print(f"   Rejected: {e}")
        for failure in e.failures:
            print(f"   - {failure}")
        context.discard()
    print(f"   Stored projects: {store.count('Project')}")

    store.close()
    db_path.unlink()
    db_path.parent.rmdir()


if __name__ == "__main__":
    main()
