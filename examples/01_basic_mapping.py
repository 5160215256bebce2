"""
Example 01: Basic Mapping

This example demonstrates declaring mappings and mapping a parsed JSON payload
into plain dataclasses, including nested relationships, uniquing by primary
key and dictionaries keyed by identifier.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from tree_mapper import MappingProvider, ObjectContext, ObjectMapper, mapping


@dataclass(eq=False)
class User:
    id: int | None = None
    name: str | None = None


@dataclass(eq=False)
class Comment:
    id: int | None = None
    body: str | None = None
    created_at: datetime | None = None
    author: User | None = None


@dataclass(eq=False)
class Label:
    name: str | None = None
    color: str | None = None


PAYLOAD = {
    "comments": [
        {"id": "1", "text": "Looks good", "created_at": "2024-03-01T10:00:00Z", "user": {"id": 7, "name": "Ann"}},
        {"id": 2, "text": "Agreed", "user": {"id": "7"}},
    ],
    "labels": {
        "bug": {"color": "red"},
        "docs": {"color": "blue"},
    },
}


def main():
    # Declare mappings
    user = mapping(User, "id", "name", primary_key="id")
    comment = (
        mapping(Comment, "id", "created_at", primary_key="id", root_key_path="comments")
        .map_attribute("text", "body")
        .has_one("author", user, "user")
    )
    label = mapping(Label, "color", root_key_path="labels").map_key_of_nested_dictionary("name")

    provider = MappingProvider(comment, label)
    context = ObjectContext()

    print("=== Basic Mapping ===\n")

    result = ObjectMapper(provider, context=context).map(PAYLOAD)
    print(f"1. Succeeded: {result.succeeded}")
    print(f"   Key paths: {sorted(result.as_dict())}\n")

    print("2. Comments:")
    first, second = result.as_dict()["comments"]
    for c in (first, second):
        print(f"   - #{c.id} by {c.author.name}: {c.body} ({c.created_at})")
    print(f"   Same author instance: {first.author is second.author}\n")

    print("3. Labels (keyed dictionary):")
    for lbl in result.as_dict()["labels"]:
        print(f"   - {lbl.name}: {lbl.color}")
    print()

    # A failing coercion is recorded; the other attributes are still mapped
    print("4. Coercion failure:")
    result = ObjectMapper(provider, context=context).map({"comments": [{"id": "three", "text": "?"}]})
    print(f"   Succeeded: {result.succeeded}")
    print(f"   Error: {result.error}")


if __name__ == "__main__":
    main()
