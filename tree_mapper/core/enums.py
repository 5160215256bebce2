"""Mapping enumerations."""

from __future__ import annotations

from enum import Enum


class AttributeType(Enum):
    """Semantic type a destination attribute expects."""

    ANY = "any"
    STRING = "string"
    INTEGER = "integer"
    FLOAT = "float"
    DECIMAL = "decimal"
    BOOLEAN = "boolean"
    DATETIME = "datetime"
    DATE = "date"


class RelationshipCardinality(Enum):
    """How a relationship attribute holds its nested objects."""

    TO_ONE = "to_one"
    TO_MANY = "to_many"  # ordered list
    TO_MANY_SET = "to_many_set"


class ResponseClass(Enum):
    """Classification of a transport response before mapping."""

    MAPPABLE = "mappable"
    ERROR = "error"
    EMPTY = "empty"
    UNEXPECTED = "unexpected"
