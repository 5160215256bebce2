"""Per-type accessor tables.

An EntityDescriptor is built once when a destination type is registered. It
records every field the type declares, the semantic type each field expects,
and how to read and write it. Mapping never discovers fields at mapping time.

Supports dataclasses, Pydantic models, and plain classes.
"""

from __future__ import annotations

import dataclasses
import inspect
import types
import typing
from collections import abc
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Union

from tree_mapper.core.enums import AttributeType
from tree_mapper.core.exceptions import FatalMappingConfiguration
from tree_mapper.core.keypath import parse_key_path

_SCALAR_TYPES: dict[Any, AttributeType] = {
    str: AttributeType.STRING,
    int: AttributeType.INTEGER,
    float: AttributeType.FLOAT,
    Decimal: AttributeType.DECIMAL,
    bool: AttributeType.BOOLEAN,
    datetime: AttributeType.DATETIME,
    date: AttributeType.DATE,
}

_SCALAR_NAMES: dict[str, AttributeType] = {
    "str": AttributeType.STRING,
    "int": AttributeType.INTEGER,
    "float": AttributeType.FLOAT,
    "Decimal": AttributeType.DECIMAL,
    "decimal.Decimal": AttributeType.DECIMAL,
    "bool": AttributeType.BOOLEAN,
    "datetime": AttributeType.DATETIME,
    "datetime.datetime": AttributeType.DATETIME,
    "date": AttributeType.DATE,
    "datetime.date": AttributeType.DATE,
}

_LIST_ORIGINS = (list, tuple, abc.Sequence, abc.MutableSequence)
_SET_ORIGINS = (set, frozenset, abc.Set, abc.MutableSet)


def _is_pydantic_model(cls: type) -> bool:
    """Check if a class is a Pydantic BaseModel."""
    try:
        from pydantic import BaseModel

        return isinstance(cls, type) and issubclass(cls, BaseModel)
    except ImportError:
        return False


@dataclass(frozen=True)
class FieldSpec:
    """One declared field of a destination type."""

    name: str
    attribute_type: AttributeType = AttributeType.ANY
    collection: type | None = None  # list or set for to-many fields
    annotation: Any = None


def _spec_from_string(name: str, annotation: str) -> FieldSpec:
    """Best-effort reading of a string annotation that could not be resolved."""
    text = annotation.replace(" ", "")
    if text.startswith("Optional[") and text.endswith("]"):
        text = text[len("Optional[") : -1]
    parts = [p for p in text.split("|") if p != "None"]
    if len(parts) != 1:
        return FieldSpec(name, annotation=annotation)
    text = parts[0]
    lowered = text.lower()
    if lowered.startswith(("list[", "tuple[", "sequence[")) or lowered in ("list", "tuple"):
        return FieldSpec(name, collection=list, annotation=annotation)
    if lowered.startswith(("set[", "frozenset[")) or lowered in ("set", "frozenset"):
        return FieldSpec(name, collection=set, annotation=annotation)
    return FieldSpec(
        name,
        attribute_type=_SCALAR_NAMES.get(text, AttributeType.ANY),
        annotation=annotation,
    )


def _spec_from_annotation(name: str, annotation: Any) -> FieldSpec:
    if annotation is None or annotation is inspect.Parameter.empty:
        return FieldSpec(name)
    if isinstance(annotation, str):
        return _spec_from_string(name, annotation)

    origin = typing.get_origin(annotation)
    if origin is Union or origin is types.UnionType:
        args = [a for a in typing.get_args(annotation) if a is not type(None)]
        if len(args) == 1:
            inner = _spec_from_annotation(name, args[0])
            return dataclasses.replace(inner, annotation=annotation)
        return FieldSpec(name, annotation=annotation)

    if origin in _LIST_ORIGINS or annotation in (list, tuple):
        return FieldSpec(name, collection=list, annotation=annotation)
    if origin in _SET_ORIGINS or annotation in (set, frozenset):
        return FieldSpec(name, collection=set, annotation=annotation)

    return FieldSpec(
        name,
        attribute_type=_SCALAR_TYPES.get(annotation, AttributeType.ANY),
        annotation=annotation,
    )


def _resolved_hints(cls: type) -> dict[str, Any]:
    """Resolve annotations, falling back to raw strings for local types."""
    try:
        return typing.get_type_hints(cls)
    except (NameError, TypeError):
        hints: dict[str, Any] = {}
        for klass in reversed(cls.__mro__):
            hints.update(getattr(klass, "__annotations__", {}))
        return hints


def _collect_fields(cls: type) -> tuple[dict[str, FieldSpec], bool]:
    """Return the declared fields of *cls* and whether that set is closed."""
    hints = _resolved_hints(cls)

    # Pydantic model
    if _is_pydantic_model(cls):
        names: Iterable[str] = cls.model_fields.keys()  # type: ignore[attr-defined]
        return {n: _spec_from_annotation(n, hints.get(n)) for n in names}, True

    # Dataclass
    if dataclasses.is_dataclass(cls):
        names = [f.name for f in dataclasses.fields(cls)]
        return {n: _spec_from_annotation(n, hints.get(n)) for n in names}, True

    # Plain class - class annotations plus __init__ parameters
    fields = {
        n: _spec_from_annotation(n, a) for n, a in hints.items() if not n.startswith("_")
    }
    try:
        sig = inspect.signature(cls.__init__)  # type: ignore[misc]
        for pname, param in sig.parameters.items():
            if pname == "self" or param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
                continue
            if pname not in fields:
                fields[pname] = _spec_from_annotation(pname, param.annotation)
    except (ValueError, TypeError):
        pass
    return fields, False


def _dataclass_default(f: dataclasses.Field[Any]) -> Any:
    if f.default is not dataclasses.MISSING:
        return f.default
    if f.default_factory is not dataclasses.MISSING:
        return f.default_factory()
    return None


class EntityDescriptor:
    """Accessor table for one destination type.

    Args:
        cls: The destination class.
        name: Entity name used by stores and the registry. Defaults to the
            class name.
    """

    def __init__(self, cls: type, name: str | None = None) -> None:
        self.cls = cls
        self.name = name or cls.__name__
        self.fields, self.closed = _collect_fields(cls)
        self._is_pydantic = _is_pydantic_model(cls)
        self._is_dataclass = dataclasses.is_dataclass(cls)
        params = getattr(cls, "__dataclass_params__", None)
        self._frozen = bool(params is not None and params.frozen)
        self._setters: dict[str, Callable[[Any, Any], None]] = {
            name: self._make_setter(name) for name in self.fields
        }

    def __repr__(self) -> str:
        return f"EntityDescriptor({self.name}, fields={list(self.fields)})"

    def field(self, name: str) -> FieldSpec:
        """Look up a declared field.

        Open (plain) classes accept undeclared names as untyped fields.

        Raises:
            FatalMappingConfiguration: If a closed type does not declare *name*.
        """
        spec = self.fields.get(name)
        if spec is not None:
            return spec
        if self.closed:
            raise FatalMappingConfiguration(
                f"{self.name} has no attribute '{name}' (declared: {sorted(self.fields)})"
            )
        return FieldSpec(name)

    def check_key_path(self, key_path: str) -> None:
        """Validate the first segment of a destination key path."""
        self.field(parse_key_path(key_path)[0])

    def field_for_key_path(self, key_path: str) -> FieldSpec:
        """The field a destination key path ends on.

        Only the first segment is declared on this type; deeper segments are
        written on whatever object the intermediate attribute holds, so they
        are untyped unless that object's class is known at write time.
        """
        segments = parse_key_path(key_path)
        if len(segments) == 1:
            return self.field(segments[0])
        return FieldSpec(segments[-1])

    def new_instance(self) -> Any:
        """Create an empty instance with every declared field present."""
        cls = self.cls
        if self._is_pydantic:
            instance = cls.model_construct()  # type: ignore[attr-defined]
            for name in self.fields:
                if name not in instance.__dict__:
                    setattr(instance, name, None)
            return instance

        try:
            return cls()
        except TypeError:
            pass

        instance = cls.__new__(cls)
        if self._is_dataclass:
            for f in dataclasses.fields(cls):
                object.__setattr__(instance, f.name, _dataclass_default(f))
        else:
            for name in self.fields:
                object.__setattr__(instance, name, None)
        return instance

    def get(self, instance: Any, name: str, default: Any = None) -> Any:
        return getattr(instance, name, default)

    def set(self, instance: Any, name: str, value: Any) -> None:
        """Write one top-level field."""
        setter = self._setters.get(name)
        if setter is None:
            setter = self._make_setter(name)
            self._setters[name] = setter
        setter(instance, value)

    def _make_setter(self, name: str) -> Callable[[Any, Any], None]:
        if self._frozen:
            # Frozen dataclasses are populated after construction
            return lambda instance, value: object.__setattr__(instance, name, value)
        return lambda instance, value: setattr(instance, name, value)

    def get_key_path(self, instance: Any, key_path: str, default: Any = None) -> Any:
        target = instance
        for segment in parse_key_path(key_path):
            if target is None:
                return default
            target = getattr(target, segment, None)
        return default if target is None else target

    def set_key_path(self, instance: Any, key_path: str, value: Any) -> None:
        """Write *value* at a dotted destination key path.

        Raises:
            AttributeError: If an intermediate object along the path is None.
        """
        segments = parse_key_path(key_path)
        if len(segments) == 1:
            self.set(instance, segments[0], value)
            return
        target = instance
        for segment in segments[:-1]:
            target = getattr(target, segment, None)
            if target is None:
                raise AttributeError(
                    f"'{segment}' is None on the way to '{key_path}' in {self.name}"
                )
        setattr(target, segments[-1], value)

    def values(self, instance: Any) -> dict[str, Any]:
        """Current values of every declared field."""
        return {name: getattr(instance, name, None) for name in self.fields}
