"""Persistence contexts.

An ObjectContext is a single-writer unit of work: it owns the destination
instances created or fetched through it, validates them, and writes them to
its store on commit. Background contexts share the store of their parent;
their results reach the parent only through ``merge_changes`` after a
successful commit (commit-then-merge).
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from tree_mapper.adapters.memory import MemoryStore
from tree_mapper.adapters.protocol import EntityRef, ObjectStore, StoredRecord, record_key
from tree_mapper.core.descriptor import EntityDescriptor
from tree_mapper.core.exceptions import CommitError, ContextStateError, ValidationFailure
from tree_mapper.core.registry import EntityRegistry

logger = logging.getLogger(__name__)

Validator = Callable[[Any], "str | Iterable[str] | None"]

# Key attribute recorded for objects mapped without a primary key
UNKEYED = ""


class _ContextState(Enum):
    ACTIVE = "active"
    COMMITTED = "committed"
    DISCARDED = "discarded"


@dataclass
class _Entry:
    obj: Any
    descriptor: EntityDescriptor
    key_attribute: str
    key: Any

    @property
    def index(self) -> tuple[str, str, str]:
        return (self.descriptor.name, self.key_attribute, record_key(self.key))

    @property
    def ref(self) -> EntityRef:
        return EntityRef(self.descriptor.name, self.key_attribute, self.key)


def _messages(result: Any) -> list[str]:
    if result is None:
        return []
    if isinstance(result, str):
        return [result]
    return [str(m) for m in result]


class ObjectContext:
    """Unit of work owning destination instances.

    Not safe for concurrent mutation: exactly one mapping pass may use a
    context at a time.

    Args:
        store: Durable store. Defaults to a fresh MemoryStore.
        registry: Accessor tables for destination types.
        name: Label used in log messages.
    """

    def __init__(
        self,
        store: ObjectStore | None = None,
        registry: EntityRegistry | None = None,
        *,
        name: str = "main",
        parent: ObjectContext | None = None,
    ) -> None:
        self.store: ObjectStore = store if store is not None else MemoryStore()
        self.registry = registry if registry is not None else EntityRegistry()
        self.name = name
        self.parent = parent
        self._entries: dict[int, _Entry] = {}
        self._identity: dict[tuple[str, str, str], Any] = {}
        self._inserted: set[int] = set()
        self._deleted: dict[int, _Entry] = {}
        self._committed_deletions: list[_Entry] = []
        self._validators: dict[type, list[Validator]] = {}
        self._origins: dict[int, Any] = {}
        self._state = _ContextState.ACTIVE

    def __repr__(self) -> str:
        return f"ObjectContext({self.name!r}, objects={len(self._entries)}, state={self.state})"

    @property
    def state(self) -> str:
        return self._state.value

    @property
    def has_changes(self) -> bool:
        """True until the work done through this context has been committed."""
        return self._state is _ContextState.ACTIVE

    @property
    def registered_objects(self) -> list[Any]:
        """Every live object owned by this context, in registration order."""
        return [entry.obj for entry in self._entries.values()]

    # --- Object lifecycle ---

    def create(self, entity_type: type, key_attribute: str | None = None, key: Any = None) -> Any:
        """Create, key and insert a new instance of *entity_type*."""
        self._check_open("create")
        descriptor = self.registry.describe(entity_type)
        obj = descriptor.new_instance()
        if key_attribute is not None and key is not None:
            descriptor.set(obj, key_attribute, key)
        self.insert(obj, key_attribute)
        return obj

    def insert(self, obj: Any, key_attribute: str | None = None) -> None:
        """Register a new object; it is written on the next commit.

        Objects without a key attribute (or with a null key) are tracked
        under a generated key and never found by ``find``.
        """
        self._check_open("insert")
        if id(obj) in self._entries:
            return
        entry = self._register(obj, key_attribute)
        self._inserted.add(id(obj))
        self._state = _ContextState.ACTIVE
        logger.debug("%s: inserted %s %r", self.name, entry.descriptor.name, entry.key)

    def find(self, entity_type: type, key_attribute: str, key: Any) -> Any | None:
        """Find the object with ``key_attribute == key``.

        Looks at objects already owned by this context first, then loads
        from the store.
        """
        self._check_open("find")
        descriptor = self.registry.describe(entity_type)
        return self._lookup(descriptor, key_attribute, key)

    def delete(self, obj: Any) -> None:
        """Remove an object; stored copies are deleted on the next commit."""
        self._check_open("delete")
        entry = self._entries.pop(id(obj), None)
        if entry is None:
            return
        self._identity.pop(entry.index, None)
        if id(obj) in self._inserted:
            self._inserted.discard(id(obj))
        else:
            self._deleted[id(obj)] = entry
        self._state = _ContextState.ACTIVE

    def is_new(self, obj: Any) -> bool:
        """Returns True when an object has not been committed yet."""
        return id(obj) in self._inserted

    def owns(self, obj: Any) -> bool:
        return id(obj) in self._entries

    def key_of(self, obj: Any) -> tuple[str, Any] | None:
        """``(key_attribute, key)`` of an owned keyed object, or None."""
        entry = self._entries.get(id(obj))
        if entry is None or entry.key_attribute == UNKEYED:
            return None
        return entry.key_attribute, entry.key

    # --- Validation ---

    def add_validator(self, entity_type: type, validator: Validator) -> None:
        """Register a validator run on commit for instances of *entity_type*.

        A validator returns None, a message, or several messages, or raises
        ValueError or ValidationFailure.
        """
        self._validators.setdefault(entity_type, []).append(validator)

    def validate_object(self, obj: Any) -> list[ValidationFailure]:
        """Run the object's own ``validate_for_commit()`` hook and the registered validators."""
        descriptor = self.registry.describe(type(obj))
        checks: list[Validator] = []
        hook = getattr(obj, "validate_for_commit", None)
        if callable(hook):
            checks.append(lambda _obj: hook())
        for entity_type, validators in self._validators.items():
            if isinstance(obj, entity_type):
                checks.extend(validators)

        failures: list[ValidationFailure] = []
        for check in checks:
            try:
                result = check(obj)
            except ValidationFailure as e:
                failures.append(e)
                continue
            except ValueError as e:
                failures.append(ValidationFailure(descriptor.name, str(e)))
                continue
            failures.extend(ValidationFailure(descriptor.name, m) for m in _messages(result))
        return failures

    # --- Unit of work ---

    def commit(self) -> None:
        """Validate every owned object and write them to the store.

        Raises:
            CommitError: If any validator rejects an object. Nothing is written.
            ContextStateError: If the context was discarded.
            StoreError: If the store fails to write.
        """
        self._check_open("commit")
        failures: list[ValidationFailure] = []
        for entry in self._entries.values():
            failures.extend(self.validate_object(entry.obj))
        if failures:
            logger.warning("%s: commit rejected, %d validation failure(s)", self.name, len(failures))
            raise CommitError(failures)

        records = [self._snapshot(entry) for entry in self._entries.values()]
        deletions = [entry.ref for entry in self._deleted.values()]
        self.store.save(records, deletions)

        self._inserted.clear()
        self._committed_deletions = list(self._deleted.values())
        self._deleted.clear()
        self._state = _ContextState.COMMITTED
        logger.debug(
            "%s: committed %d record(s), %d deletion(s)", self.name, len(records), len(deletions)
        )

    def discard(self) -> None:
        """Drop every uncommitted change; the context cannot be used afterwards."""
        self._entries.clear()
        self._identity.clear()
        self._inserted.clear()
        self._deleted.clear()
        self._committed_deletions.clear()
        self._origins.clear()
        self._state = _ContextState.DISCARDED
        logger.debug("%s: discarded", self.name)

    # --- Background contexts ---

    def new_background_context(self, name: str = "background") -> ObjectContext:
        """A child context sharing this context's store, registry and validators."""
        child = ObjectContext(self.store, self.registry, name=name, parent=self)
        for entity_type, validators in self._validators.items():
            child._validators[entity_type] = list(validators)
        return child

    def import_object(self, obj: Any) -> Any:
        """Counterpart in this context of an object owned elsewhere.

        Keyed objects of the parent are found by key (or created with the
        same key); anything else gets a fresh instance. Scalar fields are
        copied; the origin is remembered so ``merge_changes`` writes back
        into *obj*.
        """
        self._check_open("import")
        descriptor = self.registry.describe(type(obj))
        key = self.parent.key_of(obj) if self.parent is not None else None

        counterpart = None
        if key is not None:
            counterpart = self._lookup(descriptor, key[0], key[1])
        if counterpart is None:
            counterpart = descriptor.new_instance()
            for name, value in descriptor.values(obj).items():
                if not self._is_entity(value):
                    descriptor.set(counterpart, name, value)
            self.insert(counterpart, key[0] if key is not None else None)
        self._origins[id(counterpart)] = obj
        return counterpart

    def merge_changes(self, background: ObjectContext) -> dict[int, Any]:
        """Bring the committed state of *background* into this context.

        Returns:
            Map from ``id()`` of each background object to its counterpart here.

        Raises:
            ContextStateError: If *background* has uncommitted work.
        """
        if background._state is not _ContextState.COMMITTED:
            raise ContextStateError(background.state, "merge uncommitted")
        self._check_open("merge")

        counterparts: dict[int, Any] = {}
        for bg_id, entry in background._entries.items():
            counterpart = background._origins.get(bg_id)
            if counterpart is None:
                counterpart = self._identity.get(entry.index)
            if counterpart is None:
                counterpart = entry.descriptor.new_instance()
            if id(counterpart) not in self._entries:
                self._track(_Entry(counterpart, entry.descriptor, entry.key_attribute, entry.key))
            counterparts[bg_id] = counterpart

        def translate(value: Any) -> Any:
            if id(value) in counterparts:
                return counterparts[id(value)]
            if isinstance(value, list):
                return [translate(v) for v in value]
            if isinstance(value, tuple):
                return tuple(translate(v) for v in value)
            if isinstance(value, (set, frozenset)):
                return type(value)(translate(v) for v in value)
            if isinstance(value, dict):
                return {k: translate(v) for k, v in value.items()}
            return value

        for bg_id, entry in background._entries.items():
            target = counterparts[bg_id]
            for name, value in entry.descriptor.values(entry.obj).items():
                entry.descriptor.set(target, name, translate(value))

        for entry in background._committed_deletions:
            gone = self._identity.pop(entry.index, None)
            if gone is not None:
                self._entries.pop(id(gone), None)
                self._inserted.discard(id(gone))

        logger.debug(
            "%s: merged %d object(s) from %s", self.name, len(counterparts), background.name
        )
        return counterparts

    # --- Internals ---

    def _check_open(self, action: str) -> None:
        if self._state is _ContextState.DISCARDED:
            raise ContextStateError(self.state, action)

    def _is_entity(self, value: Any) -> bool:
        if isinstance(value, (list, tuple, set, frozenset)):
            return any(self._is_entity(v) for v in value)
        return self.registry.has(type(value))

    def _register(self, obj: Any, key_attribute: str | None) -> _Entry:
        descriptor = self.registry.describe(type(obj))
        key = getattr(obj, key_attribute, None) if key_attribute else None
        if key_attribute is None or key is None:
            entry = _Entry(obj, descriptor, UNKEYED, uuid.uuid4().hex)
        else:
            entry = _Entry(obj, descriptor, key_attribute, key)
        self._track(entry)
        return entry

    def _track(self, entry: _Entry) -> None:
        self._entries[id(entry.obj)] = entry
        self._identity[entry.index] = entry.obj

    def _lookup(self, descriptor: EntityDescriptor, key_attribute: str, key: Any) -> Any | None:
        index = (descriptor.name, key_attribute, record_key(key))
        if any(entry.index == index for entry in self._deleted.values()):
            return None
        found = self._identity.get(index)
        if found is not None:
            return found
        values = self.store.load(descriptor.name, key_attribute, key)
        if values is None:
            return None
        return self._rehydrate(descriptor, key_attribute, key, values)

    def _rehydrate(
        self, descriptor: EntityDescriptor, key_attribute: str, key: Any, values: dict[str, Any]
    ) -> Any:
        obj = descriptor.new_instance()
        # Tracked before references resolve so reference cycles close on it
        self._track(_Entry(obj, descriptor, key_attribute, key))
        self._state = _ContextState.ACTIVE
        for name, value in values.items():
            if name in descriptor.fields:
                descriptor.set(obj, name, self._from_stored(value))
        return obj

    def _from_stored(self, value: Any) -> Any:
        if isinstance(value, EntityRef):
            descriptor = self.registry.get(value.entity)
            return self._lookup(descriptor, value.key_attribute, value.key)
        if isinstance(value, list):
            return [self._from_stored(v) for v in value]
        if isinstance(value, (set, frozenset)):
            return {self._from_stored(v) for v in value}
        if isinstance(value, dict):
            return {k: self._from_stored(v) for k, v in value.items()}
        return value

    def _to_stored(self, value: Any) -> Any:
        entry = self._entries.get(id(value))
        if entry is not None:
            return entry.ref
        if isinstance(value, (list, tuple)):
            return [self._to_stored(v) for v in value]
        if isinstance(value, (set, frozenset)):
            return {self._to_stored(v) for v in value}
        if isinstance(value, dict):
            return {k: self._to_stored(v) for k, v in value.items()}
        return value

    def _snapshot(self, entry: _Entry) -> StoredRecord:
        values = {
            name: self._to_stored(value) for name, value in entry.descriptor.values(entry.obj).items()
        }
        return StoredRecord(entry.descriptor.name, entry.key_attribute, entry.key, values)
