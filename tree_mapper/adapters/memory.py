"""In-memory object store."""

from __future__ import annotations

import copy
import threading
from typing import Any

from tree_mapper.adapters.protocol import EntityRef, StoredRecord, record_key


class MemoryStore:
    """Process-local store keeping deep copies of committed records.

    Safe to share between a main context and background contexts running on
    worker threads.
    """

    def __init__(self) -> None:
        self._records: dict[tuple[str, str, str], dict[str, Any]] = {}
        self._lock = threading.Lock()

    def load(self, entity: str, key_attribute: str, key: Any) -> dict[str, Any] | None:
        """Return a copy of the stored values for one key."""
        with self._lock:
            values = self._records.get((entity, key_attribute, record_key(key)))
            return copy.deepcopy(values) if values is not None else None

    def save(self, records: list[StoredRecord], deletions: list[EntityRef]) -> None:
        """Apply records and deletions under one lock."""
        with self._lock:
            for record in records:
                index = (record.entity, record.key_attribute, record_key(record.key))
                self._records[index] = copy.deepcopy(record.values)
            for ref in deletions:
                self._records.pop((ref.entity, ref.key_attribute, record_key(ref.key)), None)

    def close(self) -> None:
        """Drop every record."""
        with self._lock:
            self._records.clear()

    def __len__(self) -> int:
        """Number of stored records."""
        return len(self._records)
