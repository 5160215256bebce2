"""SQLite object store (stdlib sqlite3).

Records are kept in one table as JSON payloads. Values that JSON cannot carry
(timestamps, decimals, sets, references to other records) are written as
single-key tagged objects and restored on load.
"""

from __future__ import annotations

import json
import sqlite3
import threading
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from tree_mapper.adapters.protocol import EntityRef, StoredRecord, record_key
from tree_mapper.core.exceptions import StoreError

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS {table} (
    entity TEXT NOT NULL,
    key_attribute TEXT NOT NULL,
    record_key TEXT NOT NULL,
    payload TEXT NOT NULL,
    PRIMARY KEY (entity, key_attribute, record_key)
)
"""


def _encode_default(value: Any) -> Any:
    if isinstance(value, EntityRef):
        return {"$ref": [value.entity, value.key_attribute, value.key]}
    if isinstance(value, datetime):
        return {"$datetime": value.isoformat()}
    if isinstance(value, date):
        return {"$date": value.isoformat()}
    if isinstance(value, Decimal):
        return {"$decimal": str(value)}
    if isinstance(value, (set, frozenset)):
        return {"$set": list(value)}
    raise TypeError(f"Cannot store value of type {type(value).__name__}")


def _decode_hook(obj: dict[str, Any]) -> Any:
    if len(obj) != 1:
        return obj
    tag, raw = next(iter(obj.items()))
    if tag == "$ref":
        return EntityRef(raw[0], raw[1], raw[2])
    if tag == "$datetime":
        return datetime.fromisoformat(raw)
    if tag == "$date":
        return date.fromisoformat(raw)
    if tag == "$decimal":
        return Decimal(raw)
    if tag == "$set":
        return set(raw)
    return obj


def encode_values(values: dict[str, Any]) -> str:
    return json.dumps(values, default=_encode_default, sort_keys=True)


def decode_values(payload: str) -> dict[str, Any]:
    return json.loads(payload, object_hook=_decode_hook)  # type: ignore[no-any-return]


class SqliteStore:
    """Synchronous SQLite store.

    One connection is shared behind a lock, so background contexts on worker
    threads can commit through it.

    Args:
        database: SQLite database path, or ":memory:".
        table: Table holding the records.
    """

    def __init__(self, database: str = ":memory:", table: str = "tree_mapper_objects") -> None:
        self._table = table
        self._lock = threading.Lock()
        try:
            self._conn = sqlite3.connect(database, check_same_thread=False)
            with self._conn:
                self._conn.execute(_CREATE_TABLE.format(table=table))
        except sqlite3.Error as e:
            raise StoreError(f"Failed to open SQLite store '{database}': {e}") from e

    def load(self, entity: str, key_attribute: str, key: Any) -> dict[str, Any] | None:
        """Return the stored values for one key, or None."""
        sql = (
            f"SELECT payload FROM {self._table} "
            "WHERE entity = :entity AND key_attribute = :key_attribute AND record_key = :key"
        )
        params = {"entity": entity, "key_attribute": key_attribute, "key": record_key(key)}
        with self._lock:
            try:
                row = self._conn.execute(sql, params).fetchone()
            except sqlite3.Error as e:
                raise StoreError(f"Failed to load {entity} {key!r}: {e}") from e
        if row is None:
            return None
        return decode_values(row[0])

    def save(self, records: list[StoredRecord], deletions: list[EntityRef]) -> None:
        """Write records and deletions in one transaction."""
        upsert = (
            f"INSERT OR REPLACE INTO {self._table} "
            "(entity, key_attribute, record_key, payload) "
            "VALUES (:entity, :key_attribute, :key, :payload)"
        )
        delete = (
            f"DELETE FROM {self._table} "
            "WHERE entity = :entity AND key_attribute = :key_attribute AND record_key = :key"
        )
        try:
            rows = [
                {
                    "entity": r.entity,
                    "key_attribute": r.key_attribute,
                    "key": record_key(r.key),
                    "payload": encode_values(r.values),
                }
                for r in records
            ]
        except TypeError as e:
            raise StoreError(f"Failed to encode records: {e}") from e
        gone = [
            {"entity": d.entity, "key_attribute": d.key_attribute, "key": record_key(d.key)}
            for d in deletions
        ]

        with self._lock:
            try:
                # Connection context manager commits, or rolls back on error
                with self._conn:
                    if rows:
                        self._conn.executemany(upsert, rows)
                    if gone:
                        self._conn.executemany(delete, gone)
            except sqlite3.Error as e:
                raise StoreError(f"Failed to save records: {e}") from e

    def count(self, entity: str | None = None) -> int:
        """Number of stored records, optionally for one entity."""
        with self._lock:
            if entity is None:
                row = self._conn.execute(f"SELECT COUNT(*) FROM {self._table}").fetchone()
            else:
                row = self._conn.execute(
                    f"SELECT COUNT(*) FROM {self._table} WHERE entity = :entity",
                    {"entity": entity},
                ).fetchone()
        return int(row[0])

    def close(self) -> None:
        """Close the connection."""
        with self._lock:
            self._conn.close()
