"""Collection-keyed entity store with optimistic per-record concurrency.

Every record carries an ``etag`` that changes on each write. Passing the etag
read earlier to ``update``/``delete`` makes the write conditional: it fails
with ConcurrencyConflictError if the record changed in between. Passing
``None`` writes unconditionally (last write wins).

There are no cross-record transactions.
"""

import json
import secrets
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Protocol

from pydantic import BaseModel

from . import config
from .errors import ConcurrencyConflictError, EntityExistsError, EntityNotFoundError, StoreError


class StoredEntity(BaseModel):
    """A record as held by the store."""

    collection: str
    key: str
    data: dict[str, Any]
    etag: str


def _new_etag() -> str:
    return secrets.token_hex(8)


class EntityStore(Protocol):
    """Contract consumed by the pipeline components."""

    def get(self, collection: str, key: str) -> StoredEntity | None:
        """Return the record or None if it does not exist."""
        ...

    def insert(self, collection: str, key: str, data: dict[str, Any]) -> StoredEntity:
        """Create a record; raises EntityExistsError if the key is taken."""
        ...

    def put(self, collection: str, key: str, data: dict[str, Any]) -> StoredEntity:
        """Create or replace a record unconditionally."""
        ...

    def update(
        self, collection: str, key: str, data: dict[str, Any], etag: str | None = None
    ) -> StoredEntity:
        """Replace an existing record, optionally only if its etag still matches."""
        ...

    def delete(self, collection: str, key: str, etag: str | None = None) -> None:
        """Delete an existing record, optionally only if its etag still matches."""
        ...

    def scan(self, collection: str) -> list[StoredEntity]:
        """Return every record in a collection."""
        ...


class InMemoryEntityStore:
    """Thread-safe in-process store, used for local runs and tests."""

    def __init__(self) -> None:
        self._records: dict[tuple[str, str], StoredEntity] = {}
        self._lock = threading.Lock()

    def get(self, collection: str, key: str) -> StoredEntity | None:
        with self._lock:
            entity = self._records.get((collection, key))
            return entity.model_copy(deep=True) if entity else None

    def insert(self, collection: str, key: str, data: dict[str, Any]) -> StoredEntity:
        with self._lock:
            if (collection, key) in self._records:
                raise EntityExistsError(collection, key)
            return self._write(collection, key, data)

    def put(self, collection: str, key: str, data: dict[str, Any]) -> StoredEntity:
        with self._lock:
            return self._write(collection, key, data)

    def update(
        self, collection: str, key: str, data: dict[str, Any], etag: str | None = None
    ) -> StoredEntity:
        with self._lock:
            self._check(collection, key, etag)
            return self._write(collection, key, data)

    def delete(self, collection: str, key: str, etag: str | None = None) -> None:
        with self._lock:
            self._check(collection, key, etag)
            del self._records[(collection, key)]

    def scan(self, collection: str) -> list[StoredEntity]:
        with self._lock:
            return [e.model_copy(deep=True) for (c, _), e in self._records.items() if c == collection]

    def _check(self, collection: str, key: str, etag: str | None) -> None:
        current = self._records.get((collection, key))
        if current is None:
            raise EntityNotFoundError(collection, key)
        if etag is not None and current.etag != etag:
            raise ConcurrencyConflictError(collection, key, etag)

    def _write(self, collection: str, key: str, data: dict[str, Any]) -> StoredEntity:
        entity = StoredEntity(collection=collection, key=key, data=dict(data), etag=_new_etag())
        self._records[(collection, key)] = entity
        return entity.model_copy(deep=True)


class SqliteEntityStore:
    """SQLite-backed store shared by services running on one host.

    One connection per operation, WAL mode, parameterized queries. Conditional
    writes use ``UPDATE ... WHERE etag = ?`` so the check and the write happen
    in a single statement.
    """

    def __init__(self, db_path: str) -> None:
        self.db_path = db_path
        self._init_db()

    def _init_db(self) -> None:
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        with self._connection() as conn:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("""
                CREATE TABLE IF NOT EXISTS entities (
                    collection TEXT NOT NULL,
                    key TEXT NOT NULL,
                    data_json TEXT NOT NULL,
                    etag TEXT NOT NULL,
                    PRIMARY KEY (collection, key)
                )
            """)

    @contextmanager
    def _connection(self):
        """SQLite connection that commits on exit and rolls back on error."""
        conn = sqlite3.connect(self.db_path, timeout=10.0)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise StoreError(f"SQLite error on {self.db_path}: {e}") from e
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    @staticmethod
    def _to_entity(row: sqlite3.Row) -> StoredEntity:
        return StoredEntity(
            collection=row["collection"],
            key=row["key"],
            data=json.loads(row["data_json"]),
            etag=row["etag"],
        )

    def get(self, collection: str, key: str) -> StoredEntity | None:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT collection, key, data_json, etag FROM entities WHERE collection = ? AND key = ?",
                (collection, key),
            ).fetchone()
        return self._to_entity(row) if row else None

    def insert(self, collection: str, key: str, data: dict[str, Any]) -> StoredEntity:
        etag = _new_etag()
        with self._connection() as conn:
            try:
                conn.execute(
                    "INSERT INTO entities (collection, key, data_json, etag) VALUES (?, ?, ?, ?)",
                    (collection, key, json.dumps(data), etag),
                )
            except sqlite3.IntegrityError:
                raise EntityExistsError(collection, key) from None
        return StoredEntity(collection=collection, key=key, data=data, etag=etag)

    def put(self, collection: str, key: str, data: dict[str, Any]) -> StoredEntity:
        etag = _new_etag()
        with self._connection() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO entities (collection, key, data_json, etag) VALUES (?, ?, ?, ?)",
                (collection, key, json.dumps(data), etag),
            )
        return StoredEntity(collection=collection, key=key, data=data, etag=etag)

    def update(
        self, collection: str, key: str, data: dict[str, Any], etag: str | None = None
    ) -> StoredEntity:
        new_etag = _new_etag()
        with self._connection() as conn:
            if etag is None:
                cursor = conn.execute(
                    "UPDATE entities SET data_json = ?, etag = ? WHERE collection = ? AND key = ?",
                    (json.dumps(data), new_etag, collection, key),
                )
            else:
                cursor = conn.execute(
                    "UPDATE entities SET data_json = ?, etag = ? WHERE collection = ? AND key = ? AND etag = ?",
                    (json.dumps(data), new_etag, collection, key, etag),
                )
            if cursor.rowcount == 0:
                self._raise_missing_or_conflict(conn, collection, key, etag)
        return StoredEntity(collection=collection, key=key, data=data, etag=new_etag)

    def delete(self, collection: str, key: str, etag: str | None = None) -> None:
        with self._connection() as conn:
            if etag is None:
                cursor = conn.execute(
                    "DELETE FROM entities WHERE collection = ? AND key = ?", (collection, key)
                )
            else:
                cursor = conn.execute(
                    "DELETE FROM entities WHERE collection = ? AND key = ? AND etag = ?",
                    (collection, key, etag),
                )
            if cursor.rowcount == 0:
                self._raise_missing_or_conflict(conn, collection, key, etag)

    def scan(self, collection: str) -> list[StoredEntity]:
        with self._connection() as conn:
            rows = conn.execute(
                "SELECT collection, key, data_json, etag FROM entities WHERE collection = ? ORDER BY key",
                (collection,),
            ).fetchall()
        return [self._to_entity(row) for row in rows]

    @staticmethod
    def _raise_missing_or_conflict(conn: sqlite3.Connection, collection: str, key: str, etag: str | None):
        exists = conn.execute(
            "SELECT 1 FROM entities WHERE collection = ? AND key = ?", (collection, key)
        ).fetchone()
        if exists is None:
            raise EntityNotFoundError(collection, key)
        raise ConcurrencyConflictError(collection, key, etag)


def build_store(backend: str | None = None, db_path: str | None = None) -> EntityStore:
    """Create the entity store selected by STORE_BACKEND."""
    backend = backend or config.STORE_BACKEND
    if backend == "memory":
        return InMemoryEntityStore()
    if backend == "sqlite":
        return SqliteEntityStore(db_path or config.STORE_PATH)
    raise ValueError(f"Unknown store backend: {backend}")
