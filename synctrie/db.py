"""A persistent key-value store with write batches."""

from __future__ import annotations

import shutil
import sqlite3
from collections.abc import Iterator
from os import PathLike
from pathlib import Path

from .errors import HubError

_DB_FILE = "data.sqlite3"


class TransactionBatch:
    """Pending puts and deletes, applied to a database in one commit.

    A key maps to its new value, or to ``None`` when it is to be deleted.
    """

    def __init__(self) -> None:
        self.batch: dict[bytes, bytes | None] = {}

    def put(self, key: bytes, value: bytes) -> None:
        self.batch[bytes(key)] = bytes(value)

    def delete(self, key: bytes) -> None:
        self.batch[bytes(key)] = None

    def get(self, key: bytes) -> bytes | None:
        """Return the pending value for ``key``; ``None`` if absent or deleted."""
        return self.batch.get(bytes(key))

    def merge(self, other: TransactionBatch) -> None:
        """Take over every entry of ``other``; its entries win on conflict."""
        self.batch.update(other.batch)

    def clear(self) -> None:
        self.batch.clear()

    def __len__(self) -> int:
        return len(self.batch)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, (bytes, bytearray)) and bytes(key) in self.batch

    def __iter__(self) -> Iterator[tuple[bytes, bytes | None]]:
        return iter(self.batch.items())


class Database:
    """A byte-keyed store kept in a directory on disk."""

    def __init__(self, path: str | PathLike[str]) -> None:
        self.path = Path(path)
        self._conn: sqlite3.Connection | None = None

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def __enter__(self) -> Database:
        self.open()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def open(self) -> None:
        if self._conn is not None:
            return
        self.path.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.path / _DB_FILE)
        conn.execute("CREATE TABLE IF NOT EXISTS kv (key BLOB PRIMARY KEY, value BLOB NOT NULL)")
        conn.commit()
        self._conn = conn

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise HubError("db.internal_error", "database is not open")
        return self._conn

    def get(self, key: bytes) -> bytes | None:
        row = self._connection().execute(
            "SELECT value FROM kv WHERE key = ?", (bytes(key),)
        ).fetchone()
        return None if row is None else bytes(row[0])

    def commit(self, batch: TransactionBatch) -> None:
        conn = self._connection()
        puts = [(k, v) for k, v in batch if v is not None]
        deletes = [(k,) for k, v in batch if v is None]
        try:
            with conn:
                conn.executemany("DELETE FROM kv WHERE key = ?", deletes)
                conn.executemany("INSERT OR REPLACE INTO kv (key, value) VALUES (?, ?)", puts)
        except sqlite3.Error as exc:
            raise HubError("db.internal_error", f"commit failed: {exc}") from exc

    def clear(self) -> None:
        conn = self._connection()
        with conn:
            conn.execute("DELETE FROM kv")

    def destroy(self) -> None:
        """Close the store and remove its directory from disk."""
        self.close()
        if self.path.exists():
            shutil.rmtree(self.path)