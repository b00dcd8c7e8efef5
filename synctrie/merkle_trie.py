"""A persistent Merkle trie over message keys, with commit and rollback."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from os import PathLike
from pathlib import Path

from .db import Database, TransactionBatch
from .errors import HubError
from .trie_node import TIMESTAMP_LENGTH, TrieNode, TrieSnapshot

TRIE_DBPATH_PREFIX = "trieDb"
TRIE_UNLOAD_THRESHOLD = 10_000


@dataclass
class NodeMetadata:
    """Summary of one trie node and, one level down, its children."""

    prefix: bytes
    num_messages: int
    hash: str
    children: dict[int, NodeMetadata] = field(default_factory=dict)


class MerkleTrie:
    """A Merkle trie whose changes are staged in memory until committed.

    ``commit`` writes the staged changes to the database; ``reload`` throws
    them away and goes back to the last committed state.
    """

    def __init__(self, db: Database, owns_db: bool = False) -> None:
        self._db = db
        self._owns_db = owns_db
        self._root: TrieNode | None = None
        self._txn_batch = TransactionBatch()
        self._lock = threading.RLock()

    @classmethod
    def from_path(cls, main_db_path: str | PathLike[str]) -> MerkleTrie:
        """Create a trie with a database of its own under ``main_db_path``."""
        return cls(Database(Path(main_db_path) / TRIE_DBPATH_PREFIX), owns_db=True)

    def __enter__(self) -> MerkleTrie:
        self.initialize()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    def db(self) -> Database:
        return self._db

    def _require_root(self, operation: str) -> TrieNode:
        if self._root is None:
            raise HubError.internal_error(f"Merkle Trie not initialized for {operation}")
        return self._root

    def _create_empty_root(self) -> None:
        empty = TrieNode()
        self._txn_batch.put(TrieNode.make_primary_key(b""), empty.serialize())
        self._root = empty

    def _load_root(self) -> TrieNode | None:
        data = self._db.get(TrieNode.make_primary_key(b""))
        return None if data is None else TrieNode.deserialize(data)

    def initialize(self) -> None:
        """Open the database if the trie owns it and load or create the root."""
        with self._lock:
            if self._owns_db:
                self._db.open()
            loaded = self._load_root()
            if loaded is not None:
                self._root = loaded
            else:
                self._create_empty_root()

    def clear(self) -> None:
        """Drop every staged change and every stored node."""
        with self._lock:
            self._txn_batch.clear()
            self._db.clear()
            self._create_empty_root()

    def stop(self) -> None:
        with self._lock:
            if self._owns_db:
                self._db.close()

    def commit(self) -> None:
        """Write the staged changes to the database."""
        with self._lock:
            root = self._require_root("commit")
            self._unload_from_memory(root, force=True)

    def reload(self) -> None:
        """Discard staged changes and return to the last committed root."""
        with self._lock:
            loaded = self._load_root()
            if loaded is None:
                raise HubError.internal_error("unable to reload root")
            self._root = loaded
            self._txn_batch = TransactionBatch()

    def _unload_from_memory(self, root: TrieNode, force: bool) -> None:
        if force or len(self._txn_batch) > TRIE_UNLOAD_THRESHOLD:
            pending, self._txn_batch = self._txn_batch, TransactionBatch()
            self._db.commit(pending)
            root.unload_children()

    @staticmethod
    def _checked_keys(keys: list[bytes]) -> list[bytes]:
        keys = [bytes(key) for key in keys]
        if any(len(key) < TIMESTAMP_LENGTH for key in keys):
            raise HubError.invalid_param("Key length is too short")
        return keys

    def insert(self, keys: list[bytes]) -> list[bool]:
        """Insert ``keys``; each result is True if that key was new."""
        keys = list(keys)
        if not keys:
            return []
        keys = self._checked_keys(keys)
        with self._lock:
            if self._root is None:
                raise HubError.internal_error(
                    f"Merkle Trie not initialized for insert {[list(k) for k in keys]}"
                )
            txn = TransactionBatch()
            results = self._root.insert(self._db, txn, keys, 0)
            self._txn_batch.merge(txn)
            return results

    def delete(self, keys: list[bytes]) -> list[bool]:
        """Delete ``keys``; each result is True if that key was present."""
        keys = list(keys)
        if not keys:
            return []
        keys = self._checked_keys(keys)
        with self._lock:
            root = self._require_root("delete")
            txn = TransactionBatch()
            results = root.delete(self._db, txn, keys, 0)
            self._txn_batch.merge(txn)
            return results

    def exists(self, key: bytes) -> bool:
        with self._lock:
            return self._require_root("exists").exists(self._db, bytes(key), 0)

    def items(self) -> int:
        with self._lock:
            return self._require_root("items").items()

    def get_node(self, prefix: bytes) -> TrieNode | None:
        """Read the node at ``prefix`` from the staged changes or the database."""
        node_key = TrieNode.make_primary_key(bytes(prefix))
        with self._lock:
            staged = self._txn_batch.get(node_key)
            if staged is not None:
                try:
                    return TrieNode.deserialize(staged)
                except HubError:
                    pass
            try:
                stored = self._db.get(node_key)
            except HubError:
                return None
            if stored is not None:
                try:
                    return TrieNode.deserialize(stored)
                except HubError:
                    return None
            return None

    def root_hash(self) -> bytes:
        with self._lock:
            return self._require_root("root_hash").hash()

    def get_all_values(self, prefix: bytes) -> list[bytes]:
        prefix = bytes(prefix)
        with self._lock:
            root = self._require_root("get_all_values")
            node = root.get_node_from_trie(self._db, prefix, 0)
            if node is None:
                return []
            return node.get_all_values(self._db, prefix)

    def get_snapshot(self, prefix: bytes) -> TrieSnapshot:
        with self._lock:
            return self._require_root("get_snapshot").get_snapshot(self._db, bytes(prefix), 0)

    def get_trie_node_metadata(self, prefix: bytes) -> NodeMetadata:
        """Describe the node at ``prefix`` and its immediate children."""
        prefix = bytes(prefix)
        node = self.get_node(prefix)
        if node is None:
            raise HubError.invalid_param("Node not found")

        children: dict[int, NodeMetadata] = {}
        for char in node.children():
            child_prefix = prefix + bytes([char])
            child = self.get_node(child_prefix)
            if child is None:
                raise HubError.internal_error("Child Node not found")
            children[char] = NodeMetadata(
                prefix=child_prefix,
                num_messages=child.items(),
                hash=child.hash().hex(),
            )

        return NodeMetadata(
            prefix=prefix,
            num_messages=node.items(),
            hash=node.hash().hex(),
            children=children,
        )