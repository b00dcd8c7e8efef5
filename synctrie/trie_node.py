"""Nodes of the sync Merkle trie and the operations that walk them."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Union

from .db import Database, TransactionBatch
from .errors import HubError
from .util import RootPrefix, blake3_20

TIMESTAMP_LENGTH = 10

# Upper bound on how many values one get_all_values call collects.
MAX_VALUES_RETURNED_PER_CALL = 1024


@dataclass
class SerializedTrieNode:
    """A child that has not been loaded from the database yet."""

    hash: bytes | None = None


@dataclass
class TrieSnapshot:
    """Hashes of the trie along a prefix, excluding the branch the prefix follows."""

    prefix: bytes
    excluded_hashes: list[str]
    num_messages: int


def _encode_varint(number: int) -> bytes:
    out = bytearray()
    while True:
        byte = number & 0x7F
        number >>= 7
        if number:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


class _Reader:
    def __init__(self, data: bytes) -> None:
        self._data = bytes(data)
        self._pos = 0

    def varint(self) -> int:
        result = 0
        shift = 0
        while True:
            if self._pos >= len(self._data):
                raise ValueError("truncated varint")
            byte = self._data[self._pos]
            self._pos += 1
            result |= (byte & 0x7F) << shift
            if not byte & 0x80:
                return result
            shift += 7
            if shift > 63:
                raise ValueError("varint too long")

    def take(self, count: int) -> bytes:
        end = self._pos + count
        if end > len(self._data):
            raise ValueError("truncated field")
        chunk = self._data[self._pos:end]
        self._pos = end
        return chunk

    def finish(self) -> None:
        if self._pos != len(self._data):
            raise ValueError("trailing bytes")


class TrieNode:
    """A node of the Merkle trie.

    Keeps its hash and the number of items below it up to date as keys are
    inserted and deleted.
    """

    __slots__ = ("_hash", "_items", "_children", "_key")

    def __init__(
        self,
        *,
        hash: bytes = b"",
        items: int = 0,
        children: dict[int, Union[TrieNode, SerializedTrieNode]] | None = None,
        key: bytes | None = None,
    ) -> None:
        self._hash = bytes(hash)
        self._items = items
        self._children: dict[int, Union[TrieNode, SerializedTrieNode]] = (
            {} if children is None else children
        )
        self._key = None if key is None else bytes(key)

    def __repr__(self) -> str:
        return (
            f"TrieNode(items={self._items}, hash={self._hash.hex()!r}, "
            f"children={sorted(self._children)}, key={self._key!r})"
        )

    # ----- keys and (de)serialisation -------------------------------------

    @staticmethod
    def make_primary_key(prefix: bytes, child_char: int | None = None) -> bytes:
        """Return the database key of the node at ``prefix`` (plus ``child_char``)."""
        key = bytearray([RootPrefix.SYNC_MERKLE_TRIE_NODE])
        key += bytes(prefix)
        if child_char is not None:
            key.append(child_char)
        return bytes(key)

    def serialize(self) -> bytes:
        key = self._key or b""
        chars = bytes(sorted(self._children))
        return b"".join(
            (
                _encode_varint(len(key)),
                key,
                _encode_varint(len(self._hash)),
                self._hash,
                _encode_varint(self._items),
                _encode_varint(len(chars)),
                chars,
            )
        )

    @classmethod
    def deserialize(cls, data: bytes) -> TrieNode:
        """Rebuild a node; its children come back unloaded."""
        try:
            reader = _Reader(data)
            key = reader.take(reader.varint())
            node_hash = reader.take(reader.varint())
            items = reader.varint()
            chars = reader.take(reader.varint())
            reader.finish()
        except ValueError as exc:
            raise HubError.invalid_param(f"Failed to decode trie node: {exc}") from exc
        return cls(
            hash=node_hash,
            items=items,
            children={char: SerializedTrieNode() for char in chars},
            key=key or None,
        )

    # ----- accessors ------------------------------------------------------

    def is_leaf(self) -> bool:
        return not self._children

    def items(self) -> int:
        return self._items

    def hash(self) -> bytes:
        return self._hash

    def value(self) -> bytes | None:
        """The stored key; only leaves have one."""
        return self._key if self.is_leaf() else None

    def children(self) -> Mapping[int, Union[TrieNode, SerializedTrieNode]]:
        return MappingProxyType(self._children)

    # ----- traversal ------------------------------------------------------

    def get_node_from_trie(
        self, db: Database, prefix: bytes, current_index: int = 0
    ) -> TrieNode | None:
        """Return the node reached by following ``prefix``, or ``None``."""
        node = self
        for index in range(current_index, len(prefix)):
            char = prefix[index]
            if char not in node._children:
                return None
            try:
                node = node._get_or_load_child(db, prefix[:index], char)
            except HubError:
                return None
        return node

    def insert(
        self,
        db: Database,
        txn: TransactionBatch,
        keys: Iterable[bytes],
        current_index: int = 0,
    ) -> list[bool]:
        """Insert ``keys``; each result is True if that key was new."""
        keys = [bytes(key) for key in keys]
        if not keys:
            raise HubError.invalid_param("No keys to insert")

        prefix = keys[0][:current_index]
        results = [False] * len(keys)

        # The timestamp part of the trie is never compacted, so that
        # snapshots of different tries line up.
        if current_index >= TIMESTAMP_LENGTH and self.is_leaf():
            pending = list(enumerate(keys))
            if self._key is None:
                _, first = pending.pop(0)
                self._key = first
                self._items += 1
                self._update_hash(db, prefix)
                self._put_to_txn(txn, prefix)
                results[0] = True
                if not pending:
                    return results

            remaining = [(i, key) for i, key in pending if key != self._key]
            if not remaining:
                return results

            self.split_leaf_node(db, txn, current_index)
        else:
            remaining = list(enumerate(keys))

        if any(current_index >= len(key) for _, key in remaining):
            raise HubError.invalid_param("Key length exceeded")

        groups: dict[int, list[tuple[int, bytes]]] = {}
        for i, key in remaining:
            groups.setdefault(key[current_index], []).append((i, key))

        successes = 0
        for char, entries in groups.items():
            if char not in self._children:
                self._children[char] = TrieNode()
            child = self._get_or_load_child(db, prefix, char)
            child_results = child.insert(db, txn, [key for _, key in entries], current_index + 1)
            for (i, _), inserted in zip(entries, child_results):
                results[i] = inserted
                successes += inserted

        if successes:
            self._items += successes
            self._update_hash(db, prefix)
            self._put_to_txn(txn, prefix)

        return results

    def delete(
        self,
        db: Database,
        txn: TransactionBatch,
        keys: Iterable[bytes],
        current_index: int = 0,
    ) -> list[bool]:
        """Delete ``keys``; each result is True if that key was present."""
        keys = [bytes(key) for key in keys]
        if not keys:
            raise HubError.invalid_param("No keys to delete")

        prefix = keys[0][:current_index]
        results = [False] * len(keys)

        if self.is_leaf():
            for i, key in enumerate(keys):
                if self._key is not None and self._key == key:
                    self._key = None
                    self._items -= 1
                    self._delete_to_txn(txn, prefix)
                    self._update_hash(db, prefix)
                    results[i] = True
                    break
            return results

        if any(current_index >= len(key) for key in keys):
            raise HubError.invalid_param("Key length exceeded")

        groups: dict[int, list[tuple[int, bytes]]] = {}
        for i, key in enumerate(keys):
            groups.setdefault(key[current_index], []).append((i, key))

        successes = 0
        for char, entries in groups.items():
            if char not in self._children:
                continue
            child = self._get_or_load_child(db, prefix, char)
            child_results = child.delete(db, txn, [key for _, key in entries], current_index + 1)

            # An empty child must go, so the hash matches a trie that never had it.
            if child._items == 0:
                del self._children[char]

            for (i, _), deleted in zip(entries, child_results):
                results[i] = deleted
                successes += deleted

        if successes:
            self._items -= successes

            if self._items == 0:
                self._delete_to_txn(txn, prefix)
                self._update_hash(db, prefix)
                return results

            if (
                self._items == 1
                and len(self._children) == 1
                and current_index >= TIMESTAMP_LENGTH
            ):
                (char,) = self._children
                child = self._get_or_load_child(db, prefix, char)
                if child._key is not None:
                    self._key = child._key
                    child._key = None
                    del self._children[char]
                    self._delete_to_txn(txn, prefix + bytes([char]))

            self._update_hash(db, prefix)
            self._put_to_txn(txn, prefix)

        return results

    def exists(self, db: Database, key: bytes, current_index: int = 0) -> bool:
        key = bytes(key)
        node = self
        index = current_index
        while not node.is_leaf():
            if index >= len(key):
                return False
            char = key[index]
            if char not in node._children:
                return False
            node = node._get_or_load_child(db, key[:index], char)
            index += 1
        return (node._key or b"") == key

    def split_leaf_node(
        self, db: Database, txn: TransactionBatch, current_index: int
    ) -> None:
        """Turn a leaf into an inner node whose one child holds the old key."""
        key = self._key
        if key is None:
            raise HubError.invalid_param("Cannot split a leaf without a key")
        if current_index >= len(key):
            raise HubError.invalid_param("Key length exceeded")
        self._key = None
        prefix = key[:current_index]

        new_child = TrieNode()
        self._children[key[current_index]] = new_child
        new_child.insert(db, txn, [key], current_index + 1)

        self._update_hash(db, prefix)
        self._put_to_txn(txn, prefix)

    def unload_children(self) -> None:
        """Drop loaded children from memory, keeping only their hashes."""
        self._children = {
            char: SerializedTrieNode(child._hash) if isinstance(child, TrieNode) else child
            for char, child in self._children.items()
        }

    def get_all_values(self, db: Database, prefix: bytes) -> list[bytes]:
        """Collect stored keys below this node in byte order, stopping past the limit."""
        if self.is_leaf():
            return [self._key or b""]

        prefix = bytes(prefix)
        values: list[bytes] = []
        for char in sorted(self._children):
            child = self._get_or_load_child(db, prefix, char)
            values.extend(child.get_all_values(db, prefix + bytes([char])))
            if len(values) > MAX_VALUES_RETURNED_PER_CALL:
                break
        return values

    def get_snapshot(
        self, db: Database, prefix: bytes, current_index: int = 0
    ) -> TrieSnapshot:
        prefix = bytes(prefix)
        excluded_hashes: list[str] = []
        num_messages = 0

        node = self
        for index in range(current_index, len(prefix)):
            char = prefix[index]
            current_prefix = prefix[:index]

            excluded_items, excluded_hash = node._excluded_hash(db, current_prefix, char)
            excluded_hashes.append(excluded_hash)
            num_messages += excluded_items

            if char not in node._children:
                return TrieSnapshot(current_prefix, excluded_hashes, num_messages)

            node = node._get_or_load_child(db, current_prefix, char)

        excluded_hashes.append(node._hash.hex())
        return TrieSnapshot(prefix, excluded_hashes, num_messages)

    # ----- internals ------------------------------------------------------

    def _get_or_load_child(self, db: Database, prefix: bytes, char: int) -> TrieNode:
        child = self._children.get(char)
        if child is None:
            raise HubError.invalid_param(f"Child {char} at prefix {list(prefix)} not found")
        if isinstance(child, SerializedTrieNode):
            data = db.get(self.make_primary_key(prefix, char))
            child = TrieNode.deserialize(data) if data is not None else TrieNode()
            self._children[char] = child
        return child

    def _update_hash(self, db: Database, prefix: bytes) -> None:
        if self.is_leaf():
            self._hash = blake3_20(self._key or b"")
            return

        parts = []
        for char in sorted(self._children):
            child = self._children[char]
            if isinstance(child, SerializedTrieNode) and child.hash:
                parts.append(child.hash)
            else:
                parts.append(self._get_or_load_child(db, prefix, char)._hash)
        self._hash = blake3_20(b"".join(parts))

    def _excluded_hash(self, db: Database, prefix: bytes, prefix_char: int) -> tuple[int, str]:
        excluded_items = 0
        parts = []
        for char in sorted(self._children):
            if char == prefix_char:
                continue
            child = self._get_or_load_child(db, prefix, char)
            parts.append(child._hash)
            excluded_items += child._items
        return excluded_items, blake3_20(b"".join(parts)).hex()

    def _put_to_txn(self, txn: TransactionBatch, prefix: bytes) -> None:
        txn.put(self.make_primary_key(prefix), self.serialize())

    def _delete_to_txn(self, txn: TransactionBatch, prefix: bytes) -> None:
        txn.delete(self.make_primary_key(prefix))