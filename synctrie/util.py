"""Hashing, byte comparison and key-space helpers shared by the storage layer."""

from __future__ import annotations

from enum import IntEnum

from .blake3 import blake3_digest

BLAKE3_HASH_LEN = 20
PAGE_SIZE_MAX = 1_000


class RootPrefix(IntEnum):
    """First byte of every database key, naming the key space it belongs to."""

    USER = 1
    CASTS_BY_PARENT = 2
    CASTS_BY_MENTION = 3
    LINKS_BY_TARGET = 4
    REACTIONS_BY_TARGET = 5
    HUB_STATE = 9
    JOB_REVOKE_MESSAGE_BY_SIGNER = 10
    SYNC_MERKLE_TRIE_NODE = 11
    HUB_CLEAN_SHUTDOWN = 14
    HUB_EVENTS = 15
    NETWORK = 16
    FNAME_USER_NAME_PROOF = 17
    USER_NAME_PROOF_BY_NAME = 19
    ON_CHAIN_EVENT = 23
    DB_SCHEMA_VERSION = 24
    VERIFICATION_BY_ADDRESS = 25
    CONNECTED_PEERS = 26
    FNAME_USER_NAME_PROOF_BY_FID = 27


def blake3_20(data: bytes) -> bytes:
    """Return the 20-byte BLAKE3 hash used by the sync trie."""
    return blake3_digest(data, BLAKE3_HASH_LEN)


def bytes_compare(a: bytes, b: bytes) -> int:
    """Compare two byte strings lexicographically, returning -1, 0 or 1."""
    a, b = bytes(a), bytes(b)
    return (a > b) - (a < b)


def increment_bytes(value: bytes) -> bytes:
    """Add one to ``value`` read as a big-endian number, growing it on overflow."""
    width = len(value)
    number = int.from_bytes(value, "big") + 1
    if number >> (8 * width):
        width += 1
    return number.to_bytes(width, "big")