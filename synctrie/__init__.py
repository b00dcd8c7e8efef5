"""Merkle sync trie with BLAKE3 node hashes, backed by a batched on-disk key-value store."""

__version__ = "0.1.0"

__all__ = ["blake3", "util", "errors", "db", "trie_node", "merkle_trie"]