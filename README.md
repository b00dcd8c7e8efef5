# synctrie

`synctrie` is a Merkle trie that keeps a set of byte keys in step between peers. Each node stores a
20-byte BLAKE3 hash of its subtree and a count of the keys below it. Two tries that hold the same
keys have the same root hash, whatever order the keys were inserted in. A snapshot taken along a
prefix shows where two tries differ.

Trie nodes are kept in a small key-value store on disk. The store is a SQLite file inside a
directory you choose. Changes collect in a pending batch. `commit` writes the batch to disk, and
`reload` throws it away and goes back to the last committed root.

The package uses only the Python standard library. It has its own BLAKE3 implementation.

## Installation

```
pip install synctrie
```

## Usage

```python
from synctrie.merkle_trie import MerkleTrie

trie = MerkleTrie.from_path("/tmp/hub-data")   # node store lives in /tmp/hub-data/trieDb
trie.initialize()                             # opens the store, loads or creates the root

# Keys must be at least 10 bytes long. The first 10 bytes are the timestamp part
# of the trie, which is never compacted.
trie.insert([b"0000482712", b"0000482713"])   # -> [True, True]
trie.insert([b"0000482712"])                  # -> [False], already present
trie.exists(b"0000482712")                    # -> True
trie.items()                                  # -> 2
trie.root_hash().hex()                        # 20-byte hash as hex

trie.commit()                                 # write pending changes to disk
trie.insert([b"0000482714"])
trie.reload()                                 # discard everything since the last commit
trie.items()                                  # -> 2

trie.get_all_values(b"000048")                # stored keys under a prefix, in byte order

snapshot = trie.get_snapshot(b"000048")
snapshot.prefix, snapshot.excluded_hashes, snapshot.num_messages

meta = trie.get_trie_node_metadata(b"000048271")
meta.num_messages, meta.hash, sorted(meta.children)   # children keyed by next byte

trie.delete([b"0000482713"])                  # -> [True]
trie.stop()                                   # closes the store if the trie owns it
```

`MerkleTrie` can also be used as a context manager. Entering calls `initialize` and leaving calls
`stop`. To share one store between several users, build the trie on an open
`synctrie.db.Database` with `MerkleTrie(db)`. The trie then neither opens nor closes that store.
`clear()` drops every pending change and every stored node, then starts again from an empty root.

`commit` also releases loaded child nodes from memory and keeps only their hashes. They are read
back from the store when they are next needed. Calls on a `MerkleTrie` are serialised with a lock.

`get_all_values` stops collecting once it has gathered more than 1024 values.

### Errors

Failures raise `synctrie.errors.HubError`. It has a `code`, such as `"bad_request.invalid_param"`
or `"bad_request.internal_error"`, and a `message`. `str(error)` gives `"code/message"`. Keys that
are too short, a trie used before `initialize`, a missing node in `get_trie_node_metadata`, and
`reload` with nothing committed all raise it.

### Lower-level pieces

`synctrie.db` has the node store:

```python
from synctrie.db import Database, TransactionBatch
from synctrie.trie_node import TrieNode

with Database("/tmp/nodes") as db:            # open() on enter, close() on exit
    node = TrieNode()
    txn = TransactionBatch()
    node.insert(db, txn, [bytes(range(21))])  # -> [True]
    db.commit(txn)                            # apply the batch's puts and deletes
    node.exists(db, bytes(range(21)))         # -> True
```

- `TransactionBatch` has `put`, `delete`, `get`, `merge`, `clear` and `len()`.
- `Database` has `open`, `close`, `get`, `commit`, `clear` and `destroy`. `destroy` removes the
  store's directory.
- `synctrie.trie_node.TrieNode` is a single node. Its methods are `insert`, `delete`, `exists`,
  `get_node_from_trie`, `split_leaf_node`, `unload_children`, `get_all_values`, `get_snapshot`,
  `serialize` / `deserialize` and `make_primary_key`.
- `synctrie.util` has these helpers:
  - `blake3_20(data)`, which gives a 20-byte hash.
  - `bytes_compare(a, b)`, which returns -1, 0 or 1.
  - `increment_bytes(value)`, which treats the bytes as a big-endian number, so
    `increment_bytes(b"\xff\xff") == b"\x01\x00\x00"`.
  - The `RootPrefix` enumeration of key-space prefix bytes.
- `synctrie.blake3.blake3_digest(data, length=32)` is plain BLAKE3 with output of any length.

## What it does not do

This is a library only. It has no command-line tool and no server. It does not talk to peers over
a network; comparing snapshots and moving keys between tries is up to the caller. It stores trie
nodes only. The keys it holds are opaque bytes, and it keeps no messages or other records behind
them.

## Running the tests

```
pip install -e ".[test]"
pytest
```