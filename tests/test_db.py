import pytest

from synctrie.db import Database, TransactionBatch
from synctrie.errors import HubError


@pytest.fixture
def db(tmp_path):
    database = Database(tmp_path / "store")
    database.open()
    yield database
    database.close()


def test_batch_put_get_delete():
    batch = TransactionBatch()
    batch.put(b"k1", b"v1")
    assert batch.get(b"k1") == b"v1"
    assert len(batch) == 1
    batch.delete(b"k1")
    assert batch.get(b"k1") is None
    assert b"k1" in batch
    assert len(batch) == 1


def test_batch_missing_key():
    batch = TransactionBatch()
    assert batch.get(b"nope") is None
    assert b"nope" not in batch


def test_batch_merge_overrides():
    first = TransactionBatch()
    first.put(b"a", b"1")
    first.put(b"b", b"2")
    second = TransactionBatch()
    second.put(b"a", b"3")
    second.delete(b"c")
    first.merge(second)
    assert len(first) == 3
    assert first.get(b"a") == b"3"
    assert first.get(b"b") == b"2"
    assert b"c" in first and first.get(b"c") is None


def test_batch_clear():
    batch = TransactionBatch()
    batch.put(b"a", b"1")
    batch.clear()
    assert len(batch) == 0


def test_commit_and_get(db):
    batch = TransactionBatch()
    batch.put(b"\x0b\x01", b"node")
    batch.put(b"\x0b\x02", b"other")
    db.commit(batch)
    assert db.get(b"\x0b\x01") == b"node"
    assert db.get(b"\x0b\x02") == b"other"
    assert db.get(b"\x0b\x03") is None


def test_commit_delete(db):
    batch = TransactionBatch()
    batch.put(b"key", b"value")
    db.commit(batch)
    removal = TransactionBatch()
    removal.delete(b"key")
    db.commit(removal)
    assert db.get(b"key") is None


def test_overwrite(db):
    for value in (b"one", b"two"):
        batch = TransactionBatch()
        batch.put(b"key", value)
        db.commit(batch)
    assert db.get(b"key") == b"two"


def test_clear(db):
    batch = TransactionBatch()
    batch.put(b"a", b"1")
    batch.put(b"b", b"2")
    db.commit(batch)
    db.clear()
    assert db.get(b"a") is None
    assert db.get(b"b") is None


def test_persists_across_reopen(tmp_path):
    path = tmp_path / "persist"
    with Database(path) as first:
        batch = TransactionBatch()
        batch.put(b"key", b"kept")
        first.commit(batch)
    with Database(path) as second:
        assert second.get(b"key") == b"kept"


def test_closed_database_raises(tmp_path):
    database = Database(tmp_path / "closed")
    with pytest.raises(HubError) as info:
        database.get(b"key")
    assert info.value.code == "db.internal_error"


def test_destroy_removes_directory(tmp_path):
    path = tmp_path / "gone"
    database = Database(path)
    database.open()
    assert path.exists()
    database.destroy()
    assert not path.exists()
    assert database.is_open is False