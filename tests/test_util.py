import pytest

from synctrie.blake3 import blake3_digest
from synctrie.util import (
    RootPrefix,
    blake3_20,
    bytes_compare,
    increment_bytes,
)


def test_sync_trie_prefix_value():
    assert RootPrefix.SYNC_MERKLE_TRIE_NODE == 11
    assert RootPrefix(27) is RootPrefix.FNAME_USER_NAME_PROOF_BY_FID


def test_blake3_20_length_and_prefix():
    data = b"merkle"
    result = blake3_20(data)
    assert len(result) == 20
    assert result == blake3_digest(data)[:20]


def test_blake3_20_empty():
    assert blake3_20(b"").hex() == "af1349b9f5f9a1a6a0404dea36dcc9499bcb25c9"


@pytest.mark.parametrize(
    "a, b, expected",
    [
        (b"", b"", 0),
        (b"\x01\x02", b"\x01\x02", 0),
        (b"\x01", b"\x02", -1),
        (b"\x02", b"\x01", 1),
        (b"\x01", b"\x01\x00", -1),
        (b"\x01\x00", b"\x01", 1),
        (b"\xff", b"\x00\x00", 1),
    ],
)
def test_bytes_compare(a, b, expected):
    assert bytes_compare(a, b) == expected


def test_bytes_compare_accepts_bytearray():
    assert bytes_compare(bytearray(b"abc"), b"abc") == 0


def test_bytes_compare_antisymmetric():
    pairs = [(b"a", b"b"), (b"abc", b"ab"), (b"\x00", b"")]
    for a, b in pairs:
        assert bytes_compare(a, b) == -bytes_compare(b, a)


def test_increment_overflow_grows():
    assert increment_bytes(bytes([255, 255])) == bytes([1, 0, 0])


def test_increment_empty():
    assert increment_bytes(b"") == b"\x01"


@pytest.mark.parametrize("value", [b"\x00", b"\x00\x01", b"\x12\xff", b"\x01\x00\x00"])
def test_increment_keeps_width_and_orders_after(value):
    result = increment_bytes(value)
    assert len(result) == len(value)
    assert bytes_compare(value, result) == -1
    assert int.from_bytes(result, "big") - int.from_bytes(value, "big") == 1


def test_increment_does_not_mutate():
    original = bytearray(b"\x01\xff")
    increment_bytes(original)
    assert original == bytearray(b"\x01\xff")