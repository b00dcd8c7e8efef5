"""A self-contained BLAKE3 hash with extendable output."""

from __future__ import annotations

import struct
from dataclasses import dataclass

_MASK = 0xFFFFFFFF

_IV = (
    0x6A09E667,
    0xBB67AE85,
    0x3C6EF372,
    0xA54FF53A,
    0x510E527F,
    0x9B05688C,
    0x1F83D9AB,
    0x5BE0CD19,
)

_MSG_PERMUTATION = (2, 6, 3, 10, 7, 0, 4, 13, 1, 11, 12, 5, 9, 14, 15, 8)

_CHUNK_START = 1 << 0
_CHUNK_END = 1 << 1
_PARENT = 1 << 2
_ROOT = 1 << 3

_BLOCK_LEN = 64
_CHUNK_LEN = 1024
_ROUNDS = 7


def _build_schedule() -> tuple[tuple[int, ...], ...]:
    schedule = [tuple(range(16))]
    for _ in range(_ROUNDS - 1):
        previous = schedule[-1]
        schedule.append(tuple(previous[p] for p in _MSG_PERMUTATION))
    return tuple(schedule)


_SCHEDULE = _build_schedule()


def _g(s: list[int], a: int, b: int, c: int, d: int, mx: int, my: int) -> None:
    s[a] = (s[a] + s[b] + mx) & _MASK
    x = s[d] ^ s[a]
    s[d] = ((x >> 16) | (x << 16)) & _MASK
    s[c] = (s[c] + s[d]) & _MASK
    x = s[b] ^ s[c]
    s[b] = ((x >> 12) | (x << 20)) & _MASK
    s[a] = (s[a] + s[b] + my) & _MASK
    x = s[d] ^ s[a]
    s[d] = ((x >> 8) | (x << 24)) & _MASK
    s[c] = (s[c] + s[d]) & _MASK
    x = s[b] ^ s[c]
    s[b] = ((x >> 7) | (x << 25)) & _MASK


def _compress(
    cv: tuple[int, ...],
    block_words: tuple[int, ...],
    counter: int,
    block_len: int,
    flags: int,
) -> list[int]:
    s = [
        *cv,
        _IV[0],
        _IV[1],
        _IV[2],
        _IV[3],
        counter & _MASK,
        (counter >> 32) & _MASK,
        block_len,
        flags,
    ]
    for order in _SCHEDULE:
        m = [block_words[i] for i in order]
        _g(s, 0, 4, 8, 12, m[0], m[1])
        _g(s, 1, 5, 9, 13, m[2], m[3])
        _g(s, 2, 6, 10, 14, m[4], m[5])
        _g(s, 3, 7, 11, 15, m[6], m[7])
        _g(s, 0, 5, 10, 15, m[8], m[9])
        _g(s, 1, 6, 11, 12, m[10], m[11])
        _g(s, 2, 7, 8, 13, m[12], m[13])
        _g(s, 3, 4, 9, 14, m[14], m[15])
    return [s[i] ^ s[i + 8] for i in range(8)] + [s[i + 8] ^ cv[i] for i in range(8)]


def _words(block: bytes) -> tuple[int, ...]:
    return struct.unpack("<16I", block.ljust(_BLOCK_LEN, b"\x00"))


@dataclass(frozen=True)
class _Output:
    input_cv: tuple[int, ...]
    block_words: tuple[int, ...]
    counter: int
    block_len: int
    flags: int

    def chaining_value(self) -> tuple[int, ...]:
        return tuple(
            _compress(self.input_cv, self.block_words, self.counter, self.block_len, self.flags)[:8]
        )

    def root_bytes(self, length: int) -> bytes:
        out = bytearray()
        block_counter = 0
        while len(out) < length:
            words = _compress(
                self.input_cv,
                self.block_words,
                block_counter,
                self.block_len,
                self.flags | _ROOT,
            )
            out += struct.pack("<16I", *words)
            block_counter += 1
        return bytes(out[:length])


class _ChunkState:
    def __init__(self, key: tuple[int, ...], chunk_counter: int, flags: int) -> None:
        self.chaining_value = key
        self.chunk_counter = chunk_counter
        self.block = bytearray()
        self.blocks_compressed = 0
        self.flags = flags

    def __len__(self) -> int:
        return _BLOCK_LEN * self.blocks_compressed + len(self.block)

    def _start_flag(self) -> int:
        return _CHUNK_START if self.blocks_compressed == 0 else 0

    def update(self, data: memoryview) -> None:
        while data:
            if len(self.block) == _BLOCK_LEN:
                self.chaining_value = tuple(
                    _compress(
                        self.chaining_value,
                        _words(bytes(self.block)),
                        self.chunk_counter,
                        _BLOCK_LEN,
                        self.flags | self._start_flag(),
                    )[:8]
                )
                self.blocks_compressed += 1
                self.block = bytearray()
            take = min(_BLOCK_LEN - len(self.block), len(data))
            self.block += data[:take]
            data = data[take:]

    def output(self) -> _Output:
        return _Output(
            self.chaining_value,
            _words(bytes(self.block)),
            self.chunk_counter,
            len(self.block),
            self.flags | self._start_flag() | _CHUNK_END,
        )


def _parent_output(
    left: tuple[int, ...], right: tuple[int, ...], key: tuple[int, ...], flags: int
) -> _Output:
    return _Output(key, left + right, 0, _BLOCK_LEN, _PARENT | flags)


class _Hasher:
    def __init__(self) -> None:
        self.key = _IV
        self.flags = 0
        self.chunk_state = _ChunkState(self.key, 0, self.flags)
        self.cv_stack: list[tuple[int, ...]] = []

    def _add_chunk_chaining_value(self, new_cv: tuple[int, ...], total_chunks: int) -> None:
        while total_chunks & 1 == 0:
            new_cv = _parent_output(self.cv_stack.pop(), new_cv, self.key, self.flags).chaining_value()
            total_chunks >>= 1
        self.cv_stack.append(new_cv)

    def update(self, data: bytes) -> None:
        view = memoryview(data).cast("B")
        while view:
            if len(self.chunk_state) == _CHUNK_LEN:
                chunk_cv = self.chunk_state.output().chaining_value()
                total_chunks = self.chunk_state.chunk_counter + 1
                self._add_chunk_chaining_value(chunk_cv, total_chunks)
                self.chunk_state = _ChunkState(self.key, total_chunks, self.flags)
            take = min(_CHUNK_LEN - len(self.chunk_state), len(view))
            self.chunk_state.update(view[:take])
            view = view[take:]

    def finalize(self, length: int) -> bytes:
        output = self.chunk_state.output()
        for parent_cv in reversed(self.cv_stack):
            output = _parent_output(parent_cv, output.chaining_value(), self.key, self.flags)
        return output.root_bytes(length)


def blake3_digest(data: bytes, length: int = 32) -> bytes:
    """Return the first ``length`` bytes of the BLAKE3 output for ``data``."""
    if length < 0:
        raise ValueError("digest length must not be negative")
    hasher = _Hasher()
    hasher.update(bytes(data))
    return hasher.finalize(length)