"""A link buffer whose operations are serialised by a lock."""

from __future__ import annotations

import threading

from .linkbuffer import LinkBuffer
from .nocopy import Writer


class SafeLinkBuffer(LinkBuffer):
    """LinkBuffer that may be shared between threads.

    Every reading and writing operation holds a reentrant lock, so methods
    that call one another internally (slice calling release, until calling
    next) do not deadlock.
    """

    def __init__(self, size: int = 0) -> None:
        super().__init__(size)
        self._lock = threading.RLock()

    # ------------------------------------------------------------------ reading

    def next(self, n: int) -> memoryview:
        with self._lock:
            return super().next(n)

    def peek(self, n: int) -> memoryview:
        with self._lock:
            return super().peek(n)

    def skip(self, n: int) -> None:
        with self._lock:
            super().skip(n)

    def until(self, delim: int) -> memoryview:
        with self._lock:
            return super().until(delim)

    def release(self) -> None:
        with self._lock:
            super().release()

    def read_string(self, n: int) -> str:
        with self._lock:
            return super().read_string(n)

    def read_binary(self, n: int) -> bytes | memoryview:
        with self._lock:
            return super().read_binary(n)

    def read_byte(self) -> int:
        with self._lock:
            return super().read_byte()

    def slice(self, n: int) -> LinkBuffer:
        with self._lock:
            return super().slice(n)

    # ------------------------------------------------------------------ writing

    def malloc(self, n: int) -> memoryview:
        with self._lock:
            return super().malloc(n)

    def malloc_len(self) -> int:
        with self._lock:
            return super().malloc_len()

    def malloc_ack(self, n: int) -> None:
        with self._lock:
            super().malloc_ack(n)

    def flush(self) -> None:
        with self._lock:
            super().flush()

    def append(self, w: Writer | None) -> None:
        with self._lock:
            super().append(w)

    def write_buffer(self, buf: LinkBuffer | None) -> None:
        with self._lock:
            super().write_buffer(buf)

    def write_string(self, s: str) -> int:
        with self._lock:
            return super().write_string(s)

    def write_binary(self, p: bytes | bytearray | memoryview) -> int:
        with self._lock:
            return super().write_binary(p)

    def write_direct(self, extra: bytes | bytearray | memoryview, remain_len: int) -> None:
        with self._lock:
            super().write_direct(extra, remain_len)

    def write_byte(self, b: int) -> None:
        with self._lock:
            super().write_byte(b)

    def close(self) -> None:
        with self._lock:
            super().close()

    # -------------------------------------------------------------- connection

    def readable_bytes(self) -> memoryview:
        with self._lock:
            return super().readable_bytes()

    def get_bytes(self, p: int | None = None) -> list[memoryview]:
        with self._lock:
            return super().get_bytes(p)

    def book(self, book_size: int, max_size: int) -> memoryview:
        with self._lock:
            return super().book(book_size, max_size)

    def book_ack(self, n: int) -> int:
        with self._lock:
            return super().book_ack(n)

    def calc_max_size(self) -> int:
        with self._lock:
            return super().calc_max_size()

    def reset_tail(self, max_size: int) -> None:
        with self._lock:
            super().reset_tail(max_size)

    def index_byte(self, c: int, skip: int) -> int:
        with self._lock:
            return super().index_byte(c, skip)