"""Shared constants, settings, errors and the nocopy reader/writer interfaces."""

from __future__ import annotations

import abc
from dataclasses import dataclass

BLOCK1K = 1 * 1024
BLOCK2K = 2 * 1024
BLOCK4K = 4 * 1024
BLOCK8K = 8 * 1024
BLOCK32K = 32 * 1024

PAGESIZE = BLOCK8K
MALLOC_MAX = BLOCK8K * BLOCK1K  # 8MB

# Only reuse bytes for no-copy reads of at least this many bytes.
MIN_REUSE_BYTES = 64

DEFAULT_MODE = 0
# The node memory is not owned by the node: it can be neither reused nor read without copying.
READONLY_MASK = 1 << 0
# The node has been read without copying, so its memory cannot be reused.
NOCOPY_READ_MASK = 1 << 1


@dataclass
class BufferSettings:
    """Tunable values shared by every link buffer."""

    link_buffer_cap: int = BLOCK4K
    always_no_copy_read: bool = False


settings = BufferSettings()


class LinkBufferError(Exception):
    """Raised when a buffer operation cannot be satisfied."""


class NoCopyEOFError(LinkBufferError, EOFError):
    """Raised when the underlying stream ends before enough data arrived."""


def round_capacity(capacity: int) -> int:
    """Return the capacity the allocator actually hands out for a request.

    Requests up to MALLOC_MAX are rounded up to a power of two; larger
    requests are served exactly.
    """
    if capacity <= 0:
        return 0
    if capacity > MALLOC_MAX:
        return capacity
    return 1 << (capacity - 1).bit_length()


def malloc(size: int, capacity: int) -> bytearray:
    """Allocate a zero-filled backing store able to hold ``capacity`` bytes.

    ``size`` is the part of the store the caller intends to use at once and
    must fit within ``capacity``.
    """
    if size < 0 or capacity < 0:
        raise ValueError(f"invalid allocation size[{size}] capacity[{capacity}]")
    if size > capacity:
        raise ValueError(f"allocation size[{size}] exceeds capacity[{capacity}]")
    return bytearray(round_capacity(capacity))


class Reader(abc.ABC):
    """Operations for reading without copying."""

    @abc.abstractmethod
    def next(self, n: int) -> memoryview | bytes:
        """Return the next n bytes and advance past them."""

    @abc.abstractmethod
    def peek(self, n: int) -> memoryview | bytes:
        """Return the next n bytes without advancing."""

    @abc.abstractmethod
    def skip(self, n: int) -> None:
        """Advance past the next n bytes."""

    @abc.abstractmethod
    def until(self, delim: int) -> memoryview | bytes:
        """Read up to and including the first occurrence of delim."""

    @abc.abstractmethod
    def read_string(self, n: int) -> str:
        """Read n bytes and return them as a string."""

    @abc.abstractmethod
    def read_binary(self, n: int) -> bytes:
        """Read n bytes into a copy not shared with the buffer."""

    @abc.abstractmethod
    def read_byte(self) -> int:
        """Read a single byte."""

    @abc.abstractmethod
    def slice(self, n: int) -> "Reader":
        """Return a new reader holding the next n bytes, then release this one."""

    @abc.abstractmethod
    def release(self) -> None:
        """Free the memory of everything already read."""

    @abc.abstractmethod
    def __len__(self) -> int:
        """Return the number of readable bytes."""


class Writer(abc.ABC):
    """Operations for writing without copying: allocate, fill, then flush."""

    @abc.abstractmethod
    def malloc(self, n: int) -> memoryview:
        """Reserve n writable bytes that become readable after flush."""

    @abc.abstractmethod
    def write_string(self, s: str) -> int:
        """Append a string, returning the number of bytes written."""

    @abc.abstractmethod
    def write_binary(self, b: bytes) -> int:
        """Append bytes, returning the number of bytes written."""

    @abc.abstractmethod
    def write_byte(self, b: int) -> None:
        """Append a single byte."""

    @abc.abstractmethod
    def write_direct(self, p: bytes, remain_cap: int) -> None:
        """Insert p into the allocated area, remain_cap bytes before its end."""

    @abc.abstractmethod
    def malloc_ack(self, n: int) -> None:
        """Keep the first n allocated bytes and discard the rest."""

    @abc.abstractmethod
    def append(self, w: "Writer") -> None:
        """Move the content of w to the tail of this writer."""

    @abc.abstractmethod
    def flush(self) -> None:
        """Submit all allocated data."""

    @abc.abstractmethod
    def malloc_len(self) -> int:
        """Return the number of allocated but unsubmitted bytes."""


class ReadWriter(Reader, Writer):
    """Both Reader and Writer."""