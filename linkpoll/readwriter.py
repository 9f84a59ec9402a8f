"""Adapters between file-like streams and the nocopy Reader/Writer interfaces."""

from __future__ import annotations

import io
from typing import Any

from .linkbuffer import LinkBuffer
from .nocopy import (
    BLOCK4K,
    LinkBufferError,
    NoCopyEOFError,
    Reader,
    ReadWriter,
    Writer,
)

# How many reads one fill may issue before checking again.
MAX_READ_CYCLE = 16


class ZCReader(Reader):
    """A nocopy Reader that pulls data from a file-like object on demand.

    The source needs ``readinto`` (preferred) or ``read``; a read of zero
    bytes means end of stream.
    """

    def __init__(self, r: Any) -> None:
        self.source = r
        self.read_buf = LinkBuffer()

    def next(self, n: int) -> memoryview:
        self._wait_read(n)
        return self.read_buf.next(n)

    def peek(self, n: int) -> memoryview:
        self._wait_read(n)
        return self.read_buf.peek(n)

    def skip(self, n: int) -> None:
        self._wait_read(n)
        self.read_buf.skip(n)

    def release(self) -> None:
        self.read_buf.release()

    def slice(self, n: int) -> LinkBuffer:
        self._wait_read(n)
        return self.read_buf.slice(n)

    def __len__(self) -> int:
        return len(self.read_buf)

    def read_string(self, n: int) -> str:
        self._wait_read(n)
        return self.read_buf.read_string(n)

    def read_binary(self, n: int) -> bytes | memoryview:
        self._wait_read(n)
        return self.read_buf.read_binary(n)

    def read_byte(self) -> int:
        self._wait_read(1)
        return self.read_buf.read_byte()

    def until(self, delim: int) -> memoryview:
        """Search only data already buffered; nothing more is read."""
        return self.read_buf.until(delim)

    def _wait_read(self, n: int) -> None:
        while len(self.read_buf) < n:
            self._fill(n)

    def _read_into(self, view: memoryview) -> int | None:
        readinto = getattr(self.source, "readinto", None)
        if readinto is not None:
            return readinto(view)
        data = self.source.read(len(view))
        if data is None:
            return None
        view[: len(data)] = data
        return len(data)

    def _fill(self, n: int) -> None:
        for _ in range(MAX_READ_CYCLE):
            if len(self.read_buf) >= n:
                return
            view = self.read_buf.malloc(BLOCK4K)
            got: int | None = None
            try:
                got = self._read_into(view)
            finally:
                num = got if got is not None and got > 0 else 0
                self.read_buf.malloc_ack(num)
                self.read_buf.flush()
            if got is not None and got < 0:
                raise LinkBufferError(f"zcReader fill negative count[{got}]")
            if got == 0:
                raise NoCopyEOFError("EOF")


class ZCWriter(Writer):
    """A nocopy Writer that sends flushed data to a file-like object."""

    def __init__(self, w: Any) -> None:
        self.sink = w
        self.write_buf = LinkBuffer()

    def malloc(self, n: int) -> memoryview:
        return self.write_buf.malloc(n)

    def malloc_len(self) -> int:
        return self.write_buf.malloc_len()

    def flush(self) -> None:
        """Submit pending data and write what is readable to the sink."""
        self.write_buf.flush()
        data = bytes(self.write_buf.readable_bytes())
        n = self.sink.write(data)
        if n:
            self.write_buf.skip(n)
            self.write_buf.release()

    def malloc_ack(self, n: int) -> None:
        self.write_buf.malloc_ack(n)

    def append(self, w: Writer | None) -> None:
        self.write_buf.append(w)

    def write_string(self, s: str) -> int:
        return self.write_buf.write_string(s)

    def write_binary(self, b: bytes | bytearray | memoryview) -> int:
        return self.write_buf.write_binary(b)

    def write_direct(self, p: bytes | bytearray | memoryview, remain_cap: int) -> None:
        self.write_buf.write_direct(p, remain_cap)

    def write_byte(self, b: int) -> None:
        self.write_buf.write_byte(b)


class ZCReadWriter(ZCReader, ZCWriter, ReadWriter):
    """A nocopy ReadWriter over one stream, with separate read and write buffers."""

    def __init__(self, rw: Any) -> None:
        ZCReader.__init__(self, rw)
        ZCWriter.__init__(self, rw)


class IOReader(io.RawIOBase):
    """A raw binary stream reading from a nocopy Reader."""

    def __init__(self, r: Reader) -> None:
        io.RawIOBase.__init__(self)
        self.source = r

    def readable(self) -> bool:
        return True

    def readinto(self, b: Any) -> int:
        view = memoryview(b).cast("B")
        want = len(view)
        if want == 0:
            return 0
        want = min(want, len(self.source))
        if want == 0:
            return 0
        src = self.source.next(want)
        view[:want] = src
        self.source.release()
        return want


class IOWriter(io.RawIOBase):
    """A raw binary stream writing to a nocopy Writer, flushing every write."""

    def __init__(self, w: Writer) -> None:
        io.RawIOBase.__init__(self)
        self.target = w

    def writable(self) -> bool:
        return True

    def write(self, b: Any) -> int:
        data = memoryview(b).cast("B")
        dst = self.target.malloc(len(data))
        dst[:] = data
        self.target.flush()
        return len(data)


class IOReadWriter(IOReader, IOWriter):
    """A raw binary stream both reading from and writing to a nocopy ReadWriter."""

    def __init__(self, rw: ReadWriter) -> None:
        io.RawIOBase.__init__(self)
        self.source = rw
        self.target = rw


def new_reader(r: Any) -> ZCReader:
    """Wrap a file-like object as a nocopy Reader."""
    return ZCReader(r)


def new_writer(w: Any) -> ZCWriter:
    """Wrap a file-like object as a nocopy Writer."""
    return ZCWriter(w)


def new_read_writer(rw: Any) -> ZCReadWriter:
    """Wrap a readable and writable file-like object as a nocopy ReadWriter."""
    return ZCReadWriter(rw)


def new_io_reader(r: Any) -> Any:
    """Return r itself if it is already a stream, else wrap it."""
    if hasattr(r, "readinto"):
        return r
    return IOReader(r)


def new_io_writer(w: Any) -> Any:
    """Return w itself if it is already a stream, else wrap it."""
    if hasattr(w, "write"):
        return w
    return IOWriter(w)


def new_io_read_writer(rw: Any) -> Any:
    """Return rw itself if it is already a read-write stream, else wrap it."""
    if hasattr(rw, "readinto") and hasattr(rw, "write"):
        return rw
    return IOReadWriter(rw)