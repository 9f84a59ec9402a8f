"""Nodes of a link buffer: reference-counted views over a backing store."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field

from .nocopy import DEFAULT_MODE, NOCOPY_READ_MASK, READONLY_MASK, malloc, settings

_refer_lock = threading.Lock()


def _empty_store() -> memoryview:
    return memoryview(bytearray())


@dataclass(eq=False)
class LinkBufferNode:
    """A block of memory in a link buffer.

    ``store`` spans the whole capacity of the node, ``length`` is how much of
    it holds readable data, ``off`` is the read offset and ``malloc_off`` the
    write offset.
    """

    store: memoryview | None = field(default_factory=_empty_store, repr=False)
    length: int = 0
    off: int = 0
    malloc_off: int = 0
    refer_count: int = 1
    mode: int = DEFAULT_MODE
    origin: LinkBufferNode | None = field(default=None, repr=False)
    next_node: LinkBufferNode | None = field(default=None, repr=False)

    @property
    def buf(self) -> memoryview | None:
        """The filled part of the store, or None once the node is released."""
        if self.store is None:
            return None
        return self.store[: self.length]

    @property
    def capacity(self) -> int:
        """Total size of the store."""
        return 0 if self.store is None else len(self.store)

    def __len__(self) -> int:
        return self.length - self.off

    def is_empty(self) -> bool:
        """Return True when every filled byte has been read."""
        return self.off == self.length

    def reset(self) -> None:
        """Rewind an unshared node so it can be written again."""
        if self.origin is not None or self.refer_count != 1:
            return
        self.off = 0
        self.malloc_off = 0
        self.length = 0

    def next(self, n: int) -> memoryview:
        """Return the next n readable bytes and advance past them."""
        view = self.peek(n)
        self.off += n
        return view

    def peek(self, n: int) -> memoryview:
        """Return the next n readable bytes without advancing."""
        if n < 0 or self.off + n > self.length:
            raise IndexError(f"node read[{n}] beyond readable length {len(self)}")
        return self.store[self.off : self.off + n]

    def malloc(self, n: int) -> memoryview:
        """Reserve the next n bytes of the store for writing."""
        if n < 0 or self.malloc_off + n > self.capacity:
            raise IndexError(f"node malloc[{n}] beyond capacity {self.capacity}")
        start = self.malloc_off
        self.malloc_off += n
        return self.store[start : self.malloc_off]

    def refer(self, n: int) -> LinkBufferNode:
        """Read n bytes into a new read-only node that shares this memory.

        The root node is kept alive until the new node is released.
        """
        node = new_node(0)
        node.store = self.next(n)
        node.length = n
        node.origin = self.origin if self.origin is not None else self
        with _refer_lock:
            node.origin.refer_count += 1
        return node

    def release(self) -> None:
        """Drop one reference to this node and to its origin, freeing at zero."""
        if self.origin is not None:
            self.origin.release()
        with _refer_lock:
            self.refer_count -= 1
            dead = self.refer_count == 0
        if dead:
            self.store = None
            self.length = 0
            self.origin = None
            self.next_node = None

    def get_mode(self, mask: int) -> bool:
        """Return whether any bit of mask is set."""
        return (self.mode & mask) > 0

    def set_mode(self, mask: int, enable: bool) -> None:
        """Set or clear the bits of mask."""
        if enable:
            self.mode |= mask
        else:
            self.mode &= ~mask

    def reusable(self) -> bool:
        """Only nodes that own their memory and were copy-read may be reused."""
        return self.mode & (READONLY_MASK | NOCOPY_READ_MASK) == 0


def new_node(size: int) -> LinkBufferNode:
    """Create a node holding at least ``size`` bytes.

    Nodes with size <= 0 are read-only: their memory comes from elsewhere.
    """
    node = LinkBufferNode()
    if size <= 0:
        node.set_mode(READONLY_MASK, True)
        return node
    size = max(size, settings.link_buffer_cap)
    node.store = memoryview(malloc(0, size))
    return node