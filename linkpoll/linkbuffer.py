"""A chained buffer that reads and writes without copying where it can."""

from __future__ import annotations

from .node import LinkBufferNode, new_node
from .nocopy import (
    BLOCK1K,
    BLOCK4K,
    MALLOC_MAX,
    MIN_REUSE_BYTES,
    NOCOPY_READ_MASK,
    PAGESIZE,
    READONLY_MASK,
    LinkBufferError,
    ReadWriter,
    Writer,
    malloc,
    settings,
)

# Writes longer than this are linked in place instead of being copied.
BINARY_INPLACE_THRESHOLD = BLOCK4K


def _empty() -> memoryview:
    return memoryview(b"")


class LinkBuffer(ReadWriter):
    """A linked list of nodes holding readable data and pending writes.

    ``head`` is the first unreleased node, ``read_node`` the node being read,
    ``flush_node`` the first node holding unsubmitted writes and
    ``write_node`` the node being written.
    """

    def __init__(self, size: int = 0) -> None:
        node = new_node(size)
        self.head: LinkBufferNode | None = node
        self.read_node: LinkBufferNode | None = node
        self.flush_node: LinkBufferNode | None = node
        self.write_node: LinkBufferNode | None = node
        self._length = 0
        self._malloc_size = 0
        self._caches: list[bytearray] = []
        self._peek_store: bytearray | None = None
        self.cache_peek_len = 0

    def __len__(self) -> int:
        return self._length

    def is_empty(self) -> bool:
        """Return True when nothing is readable."""
        return self._length == 0

    # ------------------------------------------------------------------ reading

    def _check(self, n: int, what: str) -> None:
        if self._length < n:
            raise LinkBufferError(f"link buffer {what}[{n}] not enough")

    def _copy_out(self, p: bytearray | memoryview, n: int) -> None:
        pos = 0
        ack = n
        while ack > 0:
            l = len(self.read_node)
            if l >= ack:
                p[pos : pos + ack] = self.read_node.next(ack)
                break
            if l > 0:
                p[pos : pos + l] = self.read_node.next(l)
                pos += l
            ack -= l
            self.read_node = self.read_node.next_node

    def next(self, n: int) -> memoryview:
        """Return the next n bytes and advance past them."""
        if n <= 0:
            return _empty()
        self._check(n, "next")
        self._recal_len(-n)
        if self._is_single_node(n):
            return self.read_node.next(n)
        if BLOCK1K < n <= MALLOC_MAX:
            store = malloc(n, n)
            self._caches.append(store)
        else:
            store = bytearray(n)
        p = memoryview(store)[:n]
        self._copy_out(p, n)
        return p

    def peek(self, n: int) -> memoryview:
        """Return the next n bytes without advancing."""
        if n <= 0:
            return _empty()
        self._check(n, "peek")
        if self._is_single_node(n):
            return self.read_node.peek(n)
        if self._peek_store is not None and len(self._peek_store) < n:
            self._peek_store = None
        if self._peek_store is None:
            self._peek_store = malloc(0, n)
            self.cache_peek_len = 0
        store = self._peek_store
        if self.cache_peek_len >= n:
            return memoryview(store)[:n]
        scanned = 0
        node = self.read_node
        while self.cache_peek_len < n:
            l = len(node)
            filled = self.cache_peek_len
            if scanned + l <= filled:
                scanned += l
                node = node.next_node
                continue
            start = filled - scanned
            copyn = min(n - filled, l - start)
            store[filled : filled + copyn] = node.peek(l)[start : start + copyn]
            self.cache_peek_len += copyn
            scanned += l
            node = node.next_node
        return memoryview(store)[:n]

    def skip(self, n: int) -> None:
        """Advance past the next n bytes."""
        if n <= 0:
            return
        self._check(n, "skip")
        self._recal_len(-n)
        ack = n
        while ack > 0:
            l = len(self.read_node)
            if l >= ack:
                self.read_node.off += ack
                break
            ack -= l
            self.read_node = self.read_node.next_node

    def release(self) -> None:
        """Free the nodes that have been read completely."""
        while self.read_node is not self.flush_node and len(self.read_node) == 0:
            self.read_node = self.read_node.next_node
        while self.head is not self.read_node:
            node = self.head
            self.head = node.next_node
            node.release()
        self._caches.clear()
        self._peek_store = None
        self.cache_peek_len = 0

    def read_string(self, n: int) -> str:
        """Read n bytes as a string; undecodable bytes survive as surrogates."""
        if n <= 0:
            return ""
        self._check(n, "read string")
        return bytes(self._read_binary(n)).decode("utf-8", errors="surrogateescape")

    def read_binary(self, n: int) -> bytes | memoryview:
        """Read n bytes; a copy unless the node is in no-copy read mode."""
        if n <= 0:
            return b""
        self._check(n, "read binary")
        return self._read_binary(n)

    def _read_binary(self, n: int) -> bytes | memoryview:
        self._recal_len(-n)
        if self._is_single_node(n):
            node = self.read_node
            if not node.get_mode(READONLY_MASK):
                if node.get_mode(NOCOPY_READ_MASK):
                    return node.next(n)
                if settings.always_no_copy_read and n >= MIN_REUSE_BYTES:
                    node.set_mode(NOCOPY_READ_MASK, True)
                    return node.next(n)
            return bytes(node.next(n))
        p = bytearray(n)
        self._copy_out(p, n)
        return bytes(p)

    def read_byte(self) -> int:
        """Read a single byte."""
        if self._length < 1:
            raise LinkBufferError("link buffer read byte is empty")
        self._recal_len(-1)
        while True:
            if len(self.read_node) >= 1:
                return self.read_node.next(1)[0]
            self.read_node = self.read_node.next_node

    def until(self, delim: int) -> memoryview:
        """Read up to and including the first occurrence of delim."""
        n = self.index_byte(delim, 0)
        if n < 0:
            raise LinkBufferError("link buffer read slice cannot find delim")
        return self.next(n + 1)

    def slice(self, n: int) -> LinkBuffer:
        """Move the next n bytes into a new read-only buffer sharing memory."""
        if n <= 0:
            return LinkBuffer(0)
        self._check(n, "readv")
        self._recal_len(-n)
        p = LinkBuffer(0)
        p._length = n
        if self._is_single_node(n):
            node = self.read_node.refer(n)
            p.head = p.read_node = p.flush_node = node
            p._seal()
            return p
        l = len(self.read_node)
        node = self.read_node.refer(l)
        self.read_node = self.read_node.next_node
        p.head = p.read_node = p.flush_node = node
        ack = n - l
        while ack > 0:
            l = len(self.read_node)
            if l >= ack:
                p.flush_node.next_node = self.read_node.refer(ack)
                p.flush_node = p.flush_node.next_node
                break
            if l > 0:
                p.flush_node.next_node = self.read_node.refer(l)
                p.flush_node = p.flush_node.next_node
            ack -= l
            self.read_node = self.read_node.next_node
        p._seal()
        self.release()
        return p

    def _seal(self) -> None:
        self.flush_node = self.flush_node.next_node
        self.write_node = self.flush_node

    # ------------------------------------------------------------------ writing

    def malloc(self, n: int) -> memoryview:
        """Reserve n writable bytes that become readable after flush."""
        if n <= 0:
            return memoryview(bytearray())
        self._malloc_size += n
        self._growth(n)
        return self.write_node.malloc(n)

    def malloc_len(self) -> int:
        """Return the number of allocated but unsubmitted bytes."""
        return self._malloc_size

    def malloc_ack(self, n: int) -> None:
        """Keep the first n allocated bytes and discard the rest."""
        if n < 0:
            raise LinkBufferError(f"link buffer malloc ack[{n}] invalid")
        self._malloc_size = n
        self.write_node = self.flush_node
        ack = n
        while ack > 0:
            l = self.write_node.malloc_off - self.write_node.length
            if l >= ack:
                self.write_node.malloc_off = ack + self.write_node.length
                break
            ack -= l
            self.write_node = self.write_node.next_node
        node = self.write_node.next_node
        while node is not None:
            node.off = node.malloc_off = node.length = 0
            node.refer_count = 1
            node = node.next_node

    def flush(self) -> None:
        """Make every allocated byte readable."""
        self._malloc_size = 0
        if self.write_node.capacity > PAGESIZE:
            self.write_node.next_node = new_node(0)
            self.write_node = self.write_node.next_node
        n = 0
        stop = self.write_node.next_node
        node = self.flush_node
        while node is not stop:
            delta = node.malloc_off - node.length
            if delta > 0:
                n += delta
                node.length = node.malloc_off
            node = node.next_node
        self.flush_node = self.write_node
        self._recal_len(n)

    def append(self, w: Writer | None) -> None:
        """Move the content of another link buffer to the tail of this one."""
        if w is None:
            return
        if not isinstance(w, LinkBuffer):
            raise LinkBufferError("unsupported writer which is not LinkBuffer")
        self.write_buffer(w)

    def write_buffer(self, buf: LinkBuffer | None) -> None:
        """Link buf's nodes after this buffer's tail; buf is emptied.

        Nothing is flushed, so pending writes of buf stay pending here.
        """
        if buf is None:
            return
        buf_len, buf_malloc = len(buf), buf.malloc_len()
        if buf_len + buf_malloc <= 0:
            return
        self.write_node.next_node = buf.read_node
        self.write_node = buf.write_node
        while buf.head is not buf.read_node:
            nd = buf.head
            buf.head = nd.next_node
            nd.release()
        nd = buf.write_node.next_node
        while nd is not None:
            following = nd.next_node
            nd.release()
            nd = following
        buf._length = buf._malloc_size = 0
        buf.head = buf.read_node = buf.flush_node = buf.write_node = None
        self.write_node.next_node = None
        if buf_len > 0:
            self._recal_len(buf_len)
        self._malloc_size += buf_malloc

    def write_string(self, s: str) -> int:
        """Append a string encoded as UTF-8."""
        if not s:
            return 0
        return self.write_binary(s.encode("utf-8", errors="surrogateescape"))

    def write_binary(self, p: bytes | bytearray | memoryview) -> int:
        """Append bytes; large inputs are linked without copying."""
        n = len(p) if p else 0
        if n == 0:
            return 0
        self._malloc_size += n
        if n > BINARY_INPLACE_THRESHOLD:
            node = new_node(0)
            self.write_node.next_node = node
            self.write_node = node
            node.store = memoryview(p)
            node.length = 0
            node.malloc_off = n
            return n
        self._growth(n)
        self.write_node.malloc(n)[:] = p
        return n

    def write_direct(self, extra: bytes | bytearray | memoryview, remain_len: int) -> None:
        """Insert extra into the allocated area, remain_len bytes before its end."""
        n = len(extra) if extra else 0
        if n == 0 or remain_len < 0:
            return
        origin = self.flush_node
        m = self._malloc_size - remain_len
        t = origin.malloc_off - origin.length
        while t < m:
            m -= t
            origin = origin.next_node
            t = origin.malloc_off - origin.length
        m += origin.length

        data = new_node(0)
        data.store = memoryview(extra)
        data.malloc_off = n
        if remain_len > 0:
            tail = new_node(0)
            tail.off = m
            tail.store = origin.store
            tail.length = m
            tail.malloc_off = origin.malloc_off
            tail.set_mode(READONLY_MASK, False)
            origin.malloc_off = m
            origin.set_mode(READONLY_MASK, True)
            data.next_node = tail
            tail.next_node = origin.next_node
            origin.next_node = data
        else:
            data.next_node = origin.next_node
            origin.next_node = data
        while self.write_node.next_node is not None:
            self.write_node = self.write_node.next_node
        self._malloc_size += n

    def write_byte(self, b: int) -> None:
        """Append a single byte."""
        self.malloc(1)[0] = b

    def close(self) -> None:
        """Release every node."""
        self._length = 0
        self._malloc_size = 0
        self.release()
        node = self.head
        while node is not None:
            following = node.next_node
            node.release()
            node = following
        self.head = self.read_node = self.flush_node = self.write_node = None

    # -------------------------------------------------------------- connection

    def readable_bytes(self) -> memoryview:
        """Return all readable bytes, copying only when they span nodes."""
        node, flush = self.read_node, self.flush_node
        if node is flush:
            return node.buf[node.off :]
        out = bytearray()
        while node is not flush:
            if len(node) > 0:
                out += node.buf[node.off :]
            node = node.next_node
        out += flush.buf[flush.off :]
        return memoryview(out)

    def get_bytes(self, p: int | None = None) -> list[memoryview]:
        """Return views of the readable chunks, at most p of them.

        Without p the limit is the number of nodes before the flush node.
        """
        node, flush = self.read_node, self.flush_node
        if not p:
            p = 0
            walk = node
            while walk is not flush:
                p += 1
                walk = walk.next_node
        chunks: list[memoryview] = []
        while node is not flush and len(chunks) < p:
            if len(node) > 0:
                chunks.append(node.buf[node.off :])
            node = node.next_node
        if len(chunks) < p:
            chunks.append(flush.buf[flush.off :])
        return chunks

    def book(self, book_size: int, max_size: int) -> memoryview:
        """Reserve up to book_size bytes, adding a max_size node when full."""
        l = self.write_node.capacity - self.write_node.malloc_off
        if l == 0:
            l = max_size
            self.write_node.next_node = new_node(max_size)
            self.write_node = self.write_node.next_node
        return self.write_node.malloc(min(l, book_size))

    def book_ack(self, n: int) -> int:
        """Submit n booked bytes and return the new readable length."""
        w = self.write_node
        w.malloc_off = n + w.length
        w.length = w.malloc_off
        self.flush_node = w
        return self._recal_len(n)

    def calc_max_size(self) -> int:
        """Return the data size held since the last release."""
        total = 0
        node = self.head
        while node is not self.read_node:
            total += node.length
            node = node.next_node
        return total + self.read_node.length

    def reset_tail(self, max_size: int) -> None:
        """Append an empty tail so a large tail node is not written again."""
        if max_size <= PAGESIZE:
            return
        self.write_node.next_node = new_node(0)
        self.write_node = self.write_node.next_node
        self.flush_node = self.write_node

    def index_byte(self, c: int, skip: int) -> int:
        """Return the index of the first c at or after skip, or -1."""
        size = self._length
        if skip >= size:
            return -1
        node = self.read_node
        unread = size
        while unread > 0:
            n = min(len(node), unread)
            if skip >= n:
                skip -= n
                node = node.next_node
                unread -= n
                continue
            i = bytes(node.peek(n)[skip:]).find(bytes([c]))
            if i >= 0:
                return (size - unread) + skip + i
            skip = 0
            node = node.next_node
            unread -= n
        return -1

    def memory_size(self) -> int:
        """Return the bytes of memory held by this buffer."""
        total = 0
        node = self.head
        while node is not None:
            total += node.capacity
            node = node.next_node
        total += sum(len(c) for c in self._caches)
        if self._peek_store is not None:
            total += len(self._peek_store)
        return total

    # ----------------------------------------------------------------- private

    def _recal_len(self, delta: int) -> int:
        if delta < 0 and self.cache_peek_len > 0:
            self.cache_peek_len = 0
        self._length += delta
        return self._length

    def _growth(self, n: int) -> None:
        if n <= 0:
            return
        while (
            self.write_node.get_mode(READONLY_MASK)
            or self.write_node.capacity - self.write_node.malloc_off < n
        ):
            if self.write_node.next_node is None:
                self.write_node.next_node = new_node(n)
                self.write_node = self.write_node.next_node
                return
            self.write_node = self.write_node.next_node

    def _is_single_node(self, read_n: int) -> bool:
        if read_n <= 0:
            return True
        l = len(self.read_node)
        while l == 0 and self.read_node is not self.flush_node:
            self.read_node = self.read_node.next_node
            l = len(self.read_node)
        return l >= read_n