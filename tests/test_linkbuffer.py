import struct

import pytest

from linkpoll.linkbuffer import LinkBuffer
from linkpoll.nocopy import (
    BLOCK1K,
    BLOCK4K,
    BLOCK8K,
    NOCOPY_READ_MASK,
    READONLY_MASK,
    LinkBufferError,
    settings,
)


@pytest.fixture
def cap(monkeypatch):
    def set_cap(value):
        monkeypatch.setattr(settings, "link_buffer_cap", value)

    return set_cap


def test_link_buffer(cap):
    cap(128)
    buf = LinkBuffer()
    assert len(buf) == 0
    assert buf.is_empty()
    head = buf.head
    with pytest.raises(LinkBufferError):
        buf.next(10)
    buf.malloc(128)
    assert buf.is_empty()
    with pytest.raises(LinkBufferError):
        buf.peek(10)
    buf.flush()
    assert len(buf) == 128
    assert len(buf.next(28)) == 28
    assert len(buf) == 100
    assert len(buf.peek(90)) == 90
    assert len(buf) == 100
    read = buf.read_node
    assert buf.head is head
    buf.release()
    assert buf.head is read

    inputs = buf.book(BLOCK1K, BLOCK8K)
    assert len(inputs) == BLOCK1K
    assert len(buf) == 100
    buf.malloc_ack(BLOCK1K)
    assert len(buf) == 100
    assert buf.malloc_len() == BLOCK1K
    buf.flush()
    assert len(buf) == 100 + BLOCK1K
    assert buf.malloc_len() == 0
    assert len(buf.get_bytes(16)) == 2
    buf.skip(BLOCK1K)
    assert len(buf) == 100


def test_get_bytes():
    buf = LinkBuffer()
    expected = 0
    b = 1
    for _ in range(6):
        expected += b
        assert buf.write_binary(bytes(b)) == b
        b *= 10
    buf.flush()
    assert len(buf) == expected
    assert sum(len(c) for c in buf.get_bytes()) == expected


@pytest.mark.parametrize("n", [0, -1, -2, -3, -4])
def test_invalid_sizes(cap, n):
    cap(128)
    buf = LinkBuffer()
    assert len(buf.malloc(n)) == 0
    assert buf.write_string("") == 0
    assert buf.write_binary(b"") == 0
    buf.write_direct(b"", n)
    buf.append(None)
    assert buf.malloc_len() == 0 and len(buf) == 0
    if n == 0:
        buf.malloc_ack(n)
    else:
        with pytest.raises(LinkBufferError):
            buf.malloc_ack(n)
    buf.flush()
    assert len(buf.next(n)) == 0
    assert len(buf.peek(n)) == 0
    buf.skip(n)
    assert buf.read_string(n) == ""
    assert len(buf.read_binary(n)) == 0
    assert len(buf.slice(n)) == 0
    buf.release()
    assert len(buf) == 0


def test_multi_node(cap):
    cap(8)
    buf = LinkBuffer()
    p = buf.malloc(15)
    p[:] = bytes(range(15))
    assert buf.read_node is buf.flush_node
    assert buf.write_node.malloc_off == 15
    assert buf.write_node.capacity == 16
    p = buf.malloc(7)
    p[:] = bytes(range(15, 22))
    assert buf.write_node.malloc_off == 7
    assert buf.write_node.capacity == 8
    buf.flush()
    assert buf.read_node is not buf.flush_node
    assert buf.flush_node is buf.write_node
    assert buf.read_node.next_node.length == 15
    assert buf.flush_node.length == 7

    p = buf.next(13)
    assert len(p) == 13 and p[0] == 0 and p[12] == 12
    assert buf.read_node.off == 13
    assert len(buf.read_node) == 2
    assert len(buf.read_node.next_node) == 7

    p = buf.peek(4)
    assert bytes(p) == bytes([13, 14, 15, 16])
    assert buf.cache_peek_len == 4
    p = buf.peek(3)
    assert bytes(p) == bytes([13, 14, 15])
    assert buf.cache_peek_len == 4
    p = buf.peek(5)
    assert p[0] == 13 and p[4] == 17
    assert buf.cache_peek_len == 5
    p = buf.peek(6)
    assert p[0] == 13 and p[5] == 18
    assert buf.cache_peek_len == 6
    assert buf.read_node.off == 13

    buf.book(BLOCK8K, BLOCK8K)
    assert buf.flush_node is buf.write_node
    assert buf.flush_node.malloc_off == 8
    assert len(buf.flush_node) == 7
    buf.book(BLOCK8K, BLOCK8K)
    assert buf.flush_node is not buf.write_node
    assert buf.write_node.malloc_off == 8192
    assert len(buf.write_node) == 0

    buf.malloc_ack(5)
    assert buf.write_node.malloc_off == 4
    assert buf.write_node.next_node is None
    buf.flush()

    assert len(buf.next(8)) == 8
    assert buf.read_node.off == 6
    assert len(buf.read_node) == 2
    assert buf.flush_node.malloc_off == 4
    buf.skip(3)
    assert buf.read_node is buf.flush_node
    assert buf.read_node.off == 1
    assert len(buf.read_node) == 3


def test_refer(cap):
    cap(8)
    wbuf = LinkBuffer()
    wbuf.book(BLOCK8K, BLOCK8K)
    wbuf.malloc(7)
    wbuf.flush()
    assert len(wbuf) == BLOCK8K + 7

    buf = LinkBuffer()
    buf.write_buffer(wbuf)
    buf.flush()
    assert len(buf) == BLOCK8K + 7
    assert len(buf.next(5)) == 5
    assert buf.read_node.off == 5
    assert buf.flush_node.capacity == 8

    rbuf = buf.slice(4)
    assert len(rbuf) == 4
    assert rbuf.read_node is not rbuf.flush_node
    assert len(rbuf.read_node) == 4
    assert len(buf) == BLOCK8K - 2
    assert buf.read_node.off == 9

    node1, node2 = rbuf.head, buf.head
    rbuf.skip(len(rbuf))
    rbuf.release()
    assert rbuf.head is not node1
    assert buf.head is node2
    buf.release()
    assert buf.head is buf.read_node
    assert buf.read_node.refer_count == 1
    assert len(buf.read_node) == BLOCK8K - 9


def test_reset_tail(cap):
    cap(8)
    buf = LinkBuffer()
    buf.write_byte(1)
    buf.flush()
    r1 = buf.slice(1)
    buf.reset_tail(8)
    buf.write_byte(2)
    assert r1.read_byte() == 1


def test_write_buffer():
    buf1, buf2, buf3 = LinkBuffer(), LinkBuffer(), LinkBuffer()
    buf2.malloc(1)[0] = 2
    buf2.flush()
    buf3.malloc(1)[0] = 3
    buf3.flush()
    buf1.write_buffer(buf2)
    buf1.write_buffer(buf3)
    buf1.flush()
    assert bytes(buf1.readable_bytes()) == b"\x02\x03"


def test_check_single_node():
    buf = LinkBuffer(BLOCK4K)
    buf.malloc(BLOCK8K)
    buf.flush()
    assert len(buf.read_node) == 0
    assert buf._is_single_node(BLOCK8K)
    assert len(buf.read_node) == BLOCK8K
    assert not buf._is_single_node(BLOCK8K + 1)


def test_write_multi_flush():
    buf = LinkBuffer()
    b1 = buf.malloc(4)
    b1[0] = 1
    b1[2] = 2
    buf.flush()
    buf.flush()
    assert bytes(buf.readable_bytes()) == b"\x01\x00\x02\x00"
    buf.skip(2)
    assert bytes(buf.readable_bytes()) == b"\x02\x00"
    buf.flush()
    assert bytes(buf.readable_bytes()) == b"\x02\x00"
    buf.malloc(2)[0] = 3
    buf.flush()
    assert bytes(buf.readable_bytes()) == b"\x02\x00\x03\x00"


def test_write_binary_does_not_hold_source(cap):
    cap(8)
    b = bytearray(16)
    buf = LinkBuffer()
    buf.write_binary(memoryview(b)[:9])
    buf.flush()
    buf.write_binary(b"\x01")
    buf.malloc(1)[0] = 2
    buf.flush()
    assert b[9] == 0
    assert bytes(buf.readable_bytes()) == bytes(9) + b"\x01\x02"


def test_write_direct(cap):
    cap(32)
    buf = LinkBuffer()
    bt = buf.malloc(32)
    bt[0] = ord("a")
    bt[1] = ord("b")
    buf.write_direct(b"cdef", 30)
    bt[2] = ord("g")
    buf.write_direct(b"hijkl", 29)
    bt[3] = ord("m")
    buf.write_direct(b"nopqrst", 28)
    bt[4] = ord("u")
    buf.write_direct(b"vwxyz", 27)
    bt[5:] = b"abcdefghijklmnopqrstuvwxyza"
    buf.write_direct(b"abcdefghijklmnopqrstuvwxyz", 0)
    buf.flush()
    expected = (
        b"abcdefghijklmnopqrstuvwxyzabcdefghijklmnopqrstuvwxyza"
        b"abcdefghijklmnopqrstuvwxyz"
    )
    assert bytes(buf.readable_bytes()) == expected


def test_no_copy_write_and_read(monkeypatch):
    monkeypatch.setattr(settings, "always_no_copy_read", True)
    origin_len, data_len, new_len, normal_len = 4096, 512, 16, 4096
    buf = LinkBuffer()
    bt = buf.malloc(4096 * 2)
    bt[:origin_len] = b"a" * origin_len
    buf.write_direct(b"b" * data_len, 4096)
    bt[origin_len : origin_len + new_len] = b"c" * new_len
    buf.malloc_ack(origin_len + data_len + new_len)
    buf.flush()
    normal = buf.malloc(normal_len)
    normal[:] = b"d" * normal_len
    buf.flush()
    assert len(buf) == origin_len + data_len + new_len + normal_len

    assert bytes(buf.read_binary(origin_len)) == b"a" * origin_len
    nxt = buf.read_node.next_node
    assert nxt.get_mode(READONLY_MASK) and not nxt.reusable()
    assert bytes(buf.read_binary(data_len)) == b"b" * data_len
    assert bytes(buf.read_binary(new_len)) == b"c" * new_len
    newnode = buf.read_node
    assert newnode.reusable()

    out = buf.read_binary(normal_len)
    assert bytes(out) == b"d" * normal_len
    normal[0] = ord("x")
    assert out[0] == ord("x")
    assert buf.read_node.get_mode(NOCOPY_READ_MASK)
    buf.release()
    assert newnode.buf is None


def test_string_round_trip():
    buf = LinkBuffer()
    assert buf.write_string("hello world") == 11
    buf.flush()
    assert buf.read_string(5) == "hello"
    assert bytes(buf.until(ord("w"))) == b" w"
    with pytest.raises(LinkBufferError):
        buf.until(ord("z"))
    assert buf.read_byte() == ord("o")


def test_index_byte(cap):
    cap(128)
    lb = LinkBuffer()
    for i in range(50):
        p = lb.malloc(1002)
        p[500] = ord("\n")
        p[1001] = ord("\n")
        lb.flush()
        last = i * 1002
        assert lb.index_byte(ord("\n"), last) == 500 + last
        assert lb.index_byte(ord("\n"), 500 + last) == 500 + last
        assert lb.index_byte(ord("\n"), 501 + last) == 1001 + last


def test_peek_memory_is_bounded():
    cap_size, nodes, magic = 1024 * 8, 10, 2024
    buf = LinkBuffer(cap_size)
    assert buf.is_empty()
    assert buf.write_node.capacity == cap_size
    assert buf.memory_size() == cap_size
    for _ in range(nodes):
        p = buf.malloc(cap_size)
        assert len(p) == cap_size
        struct.pack_into(">Q", p, 0, magic)
    assert buf.malloc_len() == cap_size * nodes
    buf.flush()
    assert buf.malloc_len() == 0
    for _ in range(5):
        p = buf.peek(cap_size)
        assert struct.unpack_from(">Q", p)[0] == magic
        assert buf.memory_size() == cap_size * nodes
    sizes = set()
    for _ in range(20):
        p = buf.peek(cap_size + 1)
        assert len(p) == cap_size + 1
        assert struct.unpack_from(">Q", p)[0] == magic
        sizes.add(buf.memory_size())
    assert len(sizes) == 1


def test_append_rejects_foreign_writer():
    class Other:
        pass

    with pytest.raises(LinkBufferError):
        LinkBuffer().append(Other())


def test_close_clears_everything():
    buf = LinkBuffer()
    buf.write_binary(b"abc")
    buf.flush()
    buf.close()
    assert len(buf) == 0
    assert buf.malloc_len() == 0
    assert buf.head is None