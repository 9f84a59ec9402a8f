"""Socket helpers: vectored I/O and socket options on raw descriptors."""

from __future__ import annotations

import os
import socket
import struct
from contextlib import contextmanager
from typing import Any, Iterator, Sequence

MAX_INT32 = 2**31 - 1
BARRIER_CAP = 32

SO_ZEROCOPY = 60
SO_ZEROBLOCKTIMEO = 69
MSG_ZEROCOPY = 0x4000000


@contextmanager
def _borrowed(fd: int) -> Iterator[socket.socket]:
    """Wrap fd in a socket object without taking ownership of it."""
    sock = socket.socket(fileno=fd)
    try:
        yield sock
    finally:
        sock.detach()


def get_sys_fd_pairs() -> tuple[int, int]:
    """Create a connected pair of Unix stream sockets and return their fds."""
    a, b = socket.socketpair(socket.AF_UNIX, socket.SOCK_STREAM)
    return a.detach(), b.detach()


def set_tcp_no_delay(fd: int, enabled: bool) -> None:
    """Set or clear TCP_NODELAY on the socket."""
    with _borrowed(fd) as sock:
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, int(bool(enabled)))


def sys_socket(family: int, sotype: int, proto: int) -> int:
    """Create a non-blocking, close-on-exec socket and return its fd."""
    sock = socket.socket(family, sotype, proto)
    try:
        sock.setblocking(False)
    except OSError:
        sock.close()
        raise
    return sock.detach()


def iovecs(bs: Sequence[Any]) -> list[Any]:
    """Return the non-empty chunks of bs, truncated to a 2GB total."""
    chunks: list[Any] = []
    total = 0
    for chunk in bs:
        size = len(chunk)
        if size == 0:
            continue
        total += size
        if total < MAX_INT32:
            chunks.append(chunk)
        else:
            chunks.append(chunk[: MAX_INT32 - total + size])
            break
    return chunks


def writev(fd: int, bs: Sequence[Any]) -> int:
    """Write the chunks of bs with one writev call."""
    chunks = iovecs([memoryview(b) for b in bs])
    if not chunks:
        return 0
    return os.writev(fd, chunks)


def readv(fd: int, bs: Sequence[Any]) -> int:
    """Read into the writable chunks of bs with one readv call; 0 means EOF."""
    chunks = iovecs([memoryview(b) for b in bs])
    if not chunks:
        return 0
    return os.readv(fd, chunks)


def sendmsg(fd: int, bs: Sequence[Any], zerocopy: bool = False) -> int:
    """Send the chunks of bs with one sendmsg call, optionally zero-copy."""
    chunks = iovecs([memoryview(b) for b in bs])
    if not chunks:
        return 0
    flags = MSG_ZEROCOPY if zerocopy else 0
    with _borrowed(fd) as sock:
        return sock.sendmsg(chunks, [], flags)


def set_keep_alive(fd: int, secs: int) -> None:
    """Enable keep-alive with the given idle time and probe interval."""
    with _borrowed(fd) as sock:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_KEEPINTVL, secs)
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_KEEPIDLE, secs)


def set_default_sockopts(s: int, family: int, sotype: int, ipv6only: bool) -> None:
    """Apply IPV6_V6ONLY where relevant and allow broadcast."""
    with _borrowed(s) as sock:
        if family == socket.AF_INET6 and sotype != socket.SOCK_RAW:
            # Some systems never admit this option; failure is not fatal.
            try:
                sock.setsockopt(socket.IPPROTO_IPV6, socket.IPV6_V6ONLY, int(bool(ipv6only)))
            except OSError:
                pass
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)


def set_zero_copy(fd: int) -> None:
    """Enable SO_ZEROCOPY on the socket."""
    with _borrowed(fd) as sock:
        sock.setsockopt(socket.SOL_SOCKET, SO_ZEROCOPY, 1)


def set_block_zero_copy_send(fd: int, sec: int, usec: int) -> None:
    """Set the blocking timeout for zero-copy sends."""
    with _borrowed(fd) as sock:
        sock.setsockopt(socket.SOL_SOCKET, SO_ZEROBLOCKTIMEO, struct.pack("ll", sec, usec))