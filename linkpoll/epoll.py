"""A thin epoll wrapper that carries 8 bytes of user data per descriptor."""

from __future__ import annotations

import enum
import select
from dataclasses import dataclass

EPOLLIN = getattr(select, "EPOLLIN", 0x001)
EPOLLOUT = getattr(select, "EPOLLOUT", 0x004)
EPOLLERR = getattr(select, "EPOLLERR", 0x008)
EPOLLHUP = getattr(select, "EPOLLHUP", 0x010)
EPOLLRDHUP = getattr(select, "EPOLLRDHUP", 0x2000)
EPOLLET = getattr(select, "EPOLLET", 1 << 31)

_NO_DATA = bytes(8)


class EpollOp(enum.IntEnum):
    """Operations of epoll_ctl."""

    ADD = 1
    DEL = 2
    MOD = 3


@dataclass
class EpollEvent:
    """An event mask together with the user data registered for a descriptor."""

    events: int
    data: bytes = _NO_DATA


class Epoll:
    """An epoll instance; usable as a context manager that closes it."""

    def __init__(self, flags: int = 0) -> None:
        if not hasattr(select, "epoll"):
            raise OSError("epoll is not available on this platform")
        self._ep = select.epoll(-1, flags)
        self._data: dict[int, bytes] = {}

    @property
    def fd(self) -> int:
        """The descriptor of the epoll instance."""
        return self._ep.fileno()

    @property
    def closed(self) -> bool:
        return self._ep.closed

    def ctl(self, op: EpollOp, fd: int, event: EpollEvent | None = None) -> None:
        """Add, modify or remove the watch on fd."""
        op = EpollOp(op)
        if op is EpollOp.DEL:
            self._ep.unregister(fd)
            self._data.pop(fd, None)
            return
        if event is None:
            raise ValueError(f"epoll {op.name} requires an event")
        if op is EpollOp.ADD:
            self._ep.register(fd, event.events)
        else:
            self._ep.modify(fd, event.events)
        self._data[fd] = bytes(event.data)

    def wait(self, max_events: int = -1, msec: int = -1) -> list[EpollEvent]:
        """Wait up to msec milliseconds (forever if negative) for events."""
        timeout = -1 if msec < 0 else msec / 1000
        ready = self._ep.poll(timeout, max_events if max_events > 0 else -1)
        return [EpollEvent(mask, self._data.get(fd, _NO_DATA)) for fd, mask in ready]

    def close(self) -> None:
        """Close the epoll instance."""
        self._ep.close()
        self._data.clear()

    def __enter__(self) -> Epoll:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()