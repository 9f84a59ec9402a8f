"""Poller interface and the events it can be told to watch."""

from __future__ import annotations

import abc
import enum
from typing import Any


class PollEvent(enum.IntEnum):
    """Operations accepted by Poll.control."""

    # Watch whether a listener or connection is readable or closed.
    READABLE = 0x1
    # Watch whether a dialing connection is writable or closed (edge triggered).
    WRITABLE = 0x2
    # Remove the operator from the poller.
    DETACH = 0x3
    # Also watch writability, used when the socket write buffer is full.
    R2RW = 0x5
    # Stop watching writability, the reverse of R2RW.
    RW2R = 0x6


class Poll(abc.ABC):
    """Monitors file descriptors and dispatches their events to operators."""

    @abc.abstractmethod
    def wait(self) -> None:
        """Poll registered descriptors and dispatch events; blocks until closed."""

    @abc.abstractmethod
    def close(self) -> None:
        """Close the poller and stop wait."""

    @abc.abstractmethod
    def trigger(self) -> None:
        """Wake the loop running wait even when no event occurred."""

    @abc.abstractmethod
    def control(self, operator: Any, event: PollEvent) -> None:
        """Change what is watched for the operator's descriptor."""

    @abc.abstractmethod
    def alloc(self) -> Any:
        """Take an operator from the poller's cache."""

    @abc.abstractmethod
    def free(self, operator: Any) -> None:
        """Return an operator to the poller's cache."""