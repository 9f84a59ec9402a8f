"""Owns a set of pollers, starts them and hands them out by load balancing."""

from __future__ import annotations

import enum
import logging
import threading
import time
from typing import Callable

from .loadbalance import LoadBalance, RandomLB, RoundRobinLB, new_loadbalance
from .poll import Poll

logger = logging.getLogger(__name__)


class _Status(enum.IntEnum):
    UNINITIALIZED = 0
    INITIALIZING = 1
    INITIALIZED = 2


class Manager:
    """Keeps ``num_loops`` pollers running, each waiting in its own thread.

    Pollers are created with ``poll_factory`` lazily, on the first ``pick``
    after the number of loops was set.
    """

    def __init__(self, num_loops: int, poll_factory: Callable[[], Poll]) -> None:
        self._poll_factory = poll_factory
        self._status_lock = threading.Lock()
        self._status = _Status.UNINITIALIZED
        self.num_loops = 0
        self.balance: RandomLB | RoundRobinLB | None = None
        self.polls: list[Poll] = []
        self.set_load_balance(LoadBalance.ROUND_ROBIN)
        self.set_num_loops(num_loops)

    def set_num_loops(self, num_loops: int) -> None:
        """Change the number of pollers; they are adjusted on the next pick."""
        if num_loops < 1:
            raise ValueError(f"set invalid numLoops[{num_loops}]")
        # The new count must be visible before the status is reset.
        self.num_loops = num_loops
        with self._status_lock:
            self._status = _Status.UNINITIALIZED

    def set_load_balance(self, lb: LoadBalance) -> None:
        """Switch the load balancing method unless it is already in use."""
        if self.balance is not None and self.balance.load_balance() == lb:
            return
        self.balance = new_loadbalance(lb, self.polls)

    def close(self) -> None:
        """Close every poller; the last close error, if any, is raised."""
        error: Exception | None = None
        for poll in self.polls:
            try:
                poll.close()
            except Exception as exc:  # noqa: BLE001 - reported after all are closed
                error = exc
        self.num_loops = 0
        self.balance = None
        self.polls = []
        if error is not None:
            raise error

    def run(self) -> None:
        """Grow or shrink the pollers to ``num_loops``; on failure close everything."""
        try:
            self._adjust()
        except Exception:
            try:
                self.close()
            except Exception:  # noqa: BLE001 - the original failure matters more
                logger.exception("NETPOLL: closing pollers after a failed run")
            raise

    def _adjust(self) -> None:
        num_loops = self.num_loops
        if num_loops == len(self.polls):
            return
        if num_loops < len(self.polls):
            polls = self.polls[:num_loops]
            for redundant in self.polls[num_loops:]:
                try:
                    redundant.close()
                except Exception as exc:  # noqa: BLE001 - shrinking goes on regardless
                    logger.warning("NETPOLL: poller close failed: %s", exc)
        else:
            polls = list(self.polls)
            for _ in range(len(self.polls), num_loops):
                poll = self._poll_factory()
                polls.append(poll)
                self.polls = polls
                threading.Thread(target=poll.wait, name="poller", daemon=True).start()
        self.polls = polls
        if self.balance is None:
            raise RuntimeError("load balance must be set before run")
        self.balance.rebalance(self.polls)

    def reset(self) -> None:
        """Close all pollers and start fresh ones."""
        for poll in self.polls:
            try:
                poll.close()
            except Exception as exc:  # noqa: BLE001 - the pollers are dropped anyway
                logger.warning("NETPOLL: poller close failed: %s", exc)
        self.polls = []
        self.run()

    def pick(self) -> Poll:
        """Return a poller chosen by the load balancer, starting pollers if needed."""
        while True:
            if self._status == _Status.INITIALIZED:
                return self._pick_balanced()
            with self._status_lock:
                claimed = self._status == _Status.UNINITIALIZED
                if claimed:
                    self._status = _Status.INITIALIZING
            if not claimed:
                time.sleep(0)
                continue
            try:
                self.run()
            except Exception:
                with self._status_lock:
                    if self._status == _Status.INITIALIZING:
                        self._status = _Status.UNINITIALIZED
                raise
            with self._status_lock:
                # A concurrent set_num_loops leaves the status for the next pick.
                if self._status == _Status.INITIALIZING:
                    self._status = _Status.INITIALIZED
            return self._pick_balanced()

    def _pick_balanced(self) -> Poll:
        balance = self.balance
        if balance is None:
            raise RuntimeError("manager is closed")
        return balance.pick()