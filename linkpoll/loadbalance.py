"""Strategies for choosing which poller gets the next connection."""

from __future__ import annotations

import enum
import itertools
import random
from typing import Sequence

from .poll import Poll


class LoadBalance(enum.IntEnum):
    """Load balancing methods."""

    # Connections are distributed to pollers in turn.
    ROUND_ROBIN = 0
    # Connections are distributed at random.
    RANDOM = 1


class RandomLB:
    """Picks a poller at random."""

    def __init__(self, polls: Sequence[Poll]) -> None:
        self.polls = list(polls)

    def load_balance(self) -> LoadBalance:
        return LoadBalance.RANDOM

    def pick(self) -> Poll:
        if not self.polls:
            raise IndexError("no polls to pick from")
        return self.polls[random.randrange(len(self.polls))]

    def rebalance(self, polls: Sequence[Poll]) -> None:
        self.polls = list(polls)


class RoundRobinLB:
    """Picks pollers in turn; the counter is shared across threads."""

    def __init__(self, polls: Sequence[Poll]) -> None:
        self.polls = list(polls)
        self._accepted = itertools.count(1)

    def load_balance(self) -> LoadBalance:
        return LoadBalance.ROUND_ROBIN

    def pick(self) -> Poll:
        polls = self.polls
        if not polls:
            raise IndexError("no polls to pick from")
        return polls[next(self._accepted) % len(polls)]

    def rebalance(self, polls: Sequence[Poll]) -> None:
        self.polls = list(polls)


def new_loadbalance(lb: LoadBalance, polls: Sequence[Poll]) -> RandomLB | RoundRobinLB:
    """Create the balancer for lb; anything unknown falls back to round robin."""
    if lb == LoadBalance.RANDOM:
        return RandomLB(polls)
    return RoundRobinLB(polls)