from collections import Counter

import pytest

from linkpoll.loadbalance import (
    LoadBalance,
    RandomLB,
    RoundRobinLB,
    new_loadbalance,
)


def test_factory_chooses_strategy():
    polls = ["a", "b"]
    assert isinstance(new_loadbalance(LoadBalance.RANDOM, polls), RandomLB)
    assert isinstance(new_loadbalance(LoadBalance.ROUND_ROBIN, polls), RoundRobinLB)
    assert new_loadbalance(LoadBalance.RANDOM, polls).load_balance() is LoadBalance.RANDOM
    assert (
        new_loadbalance(LoadBalance.ROUND_ROBIN, polls).load_balance()
        is LoadBalance.ROUND_ROBIN
    )


@pytest.mark.parametrize(
    "value, member",
    [(0, LoadBalance.ROUND_ROBIN), (1, LoadBalance.RANDOM)],
)
def test_enum_values_follow_declaration_order(value, member):
    assert LoadBalance(value) is member


def test_round_robin_cycles_evenly():
    polls = ["a", "b", "c"]
    lb = RoundRobinLB(polls)
    picks = [lb.pick() for _ in range(30)]
    assert Counter(picks) == Counter({"a": 10, "b": 10, "c": 10})
    # each poller is picked again exactly len(polls) picks later
    assert all(picks[i] == picks[i + 3] for i in range(len(picks) - 3))
    assert len(set(picks[:3])) == 3


def test_round_robin_rebalance():
    lb = RoundRobinLB(["a", "b"])
    lb.rebalance(["x"])
    assert {lb.pick() for _ in range(5)} == {"x"}


def test_random_picks_members_only():
    polls = ["a", "b", "c"]
    lb = RandomLB(polls)
    picks = {lb.pick() for _ in range(200)}
    assert picks <= set(polls)
    lb.rebalance(["z"])
    assert lb.pick() == "z"


@pytest.mark.parametrize("cls", [RandomLB, RoundRobinLB])
def test_pick_without_polls_raises(cls):
    with pytest.raises(IndexError):
        cls([]).pick()