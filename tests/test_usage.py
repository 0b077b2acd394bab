"""Tests for services.usage."""

from propedge.services.usage import PERIOD_SECONDS, TIER_LIMITS, UsageTracker


class Clock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_tier_limits():
    assert TIER_LIMITS == {"basic": 100, "pro": 400, "admin": 10000}


def test_counts_down_then_denies():
    tracker = UsageTracker(limits={"basic": 2})
    first = tracker.check_and_increment("user2", "basic")
    second = tracker.check_and_increment("user2", "basic")
    third = tracker.check_and_increment("user2", "basic")

    assert (first.allowed, first.remaining, first.limit) == (True, 1, 2)
    assert (second.allowed, second.remaining) == (True, 0)
    assert not third.allowed
    assert tracker.used("user2") == 2


def test_cost_counts_whole_batch():
    tracker = UsageTracker(limits={"basic": 5})
    assert not tracker.check_and_increment("u", "basic", cost=6).allowed
    assert tracker.check_and_increment("u", "basic", cost=5).allowed


def test_subjects_are_independent():
    tracker = UsageTracker(limits={"basic": 1})
    assert tracker.check_and_increment("a", "basic").allowed
    assert tracker.check_and_increment("b", "basic").allowed


def test_period_rollover():
    clock = Clock()
    tracker = UsageTracker(limits={"basic": 1}, clock=clock)
    tracker.check_and_increment("a", "basic")
    assert not tracker.check_and_increment("a", "basic").allowed
    clock.now += PERIOD_SECONDS + 1
    assert tracker.check_and_increment("a", "basic").allowed


def test_unknown_tier_denied():
    decision = UsageTracker().check_and_increment("a", "platinum")
    assert not decision.allowed
    assert decision.limit == 0


def test_reset():
    tracker = UsageTracker(limits={"basic": 1})
    tracker.check_and_increment("a", "basic")
    tracker.reset("a")
    assert tracker.used("a") == 0


def test_status_does_not_consume():
    clock = Clock()
    tracker = UsageTracker(limits={"basic": 2}, clock=clock)
    fresh = tracker.status("a", "basic")
    assert (fresh.allowed, fresh.remaining, fresh.limit, fresh.reset_at) == (True, 2, 2, None)

    tracker.check_and_increment("a", "basic")
    tracker.check_and_increment("a", "basic")
    spent = tracker.status("a", "basic")
    assert (spent.allowed, spent.remaining) == (False, 0)
    assert spent.reset_at == PERIOD_SECONDS
    assert tracker.used("a") == 2
