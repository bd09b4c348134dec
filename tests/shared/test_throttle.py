"""Tests for fixed-window throttling."""

import asyncio
from unittest.mock import MagicMock

import pytest
from shared.auth import ROLE_CAPABILITIES, Principal
from shared.throttle import (
    InMemoryCounterStore,
    RateLimiter,
    RateLimitExceeded,
    RedisCounterStore,
    get_limiter,
    set_limiter,
    throttled,
)


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class TestInMemoryCounterStore:
    def test_counts_within_window(self):
        clock = FakeClock()
        store = InMemoryCounterStore(clock=clock)

        assert store.hit("k", 60) == (1, 60)
        clock.now += 10
        assert store.hit("k", 60) == (2, 50)

    def test_window_expires(self):
        clock = FakeClock()
        store = InMemoryCounterStore(clock=clock)
        store.hit("k", 60)
        store.hit("k", 60)

        clock.now += 61

        assert store.hit("k", 60)[0] == 1

    def test_keys_are_independent(self):
        store = InMemoryCounterStore(clock=FakeClock())
        store.hit("a", 60)
        assert store.hit("b", 60)[0] == 1

    def test_expired_windows_are_dropped(self):
        clock = FakeClock()
        store = InMemoryCounterStore(clock=clock)
        for user in range(50):
            store.hit(f"checkout:user-{user}", 60)
        assert len(store) == 50

        clock.now += 61
        store.hit("checkout:user-late", 60)

        assert len(store) == 1

    def test_live_windows_survive_a_sweep(self):
        clock = FakeClock()
        store = InMemoryCounterStore(clock=clock)
        store.hit("old", 60)
        clock.now += 30
        store.hit("recent", 60)

        clock.now += 31
        store.hit("new", 60)

        assert len(store) == 2
        assert store.hit("recent", 60)[0] == 2

    def test_reset(self):
        store = InMemoryCounterStore(clock=FakeClock())
        store.hit("k", 60)
        store.reset()
        assert store.hit("k", 60)[0] == 1


class TestRedisCounterStore:
    def test_first_hit_sets_expiry(self):
        client = MagicMock()
        client.incr.return_value = 1
        client.ttl.return_value = 60

        assert RedisCounterStore(client).hit("k", 60) == (1, 60)
        client.incr.assert_called_once_with("throttle:k")
        client.expire.assert_called_once_with("throttle:k", 60)

    def test_later_hits_keep_expiry(self):
        client = MagicMock()
        client.incr.return_value = 4
        client.ttl.return_value = 12

        assert RedisCounterStore(client).hit("k", 60) == (4, 12)
        client.expire.assert_not_called()

    def test_reset_deletes_prefixed_keys(self):
        client = MagicMock()
        client.scan_iter.return_value = ["throttle:a", "throttle:b"]

        RedisCounterStore(client).reset()

        client.scan_iter.assert_called_once_with("throttle:*")
        assert client.delete.call_count == 2


class TestRateLimiter:
    def test_allows_up_to_limit(self):
        limiter = RateLimiter(InMemoryCounterStore(clock=FakeClock()), limit=3, window_seconds=60)
        assert [limiter.check("k") for _ in range(3)] == [2, 1, 0]

    def test_rejects_beyond_limit(self):
        clock = FakeClock()
        limiter = RateLimiter(InMemoryCounterStore(clock=clock), limit=1, window_seconds=60)
        limiter.check("k")
        clock.now += 15

        with pytest.raises(RateLimitExceeded) as exc:
            limiter.check("k")
        assert exc.value.retry_after == 45


class TestThrottledDependency:
    @pytest.fixture(autouse=True)
    def limiter(self):
        previous = get_limiter()
        limiter = RateLimiter(InMemoryCounterStore(clock=FakeClock()), limit=1, window_seconds=60)
        set_limiter(limiter)
        yield limiter
        set_limiter(previous)

    def test_counts_per_scope_and_user(self):
        dependency = throttled("checkout")
        alice = Principal("alice", "customer", ROLE_CAPABILITIES["customer"])
        bob = Principal("bob", "customer", ROLE_CAPABILITIES["customer"])

        assert asyncio.run(dependency(alice)) is alice
        assert asyncio.run(dependency(bob)) is bob
        with pytest.raises(RateLimitExceeded):
            asyncio.run(dependency(alice))

    def test_scopes_are_separate(self):
        alice = Principal("alice", "customer", ROLE_CAPABILITIES["customer"])
        asyncio.run(throttled("checkout")(alice))
        assert asyncio.run(throttled("refund")(alice)) is alice
