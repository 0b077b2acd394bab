"""Tests for services.cache: TTL expiry, disk tier, stats."""

import os

import pytest

from propedge.services.cache import CacheService


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


class TestMemoryTier:

    def test_set_then_get(self, clock):
        cache = CacheService(default_ttl=60, clock=clock)
        cache.set("k", {"a": 1})
        assert cache.get("k") == {"a": 1}

    def test_expires_after_ttl(self, clock):
        cache = CacheService(default_ttl=60, clock=clock)
        cache.set("k", [1, 2])
        clock.now += 61
        assert cache.get("k") is None

    def test_per_entry_ttl(self, clock):
        cache = CacheService(default_ttl=60, clock=clock)
        cache.set("long", 1, ttl=600)
        clock.now += 120
        assert cache.get("long") == 1

    def test_evict_expired(self, clock):
        cache = CacheService(default_ttl=10, clock=clock)
        cache.set("a", 1)
        cache.set("b", 2, ttl=100)
        clock.now += 20
        assert cache.evict_expired() == 1
        assert cache.stats()["entries"] == 1

    def test_stats_track_hits(self, clock):
        cache = CacheService(clock=clock)
        cache.set("k", 1)
        cache.get("k")
        cache.get("missing")
        stats = cache.stats()
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["hit_rate"] == pytest.approx(0.5)
        assert stats["disk_enabled"] is False

class TestDiskTier:

    def test_survives_restart(self, tmp_path, clock):
        first = CacheService(default_ttl=60, cache_dir=str(tmp_path), clock=clock)
        first.set("MLB:player-stats-by-date:2025-06-01", [{"Name": "A"}])

        second = CacheService(default_ttl=60, cache_dir=str(tmp_path), clock=clock)
        assert second.get("MLB:player-stats-by-date:2025-06-01") == [{"Name": "A"}]

    def test_disk_entry_expires(self, tmp_path, clock):
        CacheService(default_ttl=60, cache_dir=str(tmp_path), clock=clock).set("k", 1)
        clock.now += 61
        assert CacheService(cache_dir=str(tmp_path), clock=clock).get("k") is None

    def test_clear_removes_files(self, tmp_path, clock):
        cache = CacheService(cache_dir=str(tmp_path), clock=clock)
        cache.set("a", 1)
        cache.set("b", 2)
        assert cache.clear() == 4  # two in memory, two on disk
        assert not [n for n in os.listdir(tmp_path) if n.endswith(".json")]
        assert cache.get("a") is None

    def test_unreadable_file_is_a_miss(self, tmp_path, clock):
        cache = CacheService(cache_dir=str(tmp_path), clock=clock)
        cache.set("k", 1)
        path = cache._path_for("k")
        with open(path, "w", encoding="utf-8") as fh:
            fh.write("{not json")
        fresh = CacheService(cache_dir=str(tmp_path), clock=clock)
        assert fresh.get("k") is None
