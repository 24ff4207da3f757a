"""Tests for the TTL cache."""

from family_calendar.services.cache import TTLCache


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class TestTTLCache:
    def test_hit_within_ttl(self):
        clock = FakeClock()
        cache = TTLCache(300, clock=clock)
        cache.set("k", [1])

        clock.now += 299
        assert cache.get("k") == [1]

    def test_expires_after_ttl(self):
        clock = FakeClock()
        cache = TTLCache(300, clock=clock)
        cache.set("k", [1])

        clock.now += 300
        assert cache.get("k") is None
        assert len(cache) == 0

    def test_no_ttl_keeps_entries(self):
        clock = FakeClock()
        cache = TTLCache(clock=clock)
        cache.set("k", "v")

        clock.now += 10 ** 9
        assert cache.get("k") == "v"

    def test_invalidate_where(self):
        cache = TTLCache()
        cache.set(("cal-1", 1), "a")
        cache.set(("cal-1", 2), "b")
        cache.set(("cal-2", 1), "c")

        dropped = cache.invalidate_where(lambda key: key[0] == "cal-1")

        assert dropped == 2
        assert cache.get(("cal-2", 1)) == "c"
        assert cache.get(("cal-1", 1)) is None

    def test_expired_entries_swept_on_write(self):
        clock = FakeClock()
        cache = TTLCache(300, clock=clock)
        for i in range(10):
            cache.set(("window", i), [])

        clock.now += 300
        cache.set("fresh", [])

        assert len(cache) == 1

    def test_oldest_evicted_at_capacity(self):
        cache = TTLCache(max_entries=2)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("a", 10)
        cache.set("c", 3)

        assert len(cache) == 2
        assert cache.get("b") is None
        assert cache.get("a") == 10
        assert cache.get("c") == 3
