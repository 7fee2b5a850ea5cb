import pytest

from ss14_admin.services.expiring_cache import ExpiringCache


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def test_get_returns_stored_value():
    cache = ExpiringCache(clock=FakeClock())
    cache.set("k", {"a": 1}, 60)
    assert cache.get("k") == {"a": 1}
    assert cache.get("missing") is None


def test_entry_expires_after_idle_window():
    clock = FakeClock()
    cache = ExpiringCache(clock=clock)
    cache.set("k", "v", 60)

    clock.advance(60)

    assert cache.get("k") is None
    assert len(cache) == 0


def test_reads_slide_the_expiration():
    clock = FakeClock()
    cache = ExpiringCache(clock=clock)
    cache.set("k", "v", 60)

    for _ in range(5):
        clock.advance(50)
        assert cache.get("k") == "v"

    clock.advance(61)
    assert cache.get("k") is None


def test_contains_does_not_refresh():
    clock = FakeClock()
    cache = ExpiringCache(clock=clock)
    cache.set("k", "v", 60)

    clock.advance(40)
    assert "k" in cache
    clock.advance(30)
    assert "k" not in cache


def test_remove_is_idempotent():
    cache = ExpiringCache(clock=FakeClock())
    cache.set("k", "v", 60)
    cache.remove("k")
    cache.remove("k")
    assert cache.get("k") is None


def test_sweep_only_drops_expired_entries():
    clock = FakeClock()
    cache = ExpiringCache(clock=clock)
    cache.set("old", 1, 10)
    cache.set("fresh", 2, 100)

    clock.advance(20)

    assert cache.sweep_expired() == 1
    assert len(cache) == 1
    assert cache.get("fresh") == 2


def test_non_positive_ttl_is_rejected():
    cache = ExpiringCache(clock=FakeClock())
    with pytest.raises(ValueError):
        cache.set("k", "v", 0)


def test_peek_does_not_refresh_but_touch_does():
    clock = FakeClock()
    cache = ExpiringCache(clock=clock)
    cache.set("k", "v", 60)

    clock.advance(50)
    assert cache.peek("k") == "v"
    assert cache.touch("k") is True
    clock.advance(50)
    assert cache.peek("k") == "v"
    clock.advance(20)
    assert cache.peek("k") is None
    assert cache.touch("k") is False
