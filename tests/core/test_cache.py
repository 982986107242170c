from flowscan.cache import InMemoryTTLCache, cache_key


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_values_expire_after_their_ttl():
    clock = FakeClock()
    cache = InMemoryTTLCache(default_ttl=300, clock=clock)

    cache.set("movers:active:12", ["AAPL"], ttl=60)
    assert cache.get("movers:active:12") == ["AAPL"]
    assert cache.ttl("movers:active:12") == 60

    clock.now += 59
    assert cache.get("movers:active:12") == ["AAPL"]

    clock.now += 1
    assert cache.get("movers:active:12") is None
    assert cache.ttl("movers:active:12") is None
    assert len(cache) == 0


def test_default_ttl_applies_when_none_given():
    clock = FakeClock()
    cache = InMemoryTTLCache(default_ttl=30, clock=clock)

    cache.set("macro", {"regime": "CHOPPY"})
    clock.now += 29.5
    assert cache.ttl("macro") == 0.5


def test_missing_key_and_delete():
    cache = InMemoryTTLCache()

    assert cache.get("absent") is None
    assert cache.ttl("absent") is None

    cache.set("value:AAPL", 4.5)
    cache.delete("value:AAPL")
    cache.delete("value:AAPL")
    assert cache.get("value:AAPL") is None


def test_set_overwrites_and_clear_empties():
    cache = InMemoryTTLCache()
    cache.set("k", 1)
    cache.set("k", 2)
    assert cache.get("k") == 2

    cache.clear()
    assert len(cache) == 0


def test_cache_key_joins_parts():
    assert cache_key("movers", "active", 12) == "movers:active:12"
    assert cache_key("macro") == "macro"
