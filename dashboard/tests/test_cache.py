import re

import pytest


def test_get_returns_value_until_ttl_passes(cache, clock):
    cache.set("stats", {"count": 3}, ttl=100)

    assert cache.get("stats") == {"count": 3}
    clock.advance(100)
    assert cache.get("stats") == {"count": 3}
    clock.advance(1)
    assert cache.get("stats") is None


def test_expired_entry_is_dropped_on_read(cache, clock):
    cache.set("stats", 1, ttl=5)
    clock.advance(6)

    assert cache.stats()["size"] == 1
    assert cache.get("stats") is None
    assert cache.stats() == {"size": 0, "keys": []}


def test_set_again_repopulates(cache, clock):
    cache.set("trends:week", "old", ttl=1)
    clock.advance(2)
    assert cache.get("trends:week") is None

    cache.set("trends:week", "new", ttl=1)
    assert cache.get("trends:week") == "new"


def test_default_ttl(clock):
    from dashboard.cache import TTLCache

    cache = TTLCache(default_ttl=10, clock=clock)
    cache.set("k", "v")
    clock.advance(10.5)
    assert cache.get("k") is None


def test_delete_and_clear(cache):
    cache.set("a", 1)
    cache.set("b", 2)

    cache.delete("a")
    cache.delete("missing")
    assert cache.get("a") is None
    assert cache.get("b") == 2

    cache.clear()
    assert cache.stats()["size"] == 0


def test_clear_pattern_removes_only_matching_keys(cache):
    for key in ("activities:7", "activities:30", "stats", "trends:week", "performance"):
        cache.set(key, key)

    removed = cache.clear_pattern("^activities:")

    assert sorted(removed) == ["activities:30", "activities:7"]
    assert sorted(cache.stats()["keys"]) == ["performance", "stats", "trends:week"]


def test_clear_pattern_rejects_bad_regex(cache):
    with pytest.raises(re.error):
        cache.clear_pattern("(")
