from __future__ import annotations

from market_gateway.utils.cache import CacheStore
from market_gateway.utils.determinism import cache_key, join_csv


def test_get_after_put_returns_value(clock):
    cache = CacheStore(clock=clock)
    cache.put("global", {"btc": 52.1})
    assert cache.get("global", 90) == {"btc": 52.1}


def test_stale_entry_reads_as_absent_but_stays_stored(clock):
    cache = CacheStore(clock=clock)
    cache.put("global", [1, 2, 3])

    clock.advance(89.9)
    assert cache.get("global", 90) == [1, 2, 3]

    clock.advance(0.2)
    assert cache.get("global", 90) is None
    assert "global" in cache
    assert len(cache) == 1


def test_ttl_is_chosen_per_read(clock):
    cache = CacheStore(clock=clock)
    cache.put("coins_list", ["btc"])
    clock.advance(120)

    assert cache.get("coins_list", 90) is None
    assert cache.get("coins_list", 300) == ["btc"]


def test_put_overwrites_and_refreshes_timestamp(clock):
    cache = CacheStore(clock=clock)
    cache.put("k", "old")
    clock.advance(100)
    cache.put("k", "new")

    assert cache.stored_at("k") == clock.now
    assert cache.get("k", 90) == "new"


def test_clear_by_pattern_and_all(clock):
    cache = CacheStore(clock=clock)
    cache.put("coins_markets:{\"page\":1}", 1)
    cache.put("coins_markets:{\"page\":2}", 2)
    cache.put("global", 3)

    assert cache.clear("coins_markets") == 2
    assert cache.keys() == ["global"]

    assert cache.clear() == 1
    assert len(cache) == 0


def test_cache_key_ignores_param_order_and_none():
    a = cache_key("coins_markets", {"page": 1, "per_page": 250, "category": None})
    b = cache_key("coins_markets", {"per_page": 250, "page": 1})
    assert a == b
    assert cache_key("global") == "global"
    assert cache_key("global", {"x": None}) == "global"


def test_join_csv_accepts_scalar_or_sequence():
    assert join_csv("bitcoin") == "bitcoin"
    assert join_csv(["bitcoin", "ethereum"]) == "bitcoin,ethereum"
    assert join_csv(None) is None
