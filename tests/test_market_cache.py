"""Tests for the advisory market cache"""

import pytest

from pfaff_terminal.utils.market_cache import MarketCache


@pytest.fixture
def cache(clock):
    return MarketCache(clock=clock, max_entries_per_category=2)


def test_record_and_stats(cache, clock):
    cache.record("stocks", "AAPL", {"price": 1}, "live")
    cache.record("crypto", "BTCUSD", {"price": 2}, "fallback")

    assert cache.get("stocks", "AAPL") == {"price": 1}
    stats = cache.get_stats()
    assert stats["entries"]["stocks"] == 1
    assert stats["liveResponses"] == 1
    assert stats["fallbackResponses"] == 1
    assert stats["lastUpdated"] == clock.now().isoformat()


def test_latest_value_wins(cache):
    cache.record("stocks", "AAPL", 1, "fallback")
    cache.record("stocks", "AAPL", 2, "live")

    assert cache.get("stocks", "AAPL") == 2


def test_oldest_entry_evicted(cache):
    for symbol in ("AAPL", "MSFT", "NVDA"):
        cache.record("stocks", symbol, symbol, "live")

    assert cache.get("stocks", "AAPL") is None
    assert cache.get("stocks", "NVDA") == "NVDA"


def test_unknown_category(cache):
    with pytest.raises(KeyError):
        cache.record("bonds", "UST10Y", 4.1, "live")


def test_clear(cache):
    cache.record("news", "market", [], "fallback")

    assert cache.clear() == 1
    assert cache.get_stats()["lastUpdated"] is None
