"""
Unit tests for dexsim/block_cache.py
"""

from dexsim.block_cache import BlockPriceCache
from dexsim.types import Snapshot


def test_hit_only_for_same_block():
    cache = BlockPriceCache()
    snap = Snapshot.from_prices({"A": 1.0}, block_number=100)

    assert cache.get(100) is None
    cache.put(100, snap)

    assert cache.get(100) is snap
    assert cache.get(101) is None
    assert (cache.hits, cache.misses) == (1, 2)


def test_new_block_replaces_slot():
    cache = BlockPriceCache()
    old = Snapshot.from_prices({"A": 1.0})
    new = Snapshot.from_prices({"A": 2.0})

    cache.put(100, old)
    cache.put(101, new)

    assert cache.block_number == 101
    assert cache.get(100) is None
    assert cache.get(101) is new


def test_unknown_block_never_hits():
    cache = BlockPriceCache()
    cache.put(5, Snapshot.from_prices({"A": 1.0}))
    assert cache.get(None) is None


def test_clear():
    cache = BlockPriceCache()
    cache.put(5, Snapshot.from_prices({"A": 1.0}))
    cache.clear()
    assert cache.block_number is None
    assert cache.get(5) is None
