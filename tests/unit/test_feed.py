"""
Unit tests for dexsim/feed.py
"""

from dexsim.detector import detect
from dexsim.feed import DashboardFeed
from dexsim.types import Snapshot


def test_publish_replaces_previous_cycle():
    feed = DashboardFeed()

    first = Snapshot.from_prices({"A": 100.0, "B": 103.0, "C": None})
    feed.publish(first, detect(first), extra_warnings=["Gas cost unknown"])

    assert feed.prices() == [{"dex": "A", "price": 100.0}, {"dex": "B", "price": 103.0}]
    assert len(feed.top_spreads()) == 1
    assert feed.warnings() == ["Gas cost unknown"]

    second = Snapshot.from_prices({"A": 100.0, "B": 100.0})
    feed.publish(second, detect(second))

    assert feed.top_spreads() == []
    assert feed.warnings() == ["No arbitrage opportunities found."]
    assert feed.cycle == 2


def test_accessors_return_copies():
    feed = DashboardFeed()
    snap = Snapshot.from_prices({"A": 1.0, "B": 2.0})
    feed.publish(snap, detect(snap), ledger={"balance": 1.0})

    feed.prices().clear()
    feed.ledger()["balance"] = 99.0

    assert len(feed.prices()) == 2
    assert feed.ledger() == {"balance": 1.0}


def test_publish_ledger_and_reset():
    feed = DashboardFeed()
    feed.publish_ledger({"status": "finalized"})
    assert feed.ledger() == {"status": "finalized"}

    feed.reset()
    assert feed.ledger() is None
    assert feed.cycle == 0
    assert feed.updated_at is None
