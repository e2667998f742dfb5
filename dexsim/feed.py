"""
Latest-cycle data published for the dashboard.

The runner owns one ``DashboardFeed`` and replaces its lists wholesale after
every cycle; readers only ever see a complete cycle. Diffing for transport is
left to the consumer.
"""

import threading
from typing import Any, Dict, List, Optional

from arbwatch.utils import get_current_timestamp

from .detector import DetectionResult
from .types import Snapshot

# The dashboard shows a few more spreads than the console does
DASHBOARD_SPREAD_LIMIT = 5


class DashboardFeed:
    def __init__(self):
        self._lock = threading.Lock()
        self._prices: List[Dict[str, Any]] = []
        self._top_spreads: List[Dict[str, Any]] = []
        self._warnings: List[str] = []
        self._ledger: Optional[Dict[str, Any]] = None
        self.updated_at: Optional[float] = None
        self.cycle = 0

    def publish(
        self,
        snapshot: Snapshot,
        detection: DetectionResult,
        extra_warnings: Optional[List[str]] = None,
        ledger: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Replace all published data with the results of one cycle."""
        prices = [
            {"dex": venue, "price": price} for venue, price in snapshot.prices().items()
        ]
        spreads = [
            {"buy": o.buy_venue, "sell": o.sell_venue, "profit": o.profit_pct}
            for o in detection.top
        ]
        warnings = list(detection.warnings) + list(extra_warnings or [])

        with self._lock:
            self._prices = prices
            self._top_spreads = spreads
            self._warnings = warnings
            if ledger is not None:
                self._ledger = dict(ledger)
            self.updated_at = get_current_timestamp()
            self.cycle += 1

    def publish_ledger(self, ledger: Dict[str, Any]) -> None:
        """Replace only the ledger stats, e.g. after finalization."""
        with self._lock:
            self._ledger = dict(ledger)
            self.updated_at = get_current_timestamp()

    def prices(self) -> List[Dict[str, Any]]:
        with self._lock:
            return list(self._prices)

    def top_spreads(self, limit: int = DASHBOARD_SPREAD_LIMIT) -> List[Dict[str, Any]]:
        with self._lock:
            return list(self._top_spreads[:limit])

    def warnings(self) -> List[str]:
        with self._lock:
            return list(self._warnings)

    def ledger(self) -> Optional[Dict[str, Any]]:
        with self._lock:
            return dict(self._ledger) if self._ledger is not None else None

    def reset(self) -> None:
        with self._lock:
            self._prices = []
            self._top_spreads = []
            self._warnings = []
            self._ledger = None
            self.updated_at = None
            self.cycle = 0
