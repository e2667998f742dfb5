"""
Prometheus metrics for the spread scanner.

Exposes per-cycle scan statistics and simulated ledger figures for
monitoring. The dashboard serves them at ``/metrics``.
"""

import threading
from typing import Optional

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    generate_latest,
)

from arbwatch.utils import get_logger

logger = get_logger(__name__)


class SpreadMetrics:
    """
    Spread scanner metrics collection and exposure.

    Provides Prometheus-compatible metrics for:
    - Evaluation cycles and venue fetch failures
    - Opportunities detected and best raw spread
    - Simulated trades executed or rejected
    - Simulated balance
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        """Initialize metrics with a custom registry or a fresh private one"""
        self.registry = registry or CollectorRegistry()
        self._lock = threading.RLock()
        self._initialize_metrics()

    def _initialize_metrics(self):
        """Initialize all Prometheus metrics"""

        # === CYCLE METRICS ===
        self.cycles_total = Counter(
            "dex_spread_cycles_total",
            "Total number of evaluation cycles completed",
            registry=self.registry,
        )

        self.cycle_errors_total = Counter(
            "dex_spread_cycle_errors_total",
            "Total number of evaluation cycles that raised",
            registry=self.registry,
        )

        self.venue_failures_total = Counter(
            "dex_spread_venue_failures_total",
            "Price fetches that produced no usable price",
            ["venue"],
            registry=self.registry,
        )

        self.venues_reporting = Gauge(
            "dex_spread_venues_reporting",
            "Number of venues with a valid price in the latest snapshot",
            registry=self.registry,
        )

        # === OPPORTUNITY METRICS ===
        self.opportunities_found_total = Counter(
            "dex_spread_opportunities_found_total",
            "Qualifying directed venue pairs found by the detector",
            registry=self.registry,
        )

        self.best_spread_pct = Gauge(
            "dex_spread_best_spread_pct",
            "Best raw spread percentage of the latest cycle",
            registry=self.registry,
        )

        # === SIMULATION METRICS ===
        self.trades_executed_total = Counter(
            "dex_spread_trades_executed_total",
            "Simulated trades applied to the ledger",
            registry=self.registry,
        )

        self.trades_rejected_total = Counter(
            "dex_spread_trades_rejected_total",
            "Best candidates rejected by the selector",
            ["reason"],
            registry=self.registry,
        )

        self.balance = Gauge(
            "dex_spread_simulated_balance",
            "Current simulated balance in quote currency",
            registry=self.registry,
        )

        self.net_profit = Gauge(
            "dex_spread_simulated_net_profit",
            "Cumulative simulated net profit in quote currency",
            registry=self.registry,
        )

    def record_snapshot(self, valid_count: int, failed_venues) -> None:
        """Record venue availability for one snapshot."""
        with self._lock:
            self.venues_reporting.set(valid_count)
            for venue in failed_venues:
                self.venue_failures_total.labels(venue=venue).inc()

    def record_detection(self, found: int, best_pct: Optional[float]) -> None:
        """Record detector output for one cycle."""
        with self._lock:
            self.cycles_total.inc()
            if found:
                self.opportunities_found_total.inc(found)
            self.best_spread_pct.set(best_pct if best_pct is not None else 0.0)

    def record_cycle_error(self) -> None:
        with self._lock:
            self.cycle_errors_total.inc()

    def record_trade(self, balance: float, net_profit: float) -> None:
        """Record a simulated trade applied to the ledger."""
        with self._lock:
            self.trades_executed_total.inc()
            self.balance.set(balance)
            self.net_profit.set(net_profit)

    def record_rejection(self, reason: str) -> None:
        with self._lock:
            self.trades_rejected_total.labels(reason=reason).inc()

    def set_balance(self, balance: float) -> None:
        with self._lock:
            self.balance.set(balance)

    def export(self) -> bytes:
        """Render the registry in Prometheus text exposition format."""
        return generate_latest(self.registry)

    @property
    def content_type(self) -> str:
        return CONTENT_TYPE_LATEST
