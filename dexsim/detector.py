"""
Cross-venue spread detection.

Given one snapshot, enumerate every directed (buy, sell) venue pair, keep the
pairs whose raw spread clears the threshold and rank them. Fees and gas are
not applied here; the selector prices the top few candidates.
"""

import math
from dataclasses import dataclass, field
from typing import List

from arbwatch.exceptions import ValidationError

from .types import ArbitrageOpportunity, Snapshot

# Guards against floating-point noise when the threshold is zero
EPSILON = 1e-8

DEFAULT_TOP_N = 3

NO_OPPORTUNITIES_WARNING = "No arbitrage opportunities found."


@dataclass(frozen=True)
class DetectionResult:
    """
    Ranked detector output for one snapshot.

    Attributes:
        top: Best opportunities by raw spread, at most top_n entries
        warnings: Human-readable notes for the dashboard
        total_found: Number of qualifying pairs before the top_n cap
    """

    top: List[ArbitrageOpportunity] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    total_found: int = 0

    @property
    def best(self):
        return self.top[0] if self.top else None


def detect(
    snapshot: Snapshot, threshold_pct: float = 0.0, top_n: int = DEFAULT_TOP_N
) -> DetectionResult:
    """
    Find and rank profitable directed venue pairs in a snapshot.

    A pair qualifies when the sell price is strictly above the buy price and
    the spread exceeds ``max(EPSILON, threshold_pct)``. Pairs are sorted by
    spread descending; equal spreads keep first-encounter order (buy venue
    order, then sell venue order).

    Args:
        snapshot: Prices for this cycle; invalid observations are skipped
        threshold_pct: Minimum raw spread in percent
        top_n: Maximum number of opportunities returned

    Returns:
        DetectionResult with the capped ranking and any warnings

    Raises:
        ValidationError: If threshold_pct is negative/NaN or top_n < 1
    """
    if threshold_pct is None or math.isnan(threshold_pct) or threshold_pct < 0:
        raise ValidationError(f"threshold_pct must be >= 0: {threshold_pct}")
    if top_n < 1:
        raise ValidationError(f"top_n must be >= 1: {top_n}")

    valid = snapshot.valid_observations()
    min_pct = max(EPSILON, threshold_pct)

    opportunities: List[ArbitrageOpportunity] = []
    for buy in valid:
        for sell in valid:
            if buy.venue == sell.venue:
                continue
            buy_price = float(buy.price)
            sell_price = float(sell.price)
            profit_pct = (sell_price - buy_price) / buy_price * 100
            if sell_price > buy_price and profit_pct > min_pct:
                opportunities.append(
                    ArbitrageOpportunity(
                        buy_venue=buy.venue,
                        sell_venue=sell.venue,
                        buy_price=buy_price,
                        sell_price=sell_price,
                        profit_pct=profit_pct,
                    )
                )

    # list.sort is stable, also with reverse=True
    opportunities.sort(key=lambda o: o.profit_pct, reverse=True)
    top = opportunities[:top_n]

    warnings: List[str] = []
    if not top:
        warnings.append(NO_OPPORTUNITIES_WARNING)

    return DetectionResult(top=top, warnings=warnings, total_found=len(opportunities))
