"""
Fee- and gas-adjusted trade selection.

The detector ranks by raw spread. This module re-prices its top candidates
with per-venue fees, subtracts both gas legs, sizes the trade against the
available capital and keeps the single best net-profitable one. Fees and gas
can reorder the raw ranking.
"""

import asyncio
import math
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Mapping, Optional, Sequence

from arbwatch.exceptions import ValidationError
from arbwatch.utils import get_logger

from .fees import FeeSchedule
from .types import ArbitrageOpportunity

logger = get_logger(__name__)

# Fraction of the affordable size actually traded, leaving room for slippage
DEFAULT_HAIRCUT = 0.9

REJECT_NO_CANDIDATES = "no_candidates"
REJECT_UNPROFITABLE = "unprofitable"
REJECT_INSUFFICIENT_CAPITAL = "insufficient_capital"


@dataclass(frozen=True)
class TradeCandidate:
    """
    Full cost breakdown of one opportunity at a given capital.

    All money amounts are in quote-currency units. ``buy_price`` and
    ``sell_price`` are the raw prices the trade was priced at, which may be
    fresher than the opportunity's own.
    """

    opportunity: ArbitrageOpportunity
    buy_price: float
    sell_price: float
    buy_fee: float
    sell_fee: float
    buy_price_with_fee: float
    sell_price_with_fee: float
    price_diff_per_unit: float
    gas_cost: float
    units_traded: float
    capital_needed: float
    gross_profit: float
    net_profit: float

    @property
    def buy_venue(self) -> str:
        return self.opportunity.buy_venue

    @property
    def sell_venue(self) -> str:
        return self.opportunity.sell_venue


@dataclass(frozen=True)
class Selection:
    """
    Selector outcome for one cycle.

    Attributes:
        best: The trade to execute, or None
        candidates: Every evaluated candidate, in detector order
        skipped: Notes for opportunities that could not be evaluated
        rejection: Reason code when a best candidate existed but was refused
    """

    best: Optional[TradeCandidate] = None
    candidates: List[TradeCandidate] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    rejection: Optional[str] = None

    @property
    def top_candidate(self) -> Optional[TradeCandidate]:
        """Highest net-profit candidate, whether accepted or not."""
        if not self.candidates:
            return None
        return _max_net(self.candidates)


def _max_net(candidates: Sequence[TradeCandidate]) -> TradeCandidate:
    best = candidates[0]
    for cand in candidates[1:]:
        # strict comparison: first candidate wins ties
        if cand.net_profit > best.net_profit:
            best = cand
    return best


def evaluate_candidate(
    opportunity: ArbitrageOpportunity,
    buy_price: float,
    sell_price: float,
    buy_fee: float,
    sell_fee: float,
    gas_cost: float,
    available_capital: float,
    haircut: float = DEFAULT_HAIRCUT,
) -> TradeCandidate:
    """Price one opportunity; no acceptance decision is made here."""
    buy_price_with_fee = buy_price * (1 + buy_fee)
    sell_price_with_fee = sell_price * (1 - sell_fee)
    price_diff_per_unit = sell_price_with_fee - buy_price_with_fee

    # capital_needed <= available_capital for any haircut in (0, 1]
    capital_needed = available_capital * haircut
    units_traded = capital_needed / buy_price_with_fee
    gross_profit = units_traded * price_diff_per_unit
    net_profit = gross_profit - gas_cost

    return TradeCandidate(
        opportunity=opportunity,
        buy_price=buy_price,
        sell_price=sell_price,
        buy_fee=buy_fee,
        sell_fee=sell_fee,
        buy_price_with_fee=buy_price_with_fee,
        sell_price_with_fee=sell_price_with_fee,
        price_diff_per_unit=price_diff_per_unit,
        gas_cost=gas_cost,
        units_traded=units_traded,
        capital_needed=capital_needed,
        gross_profit=gross_profit,
        net_profit=net_profit,
    )


def select_best(
    opportunities: Sequence[ArbitrageOpportunity],
    price_by_venue: Optional[Mapping[str, float]],
    fee_schedule: FeeSchedule,
    gas_lookup: Callable[[str], Optional[float]],
    available_capital: float,
    haircut: float = DEFAULT_HAIRCUT,
) -> Selection:
    """
    Pick the single best net-profitable trade among ranked opportunities.

    Args:
        opportunities: Detector output (top-N), best raw spread first
        price_by_venue: Snapshot prices; used in preference to the
            opportunity's own prices when a venue is present
        fee_schedule: Venue -> proportional fee
        gas_lookup: Venue -> gas cost in quote units, None if unknown
        available_capital: Quote units that may be committed
        haircut: Fraction of the maximum affordable size to trade, in (0, 1]

    Returns:
        Selection whose ``best`` is None when nothing is evaluable, the best
        net profit is <= 0, or it needs more capital than available
    """
    if not 0 < haircut <= 1:
        raise ValidationError(f"haircut must be in (0, 1]: {haircut}")
    if available_capital is None or math.isnan(available_capital) or available_capital < 0:
        raise ValidationError(f"available_capital must be >= 0: {available_capital}")

    prices = price_by_venue or {}
    candidates: List[TradeCandidate] = []
    skipped: List[str] = []

    for opp in opportunities:
        buy_gas = gas_lookup(opp.buy_venue)
        sell_gas = gas_lookup(opp.sell_venue)
        if buy_gas is None or sell_gas is None:
            skipped.append(
                f"Gas cost unknown for {opp.buy_venue} -> {opp.sell_venue}, skipped"
            )
            continue

        candidates.append(
            evaluate_candidate(
                opp,
                buy_price=prices.get(opp.buy_venue, opp.buy_price),
                sell_price=prices.get(opp.sell_venue, opp.sell_price),
                buy_fee=fee_schedule.fee_for(opp.buy_venue),
                sell_fee=fee_schedule.fee_for(opp.sell_venue),
                gas_cost=buy_gas + sell_gas,
                available_capital=available_capital,
                haircut=haircut,
            )
        )

    if not candidates:
        return Selection(skipped=skipped, rejection=REJECT_NO_CANDIDATES)

    best = _max_net(candidates)

    if best.net_profit <= 0:
        return Selection(
            candidates=candidates, skipped=skipped, rejection=REJECT_UNPROFITABLE
        )
    if best.capital_needed > available_capital:
        return Selection(
            candidates=candidates,
            skipped=skipped,
            rejection=REJECT_INSUFFICIENT_CAPITAL,
        )

    return Selection(best=best, candidates=candidates, skipped=skipped)


async def resolve_gas_costs(
    opportunities: Sequence[ArbitrageOpportunity], gas_model
) -> Dict[str, Optional[float]]:
    """
    Look up gas cost once per distinct venue among the candidates.

    Lookups run concurrently; a failing lookup yields None for that venue
    instead of aborting the cycle.
    """
    venues: List[str] = []
    for opp in opportunities:
        for venue in (opp.buy_venue, opp.sell_venue):
            if venue not in venues:
                venues.append(venue)

    results = await asyncio.gather(
        *[gas_model.cost_in_quote(venue) for venue in venues],
        return_exceptions=True,
    )

    costs: Dict[str, Optional[float]] = {}
    for venue, result in zip(venues, results):
        if isinstance(result, Exception):
            logger.warning(f"Gas lookup for {venue} failed: {result}")
            costs[venue] = None
        else:
            costs[venue] = result
    return costs
