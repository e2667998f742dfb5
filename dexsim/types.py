"""
Core data types for DEX spread scanning.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional, Tuple

from arbwatch.exceptions import ValidationError
from arbwatch.utils import get_current_timestamp, is_usable_price


@dataclass(frozen=True)
class PriceObservation:
    """
    One venue's price report for a single evaluation cycle.

    Attributes:
        venue: Venue name (e.g., "Uniswap V2")
        price: Quote units per base unit, or None if the venue did not report
    """

    venue: str
    price: Optional[float]

    @property
    def is_valid(self) -> bool:
        """False for absent, NaN, infinite or non-positive prices."""
        return is_usable_price(self.price)


@dataclass(frozen=True)
class Snapshot:
    """
    Immutable set of price observations collected in one evaluation cycle.

    Attributes:
        observations: One observation per known venue, in configured order
        taken_at: Unix timestamp at which collection finished
        block_number: Chain block the prices were read at, if known
    """

    observations: Tuple[PriceObservation, ...]
    taken_at: float = field(default_factory=get_current_timestamp)
    block_number: Optional[int] = None

    def __post_init__(self):
        # Accept any iterable but store a tuple so the snapshot stays immutable
        object.__setattr__(self, "observations", tuple(self.observations))
        seen = set()
        for obs in self.observations:
            if obs.venue in seen:
                raise ValidationError(
                    f"Duplicate venue in snapshot: {obs.venue}",
                    {"venue": obs.venue},
                )
            seen.add(obs.venue)

    @classmethod
    def from_prices(
        cls,
        prices: Dict[str, Optional[float]],
        taken_at: Optional[float] = None,
        block_number: Optional[int] = None,
    ) -> "Snapshot":
        """Build a snapshot from an ordered venue -> price mapping."""
        observations = [PriceObservation(venue, price) for venue, price in prices.items()]
        if taken_at is None:
            return cls(tuple(observations), block_number=block_number)
        return cls(tuple(observations), taken_at=taken_at, block_number=block_number)

    def valid_observations(self) -> Tuple[PriceObservation, ...]:
        return tuple(obs for obs in self.observations if obs.is_valid)

    def failed_venues(self) -> Tuple[str, ...]:
        return tuple(obs.venue for obs in self.observations if not obs.is_valid)

    def prices(self) -> Dict[str, float]:
        """Venue -> price for valid observations, in snapshot order."""
        return {obs.venue: float(obs.price) for obs in self.valid_observations()}

    def venues(self) -> Iterable[str]:
        return (obs.venue for obs in self.observations)


@dataclass(frozen=True)
class ArbitrageOpportunity:
    """
    A directed buy-low / sell-high venue pair with a positive raw spread.

    Attributes:
        buy_venue: Venue to buy base at
        sell_venue: Venue to sell base at
        buy_price: Price at the buy venue
        sell_price: Price at the sell venue
        profit_pct: (sell - buy) / buy * 100, before fees and gas
    """

    buy_venue: str
    sell_venue: str
    buy_price: float
    sell_price: float
    profit_pct: float

    def to_dict(self) -> Dict[str, object]:
        return {
            "buy": self.buy_venue,
            "sell": self.sell_venue,
            "buy_price": self.buy_price,
            "sell_price": self.sell_price,
            "profit": self.profit_pct,
        }


@dataclass(frozen=True)
class TradeRecord:
    """
    One executed simulated trade, as appended to the ledger history.

    Attributes:
        timestamp: Unix time the trade was applied
        buy_venue: Venue bought at
        buy_price: Raw buy price (before fee)
        sell_venue: Venue sold at
        sell_price: Raw sell price (before fee)
        spread_pct: Raw spread percentage reported by the detector
        gas_cost: Total gas cost of both legs in quote units
        net_profit: Gross profit minus gas in quote units
        balance_after: Ledger balance after applying net_profit
        units_traded: Base units bought and sold
        buy_fee: Proportional fee applied to the buy leg
        sell_fee: Proportional fee applied to the sell leg
    """

    timestamp: float
    buy_venue: str
    buy_price: float
    sell_venue: str
    sell_price: float
    spread_pct: float
    gas_cost: float
    net_profit: float
    balance_after: float
    units_traded: float
    buy_fee: float
    sell_fee: float


@dataclass(frozen=True)
class SimulationSummary:
    """Final figures emitted when a simulation run is finalized."""

    duration_sec: float
    starting_balance: float
    final_balance: float
    total_return_pct: float
    trade_count: int
    gross_profit: float
    total_gas: float
    net_profit: float

    def to_dict(self) -> Dict[str, float]:
        return {
            "duration_sec": self.duration_sec,
            "starting_balance": self.starting_balance,
            "final_balance": self.final_balance,
            "total_return_pct": self.total_return_pct,
            "trade_count": self.trade_count,
            "gross_profit": self.gross_profit,
            "total_gas": self.total_gas,
            "net_profit": self.net_profit,
        }
