"""
Gas cost estimation in quote-currency units.

cost(venue) = gas_units(venue) * effective_gas_price (ETH) * ETH price in quote

Effective gas price follows the EIP-1559 "max fee" estimate
(2 * baseFeePerGas + priority fee) and falls back to the legacy gas price on
chains without a base fee. The ETH price is taken from the latest snapshot of
the reference venues, so no extra oracle call is needed.
"""

import asyncio
import time
from typing import Callable, Dict, Iterable, Mapping, Optional

from arbwatch.utils import get_logger, is_usable_price

from .types import Snapshot

logger = get_logger(__name__)

# Typical swap gas usage per venue
DEFAULT_GAS_UNITS = {
    "Uniswap V2": 65_000,
    "Uniswap V3": 85_000,
    "SushiSwap": 65_000,
    "ShibaSwap": 65_000,
    "SakeSwap": 65_000,
    "LuaSwap": 65_000,
    "Curve": 95_000,
    # Reference feed standing in for the Curve price source
    "Chainlink": 95_000,
    "Balancer": 90_000,
    "Bancor": 120_000,
    "Kyber": 75_000,
}

DEFAULT_GAS_UNITS_FALLBACK = 150_000
DEFAULT_ETH_PRICE = 2500.0
DEFAULT_REFERENCE_VENUES = ("Uniswap V2", "Uniswap V3")

WEI_PER_ETH = 10**18
WEI_PER_GWEI = 10**9


def web3_fee_source(web3) -> Callable[[], int]:
    """
    Build a blocking callable returning the effective gas price in wei.

    Mirrors the usual "max fee per gas" estimate: twice the latest base fee
    plus the node's suggested priority fee, or ``eth.gas_price`` when the
    latest block has no base fee.
    """

    def fetch() -> int:
        block = web3.eth.get_block("latest")
        base_fee = block.get("baseFeePerGas") if hasattr(block, "get") else None
        if base_fee:
            return int(2 * base_fee + web3.eth.max_priority_fee)
        return int(web3.eth.gas_price)

    return fetch


class GasModel:
    """
    Venue -> gas cost in quote units, with live data and layered fallbacks.

    Gas-price lookup order: live value (cached for ``price_ttl_sec``), last
    known live value, configured ``fallback_gas_price_gwei``. When all three
    are missing the cost is unknown (None) and the caller must exclude the
    candidate.
    """

    def __init__(
        self,
        fee_source: Optional[Callable[[], int]] = None,
        gas_units: Optional[Mapping[str, int]] = None,
        default_gas_units: int = DEFAULT_GAS_UNITS_FALLBACK,
        fallback_eth_price: float = DEFAULT_ETH_PRICE,
        fallback_gas_price_gwei: Optional[float] = None,
        reference_venues: Iterable[str] = DEFAULT_REFERENCE_VENUES,
        price_ttl_sec: float = 12.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            fee_source: Blocking callable returning gas price in wei (None = offline)
            gas_units: Per-venue gas usage overrides merged over the defaults
            default_gas_units: Gas usage for venues missing from the table
            fallback_eth_price: ETH price in quote units when no reference venue reports
            fallback_gas_price_gwei: Gas price used when no live value was ever seen
            reference_venues: Venues whose price is the ETH price, in priority order
            price_ttl_sec: How long a live gas price is reused
            clock: Monotonic clock (injectable for tests)
        """
        self.fee_source = fee_source
        self.gas_units_table: Dict[str, int] = dict(DEFAULT_GAS_UNITS)
        self.gas_units_table.update(gas_units or {})
        self.default_gas_units = int(default_gas_units)
        self.fallback_eth_price = float(fallback_eth_price)
        self.fallback_gas_price_gwei = fallback_gas_price_gwei
        self.reference_venues = tuple(reference_venues)
        self.price_ttl_sec = price_ttl_sec
        self._clock = clock

        self.eth_price_in_quote = self.fallback_eth_price
        self._last_gas_price_wei: Optional[int] = None
        self._last_fetch_at: Optional[float] = None
        self._lock = asyncio.Lock()

    def gas_units(self, venue: str) -> int:
        """Total function: every venue resolves to a gas estimate."""
        return self.gas_units_table.get(venue, self.default_gas_units)

    def update_reference_price(self, snapshot: Snapshot) -> float:
        """
        Refresh the ETH price from the first reporting reference venue.

        Keeps the previous value when none of them reported this cycle.
        """
        prices = snapshot.prices()
        for venue in self.reference_venues:
            price = prices.get(venue)
            if is_usable_price(price):
                self.eth_price_in_quote = float(price)
                break
        return self.eth_price_in_quote

    async def gas_price_wei(self) -> Optional[int]:
        """Current gas price in wei following the fallback chain."""
        async with self._lock:
            now = self._clock()
            fresh = (
                self._last_fetch_at is not None
                and now - self._last_fetch_at < self.price_ttl_sec
            )
            if fresh and self._last_gas_price_wei is not None:
                return self._last_gas_price_wei

            if self.fee_source is not None:
                try:
                    loop = asyncio.get_running_loop()
                    wei = await loop.run_in_executor(None, self.fee_source)
                    if wei and wei > 0:
                        self._last_gas_price_wei = int(wei)
                        self._last_fetch_at = now
                        return self._last_gas_price_wei
                    logger.warning(f"Gas price source returned {wei!r}, ignoring")
                except Exception as e:
                    logger.warning(f"Gas price lookup failed: {e}")

            if self._last_gas_price_wei is not None:
                logger.debug("Using last known gas price")
                return self._last_gas_price_wei

            if self.fallback_gas_price_gwei is not None:
                return int(float(self.fallback_gas_price_gwei) * WEI_PER_GWEI)

            return None

    async def cost_in_quote(self, venue: str) -> Optional[float]:
        """
        Gas cost of one swap on ``venue`` in quote-currency units.

        Returns:
            Cost, or None if no gas price is available at all
        """
        wei = await self.gas_price_wei()
        if wei is None:
            return None
        gas_eth = self.gas_units(venue) * wei / WEI_PER_ETH
        return gas_eth * self.eth_price_in_quote
