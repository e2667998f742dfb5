"""
Common adapter plumbing: token metadata, ABI checks and the fetch boundary.

Every venue adapter implements one blocking ``read_price(web3)`` that may
raise. ``PriceAdapter.fetch`` runs it through the shared retry policy off the
event loop and turns every failure into ``None``, so the engine never sees a
venue exception.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Iterable, Optional

from web3 import Web3

from arbwatch.exceptions import AbiMismatchError, DataError
from arbwatch.retry import RetryPolicy
from arbwatch.utils import get_logger, is_usable_price

logger = get_logger(__name__)

WETH_ADDRESS = "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2"
DAI_ADDRESS = "0x6B175474E89094C44Da98b954EedeAC495271d0F"
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


@dataclass(frozen=True)
class TokenInfo:
    """
    Token metadata for one side of the traded pair.

    Attributes:
        symbol: Display symbol (e.g., "WETH")
        address: Checksum address
        decimals: ERC-20 decimals
    """

    symbol: str
    address: str
    decimals: int

    @classmethod
    def create(cls, symbol: str, address: str, decimals: int) -> "TokenInfo":
        return cls(symbol, Web3.to_checksum_address(address), int(decimals))

    def matches(self, address: str) -> bool:
        return str(address).lower() == self.address.lower()

    def to_units(self, raw: Any) -> Decimal:
        """Convert a raw integer amount to whole-token units."""
        return Decimal(int(raw)) / (Decimal(10) ** self.decimals)


DEFAULT_BASE = TokenInfo(symbol="WETH", address=WETH_ADDRESS, decimals=18)
DEFAULT_QUOTE = TokenInfo(symbol="DAI", address=DAI_ADDRESS, decimals=18)


def check_abi(abi: Iterable[Dict[str, Any]], methods: Iterable[str], source: str) -> None:
    """
    Verify that an ABI declares every function an adapter is about to call.

    Raises:
        AbiMismatchError: On the first missing method
    """
    declared = {
        entry.get("name") for entry in abi if entry.get("type", "function") == "function"
    }
    for method in methods:
        if method not in declared:
            raise AbiMismatchError(
                f"ABI mismatch: {method}", source=source, method=method
            )


def require_pair_tokens(
    token_a: str, token_b: str, base: TokenInfo, quote: TokenInfo, source: str
) -> bool:
    """
    Check that two pool tokens are exactly base and quote.

    Returns:
        True if ``token_a`` is the base token, False if it is the quote token

    Raises:
        DataError: If the pool holds anything else
    """
    if base.matches(token_a) and quote.matches(token_b):
        return True
    if quote.matches(token_a) and base.matches(token_b):
        return False
    raise DataError(
        f"Pool tokens ({token_a}, {token_b}) do not match "
        f"{base.symbol}/{quote.symbol}",
        source=source,
    )


class PriceAdapter(ABC):
    """
    One venue's price source for a fixed base/quote pair.

    Subclasses set ``kind`` and implement ``read_price``.
    """

    kind = "base"

    def __init__(
        self,
        name: str,
        base: TokenInfo = DEFAULT_BASE,
        quote: TokenInfo = DEFAULT_QUOTE,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        self.name = name
        self.base = base
        self.quote = quote
        self.retry_policy = retry_policy or RetryPolicy()
        self.last_error: Optional[str] = None

    @abstractmethod
    def read_price(self, web3: Web3) -> Decimal:
        """
        Read the current price (quote per base) with blocking RPC calls.

        Raises:
            Any exception; fetch() decides whether to retry
        """

    async def fetch(self, web3: Web3) -> Optional[float]:
        """
        Fetch the venue price, never raising.

        Returns:
            Price as float, or None if the venue could not report this cycle
        """
        try:
            price = await self.retry_policy.run(self.read_price, web3, label=self.name)
        except Exception as e:
            self.last_error = str(e)
            logger.warning(f"{self.name}: price unavailable ({e})")
            return None

        if not is_usable_price(price):
            self.last_error = f"unusable price {price!r}"
            logger.warning(f"{self.name}: unusable price {price!r}")
            return None

        self.last_error = None
        return float(price)

    def describe(self) -> Dict[str, Any]:
        return {"name": self.name, "kind": self.kind, "pair": self.pair_name}

    @property
    def pair_name(self) -> str:
        return f"{self.base.symbol}/{self.quote.symbol}"

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, pair={self.pair_name})"
