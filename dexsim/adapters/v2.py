"""
Uniswap V2 style adapter for constant-product AMM pools.

Covers Uniswap V2 and its forks (SushiSwap, ShibaSwap, SakeSwap, LuaSwap).
The pair is either configured directly or resolved once through the fork's
factory ``getPair``.
"""

from decimal import Decimal
from typing import Optional

from web3 import Web3

from arbwatch.exceptions import DataError

from ..abi import UNISWAP_V2_FACTORY_ABI, UNISWAP_V2_PAIR_ABI
from .base import (
    DEFAULT_BASE,
    DEFAULT_QUOTE,
    ZERO_ADDRESS,
    PriceAdapter,
    TokenInfo,
    check_abi,
    require_pair_tokens,
)


def reserve_price(
    base_reserve: Decimal, quote_reserve: Decimal, base: TokenInfo, quote: TokenInfo
) -> Decimal:
    """
    Spot price of one base token in quote tokens from raw reserves.

    Raises:
        DataError: If either reserve is zero (no liquidity)
    """
    if base_reserve <= 0 or quote_reserve <= 0:
        raise DataError(
            f"Reserves are zero: base={base_reserve}, quote={quote_reserve}"
        )
    base_units = base_reserve / (Decimal(10) ** base.decimals)
    quote_units = quote_reserve / (Decimal(10) ** quote.decimals)
    return quote_units / base_units


class UniswapV2Adapter(PriceAdapter):
    kind = "v2"

    PAIR_METHODS = ("getReserves", "token0", "token1")

    def __init__(
        self,
        name: str,
        base: TokenInfo = DEFAULT_BASE,
        quote: TokenInfo = DEFAULT_QUOTE,
        pair_address: Optional[str] = None,
        factory_address: Optional[str] = None,
        retry_policy=None,
        pair_abi=UNISWAP_V2_PAIR_ABI,
    ):
        """
        Args:
            name: Venue name
            base: Base token (priced asset)
            quote: Quote token (pricing currency)
            pair_address: Pair contract; takes precedence over the factory
            factory_address: Factory used to look the pair up when no address is given
            retry_policy: Shared retry policy
            pair_abi: Pair ABI; checked for the required methods before each read
        """
        super().__init__(name, base, quote, retry_policy)
        if not pair_address and not factory_address:
            raise ValueError(f"{name}: either pair_address or factory_address is required")
        self.pair_address = Web3.to_checksum_address(pair_address) if pair_address else None
        self.factory_address = (
            Web3.to_checksum_address(factory_address) if factory_address else None
        )
        self.pair_abi = pair_abi

    def resolve_pair(self, web3: Web3) -> str:
        """Return the pair address, asking the factory the first time if needed."""
        if self.pair_address:
            return self.pair_address

        check_abi(UNISWAP_V2_FACTORY_ABI, ["getPair"], self.name)
        factory = web3.eth.contract(address=self.factory_address, abi=UNISWAP_V2_FACTORY_ABI)
        pair = factory.functions.getPair(self.base.address, self.quote.address).call()
        if not pair or str(pair).lower() == ZERO_ADDRESS:
            raise DataError(
                f"{self.pair_name} pair not initialized on {self.name}", source=self.name
            )
        self.pair_address = Web3.to_checksum_address(pair)
        return self.pair_address

    def read_price(self, web3: Web3) -> Decimal:
        pair_addr = self.resolve_pair(web3)
        check_abi(self.pair_abi, self.PAIR_METHODS, self.name)
        pair = web3.eth.contract(address=pair_addr, abi=self.pair_abi)

        token0 = pair.functions.token0().call()
        token1 = pair.functions.token1().call()
        reserves = pair.functions.getReserves().call()

        r0 = Decimal(reserves[0])
        r1 = Decimal(reserves[1])

        # Normalize reserves to (base, quote) orientation
        if require_pair_tokens(token0, token1, self.base, self.quote, self.name):
            return reserve_price(r0, r1, self.base, self.quote)
        return reserve_price(r1, r0, self.base, self.quote)
