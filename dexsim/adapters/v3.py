"""
Uniswap V3 adapter reading the pool's current sqrt price.

Spot price comes from ``slot0.sqrtPriceX96``: token1 per token0 in raw units
is ``sqrtPriceX96 ** 2 / 2 ** 192``, then adjusted for decimals and oriented
as quote per base.
"""

from decimal import Decimal

from web3 import Web3

from arbwatch.exceptions import DataError

from ..abi import UNISWAP_V3_POOL_ABI
from .base import (
    DEFAULT_BASE,
    DEFAULT_QUOTE,
    PriceAdapter,
    TokenInfo,
    check_abi,
    require_pair_tokens,
)

Q192 = Decimal(2) ** 192


def sqrt_price_to_price(
    sqrt_price_x96: int, base_is_token0: bool, base: TokenInfo, quote: TokenInfo
) -> Decimal:
    """Convert ``sqrtPriceX96`` to quote-per-base in whole-token units."""
    if sqrt_price_x96 <= 0:
        raise DataError(f"Invalid sqrtPriceX96: {sqrt_price_x96}")
    sqrt_price = Decimal(int(sqrt_price_x96))
    raw_token1_per_token0 = sqrt_price * sqrt_price / Q192

    if base_is_token0:
        # token1 is quote
        return raw_token1_per_token0 * (Decimal(10) ** (base.decimals - quote.decimals))
    # token0 is quote, token1 is base
    quote_in_base = raw_token1_per_token0 * (
        Decimal(10) ** (quote.decimals - base.decimals)
    )
    return Decimal(1) / quote_in_base


class UniswapV3Adapter(PriceAdapter):
    kind = "v3"

    POOL_METHODS = ("slot0", "liquidity", "token0", "token1", "fee")

    def __init__(
        self,
        name: str,
        base: TokenInfo = DEFAULT_BASE,
        quote: TokenInfo = DEFAULT_QUOTE,
        pool_address: str = "",
        retry_policy=None,
        pool_abi=UNISWAP_V3_POOL_ABI,
    ):
        super().__init__(name, base, quote, retry_policy)
        if not pool_address:
            raise ValueError(f"{name}: pool_address is required")
        self.pool_address = Web3.to_checksum_address(pool_address)
        self.pool_abi = pool_abi
        self.fee_tier = None

    def read_price(self, web3: Web3) -> Decimal:
        check_abi(self.pool_abi, self.POOL_METHODS, self.name)
        pool = web3.eth.contract(address=self.pool_address, abi=self.pool_abi)

        slot0 = pool.functions.slot0().call()
        liquidity = pool.functions.liquidity().call()
        token0 = pool.functions.token0().call()
        token1 = pool.functions.token1().call()

        base_is_token0 = require_pair_tokens(token0, token1, self.base, self.quote, self.name)
        if int(liquidity) == 0:
            raise DataError("Pool has zero liquidity", source=self.name)

        if self.fee_tier is None:
            self.fee_tier = int(pool.functions.fee().call())

        return sqrt_price_to_price(int(slot0[0]), base_is_token0, self.base, self.quote)

    def describe(self):
        info = super().describe()
        info["fee_tier"] = self.fee_tier
        return info
