"""
Chainlink aggregator adapter.

Reports an ETH/USD feed as a DAI-denominated reference venue; DAI is treated
as pegged to USD.
"""

from decimal import Decimal
from typing import Optional

from web3 import Web3

from arbwatch.exceptions import DataError

from ..abi import CHAINLINK_AGGREGATOR_ABI
from .base import DEFAULT_BASE, DEFAULT_QUOTE, PriceAdapter, TokenInfo, check_abi

CHAINLINK_ETH_USD = "0x5f4eC3Df9cbd43714FE2740f5E3616155c5b8419"


class ChainlinkAdapter(PriceAdapter):
    kind = "chainlink"

    def __init__(
        self,
        name: str,
        base: TokenInfo = DEFAULT_BASE,
        quote: TokenInfo = DEFAULT_QUOTE,
        feed_address: str = CHAINLINK_ETH_USD,
        feed_decimals: Optional[int] = 8,
        retry_policy=None,
    ):
        """
        Args:
            feed_decimals: Answer decimals; None reads ``decimals()`` from the feed once
        """
        super().__init__(name, base, quote, retry_policy)
        self.feed_address = Web3.to_checksum_address(feed_address)
        self.feed_decimals = feed_decimals

    def read_price(self, web3: Web3) -> Decimal:
        check_abi(CHAINLINK_AGGREGATOR_ABI, ["latestRoundData", "decimals"], self.name)
        feed = web3.eth.contract(address=self.feed_address, abi=CHAINLINK_AGGREGATOR_ABI)

        if self.feed_decimals is None:
            self.feed_decimals = int(feed.functions.decimals().call())

        _, answer, _, _, _ = feed.functions.latestRoundData().call()
        if int(answer) <= 0:
            raise DataError(f"Invalid Chainlink answer: {answer}", source=self.name)
        return Decimal(int(answer)) / (Decimal(10) ** self.feed_decimals)
