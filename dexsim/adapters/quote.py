"""
Quote-style adapters that price by asking the venue what one base token sells for.

DODO V2 and Bancor V3 expose no reserves a spot price can be derived from;
both offer a view call returning the output of a hypothetical swap. The price
is the quote received for exactly one whole base token, so it is already net
of the venue's own trading fee.
"""

from decimal import Decimal
from typing import Optional

from web3 import Web3
from web3.exceptions import ContractLogicError

from arbwatch.exceptions import DataError
from arbwatch.utils import get_logger

from ..abi import BANCOR_NETWORK_INFO_ABI, DODO_V2_POOL_ABI
from .base import DEFAULT_BASE, DEFAULT_QUOTE, PriceAdapter, TokenInfo, check_abi

logger = get_logger(__name__)

DODO_WETH_DAI_POOL = "0x8f8ef111b67c04eb1641f5ff19ee54cda062f163"
BANCOR_NETWORK_INFO = "0xC6e7E708f46A23Ee9590b503F03BA3e2C67CaC13"
BNT_ADDRESS = "0x1F573D6Fb3F13d689FF844B4cE37794d79a7FF1C"


class QuoteAdapter(PriceAdapter):
    """Base for venues priced by a one-unit sell quote."""

    kind = "quote"
    protocol = ""

    def __init__(
        self,
        name: str,
        base: TokenInfo = DEFAULT_BASE,
        quote: TokenInfo = DEFAULT_QUOTE,
        address: str = "",
        retry_policy=None,
    ):
        super().__init__(name, base, quote, retry_policy)
        if not address:
            raise ValueError(f"{name}: address is required")
        self.address = Web3.to_checksum_address(address)

    @property
    def one_base_unit(self) -> int:
        return 10**self.base.decimals

    def quote_output(self, web3: Web3, amount_in: int) -> int:
        """Raw quote-token amount received for ``amount_in`` raw base units."""
        raise NotImplementedError

    def read_price(self, web3: Web3) -> Decimal:
        raw_out = int(self.quote_output(web3, self.one_base_unit))
        if raw_out <= 0:
            raise DataError(f"Venue quoted {raw_out} for one {self.base.symbol}", source=self.name)
        return self.quote.to_units(raw_out)

    def describe(self):
        info = super().describe()
        info["protocol"] = self.protocol
        return info


class DodoV2Adapter(QuoteAdapter):
    protocol = "dodo"

    def __init__(self, name: str, *args, pool_abi=DODO_V2_POOL_ABI, **kwargs):
        super().__init__(name, *args, **kwargs)
        self.pool_abi = pool_abi

    def quote_output(self, web3: Web3, amount_in: int) -> int:
        check_abi(self.pool_abi, ["querySellBase"], self.name)
        pool = web3.eth.contract(address=self.address, abi=self.pool_abi)
        receive_quote, _mt_fee = pool.functions.querySellBase(
            self.base.address, amount_in
        ).call()
        return int(receive_quote)


class BancorV3Adapter(QuoteAdapter):
    """
    Bancor V3 network-info quote.

    Tries base -> quote directly; when that reverts or returns nothing and a
    ``via`` token is set, routes base -> via -> quote (BNT by default).
    """

    protocol = "bancor"

    def __init__(
        self,
        name: str,
        *args,
        via: Optional[str] = BNT_ADDRESS,
        info_abi=BANCOR_NETWORK_INFO_ABI,
        **kwargs,
    ):
        super().__init__(name, *args, **kwargs)
        self.via = Web3.to_checksum_address(via) if via else None
        self.info_abi = info_abi

    def quote_output(self, web3: Web3, amount_in: int) -> int:
        check_abi(self.info_abi, ["tradeOutputBySourceAmount"], self.name)
        info = web3.eth.contract(address=self.address, abi=self.info_abi)

        def trade_output(source: str, target: str, amount: int) -> int:
            return int(
                info.functions.tradeOutputBySourceAmount(source, target, amount).call()
            )

        try:
            direct = trade_output(self.base.address, self.quote.address, amount_in)
        except ContractLogicError as e:
            if self.via is None:
                raise
            logger.debug(f"{self.name}: direct quote reverted ({e}), routing via {self.via}")
            direct = 0

        if direct > 0 or self.via is None:
            return direct

        to_via = trade_output(self.base.address, self.via, amount_in)
        if to_via <= 0:
            raise DataError(f"No {self.base.symbol} liquidity towards {self.via}", source=self.name)
        return trade_output(self.via, self.quote.address, to_via)
