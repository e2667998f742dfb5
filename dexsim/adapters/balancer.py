"""
Balancer V2 weighted-pool adapter.

Spot price of a weighted pool: (quote_balance / base_balance) * (base_weight / quote_weight).
Balances come from the Vault, weights from the pool contract. A Balancer
pool id starts with the pool's own address, so the pool contract is derived
from the id.
"""

from decimal import Decimal

from web3 import Web3

from arbwatch.exceptions import DataError

from ..abi import BALANCER_VAULT_ABI, BALANCER_WEIGHTED_POOL_ABI
from .base import DEFAULT_BASE, DEFAULT_QUOTE, PriceAdapter, TokenInfo, check_abi

BALANCER_VAULT = "0xBA12222222228d8Ba445958a75a0704d566BF2C8"

WEIGHT_SCALE = Decimal(10) ** 18


def pool_address_from_id(pool_id: str) -> str:
    """First 20 bytes of a Balancer pool id are the pool address."""
    hex_id = pool_id[2:] if pool_id.startswith("0x") else pool_id
    if len(hex_id) != 64:
        raise ValueError(f"Balancer pool id must be 32 bytes: {pool_id}")
    return Web3.to_checksum_address("0x" + hex_id[:40])


def _index_of(tokens, token: TokenInfo) -> int:
    for i, addr in enumerate(tokens):
        if token.matches(addr):
            return i
    return -1


class BalancerWeightedAdapter(PriceAdapter):
    kind = "balancer"

    def __init__(
        self,
        name: str,
        base: TokenInfo = DEFAULT_BASE,
        quote: TokenInfo = DEFAULT_QUOTE,
        pool_id: str = "",
        vault_address: str = BALANCER_VAULT,
        retry_policy=None,
    ):
        super().__init__(name, base, quote, retry_policy)
        if not pool_id:
            raise ValueError(f"{name}: pool_id is required")
        self.pool_id = pool_id if pool_id.startswith("0x") else "0x" + pool_id
        self.pool_address = pool_address_from_id(self.pool_id)
        self.vault_address = Web3.to_checksum_address(vault_address)

    def read_price(self, web3: Web3) -> Decimal:
        check_abi(BALANCER_VAULT_ABI, ["getPoolTokens"], self.name)
        check_abi(BALANCER_WEIGHTED_POOL_ABI, ["getNormalizedWeights"], self.name)

        vault = web3.eth.contract(address=self.vault_address, abi=BALANCER_VAULT_ABI)
        tokens, balances, _ = vault.functions.getPoolTokens(self.pool_id).call()

        pool = web3.eth.contract(address=self.pool_address, abi=BALANCER_WEIGHTED_POOL_ABI)
        weights = pool.functions.getNormalizedWeights().call()

        base_idx = _index_of(tokens, self.base)
        quote_idx = _index_of(tokens, self.quote)
        if base_idx == -1 or quote_idx == -1:
            raise DataError(
                f"Balancer pool does not contain {self.base.symbol} and {self.quote.symbol}",
                source=self.name,
            )

        base_balance = self.base.to_units(balances[base_idx])
        quote_balance = self.quote.to_units(balances[quote_idx])
        if base_balance == 0:
            raise DataError(
                f"Balancer {self.pair_name} pool has zero liquidity", source=self.name
            )

        base_weight = Decimal(int(weights[base_idx])) / WEIGHT_SCALE
        quote_weight = Decimal(int(weights[quote_idx])) / WEIGHT_SCALE
        if quote_weight == 0:
            raise DataError("Balancer quote weight is zero", source=self.name)

        return (quote_balance / base_balance) * (base_weight / quote_weight)
