"""
Venue price adapters.
"""

from typing import Dict, List, Optional

from arbwatch.retry import RetryPolicy

from .balancer import BALANCER_VAULT, BalancerWeightedAdapter
from .base import DEFAULT_BASE, DEFAULT_QUOTE, PriceAdapter, TokenInfo
from .chainlink import CHAINLINK_ETH_USD, ChainlinkAdapter
from .quote import (
    BANCOR_NETWORK_INFO,
    DODO_WETH_DAI_POOL,
    BancorV3Adapter,
    DodoV2Adapter,
    QuoteAdapter,
)
from .v2 import UniswapV2Adapter
from .v3 import UniswapV3Adapter

__all__ = [
    "PriceAdapter",
    "TokenInfo",
    "UniswapV2Adapter",
    "UniswapV3Adapter",
    "BalancerWeightedAdapter",
    "ChainlinkAdapter",
    "QuoteAdapter",
    "DodoV2Adapter",
    "BancorV3Adapter",
    "build_adapter",
    "build_adapters",
]


def _token(info: Optional[Dict], default: TokenInfo) -> TokenInfo:
    if not info:
        return default
    return TokenInfo.create(info["symbol"], info["address"], info["decimals"])


def build_adapter(
    venue: Dict, base: TokenInfo, quote: TokenInfo, retry_policy: RetryPolicy
) -> PriceAdapter:
    """Create one adapter from a parsed venue config."""
    name = venue["name"]
    kind = venue.get("kind", "v2")

    if kind == "v2":
        return UniswapV2Adapter(
            name,
            base,
            quote,
            pair_address=venue.get("address"),
            factory_address=venue.get("factory"),
            retry_policy=retry_policy,
        )
    if kind == "v3":
        return UniswapV3Adapter(
            name, base, quote, pool_address=venue["address"], retry_policy=retry_policy
        )
    if kind == "balancer":
        return BalancerWeightedAdapter(
            name,
            base,
            quote,
            pool_id=venue["pool_id"],
            vault_address=venue.get("vault") or BALANCER_VAULT,
            retry_policy=retry_policy,
        )
    if kind == "chainlink":
        decimals = venue.get("decimals")
        return ChainlinkAdapter(
            name,
            base,
            quote,
            feed_address=venue.get("address") or CHAINLINK_ETH_USD,
            feed_decimals=None if decimals is None else int(decimals),
            retry_policy=retry_policy,
        )
    if kind == "quote":
        protocol = venue.get("protocol")
        if protocol == "dodo":
            return DodoV2Adapter(
                name,
                base,
                quote,
                address=venue.get("address") or DODO_WETH_DAI_POOL,
                retry_policy=retry_policy,
            )
        if protocol == "bancor":
            # via: unset routes through BNT, false disables routing
            via = venue.get("via")
            extra = {} if via is None else {"via": via or None}
            return BancorV3Adapter(
                name,
                base,
                quote,
                address=venue.get("address") or BANCOR_NETWORK_INFO,
                retry_policy=retry_policy,
                **extra,
            )
        raise ValueError(f"Unknown quote protocol '{protocol}' for {name}")
    raise ValueError(f"Unknown venue kind '{kind}' for {name}")


def build_adapters(config, retry_policy: Optional[RetryPolicy] = None) -> List[PriceAdapter]:
    """
    Create adapters for every enabled venue in a DexSimConfig.

    Args:
        config: Validated DexSimConfig
        retry_policy: Shared policy; built from ``config.retry`` when omitted

    Returns:
        Adapters in config order
    """
    if retry_policy is None:
        retry_policy = RetryPolicy(
            max_attempts=config.retry["max_attempts"],
            backoff_sec=config.retry["backoff_sec"],
        )
    base = _token(config.pair.get("base"), DEFAULT_BASE)
    quote = _token(config.pair.get("quote"), DEFAULT_QUOTE)
    return [build_adapter(v, base, quote, retry_policy) for v in config.venues]
