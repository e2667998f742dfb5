"""
Unit tests for dexsim/adapters

Web3 is replaced by a MagicMock whose ``eth.contract`` returns per-address
contract mocks, so every adapter is exercised without a node.
"""

from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from web3 import Web3
from web3.exceptions import ContractLogicError

from arbwatch.exceptions import AbiMismatchError, DataError
from arbwatch.retry import RetryPolicy
from dexsim.abi import BANCOR_NETWORK_INFO_ABI, UNISWAP_V3_POOL_ABI
from dexsim.adapters import (
    BalancerWeightedAdapter,
    BancorV3Adapter,
    ChainlinkAdapter,
    DodoV2Adapter,
    UniswapV2Adapter,
    UniswapV3Adapter,
    build_adapters,
)
from dexsim.adapters.balancer import pool_address_from_id
from dexsim.adapters.base import (
    DAI_ADDRESS,
    DEFAULT_BASE,
    DEFAULT_QUOTE,
    WETH_ADDRESS,
    ZERO_ADDRESS,
    TokenInfo,
    check_abi,
    require_pair_tokens,
)
from dexsim.adapters.quote import BNT_ADDRESS
from dexsim.adapters.v2 import reserve_price
from dexsim.adapters.v3 import sqrt_price_to_price
from dexsim.config import DexSimConfig

PAIR = "0xA478c2975Ab1Ea89e8196811F51A7B7Ade33eB11"
FACTORY = "0x5C69bEe701ef814a2B6a3EDD4B1652CB9cc5aA6f"
POOL_V3 = "0xC2e9F25Be6257c210d7Adf0D4Cd6E3E881ba25f8"
POOL_ID = "0x0b09dea16768f0799065c475be02919503cb2a3500020000000000000000001a"
FEED = "0x5f4eC3Df9cbd43714FE2740f5E3616155c5b8419"
DODO_POOL = "0x8f8ef111b67c04eb1641f5ff19ee54cda062f163"
BANCOR_INFO = "0xC6e7E708f46A23Ee9590b503F03BA3e2C67CaC13"

E18 = 10**18
NO_WAIT = RetryPolicy(max_attempts=3, backoff_sec=0)


def contract_mock(**returns):
    """Contract mock whose ``functions.<name>().call()`` returns the given values."""
    contract = MagicMock()
    for name, value in returns.items():
        call = getattr(contract.functions, name).return_value.call
        if isinstance(value, Exception) or (
            isinstance(value, list) and value and isinstance(value[0], Exception)
        ):
            call.side_effect = value
        else:
            call.return_value = value
    return contract


def web3_with(contracts):
    web3 = MagicMock()
    by_addr = {Web3.to_checksum_address(k): v for k, v in contracts.items()}
    web3.eth.contract.side_effect = lambda address, abi: by_addr[address]
    return web3


class TestHelpers:
    def test_reserve_price_normalises_decimals(self):
        usdc = TokenInfo("USDC", DAI_ADDRESS, 6)
        price = reserve_price(Decimal(10 * E18), Decimal(20_000 * 10**6), DEFAULT_BASE, usdc)
        assert price == Decimal(2000)

    def test_reserve_price_zero(self):
        with pytest.raises(DataError):
            reserve_price(Decimal(0), Decimal(1), DEFAULT_BASE, DEFAULT_QUOTE)

    def test_sqrt_price_both_orientations(self):
        # token0 = DAI, token1 = WETH: raw price is WETH per DAI
        sqrt_x96 = int((Decimal(1) / Decimal(2000)).sqrt() * Decimal(2**96))
        price = sqrt_price_to_price(sqrt_x96, False, DEFAULT_BASE, DEFAULT_QUOTE)
        assert float(price) == pytest.approx(2000.0, rel=1e-9)

        sqrt_x96 = int(Decimal(2000).sqrt() * Decimal(2**96))
        price = sqrt_price_to_price(sqrt_x96, True, DEFAULT_BASE, DEFAULT_QUOTE)
        assert float(price) == pytest.approx(2000.0, rel=1e-9)

    def test_check_abi(self):
        check_abi(UNISWAP_V3_POOL_ABI, ["slot0", "liquidity"], "v3")
        with pytest.raises(AbiMismatchError) as exc_info:
            check_abi(UNISWAP_V3_POOL_ABI, ["getReserves"], "v3")
        assert exc_info.value.method == "getReserves"

    def test_require_pair_tokens(self):
        assert require_pair_tokens(WETH_ADDRESS, DAI_ADDRESS, DEFAULT_BASE, DEFAULT_QUOTE, "x")
        assert not require_pair_tokens(
            DAI_ADDRESS.lower(), WETH_ADDRESS, DEFAULT_BASE, DEFAULT_QUOTE, "x"
        )
        with pytest.raises(DataError):
            require_pair_tokens(WETH_ADDRESS, ZERO_ADDRESS, DEFAULT_BASE, DEFAULT_QUOTE, "x")

    def test_pool_address_from_id(self):
        assert pool_address_from_id(POOL_ID).lower() == POOL_ID[:42].lower()
        with pytest.raises(ValueError):
            pool_address_from_id("0x1234")


class TestUniswapV2Adapter:
    @pytest.mark.asyncio
    async def test_price_from_reserves(self):
        pair = contract_mock(
            token0=DAI_ADDRESS,
            token1=WETH_ADDRESS,
            getReserves=[2_000_000 * E18, 1_000 * E18, 0],
        )
        adapter = UniswapV2Adapter("Uniswap V2", pair_address=PAIR, retry_policy=NO_WAIT)

        price = await adapter.fetch(web3_with({PAIR: pair}))

        assert price == pytest.approx(2000.0)
        assert adapter.last_error is None

    @pytest.mark.asyncio
    async def test_pair_resolved_through_factory_once(self):
        factory = contract_mock(getPair=PAIR)
        pair = contract_mock(
            token0=WETH_ADDRESS, token1=DAI_ADDRESS, getReserves=[E18, 1_900 * E18, 0]
        )
        web3 = web3_with({FACTORY: factory, PAIR: pair})
        adapter = UniswapV2Adapter("SushiSwap", factory_address=FACTORY, retry_policy=NO_WAIT)

        assert await adapter.fetch(web3) == pytest.approx(1900.0)
        assert await adapter.fetch(web3) == pytest.approx(1900.0)
        assert factory.functions.getPair.call_count == 1
        assert adapter.pair_address == Web3.to_checksum_address(PAIR)

    @pytest.mark.asyncio
    async def test_missing_pair_reports_none(self):
        factory = contract_mock(getPair=ZERO_ADDRESS)
        adapter = UniswapV2Adapter("SakeSwap", factory_address=FACTORY, retry_policy=NO_WAIT)

        assert await adapter.fetch(web3_with({FACTORY: factory})) is None
        assert "not initialized" in adapter.last_error

    @pytest.mark.asyncio
    async def test_wrong_tokens_report_none(self):
        pair = contract_mock(token0=WETH_ADDRESS, token1=FEED, getReserves=[E18, E18, 0])
        adapter = UniswapV2Adapter("Uniswap V2", pair_address=PAIR, retry_policy=NO_WAIT)
        assert await adapter.fetch(web3_with({PAIR: pair})) is None

    @pytest.mark.asyncio
    async def test_call_exception_retried(self):
        pair = contract_mock(
            token0=[ContractLogicError("reverted"), ContractLogicError("reverted"), DAI_ADDRESS],
            token1=WETH_ADDRESS,
            getReserves=[2_000 * E18, E18, 0],
        )
        adapter = UniswapV2Adapter("Uniswap V2", pair_address=PAIR, retry_policy=NO_WAIT)

        assert await adapter.fetch(web3_with({PAIR: pair})) == pytest.approx(2000.0)
        assert pair.functions.token0.return_value.call.call_count == 3

    def test_requires_an_address(self):
        with pytest.raises(ValueError):
            UniswapV2Adapter("Nowhere")


class TestUniswapV3Adapter:
    @pytest.mark.asyncio
    async def test_price_from_slot0(self):
        sqrt_x96 = int((Decimal(1) / Decimal(2500)).sqrt() * Decimal(2**96))
        pool = contract_mock(
            slot0=[sqrt_x96, 0, 0, 0, 0, 0, True],
            liquidity=10**24,
            token0=DAI_ADDRESS,
            token1=WETH_ADDRESS,
            fee=3000,
        )
        adapter = UniswapV3Adapter("Uniswap V3", pool_address=POOL_V3, retry_policy=NO_WAIT)

        price = await adapter.fetch(web3_with({POOL_V3: pool}))

        assert price == pytest.approx(2500.0, rel=1e-9)
        assert adapter.describe()["fee_tier"] == 3000

    @pytest.mark.asyncio
    async def test_zero_liquidity(self):
        pool = contract_mock(
            slot0=[2**96, 0, 0, 0, 0, 0, True],
            liquidity=0,
            token0=DAI_ADDRESS,
            token1=WETH_ADDRESS,
            fee=500,
        )
        adapter = UniswapV3Adapter("Uniswap V3", pool_address=POOL_V3, retry_policy=NO_WAIT)
        assert await adapter.fetch(web3_with({POOL_V3: pool})) is None
        assert "zero liquidity" in adapter.last_error

    @pytest.mark.asyncio
    async def test_abi_mismatch_not_retried(self):
        abi = [e for e in UNISWAP_V3_POOL_ABI if e.get("name") != "slot0"]
        web3 = MagicMock()
        adapter = UniswapV3Adapter(
            "Uniswap V3", pool_address=POOL_V3, retry_policy=NO_WAIT, pool_abi=abi
        )

        assert await adapter.fetch(web3) is None
        assert "ABI mismatch: slot0" in adapter.last_error
        web3.eth.contract.assert_not_called()


class TestBalancerWeightedAdapter:
    @pytest.mark.asyncio
    async def test_weighted_spot_price(self):
        vault = contract_mock(
            getPoolTokens=[[WETH_ADDRESS, DAI_ADDRESS], [1_000 * E18, 1_600_000 * E18], 0]
        )
        pool = contract_mock(getNormalizedWeights=[6 * 10**17, 4 * 10**17])
        adapter = BalancerWeightedAdapter("Balancer", pool_id=POOL_ID, retry_policy=NO_WAIT)
        web3 = web3_with({adapter.vault_address: vault, adapter.pool_address: pool})

        assert await adapter.fetch(web3) == pytest.approx(2400.0)

    @pytest.mark.asyncio
    async def test_pool_without_pair_tokens(self):
        vault = contract_mock(getPoolTokens=[[WETH_ADDRESS, FEED], [E18, E18], 0])
        pool = contract_mock(getNormalizedWeights=[5 * 10**17, 5 * 10**17])
        adapter = BalancerWeightedAdapter("Balancer", pool_id=POOL_ID, retry_policy=NO_WAIT)
        web3 = web3_with({adapter.vault_address: vault, adapter.pool_address: pool})

        assert await adapter.fetch(web3) is None


class TestChainlinkAdapter:
    @pytest.mark.asyncio
    async def test_answer_scaled_by_decimals(self):
        feed = contract_mock(latestRoundData=[1, 2500_12345678, 0, 0, 1])
        adapter = ChainlinkAdapter("Chainlink", feed_address=FEED, retry_policy=NO_WAIT)

        assert await adapter.fetch(web3_with({FEED: feed})) == pytest.approx(2500.12345678)

    @pytest.mark.asyncio
    async def test_decimals_read_from_feed(self):
        feed = contract_mock(latestRoundData=[1, 2_000_000, 0, 0, 1], decimals=3)
        adapter = ChainlinkAdapter(
            "Chainlink", feed_address=FEED, feed_decimals=None, retry_policy=NO_WAIT
        )
        assert await adapter.fetch(web3_with({FEED: feed})) == pytest.approx(2000.0)

    @pytest.mark.asyncio
    async def test_non_positive_answer(self):
        feed = contract_mock(latestRoundData=[1, 0, 0, 0, 1])
        adapter = ChainlinkAdapter("Chainlink", feed_address=FEED, retry_policy=NO_WAIT)
        assert await adapter.fetch(web3_with({FEED: feed})) is None


class TestDodoV2Adapter:
    @pytest.mark.asyncio
    async def test_price_is_output_for_one_base_token(self):
        pool = contract_mock(querySellBase=[2_480 * E18 + 5 * 10**17, 10**15])
        adapter = DodoV2Adapter("DODO", address=DODO_POOL, retry_policy=NO_WAIT)

        assert await adapter.fetch(web3_with({DODO_POOL: pool})) == pytest.approx(2480.5)
        pool.functions.querySellBase.assert_called_with(
            Web3.to_checksum_address(WETH_ADDRESS), E18
        )

    @pytest.mark.asyncio
    async def test_zero_output(self):
        pool = contract_mock(querySellBase=[0, 0])
        adapter = DodoV2Adapter("DODO", address=DODO_POOL, retry_policy=NO_WAIT)
        assert await adapter.fetch(web3_with({DODO_POOL: pool})) is None

    def test_requires_an_address(self):
        with pytest.raises(ValueError):
            DodoV2Adapter("DODO")


class TestBancorV3Adapter:
    @pytest.mark.asyncio
    async def test_direct_quote(self):
        info = contract_mock(tradeOutputBySourceAmount=2_495 * E18)
        adapter = BancorV3Adapter("Bancor", address=BANCOR_INFO, retry_policy=NO_WAIT)

        assert await adapter.fetch(web3_with({BANCOR_INFO: info})) == pytest.approx(2495.0)
        assert info.functions.tradeOutputBySourceAmount.call_count == 1

    @pytest.mark.asyncio
    async def test_routes_through_bnt_when_direct_is_empty(self):
        info = MagicMock()
        info.functions.tradeOutputBySourceAmount.return_value.call.side_effect = [
            0,
            5_000 * E18,
            2_490 * E18,
        ]
        adapter = BancorV3Adapter("Bancor", address=BANCOR_INFO, retry_policy=NO_WAIT)

        assert await adapter.fetch(web3_with({BANCOR_INFO: info})) == pytest.approx(2490.0)
        bnt = Web3.to_checksum_address(BNT_ADDRESS)
        legs = [c.args for c in info.functions.tradeOutputBySourceAmount.call_args_list]
        assert legs[1][1] == bnt
        assert legs[2] == (bnt, Web3.to_checksum_address(DAI_ADDRESS), 5_000 * E18)

    @pytest.mark.asyncio
    async def test_reverted_direct_quote_falls_back_to_route(self):
        info = contract_mock(
            tradeOutputBySourceAmount=[ContractLogicError("no pool"), 4 * E18, 2_500 * E18]
        )
        adapter = BancorV3Adapter("Bancor", address=BANCOR_INFO, retry_policy=NO_WAIT)
        assert await adapter.fetch(web3_with({BANCOR_INFO: info})) == pytest.approx(2500.0)

    @pytest.mark.asyncio
    async def test_no_routing_when_disabled(self):
        info = contract_mock(tradeOutputBySourceAmount=0)
        adapter = BancorV3Adapter(
            "Bancor", address=BANCOR_INFO, via=None, retry_policy=NO_WAIT
        )

        assert await adapter.fetch(web3_with({BANCOR_INFO: info})) is None
        assert info.functions.tradeOutputBySourceAmount.call_count == 1

    @pytest.mark.asyncio
    async def test_abi_mismatch(self):
        web3 = MagicMock()
        adapter = BancorV3Adapter(
            "Bancor",
            address=BANCOR_INFO,
            retry_policy=NO_WAIT,
            info_abi=[
                e for e in BANCOR_NETWORK_INFO_ABI if e["name"] != "tradeOutputBySourceAmount"
            ],
        )

        assert await adapter.fetch(web3) is None
        assert "ABI mismatch: tradeOutputBySourceAmount" in adapter.last_error
        web3.eth.contract.assert_not_called()


def test_build_adapters_from_default_config():
    config = DexSimConfig({"rpc_url": "https://rpc.example"})
    adapters = build_adapters(config)

    assert [a.name for a in adapters] == config.venue_names()
    kinds = {a.name: a.kind for a in adapters}
    assert kinds["Uniswap V3"] == "v3"
    assert kinds["Balancer"] == "balancer"
    assert kinds["Chainlink"] == "chainlink"
    assert kinds["ShibaSwap"] == "v2"
    assert kinds["DODO"] == kinds["Bancor"] == "quote"
    assert isinstance(adapters[config.venue_names().index("Bancor")], BancorV3Adapter)
    assert all(a.retry_policy is adapters[0].retry_policy for a in adapters)


def test_quote_venue_defaults_and_routing_switch():
    config = DexSimConfig(
        {
            "rpc_url": "https://rpc.example",
            "venues": [
                {"name": "DODO", "kind": "quote", "protocol": "dodo"},
                {"name": "Bancor", "kind": "quote", "protocol": "bancor", "via": False},
            ],
        }
    )
    dodo, bancor = build_adapters(config)

    assert dodo.address == Web3.to_checksum_address(DODO_POOL)
    assert bancor.address == BANCOR_INFO
    assert bancor.via is None
    assert bancor.describe()["protocol"] == "bancor"
