"""
Polling loop for the DEX spread scanner and paper-trading simulator.

One cycle: fetch every venue concurrently, rank raw spreads, price the top
candidates with fees and gas, apply at most one trade to the simulated
ledger, then publish results to the console, the dashboard feed and metrics.
Cycles never overlap.
"""

import asyncio
import re
from dataclasses import dataclass, field
from typing import List, Optional

from web3 import Web3

from arbwatch.exceptions import LedgerError, NetworkError
from arbwatch.metrics import SpreadMetrics
from arbwatch.utils import format_duration, format_pct, get_logger

from .adapters import PriceAdapter, build_adapters
from .block_cache import BlockPriceCache
from .config import ConfigError, DexSimConfig
from .detector import DetectionResult, detect
from .feed import DashboardFeed
from .fees import FeeSchedule
from .gas import GasModel, web3_fee_source
from .ledger import SimulatedLedger
from .selector import Selection, resolve_gas_costs, select_best
from .trade_log import TradeLogWriter
from .types import SimulationSummary, Snapshot, TradeRecord


class Colors:
    """ANSI color codes for terminal output."""

    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    RED = "\033[91m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    CYAN = "\033[96m"

    @staticmethod
    def strip(text: str) -> str:
        """Remove all ANSI codes from text."""
        return re.sub(r"\033\[[0-9;]+m", "", text)


logger = get_logger(__name__)

CHAIN_NAMES = {
    1: "Ethereum Mainnet",
    10: "Optimism",
    56: "BSC",
    137: "Polygon",
    8453: "Base",
    42161: "Arbitrum",
}


@dataclass
class CycleReport:
    """Everything one evaluation cycle produced."""

    cycle: int
    snapshot: Snapshot
    detection: DetectionResult
    selection: Optional[Selection] = None
    trade: Optional[TradeRecord] = None
    from_cache: bool = False
    warnings: List[str] = field(default_factory=list)


class SpreadRunner:
    """
    Cross-venue spread scanner with an optional simulated ledger.

    Collaborators can be injected for tests; anything omitted is built from
    the config.
    """

    def __init__(
        self,
        config: DexSimConfig,
        adapters: Optional[List[PriceAdapter]] = None,
        web3: Optional[Web3] = None,
        gas_model: Optional[GasModel] = None,
        fee_schedule: Optional[FeeSchedule] = None,
        ledger: Optional[SimulatedLedger] = None,
        feed: Optional[DashboardFeed] = None,
        metrics: Optional[SpreadMetrics] = None,
        quiet: bool = False,
    ):
        """
        Args:
            config: Validated DexSimConfig instance
            adapters: Venue adapters (default: built from config.venues)
            web3: Connected Web3 instance (default: created by connect())
            gas_model: Gas cost model (default: live fee source from web3)
            fee_schedule: Venue fees (default: from config)
            ledger: Simulated ledger (default: created when config.simulate)
            feed: Dashboard feed to publish into
            metrics: Prometheus metrics collector
            quiet: If True, print only cycles with an opportunity
        """
        self.config = config
        self.quiet = quiet
        self.web3 = web3
        self.adapters: List[PriceAdapter] = (
            adapters if adapters is not None else build_adapters(config)
        )
        if not self.adapters:
            raise ConfigError("No venue adapters configured")

        self.fee_schedule = fee_schedule or FeeSchedule.from_bps(
            config.venue_fee_bps(), config.default_fee_bps
        )
        self.gas_model = gas_model
        self.feed = feed if feed is not None else DashboardFeed()
        self.metrics = metrics if metrics is not None else SpreadMetrics()
        self.block_cache = BlockPriceCache()

        self.ledger = ledger
        if self.ledger is None and config.simulate:
            self.ledger = SimulatedLedger(
                starting_balance=config.starting_balance,
                duration_sec=config.duration_sec,
                trade_log=TradeLogWriter(config.log_path),
            )
        if self.ledger is not None:
            self.metrics.set_balance(self.ledger.balance)

        self.cycle_count = 0
        self.summary: Optional[SimulationSummary] = None

    def connect(self) -> None:
        """
        Connect to the configured RPC and verify it answers.

        Raises:
            NetworkError: If the endpoint cannot be queried
        """
        if self.web3 is None:
            rpc_url = self.config.rpc_url
            logger.info(f"Connecting to RPC: {rpc_url}")
            self.web3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": 10}))

        try:
            # Skip is_connected(); a real query is more reliable
            chain_id = self.web3.eth.chain_id
            block = self.web3.eth.block_number
        except Exception as e:
            raise NetworkError(
                f"RPC connection failed: {e}", endpoint=self.config.rpc_url
            ) from e

        chain_name = CHAIN_NAMES.get(chain_id, f"Chain {chain_id}")
        logger.info(f"✓ Connected to {chain_name} (block #{block:,})")

        if self.gas_model is None:
            gas_cfg = self.config.gas
            self.gas_model = GasModel(
                fee_source=web3_fee_source(self.web3),
                gas_units=self.config.venue_gas_units(),
                default_gas_units=gas_cfg["default_units"],
                fallback_eth_price=gas_cfg["fallback_eth_price"],
                fallback_gas_price_gwei=gas_cfg["fallback_gas_price_gwei"],
                reference_venues=gas_cfg["reference_venues"],
                price_ttl_sec=gas_cfg["price_ttl_sec"],
            )

    async def _current_block(self) -> Optional[int]:
        loop = asyncio.get_running_loop()
        try:
            return int(await loop.run_in_executor(None, lambda: self.web3.eth.block_number))
        except Exception as e:
            logger.debug(f"Block number lookup failed: {e}")
            return None

    async def collect_snapshot(self) -> Snapshot:
        """
        Query every venue concurrently and assemble one snapshot.

        A venue that fails contributes an absent observation; the snapshot
        always has one entry per adapter, in adapter order.
        """
        block_number = None
        if self.config.use_block_cache:
            block_number = await self._current_block()
            cached = self.block_cache.get(block_number)
            if cached is not None:
                logger.debug(f"Reusing snapshot for block {block_number}")
                return cached

        results = await asyncio.gather(
            *[adapter.fetch(self.web3) for adapter in self.adapters],
            return_exceptions=True,
        )

        prices = {}
        for adapter, result in zip(self.adapters, results):
            if isinstance(result, Exception):
                logger.warning(f"{adapter.name}: fetch raised {result}")
                prices[adapter.name] = None
            else:
                prices[adapter.name] = result

        snapshot = Snapshot.from_prices(prices, block_number=block_number)
        if block_number is not None:
            self.block_cache.put(block_number, snapshot)
        return snapshot

    async def run_cycle(self) -> CycleReport:
        """Run one full evaluation cycle."""
        if self.gas_model is None:
            raise RuntimeError("Must call connect() before run_cycle()")

        self.cycle_count += 1
        cached_block = self.block_cache.block_number
        snapshot = await self.collect_snapshot()
        from_cache = (
            snapshot.block_number is not None and snapshot.block_number == cached_block
        )

        self.metrics.record_snapshot(
            len(snapshot.valid_observations()), snapshot.failed_venues()
        )

        detection = detect(snapshot, self.config.threshold_pct, self.config.top_n)
        best = detection.best
        self.metrics.record_detection(
            detection.total_found, best.profit_pct if best else None
        )

        report = CycleReport(
            cycle=self.cycle_count,
            snapshot=snapshot,
            detection=detection,
            from_cache=from_cache,
        )

        self.gas_model.update_reference_price(snapshot)

        # A cached snapshot was already offered to the ledger
        if from_cache:
            logger.debug(f"Block {snapshot.block_number} unchanged, no new trade")
        elif self.ledger is not None and not self.ledger.is_finalized and detection.top:
            await self._simulate(report)

        self.feed.publish(
            snapshot,
            detection,
            extra_warnings=report.warnings,
            ledger=self.ledger.snapshot() if self.ledger is not None else None,
        )
        return report

    async def _simulate(self, report: CycleReport) -> None:
        """Select and apply at most one trade for this cycle."""
        gas_costs = await resolve_gas_costs(report.detection.top, self.gas_model)
        selection = select_best(
            report.detection.top,
            report.snapshot.prices(),
            self.fee_schedule,
            gas_costs.get,
            available_capital=self.ledger.balance,
            haircut=self.config.haircut,
        )
        report.selection = selection
        report.warnings.extend(selection.skipped)

        if selection.best is None:
            self.metrics.record_rejection(selection.rejection or "none")
            top = selection.top_candidate
            if top is not None:
                report.warnings.append(
                    f"Best candidate {top.buy_venue} -> {top.sell_venue} rejected "
                    f"({selection.rejection}, net {top.net_profit:+.4f})"
                )
            return

        try:
            report.trade = self.ledger.apply(selection.best)
        except LedgerError as e:
            logger.warning(f"Trade not applied: {e}")
            report.warnings.append(str(e))
            self.metrics.record_rejection("ledger")
            return

        self.metrics.record_trade(self.ledger.balance, self.ledger.net_profit)

    def finalize(self) -> Optional[SimulationSummary]:
        """Close the simulated ledger if one is running. Safe to call twice."""
        if self.ledger is None:
            return None
        self.summary = self.ledger.finalize()
        self.feed.publish_ledger(self.ledger.snapshot())
        return self.summary

    def print_banner(self) -> None:
        """Print startup banner with config summary."""
        cfg = self.config
        c = Colors

        print(f"\n{c.CYAN}{c.BOLD}{'═' * 80}{c.RESET}")
        print(
            f"{c.CYAN}{c.BOLD}  DEX SPREAD SCANNER {c.RESET}{c.CYAN}— "
            f"Cross-Venue Price Monitoring{c.RESET}"
        )
        print(f"{c.CYAN}{'═' * 80}{c.RESET}\n")

        mode_str = "Single Scan" if cfg.once else "Continuous"
        print(f"  {c.BOLD}Configuration:{c.RESET}")
        print(
            f"    {c.DIM}Pair:{c.RESET} {c.GREEN}{cfg.pair['base']['symbol']}/"
            f"{cfg.pair['quote']['symbol']}{c.RESET} | "
            f"{c.DIM}Venues:{c.RESET} {c.GREEN}{len(self.adapters)}{c.RESET} | "
            f"{c.DIM}Interval:{c.RESET} {c.GREEN}{cfg.poll_sec:g}s{c.RESET} | "
            f"{c.DIM}Mode:{c.RESET} {c.GREEN}{mode_str}{c.RESET}"
        )
        print(
            f"    {c.DIM}Spread Threshold:{c.RESET} {c.GREEN}{cfg.threshold_pct:.4f}%{c.RESET} | "
            f"{c.DIM}Top N:{c.RESET} {c.GREEN}{cfg.top_n}{c.RESET}"
        )

        if self.ledger is not None:
            duration = (
                format_duration(self.ledger.duration_sec)
                if self.ledger.duration_sec is not None
                else "until stopped"
            )
            print(f"\n  {c.BOLD}Simulation:{c.RESET}")
            print(
                f"    {c.DIM}Starting Balance:{c.RESET} "
                f"{c.GREEN}{self.ledger.starting_balance:,.2f}{c.RESET} | "
                f"{c.DIM}Duration:{c.RESET} {c.GREEN}{duration}{c.RESET} | "
                f"{c.DIM}Trade Log:{c.RESET} {cfg.log_path}"
            )

        print(f"\n  {c.BOLD}Venue Fees:{c.RESET}")
        for adapter in self.adapters:
            fee = self.fee_schedule.fee_for(adapter.name)
            print(
                f"    {adapter.name:<18} {adapter.kind:<10} "
                f"{fee * 10_000:>8.1f} bps"
            )

        print(f"\n{c.CYAN}{'═' * 80}{c.RESET}\n")

    def print_results(self, report: CycleReport) -> None:
        """Print one cycle: prices, ranked spreads and the simulated trade."""
        c = Colors
        detection = report.detection

        if self.quiet and not detection.top:
            return

        cache_str = f" {c.DIM}(cached block){c.RESET}" if report.from_cache else ""
        print(f"\n{c.BOLD}Cycle #{report.cycle}{c.RESET}{cache_str}")

        prices = report.snapshot.prices()
        for venue in report.snapshot.venues():
            if venue in prices:
                print(f"  {venue:<18} {prices[venue]:>14.4f}")
            else:
                print(f"  {venue:<18} {c.RED}{'unavailable':>14}{c.RESET}")

        if not detection.top:
            for warning in detection.warnings:
                print(f"  {c.YELLOW}⚠ {warning}{c.RESET}")
        else:
            print(f"\n  {c.BOLD}Top spreads:{c.RESET}")
            for i, opp in enumerate(detection.top, 1):
                print(
                    f"  {i}. buy {c.CYAN}{opp.buy_venue}{c.RESET} @ {opp.buy_price:.4f} → "
                    f"sell {c.CYAN}{opp.sell_venue}{c.RESET} @ {opp.sell_price:.4f}  "
                    f"{c.GREEN}{format_pct(opp.profit_pct)}{c.RESET}"
                )
            hidden = detection.total_found - len(detection.top)
            if hidden > 0:
                print(f"  {c.DIM}... {hidden} other opportunities not shown{c.RESET}")

        for warning in report.warnings:
            print(f"  {c.YELLOW}⚠ {warning}{c.RESET}")

        if report.trade is not None:
            t = report.trade
            print(
                f"\n  {c.GREEN}{c.BOLD}✓ Simulated trade:{c.RESET} "
                f"{t.units_traded:.6f} units, gas {t.gas_cost:.4f}, "
                f"net {c.GREEN}{t.net_profit:+.4f}{c.RESET}, "
                f"balance {t.balance_after:,.4f}"
            )

    def print_summary(self, summary: SimulationSummary) -> None:
        c = Colors
        color = c.GREEN if summary.net_profit >= 0 else c.RED
        print(f"\n{c.CYAN}{'═' * 80}{c.RESET}")
        print(f"  {c.BOLD}SIMULATION SUMMARY{c.RESET}")
        print(f"    Duration:         {format_duration(summary.duration_sec)}")
        print(f"    Starting Balance: {summary.starting_balance:,.4f}")
        print(f"    Final Balance:    {color}{summary.final_balance:,.4f}{c.RESET}")
        print(f"    Total Return:     {color}{summary.total_return_pct:+.4f}%{c.RESET}")
        print(f"    Trades:           {summary.trade_count}")
        print(f"    Gross Profit:     {summary.gross_profit:,.4f}")
        print(f"    Total Gas:        {summary.total_gas:,.4f}")
        print(f"    Net Profit:       {color}{summary.net_profit:+,.4f}{c.RESET}")
        print(f"{c.CYAN}{'═' * 80}{c.RESET}\n")

    async def run_async(self) -> Optional[SimulationSummary]:
        """
        Main loop: cycle, print, sleep.

        Runs until config.once is set, the simulation duration elapses or the
        task is cancelled. The ledger is finalized on every exit path.

        Returns:
            Simulation summary, or None when not simulating
        """
        if self.gas_model is None:
            self.connect()

        self.print_banner()

        try:
            while True:
                try:
                    report = await self.run_cycle()
                    self.print_results(report)
                except Exception as e:
                    self.metrics.record_cycle_error()
                    logger.error(f"Cycle {self.cycle_count} failed: {e}", exc_info=True)
                    if self.config.once:
                        raise

                if self.config.once:
                    break
                if self.ledger is not None and self.ledger.check_expiry() is not None:
                    logger.info("Simulation duration elapsed")
                    break

                await asyncio.sleep(self.config.poll_sec)
        finally:
            summary = self.finalize()
            if summary is not None:
                self.print_summary(summary)

        return self.summary
