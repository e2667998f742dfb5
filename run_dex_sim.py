#!/usr/bin/env python3
"""
DEX spread scanner and paper-trading simulator CLI.

Polls every configured venue for one pair, prints ranked cross-venue spreads
and, with --simulate, executes the best net-profitable spread against a
simulated balance.

Usage:
    python3 run_dex_sim.py
    python3 run_dex_sim.py --config configs/dex_sim.yaml --once
    python3 run_dex_sim.py --simulate --starting-balance 5000 --duration 3600
    python3 run_dex_sim.py --arb-threshold=0.2 --interval=15 --dashboard
"""

import argparse
import asyncio
import logging
import os
import sys

from dotenv import load_dotenv

import logging_config
from arbwatch.exceptions import ArbWatchError
from dexsim.config import ConfigError, load_config
from dexsim.runner import SpreadRunner


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="DEX cross-venue spread scanner and paper-trading simulator",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Built-in WETH/DAI venue set, RPC_URL from .env
  python3 run_dex_sim.py

  # Custom config, single scan (for testing/CI)
  python3 run_dex_sim.py --config configs/dex_sim.yaml --once

  # One-hour simulation with the dashboard on :3000
  python3 run_dex_sim.py --simulate --duration 3600 --dashboard
        """,
    )

    parser.add_argument(
        "--config",
        default=None,
        help="Path to config YAML file (default: built-in venue set)",
    )
    parser.add_argument(
        "--arb-threshold",
        type=float,
        default=None,
        help="Minimum raw spread in percent (overrides config)",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Seconds between cycles (overrides config and PRICE_CHECK_INTERVAL_SECONDS)",
    )
    parser.add_argument(
        "--simulate",
        action="store_true",
        help="Execute the best spread against a simulated balance",
    )
    parser.add_argument(
        "--starting-balance",
        type=float,
        default=None,
        help="Simulated starting balance in quote currency",
    )
    parser.add_argument(
        "--duration",
        type=float,
        default=None,
        help="Simulation length in seconds",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single cycle and exit (overrides config setting)",
    )
    parser.add_argument(
        "--dashboard",
        action="store_true",
        help="Serve the dashboard and /metrics (overrides DASH_ENABLE)",
    )
    parser.add_argument("--debug", action="store_true", help="Verbose logging")
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Only print cycles that found an opportunity; log warnings and errors only",
    )

    return parser.parse_args(argv)


def apply_cli_overrides(config, args: argparse.Namespace) -> None:
    """
    Apply CLI flags on top of file and environment settings.

    Raises:
        ConfigError: If a flag value is out of range
    """
    if args.arb_threshold is not None:
        if args.arb_threshold < 0:
            raise ConfigError(f"--arb-threshold must be >= 0: {args.arb_threshold}")
        config.threshold_pct = args.arb_threshold
    if args.interval is not None:
        if args.interval <= 0:
            raise ConfigError(f"--interval must be > 0: {args.interval}")
        config.poll_sec = args.interval
    if args.simulate:
        config.simulate = True
    if args.starting_balance is not None:
        if args.starting_balance <= 0:
            raise ConfigError(
                f"--starting-balance must be > 0: {args.starting_balance}"
            )
        config.starting_balance = args.starting_balance
    if args.duration is not None:
        if args.duration <= 0:
            raise ConfigError(f"--duration must be > 0: {args.duration}")
        config.duration_sec = args.duration
    if args.once:
        config.once = True
    if args.dashboard:
        config.dashboard_enabled = True


async def run_with_dashboard(runner: SpreadRunner, host: str, port: int) -> None:
    """Run the scanner and the dashboard server in one event loop."""
    import uvicorn

    import web_server

    server = uvicorn.Server(
        uvicorn.Config(web_server.app, host=host, port=port, log_level="warning")
    )
    server_task = asyncio.create_task(server.serve())
    try:
        await runner.run_async()
    finally:
        server.should_exit = True
        await server_task


def main(argv=None) -> int:
    """
    Main entry point.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    load_dotenv()
    args = parse_args(argv)

    if args.debug or os.getenv("DEX_DEBUG", "").lower() in ("1", "true", "yes"):
        logging_config.setup_debug()
    elif args.quiet:
        logging_config.setup_minimal()
    else:
        logging_config.setup(logging.INFO)

    # Load config
    try:
        config = load_config(args.config)
        apply_cli_overrides(config, args)
    except ConfigError as e:
        print(f"❌ Config error: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        print(f"❌ Unexpected error loading config: {e}", file=sys.stderr)
        return 1

    # Initialize runner
    try:
        if config.dashboard_enabled:
            import web_server

            runner = SpreadRunner(
                config, feed=web_server.feed, metrics=web_server.metrics, quiet=args.quiet
            )
        else:
            runner = SpreadRunner(config, quiet=args.quiet)
        runner.connect()
    except (ArbWatchError, ValueError) as e:
        print(f"❌ Initialization failed: {e}", file=sys.stderr)
        return 1

    # Run scanner
    try:
        if config.dashboard_enabled:
            print(
                f"📊 Dashboard: http://{config.dashboard_host}:{config.dashboard_port}/data.json"
            )
            asyncio.run(
                run_with_dashboard(runner, config.dashboard_host, config.dashboard_port)
            )
        else:
            asyncio.run(runner.run_async())
    except KeyboardInterrupt:
        print("\n\n⏸ Stopped by user")
        return 0
    except Exception as e:
        print(f"❌ Runner failed: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
