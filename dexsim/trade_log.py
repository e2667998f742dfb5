"""
Append-only CSV log of simulated trades.

One row is written per executed trade as it happens, so an interrupted run
is still inspectable. Finalizing a run appends a summary block.
"""

import csv
from pathlib import Path
from typing import Union

from arbwatch.utils import ensure_path_exists, format_duration, timestamp_to_iso

from .types import SimulationSummary, TradeRecord

TRADE_COLUMNS = [
    "timestamp",
    "buy_venue",
    "buy_price",
    "sell_venue",
    "sell_price",
    "spread_pct",
    "gas_cost",
    "net_profit",
    "balance_after",
    "units_traded",
    "buy_fee",
    "sell_fee",
]

SUMMARY_MARKER = "# SUMMARY"


class TradeLogWriter:
    def __init__(self, path: Union[str, Path] = "logs/sim_trades.csv"):
        self.path = ensure_path_exists(path, is_file=True)
        self.rows_written = 0
        if not self.path.exists() or self.path.stat().st_size == 0:
            with self.path.open("w", newline="") as f:
                csv.writer(f).writerow(TRADE_COLUMNS)

    def append(self, record: TradeRecord) -> None:
        with self.path.open("a", newline="") as f:
            w = csv.writer(f)
            w.writerow(
                [
                    timestamp_to_iso(record.timestamp),
                    record.buy_venue,
                    f"{record.buy_price:.6f}",
                    record.sell_venue,
                    f"{record.sell_price:.6f}",
                    f"{record.spread_pct:.6f}",
                    f"{record.gas_cost:.6f}",
                    f"{record.net_profit:.6f}",
                    f"{record.balance_after:.6f}",
                    f"{record.units_traded:.8f}",
                    f"{record.buy_fee:.6f}",
                    f"{record.sell_fee:.6f}",
                ]
            )
        self.rows_written += 1

    def write_summary(self, summary: SimulationSummary) -> None:
        with self.path.open("a", newline="") as f:
            w = csv.writer(f)
            w.writerow([])
            w.writerow([SUMMARY_MARKER])
            w.writerow(["duration", format_duration(summary.duration_sec)])
            w.writerow(["starting_balance", f"{summary.starting_balance:.6f}"])
            w.writerow(["final_balance", f"{summary.final_balance:.6f}"])
            w.writerow(["total_return_pct", f"{summary.total_return_pct:.6f}"])
            w.writerow(["trade_count", summary.trade_count])
            w.writerow(["gross_profit", f"{summary.gross_profit:.6f}"])
            w.writerow(["total_gas", f"{summary.total_gas:.6f}"])
            w.writerow(["net_profit", f"{summary.net_profit:.6f}"])
