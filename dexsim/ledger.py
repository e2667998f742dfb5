"""
Simulated capital accounting for paper trading.

``SimulatedLedger`` is the only object allowed to change the simulated
balance. It moves through two states: RUNNING, where each cycle may apply at
most one selected trade, and FINALIZED, which is terminal and carries the
run summary.
"""

import time
from enum import Enum
from typing import Callable, Dict, List, Optional

from arbwatch.exceptions import LedgerError, ValidationError
from arbwatch.utils import calculate_percentage, get_logger

from .selector import TradeCandidate
from .trade_log import TradeLogWriter
from .types import SimulationSummary, TradeRecord

logger = get_logger(__name__)


class LedgerStatus(Enum):
    RUNNING = "running"
    FINALIZED = "finalized"


class SimulatedLedger:
    """
    Running balance, cumulative P&L and trade history of one simulation run.

    Invariants:
        balance == starting_balance + sum(record.net_profit for record in history)
        trade_count == len(history)
    """

    def __init__(
        self,
        starting_balance: float = 1000.0,
        duration_sec: Optional[float] = None,
        trade_log: Optional[TradeLogWriter] = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Args:
            starting_balance: Initial capital in quote units (must be > 0)
            duration_sec: Wall-clock length of the run; None runs until finalize()
            trade_log: Optional CSV writer receiving every record and the summary
            clock: Wall-clock source (injectable for tests)
        """
        if starting_balance is None or not starting_balance > 0:
            raise ValidationError(f"starting_balance must be > 0: {starting_balance}")
        if duration_sec is not None and duration_sec < 0:
            raise ValidationError(f"duration_sec must be >= 0: {duration_sec}")

        self.starting_balance = float(starting_balance)
        self.duration_sec = duration_sec
        self.trade_log = trade_log
        self._clock = clock

        self.status = LedgerStatus.RUNNING
        self.started_at = clock()

        self._balance = self.starting_balance
        self.gross_profit = 0.0
        self.total_gas = 0.0
        self.net_profit = 0.0
        self.trade_count = 0
        self._history: List[TradeRecord] = []
        self._summary: Optional[SimulationSummary] = None

    @property
    def balance(self) -> float:
        return self._balance

    @property
    def history(self) -> List[TradeRecord]:
        """Copy of the append-only trade history."""
        return list(self._history)

    @property
    def is_finalized(self) -> bool:
        return self.status is LedgerStatus.FINALIZED

    def apply(
        self, candidate: TradeCandidate, timestamp: Optional[float] = None
    ) -> TradeRecord:
        """
        Execute a selected trade against the simulated balance.

        Raises:
            LedgerError: If the ledger is finalized, the trade is not net
                profitable, or it needs more capital than the balance holds
        """
        if self.is_finalized:
            raise LedgerError("Ledger is finalized", state=self.status.value)
        if not candidate.net_profit > 0:
            raise LedgerError(
                f"Refusing trade with non-positive net profit {candidate.net_profit}",
                state=self.status.value,
            )
        if candidate.capital_needed > self._balance:
            raise LedgerError(
                f"Trade needs {candidate.capital_needed:.4f} but balance is "
                f"{self._balance:.4f}",
                state=self.status.value,
            )

        self._balance += candidate.net_profit
        self.gross_profit += candidate.gross_profit
        self.total_gas += candidate.gas_cost
        self.net_profit += candidate.net_profit
        self.trade_count += 1

        opp = candidate.opportunity
        record = TradeRecord(
            timestamp=self._clock() if timestamp is None else timestamp,
            buy_venue=opp.buy_venue,
            buy_price=candidate.buy_price,
            sell_venue=opp.sell_venue,
            sell_price=candidate.sell_price,
            spread_pct=opp.profit_pct,
            gas_cost=candidate.gas_cost,
            net_profit=candidate.net_profit,
            balance_after=self._balance,
            units_traded=candidate.units_traded,
            buy_fee=candidate.buy_fee,
            sell_fee=candidate.sell_fee,
        )
        self._history.append(record)

        if self.trade_log is not None:
            self.trade_log.append(record)

        logger.info(
            f"Simulated trade #{self.trade_count}: buy {opp.buy_venue} @ "
            f"{candidate.buy_price:.4f}, sell {opp.sell_venue} @ {candidate.sell_price:.4f}, "
            f"net {candidate.net_profit:+.4f}, balance {self._balance:.4f}"
        )
        return record

    def elapsed(self, now: Optional[float] = None) -> float:
        now = self._clock() if now is None else now
        return max(0.0, now - self.started_at)

    def is_expired(self, now: Optional[float] = None) -> bool:
        if self.duration_sec is None:
            return False
        return self.elapsed(now) >= self.duration_sec

    def check_expiry(self, now: Optional[float] = None) -> Optional[SimulationSummary]:
        """Finalize if the configured duration has elapsed."""
        if self.is_finalized:
            return self._summary
        if self.is_expired(now):
            return self.finalize(now)
        return None

    def total_return_pct(self) -> float:
        return calculate_percentage(
            self._balance - self.starting_balance, self.starting_balance
        )

    def finalize(self, now: Optional[float] = None) -> SimulationSummary:
        """
        Close the run and emit its summary. Calling again returns the same summary.
        """
        if self._summary is not None:
            return self._summary

        self._summary = SimulationSummary(
            duration_sec=self.elapsed(now),
            starting_balance=self.starting_balance,
            final_balance=self._balance,
            total_return_pct=self.total_return_pct(),
            trade_count=self.trade_count,
            gross_profit=self.gross_profit,
            total_gas=self.total_gas,
            net_profit=self.net_profit,
        )
        self.status = LedgerStatus.FINALIZED

        if self.trade_log is not None:
            self.trade_log.write_summary(self._summary)

        logger.info(
            f"Simulation finalized: {self.trade_count} trades, final balance "
            f"{self._balance:.4f} ({self._summary.total_return_pct:+.4f}%)"
        )
        return self._summary

    def snapshot(self) -> Dict[str, object]:
        """Plain-dict view of the ledger state for the dashboard."""
        return {
            "status": self.status.value,
            "starting_balance": self.starting_balance,
            "balance": self._balance,
            "gross_profit": self.gross_profit,
            "total_gas": self.total_gas,
            "net_profit": self.net_profit,
            "trade_count": self.trade_count,
            "started_at": self.started_at,
            "total_return_pct": self.total_return_pct(),
        }
