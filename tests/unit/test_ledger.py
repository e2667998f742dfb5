"""
Unit tests for dexsim/ledger.py

Exercises balance accounting, refusal paths and the RUNNING -> FINALIZED
transition.
"""

import unittest

import pytest

from arbwatch.exceptions import LedgerError, ValidationError
from dexsim.ledger import LedgerStatus, SimulatedLedger
from dexsim.selector import TradeCandidate
from dexsim.types import ArbitrageOpportunity


class FakeClock:
    def __init__(self, now=1_000.0):
        self.now = now

    def __call__(self):
        return self.now


def make_candidate(
    net_profit, capital_needed=100.0, gas_cost=1.0, buy_price=100.0, sell_price=105.0
):
    opportunity = ArbitrageOpportunity("X", "Y", 100.0, 105.0, 5.0)
    return TradeCandidate(
        opportunity=opportunity,
        buy_price=buy_price,
        sell_price=sell_price,
        buy_fee=0.003,
        sell_fee=0.003,
        buy_price_with_fee=100.3,
        sell_price_with_fee=104.685,
        price_diff_per_unit=4.385,
        gas_cost=gas_cost,
        units_traded=capital_needed / 100.3,
        capital_needed=capital_needed,
        gross_profit=net_profit + gas_cost,
        net_profit=net_profit,
    )


class TestLedgerAccounting(unittest.TestCase):
    def setUp(self):
        self.clock = FakeClock()
        self.ledger = SimulatedLedger(starting_balance=1000.0, clock=self.clock)

    def test_single_trade_updates_balance_and_return(self):
        record = self.ledger.apply(make_candidate(12.5))

        self.assertAlmostEqual(self.ledger.balance, 1012.5)
        self.assertAlmostEqual(self.ledger.total_return_pct(), 1.25)
        self.assertEqual(self.ledger.trade_count, 1)
        self.assertAlmostEqual(record.balance_after, 1012.5)
        self.assertEqual(record.buy_venue, "X")
        self.assertEqual(record.sell_venue, "Y")

    def test_balance_equals_start_plus_history(self):
        for net in (1.0, 2.5, 0.25, 7.0):
            self.ledger.apply(make_candidate(net))

        history = self.ledger.history
        self.assertEqual(self.ledger.trade_count, len(history))
        self.assertAlmostEqual(
            self.ledger.balance, 1000.0 + sum(r.net_profit for r in history)
        )
        self.assertAlmostEqual(self.ledger.gross_profit, 10.75 + 4 * 1.0)
        self.assertAlmostEqual(self.ledger.total_gas, 4.0)

    def test_history_is_a_copy(self):
        self.ledger.apply(make_candidate(1.0))
        self.ledger.history.clear()
        self.assertEqual(len(self.ledger.history), 1)

    def test_rejects_non_positive_net(self):
        for net in (0.0, -3.0):
            with self.assertRaises(LedgerError):
                self.ledger.apply(make_candidate(net))
        self.assertEqual(self.ledger.balance, 1000.0)
        self.assertEqual(self.ledger.trade_count, 0)

    def test_rejects_over_capital(self):
        with self.assertRaises(LedgerError):
            self.ledger.apply(make_candidate(5.0, capital_needed=1000.01))
        self.assertEqual(self.ledger.balance, 1000.0)

    def test_record_carries_prices_the_trade_was_priced_at(self):
        record = self.ledger.apply(make_candidate(3.0, buy_price=100.2, sell_price=104.9))

        self.assertEqual(record.buy_price, 100.2)
        self.assertEqual(record.sell_price, 104.9)
        self.assertEqual(record.spread_pct, 5.0)


class TestLedgerLifecycle:
    def test_finalize_summary(self):
        clock = FakeClock(100.0)
        ledger = SimulatedLedger(starting_balance=1000.0, clock=clock)
        ledger.apply(make_candidate(12.5))
        clock.now = 160.0

        summary = ledger.finalize()

        assert ledger.status is LedgerStatus.FINALIZED
        assert summary.duration_sec == pytest.approx(60.0)
        assert summary.final_balance == pytest.approx(1012.5)
        assert summary.total_return_pct == pytest.approx(1.25)
        assert summary.trade_count == 1

    def test_finalize_is_idempotent(self):
        ledger = SimulatedLedger(clock=FakeClock())
        assert ledger.finalize() is ledger.finalize()

    def test_apply_after_finalize_raises(self):
        ledger = SimulatedLedger(clock=FakeClock())
        ledger.finalize()
        with pytest.raises(LedgerError) as exc_info:
            ledger.apply(make_candidate(1.0))
        assert exc_info.value.state == "finalized"

    def test_expiry(self):
        clock = FakeClock(0.0)
        ledger = SimulatedLedger(duration_sec=30, clock=clock)

        clock.now = 29.0
        assert ledger.check_expiry() is None
        assert not ledger.is_finalized

        clock.now = 30.0
        summary = ledger.check_expiry()
        assert summary is not None
        assert ledger.is_finalized
        assert ledger.check_expiry() is summary

    def test_no_duration_never_expires(self):
        clock = FakeClock(0.0)
        ledger = SimulatedLedger(duration_sec=None, clock=clock)
        clock.now = 10**9
        assert not ledger.is_expired()

    @pytest.mark.parametrize("balance", [0, -10, None])
    def test_invalid_starting_balance(self, balance):
        with pytest.raises(ValidationError):
            SimulatedLedger(starting_balance=balance)

    def test_snapshot_shape(self):
        ledger = SimulatedLedger(starting_balance=500.0, clock=FakeClock())
        ledger.apply(make_candidate(5.0))
        snap = ledger.snapshot()

        assert snap["status"] == "running"
        assert snap["balance"] == pytest.approx(505.0)
        assert snap["trade_count"] == 1
        assert snap["total_return_pct"] == pytest.approx(1.0)
