"""
DEX cross-venue spread scanner and paper-trading simulator.

Modules:
    types: Snapshot, opportunity and trade record types
    adapters: Per-venue price readers (Uniswap V2/V3 and forks, Balancer, Chainlink)
    detector: Raw-spread detection and ranking
    selector: Fee- and gas-adjusted trade selection
    ledger: Simulated balance and trade history
    runner: Polling loop tying the above together
"""

from .detector import DetectionResult, detect
from .ledger import SimulatedLedger
from .selector import Selection, TradeCandidate, select_best
from .types import ArbitrageOpportunity, PriceObservation, Snapshot, TradeRecord

__all__ = [
    "ArbitrageOpportunity",
    "DetectionResult",
    "PriceObservation",
    "Selection",
    "SimulatedLedger",
    "Snapshot",
    "TradeCandidate",
    "TradeRecord",
    "detect",
    "select_best",
]
