"""
Per-venue trading fee schedule.
"""

from typing import Dict, Mapping, Optional

from .config import ConfigError

DEFAULT_FEE_BPS = 30.0


def bps_to_fraction(bps: float) -> float:
    """Convert basis points to a proportional fee. 30 bps -> 0.003"""
    return float(bps) / 10_000.0


class FeeSchedule:
    """
    Total function from venue name to proportional fee in [0, 1).

    Venues without an explicit entry resolve to ``default_fee``, so callers
    never need their own fallback.
    """

    def __init__(
        self,
        fees: Optional[Mapping[str, float]] = None,
        default_fee: float = bps_to_fraction(DEFAULT_FEE_BPS),
    ):
        self.default_fee = self._validate("default", default_fee)
        self._fees: Dict[str, float] = {
            venue: self._validate(venue, fee) for venue, fee in (fees or {}).items()
        }

    @staticmethod
    def _validate(venue: str, fee: float) -> float:
        try:
            fee = float(fee)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Fee for '{venue}' is not a number: {fee!r}") from e
        if not 0 <= fee < 1:
            raise ConfigError(f"Fee for '{venue}' must be in [0, 1): {fee}")
        return fee

    @classmethod
    def from_bps(
        cls, fee_bps: Mapping[str, float], default_bps: float = DEFAULT_FEE_BPS
    ) -> "FeeSchedule":
        """Build a schedule from basis-point values (config format)."""
        return cls(
            {venue: bps_to_fraction(bps) for venue, bps in fee_bps.items()},
            default_fee=bps_to_fraction(default_bps),
        )

    def fee_for(self, venue: str) -> float:
        return self._fees.get(venue, self.default_fee)

    def __contains__(self, venue: str) -> bool:
        return venue in self._fees

    def as_dict(self) -> Dict[str, float]:
        return dict(self._fees)
