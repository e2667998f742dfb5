"""
Single-slot snapshot cache keyed by block number.

Prices cannot change within a block, so a cycle that lands on the same block
as the previous one can reuse its snapshot instead of calling every adapter
again. Storing a snapshot for a new block replaces the old slot in one
assignment; there is never more than one block cached.
"""

from typing import Optional, Tuple

from .types import Snapshot


class BlockPriceCache:
    def __init__(self):
        self._slot: Optional[Tuple[int, Snapshot]] = None
        self.hits = 0
        self.misses = 0

    @property
    def block_number(self) -> Optional[int]:
        return self._slot[0] if self._slot else None

    def get(self, block_number: Optional[int]) -> Optional[Snapshot]:
        """Return the cached snapshot only if it was taken at ``block_number``."""
        if block_number is not None and self._slot and self._slot[0] == block_number:
            self.hits += 1
            return self._slot[1]
        self.misses += 1
        return None

    def put(self, block_number: int, snapshot: Snapshot) -> None:
        self._slot = (block_number, snapshot)

    def clear(self) -> None:
        self._slot = None
