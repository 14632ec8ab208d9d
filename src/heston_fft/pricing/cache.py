"""
Tolerance-keyed cache of Carr-Madan price curves.

A curve depends on spot, rates, expiry and the Heston parameters but not on
the strike, so every strike of one contract shares a cached curve. Keys are
compared component-wise within ``GridConfig.cache_tolerance`` and therefore
cannot be hashed; slots are kept in least-recently-used order instead.
"""

from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Optional

import numpy as np

from heston_fft.core.config import GridConfig
from heston_fft.core.errors import AllocationFailureError
from heston_fft.core.types import ContractParams, HestonParams
from heston_fft.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class CacheEntry:
    """
    One price curve and the inputs that produced it.

    ``strikes`` and ``prices`` are either both None (released) or both of
    length N, with strikes ascending.
    """

    strikes: Optional[np.ndarray] = None
    prices: Optional[np.ndarray] = None
    contract: Optional[ContractParams] = None
    heston: Optional[HestonParams] = None
    grid: Optional[GridConfig] = None
    is_valid: bool = False

    @property
    def size(self) -> int:
        return 0 if self.strikes is None else len(self.strikes)

    def resize(self, n: int) -> bool:
        """
        Make the curve buffers length ``n``.

        Returns:
            True if the buffers were (re)allocated, False if reused

        Raises:
            AllocationFailureError: If the buffers cannot be allocated
        """
        self.is_valid = False
        if self.size == n:
            return False

        self.release()
        try:
            self.strikes = np.empty(n, dtype=float)
            self.prices = np.empty(n, dtype=float)
        except MemoryError as e:
            self.release()
            raise AllocationFailureError(f"Could not allocate price curve for N={n}") from e
        return True

    def release(self) -> None:
        self.strikes = None
        self.prices = None
        self.is_valid = False

    def store(self, contract: ContractParams, heston: HestonParams, grid: GridConfig) -> None:
        """Record the inputs of a freshly written curve and mark it valid."""
        self.contract = contract
        self.heston = heston
        self.grid = grid
        self.is_valid = True

    def matches(self, contract: ContractParams, heston: HestonParams, grid: GridConfig) -> bool:
        """
        True if this entry was produced by the same inputs.

        N must match exactly; spot, rates, expiry, the five Heston parameters,
        eta, alpha and the log-strike range must agree within the requested
        grid's cache tolerance.
        """
        if not self.is_valid or self.contract is None or self.heston is None or self.grid is None:
            return False
        if self.grid.fft_n != grid.fft_n:
            return False

        tol = grid.cache_tolerance
        cached = _key_values(self.contract, self.heston, self.grid)
        wanted = _key_values(contract, heston, grid)
        return all(abs(a - b) < tol for a, b in zip(cached, wanted))


def _key_values(
    contract: ContractParams, heston: HestonParams, grid: GridConfig
) -> tuple[float, ...]:
    return (
        contract.spot,
        contract.risk_free_rate,
        contract.dividend_yield,
        contract.time_to_expiry,
        heston.v0,
        heston.kappa,
        heston.theta,
        heston.sigma,
        heston.rho,
        grid.eta,
        grid.alpha,
        grid.log_strike_range,
    )


class PriceCache:
    """
    Least recently used cache of price curves with a fixed number of slots.

    With the default capacity of one, any change to the model parameters
    evicts the previous curve.
    """

    def __init__(self, capacity: int = 1):
        if capacity < 1:
            raise ValueError(f"capacity must be at least 1, got {capacity}")
        self.capacity = capacity
        self._entries: OrderedDict[int, CacheEntry] = OrderedDict()
        self._next_slot = 0
        self.hits = 0
        self.misses = 0
        self.reallocations = 0

    def lookup(
        self, contract: ContractParams, heston: HestonParams, grid: GridConfig
    ) -> Optional[CacheEntry]:
        """
        Find a valid entry for these inputs.

        Returns:
            The matching entry (now most recently used), or None on a miss
        """
        for slot, entry in self._entries.items():
            if entry.matches(contract, heston, grid):
                self._entries.move_to_end(slot)
                self.hits += 1
                logger.debug(f"Price cache hit (slot {slot})")
                return entry

        self.misses += 1
        return None

    def acquire(self, fft_n: int) -> CacheEntry:
        """
        Return an invalidated entry sized for ``fft_n`` to be overwritten.

        Reuses the least recently used slot once the cache is full; buffers
        are reallocated only when N differs from the slot's current size.
        """
        if len(self._entries) >= self.capacity:
            slot, entry = self._entries.popitem(last=False)
        else:
            slot, entry = self._next_slot, CacheEntry()
            self._next_slot += 1

        if entry.resize(fft_n):
            self.reallocations += 1
            logger.debug(f"Allocated price curve buffers for N={fft_n} (slot {slot})")

        self._entries[slot] = entry
        return entry

    def clear(self) -> None:
        """Release every entry."""
        for entry in self._entries.values():
            entry.release()
        self._entries.clear()

    def size(self) -> int:
        """Return current number of slots in use."""
        return len(self._entries)

    @property
    def stats(self) -> dict[str, Any]:
        total = self.hits + self.misses
        return {
            "capacity": self.capacity,
            "size": self.size(),
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": self.hits / total if total else 0.0,
            "reallocations": self.reallocations,
        }
