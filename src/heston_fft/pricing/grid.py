"""
Frequency grid, Simpson weights and exponential terms for the Carr-Madan FFT.

These depend only on (N, eta, alpha, S), so they are memoised on the pricing
session and rebuilt only when one of the four keys changes.
"""

from typing import Optional

import numpy as np

from heston_fft.core.config import GridConfig
from heston_fft.core.errors import AllocationFailureError
from heston_fft.utils.logging import get_logger

logger = get_logger(__name__)

# Frequencies closer to zero than this are moved off the origin
MIN_FREQUENCY = 1e-10


def simpson_weights(n: int) -> np.ndarray:
    """
    Composite Simpson weights over ``n`` points starting at index 0.

    w[0] = 1/3, w[odd] = 4/3, w[even] = 2/3.
    """
    weights = np.empty(n, dtype=float)
    weights[0::2] = 2.0 / 3.0
    weights[1::2] = 4.0 / 3.0
    weights[0] = 1.0 / 3.0
    return weights


def frequency_grid(n: int, eta: float) -> np.ndarray:
    """Integration frequencies v_i = i * eta with v_0 moved off zero."""
    v = np.arange(n, dtype=float) * eta
    v[np.abs(v) < MIN_FREQUENCY] = MIN_FREQUENCY
    return v


class PrecomputedGrid:
    """
    Session-owned buffers for the per-grid transform terms.

    Buffers are reallocated only when N changes; otherwise they are
    overwritten in place on rebuild.
    """

    def __init__(self) -> None:
        self.frequencies: Optional[np.ndarray] = None
        self.simpson_weights: Optional[np.ndarray] = None
        self.exp_terms: Optional[np.ndarray] = None
        self.fft_n = 0
        self.eta = 0.0
        self.alpha = 0.0
        self.spot = 0.0
        self.is_valid = False

    @property
    def size(self) -> int:
        return 0 if self.frequencies is None else len(self.frequencies)

    def matches(
        self, fft_n: int, eta: float, alpha: float, spot: float, tolerance: float
    ) -> bool:
        """True if the buffers were built for these keys (within tolerance)."""
        return (
            self.is_valid
            and self.fft_n == fft_n
            and abs(self.eta - eta) < tolerance
            and abs(self.alpha - alpha) < tolerance
            and abs(self.spot - spot) < tolerance
        )

    def resize(self, n: int) -> None:
        """Allocate buffers of length ``n`` unless they already have that length."""
        if self.size == n:
            return
        self.release()
        try:
            self.frequencies = np.empty(n, dtype=float)
            self.simpson_weights = np.empty(n, dtype=float)
            self.exp_terms = np.empty(n, dtype=complex)
        except MemoryError as e:
            self.release()
            raise AllocationFailureError(
                f"Could not allocate precomputed grid buffers for N={n}"
            ) from e

    def release(self) -> None:
        """Drop the buffers and mark the grid invalid."""
        self.frequencies = None
        self.simpson_weights = None
        self.exp_terms = None
        self.is_valid = False


class GridBuilder:
    """
    Builds and memoises the precomputed transform terms for a session.

    Example:
        >>> builder = GridBuilder()
        >>> grid = builder.build(GridConfig(), spot=100.0)
        >>> grid.simpson_weights[:3]
        array([0.33333333, 1.33333333, 0.66666667])
    """

    def __init__(self, verbose: bool = False):
        self.grid = PrecomputedGrid()
        self.verbose = verbose
        self.builds = 0

    def build(self, config: GridConfig, spot: float) -> PrecomputedGrid:
        """
        Return precomputed terms for ``config`` and ``spot``.

        Args:
            config: Grid configuration (N, eta, alpha and tolerance are used)
            spot: Spot price

        Returns:
            The session's PrecomputedGrid, rebuilt only if its keys changed

        Raises:
            AllocationFailureError: If the buffers cannot be allocated
        """
        grid = self.grid
        if grid.matches(
            config.fft_n, config.eta, config.alpha, spot, config.cache_tolerance
        ):
            logger.debug("Using existing precomputed FFT values")
            return grid

        logger.debug(
            f"Precomputing FFT values for N={config.fft_n}, eta={config.eta:.4f}, "
            f"alpha={config.alpha:.2f}, S={spot:.2f}"
        )

        grid.is_valid = False
        grid.resize(config.fft_n)

        grid.frequencies[:] = frequency_grid(config.fft_n, config.eta)
        grid.simpson_weights[:] = simpson_weights(config.fft_n)

        with np.errstate(all="ignore"):
            exp_terms = np.exp(-1j * grid.frequencies * np.log(spot))
        bad = ~np.isfinite(exp_terms)
        if bad.any():
            exp_terms[bad] = 1.0 + 0.0j
            if self.verbose:
                logger.debug(f"Non-finite exponential term at {int(bad.sum())} grid points")
        grid.exp_terms[:] = exp_terms

        grid.fft_n = config.fft_n
        grid.eta = config.eta
        grid.alpha = config.alpha
        grid.spot = spot
        grid.is_valid = True
        self.builds += 1

        return grid

    def release(self) -> None:
        self.grid.release()
