"""
Pricing session: the explicit owner of grid configuration, cached curves and
precomputed transform terms for one sequence of pricing calls.
"""

from typing import Any, Callable, Optional

import numpy as np

from heston_fft.core.config import EngineConfig, GridConfig
from heston_fft.core.types import ContractParams, HestonParams
from heston_fft.pricing.adapter import ParameterAdapter
from heston_fft.pricing.cache import PriceCache
from heston_fft.pricing.grid import GridBuilder
from heston_fft.pricing.interpolation import StrikeInterpolator
from heston_fft.pricing.transform import CarrMadanTransform
from heston_fft.utils.logging import get_logger

logger = get_logger(__name__)

FFTFunction = Callable[[np.ndarray], np.ndarray]


class PricingSession:
    """
    Context object passed to every pricing component.

    Usage:
        with PricingSession(GridConfig(fft_n=2048)) as session:
            price = session.price(contract, params)
    """

    def __init__(
        self,
        grid: Optional[GridConfig] = None,
        engine: Optional[EngineConfig] = None,
        fft: Optional[FFTFunction] = None,
    ):
        """
        Initialize pricing session.

        Args:
            grid: Base grid configuration
            engine: Capability flags (cache capacity, adaptation, diagnostics)
            fft: Forward complex FFT of length N, defaults to numpy.fft.fft
        """
        self.grid = grid or GridConfig()
        self.engine = engine or EngineConfig()
        self.verbose = self.engine.verbose_diagnostics

        self.cache = PriceCache(capacity=self.engine.cache_capacity)
        self.grid_builder = GridBuilder(verbose=self.verbose)
        self.interpolator = StrikeInterpolator()
        self.adapter = ParameterAdapter(enabled=self.engine.adaptive_grid)
        self.transform = CarrMadanTransform(self)

        self._fft = fft or np.fft.fft
        self.fft_calls = 0

    def fft(self, x: np.ndarray) -> np.ndarray:
        """Run the forward FFT, counting calls."""
        self.fft_calls += 1
        return self._fft(x)

    def price(
        self,
        contract: ContractParams,
        heston: HestonParams,
        grid: Optional[GridConfig] = None,
    ) -> float:
        """Heston call price at ``contract.strike`` without recovery."""
        return self.transform.price(contract, heston, grid)

    def close(self) -> None:
        """Release cached curves and precomputed terms."""
        self.cache.clear()
        self.grid_builder.release()

    @property
    def stats(self) -> dict[str, Any]:
        return {
            **self.cache.stats,
            "fft_calls": self.fft_calls,
            "grid_builds": self.grid_builder.builds,
        }

    def __enter__(self) -> "PricingSession":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
