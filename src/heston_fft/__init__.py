"""
Heston FFT Implied Volatility Engine

Implied volatility of European calls under the Heston stochastic volatility
model, priced with the Carr-Madan FFT and backed by a Black-Scholes fallback.
"""

__version__ = "0.1.0"

from heston_fft.api import (
    compare_to_black_scholes,
    format_implied_vol,
    heston_call_price,
    implied_vol_smile,
    price_implied_vol,
)
from heston_fft.core.config import Config, GridConfig, load_config
from heston_fft.core.errors import PricingError
from heston_fft.core.types import (
    CalibrationResult,
    ContractParams,
    FallbackReason,
    HestonParams,
)
from heston_fft.pricing.session import PricingSession

__all__ = [
    "CalibrationResult",
    "Config",
    "ContractParams",
    "FallbackReason",
    "GridConfig",
    "HestonParams",
    "PricingError",
    "PricingSession",
    "compare_to_black_scholes",
    "format_implied_vol",
    "heston_call_price",
    "implied_vol_smile",
    "load_config",
    "price_implied_vol",
]
