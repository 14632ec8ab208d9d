"""Carr-Madan FFT pricing components."""

from heston_fft.pricing.adapter import ParameterAdapter
from heston_fft.pricing.cache import CacheEntry, PriceCache
from heston_fft.pricing.grid import GridBuilder, PrecomputedGrid, simpson_weights
from heston_fft.pricing.interpolation import StrikeInterpolator
from heston_fft.pricing.session import PricingSession
from heston_fft.pricing.transform import CarrMadanTransform

__all__ = [
    "CacheEntry",
    "CarrMadanTransform",
    "GridBuilder",
    "ParameterAdapter",
    "PrecomputedGrid",
    "PriceCache",
    "PricingSession",
    "StrikeInterpolator",
    "simpson_weights",
]
