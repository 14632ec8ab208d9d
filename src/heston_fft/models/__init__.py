"""Pricing models: Black-Scholes anchor and the Heston characteristic function."""

from heston_fft.models.black_scholes import (
    BlackScholesModel,
    black_scholes_call,
    calculate_implied_volatility,
)
from heston_fft.models.heston import HestonModel, characteristic_function

__all__ = [
    "BlackScholesModel",
    "black_scholes_call",
    "calculate_implied_volatility",
    "HestonModel",
    "characteristic_function",
]
