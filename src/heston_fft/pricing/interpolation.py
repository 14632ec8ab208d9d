"""
Strike interpolation on a cached price curve.
"""

import math

import numpy as np

from heston_fft.core.errors import NumericInstabilityError
from heston_fft.pricing.cache import CacheEntry


class StrikeInterpolator:
    """
    Linear interpolation of a cached curve, clamped to its end prices.

    Example:
        >>> entry = CacheEntry(np.array([90.0, 100.0]), np.array([12.0, 5.0]), is_valid=True)
        >>> StrikeInterpolator().price(entry, 95.0)
        8.5
    """

    def price(self, entry: CacheEntry, strike: float) -> float:
        """
        Price at ``strike``.

        Args:
            entry: Valid cache entry with ascending strikes
            strike: Requested strike

        Returns:
            Interpolated call price

        Raises:
            NumericInstabilityError: If the entry is invalid or a bracketing
                price is not finite
        """
        if not entry.is_valid or entry.strikes is None or entry.prices is None:
            raise NumericInstabilityError("Price curve is not valid")

        strikes = entry.strikes
        prices = entry.prices

        if strike <= strikes[0]:
            return float(prices[0])
        if strike >= strikes[-1]:
            return float(prices[-1])

        high = int(np.searchsorted(strikes, strike, side="right"))
        low = high - 1

        k_low, k_high = strikes[low], strikes[high]
        p_low, p_high = prices[low], prices[high]
        if not (math.isfinite(p_low) and math.isfinite(p_high)):
            raise NumericInstabilityError(
                f"Non-finite price bracketing strike {strike:.4f}: {p_low}, {p_high}"
            )

        if k_high == k_low:
            return float(p_low)
        return float(p_low + (strike - k_low) / (k_high - k_low) * (p_high - p_low))
