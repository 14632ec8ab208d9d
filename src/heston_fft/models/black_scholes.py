"""
Black-Scholes-Merton pricing for European calls with a continuous dividend yield.

Serves as the calibration anchor and the terminal fallback of the Heston
pricing chain.
"""

import math
from typing import Optional

from scipy.optimize import brentq
from scipy.stats import norm

from heston_fft.utils.logging import get_logger

logger = get_logger(__name__)

# Volatility bracket for the implied volatility root search
IV_LOWER = 0.001
IV_UPPER = 2.0


class BlackScholesModel:
    """
    Black-Scholes option pricing model.

    Calculates theoretical call prices and implied volatilities.
    """

    @staticmethod
    def _d1(
        S: float,
        K: float,
        T: float,
        r: float,
        q: float,
        sigma: float,
    ) -> float:
        """
        Calculate d1 parameter.

        Args:
            S: Spot price
            K: Strike price
            T: Time to expiration (years)
            r: Risk-free rate
            q: Dividend yield
            sigma: Volatility

        Returns:
            d1 value
        """
        return (math.log(S / K) + (r - q + 0.5 * sigma**2) * T) / (sigma * math.sqrt(T))

    @classmethod
    def call_price(
        cls,
        S: float,
        K: float,
        T: float,
        r: float,
        q: float,
        sigma: float,
    ) -> float:
        """
        Calculate Black-Scholes call price.

        Args:
            S: Spot price of underlying
            K: Strike price
            T: Time to expiration (years)
            r: Risk-free rate
            q: Dividend yield
            sigma: Volatility (annualized)

        Returns:
            Theoretical call price

        Raises:
            ValueError: If any of S, K, T or sigma is not positive

        Example:
            >>> round(BlackScholesModel.call_price(100.0, 100.0, 1.0, 0.05, 0.0, 0.2), 4)
            10.4506
        """
        if S <= 0 or K <= 0 or T <= 0 or sigma <= 0:
            raise ValueError(
                f"S, K, T and sigma must be positive (S={S}, K={K}, T={T}, sigma={sigma})"
            )

        d1 = cls._d1(S, K, T, r, q, sigma)
        d2 = d1 - sigma * math.sqrt(T)

        return float(S * math.exp(-q * T) * norm.cdf(d1) - K * math.exp(-r * T) * norm.cdf(d2))

    @classmethod
    def implied_volatility(
        cls,
        market_price: float,
        S: float,
        K: float,
        T: float,
        r: float,
        q: float,
    ) -> Optional[float]:
        """
        Calculate call implied volatility from market price using Brent's method.

        Args:
            market_price: Observed call price
            S: Spot price
            K: Strike price
            T: Time to expiration in years
            r: Risk-free rate
            q: Dividend yield

        Returns:
            Implied volatility, or None if it is undefined

        Note:
            Returns None for:
            - Non-positive price, spot, strike or time
            - Price below the discounted intrinsic value
            - Price outside the prices spanned by the volatility bracket
        """
        if market_price <= 0 or S <= 0 or K <= 0 or T <= 0:
            return None

        intrinsic = max(0.0, S * math.exp(-q * T) - K * math.exp(-r * T))
        if market_price < intrinsic:
            logger.debug(
                f"Market price {market_price:.6f} is below intrinsic value {intrinsic:.6f}"
            )
            return None

        price_low = cls.call_price(S, K, T, r, q, IV_LOWER)
        price_high = cls.call_price(S, K, T, r, q, IV_UPPER)
        if market_price <= price_low or market_price >= price_high:
            logger.debug(
                f"Market price {market_price:.6f} is outside the bracket "
                f"[{price_low:.6f}, {price_high:.6f}]"
            )
            return None

        def objective(vol: float) -> float:
            return cls.call_price(S, K, T, r, q, vol) - market_price

        try:
            return float(brentq(objective, IV_LOWER, IV_UPPER, xtol=1e-12, maxiter=200))
        except (ValueError, RuntimeError) as e:
            logger.debug(f"Implied volatility root search failed: {e}")
            return None


def black_scholes_call(S: float, K: float, T: float, r: float, q: float, sigma: float) -> float:
    """Module-level shortcut for ``BlackScholesModel.call_price``."""
    return BlackScholesModel.call_price(S, K, T, r, q, sigma)


def calculate_implied_volatility(
    market_price: float, S: float, K: float, T: float, r: float, q: float
) -> Optional[float]:
    """Module-level shortcut for ``BlackScholesModel.implied_volatility``."""
    return BlackScholesModel.implied_volatility(market_price, S, K, T, r, q)
