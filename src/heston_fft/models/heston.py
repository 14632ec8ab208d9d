"""
Heston Stochastic Volatility Model characteristic function.

Mathematical Foundation:
    dS_t = (r - q) S_t dt + sqrt(v_t) S_t dW_1
    dv_t = kappa (theta - v_t) dt + sigma sqrt(v_t) dW_2
    dW_1 dW_2 = rho dt

The characteristic function of ln(S_T) is evaluated in the rotation-stable
form of Albrecher et al. (2007):

    b = kappa - rho sigma i u
    d = sqrt(b^2 - sigma^2 (i u)(i u - 1))
    g = (b - d) / (b + d)
    A = (r - q) i u T + kappa theta / sigma^2 [(b - d) T - 2 ln((1 - g e^{-dT}) / (1 - g))]
    B = (b - d) / sigma^2 * (1 - e^{-dT}) / (1 - g e^{-dT})
    phi(u) = exp(A + B v0 + i u ln S)

References:
    Heston, S. L. (1993). A Closed-Form Solution for Options with Stochastic Volatility.
    The Review of Financial Studies, 6(2), 327-343.
    Albrecher, H., Mayer, P., Schoutens, W., Tistaert, J. (2007). The Little Heston Trap.
"""

from typing import Union

import numpy as np

from heston_fft.core.types import HestonParams
from heston_fft.utils.logging import get_logger

logger = get_logger(__name__)

# Returned wherever an intermediate term is not finite
SAFE_VALUE = 1.0 + 0.0j

ComplexLike = Union[complex, np.ndarray]


class HestonModel:
    """
    Heston stochastic volatility model.

    Wraps one immutable parameter set and evaluates its characteristic function.
    """

    def __init__(self, params: HestonParams, verbose: bool = False):
        """
        Initialize Heston model.

        Args:
            params: Heston model parameters
            verbose: Log every numerical-stability substitution
        """
        self.params = params
        self.verbose = verbose

    def characteristic_function(
        self, u: ComplexLike, S: float, T: float, r: float, q: float = 0.0
    ) -> ComplexLike:
        """
        Heston characteristic function of ln(S_T).

        Entries whose intermediate g, A or B terms are not finite are replaced
        by 1 + 0i instead of propagating NaN/Inf into the transform.

        Args:
            u: Complex argument(s)
            S: Current spot price
            T: Time to expiry in years
            r: Risk-free rate
            q: Dividend yield

        Returns:
            Characteristic function value(s), same shape as ``u``
        """
        p = self.params
        scalar = np.ndim(u) == 0
        u = np.atleast_1d(np.asarray(u, dtype=complex))

        with np.errstate(all="ignore"):
            iu = 1j * u
            b = p.kappa - p.rho * p.sigma * iu
            d = np.sqrt(b * b - p.sigma**2 * iu * (iu - 1.0))
            g = (b - d) / (b + d)

            exp_dt = np.exp(-d * T)
            sigma_sq = p.sigma**2
            A = (r - q) * iu * T + (p.kappa * p.theta / sigma_sq) * (
                (b - d) * T - 2.0 * np.log((1.0 - g * exp_dt) / (1.0 - g))
            )
            B = ((b - d) / sigma_sq) * ((1.0 - exp_dt) / (1.0 - g * exp_dt))

            result = np.exp(A + B * p.v0 + iu * np.log(S))

        unstable = ~(np.isfinite(g) & np.isfinite(A) & np.isfinite(B))
        if unstable.any():
            result[unstable] = SAFE_VALUE
            if self.verbose:
                logger.debug(
                    f"Non-finite g/A/B in characteristic function at {int(unstable.sum())} "
                    f"of {u.size} points; substituted {SAFE_VALUE}"
                )

        if scalar:
            return complex(result[0])
        return result


def characteristic_function(
    u: ComplexLike,
    S: float,
    params: HestonParams,
    r: float,
    q: float,
    T: float,
    verbose: bool = False,
) -> ComplexLike:
    """
    Evaluate the Heston characteristic function for one parameter set.

    Args:
        u: Complex argument(s)
        S: Spot price
        params: Heston parameters
        r: Risk-free rate
        q: Dividend yield
        T: Time to expiry in years
        verbose: Log numerical-stability substitutions

    Returns:
        phi(u), scalar or array matching ``u``
    """
    return HestonModel(params, verbose=verbose).characteristic_function(u, S, T, r, q)
