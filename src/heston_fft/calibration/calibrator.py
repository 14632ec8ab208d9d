"""
Grid-search calibration of Heston parameters to a single market price.

The Black-Scholes implied volatility anchors the search: it seeds the initial
variance and is the estimate returned whenever the stochastic-volatility fit
cannot be trusted.
"""

import itertools
import math
from typing import Callable, Iterator, Optional

from heston_fft.core.config import CalibrationConfig
from heston_fft.core.errors import BlackScholesAnchorError, NumericInstabilityError
from heston_fft.core.types import (
    CalibrationResult,
    ContractParams,
    FallbackReason,
    HestonParams,
)
from heston_fft.models.black_scholes import BlackScholesModel
from heston_fft.utils.logging import get_contextual_logger, get_logger

logger = get_logger(__name__)

Pricer = Callable[[ContractParams, HestonParams], float]

# Forward moneyness (F/K) thresholds for the initial guess
ITM_FORWARD_MONEYNESS = 1.1
OTM_FORWARD_MONEYNESS = 0.9


class Calibrator:
    """
    Bounded nested grid search over (v0, kappa, sigma, rho).

    Candidates are visited with v0 outermost and rho innermost; the search
    stops at the first candidate within ``early_exit_fraction`` of the market
    price.
    """

    def __init__(self, pricer: Pricer, config: Optional[CalibrationConfig] = None):
        """
        Initialize calibrator.

        Args:
            pricer: Returns the Heston call price for a contract and parameters
            config: Search grid and acceptance thresholds
        """
        self.pricer = pricer
        self.config = config or CalibrationConfig()

    @staticmethod
    def initial_guess(contract: ContractParams, bs_vol: float) -> tuple[float, float]:
        """
        Starting (v0, kappa) from the anchor volatility and the contract shape.

        In-the-money forwards start with slightly more variance and faster
        mean reversion; short expiries revert faster and long ones slower.
        """
        variance = bs_vol**2
        forward_moneyness = contract.forward / contract.strike

        if forward_moneyness > ITM_FORWARD_MONEYNESS:
            v0, kappa = 1.1 * variance, 2.0
        elif forward_moneyness < OTM_FORWARD_MONEYNESS:
            v0, kappa = 1.05 * variance, 1.5
        else:
            v0, kappa = variance, 1.0

        if contract.time_to_expiry < 0.1:
            kappa = 3.0
        elif contract.time_to_expiry > 1.0:
            kappa = 0.5

        return v0, kappa

    def candidates(self, v0: float, kappa: float) -> Iterator[HestonParams]:
        """Candidate parameter sets around the initial guess, theta tied to v0."""
        cfg = self.config
        for v0_mult, kappa_mult, sigma, rho in itertools.product(
            cfg.v0_multipliers, cfg.kappa_multipliers, cfg.sigma_values, cfg.rho_values
        ):
            candidate_v0 = v0 * v0_mult
            yield HestonParams(
                v0=candidate_v0,
                kappa=kappa * kappa_mult,
                theta=candidate_v0,
                sigma=sigma,
                rho=rho,
            )

    def solve(
        self,
        market_price: float,
        contract: ContractParams,
        pricer: Optional[Pricer] = None,
    ) -> CalibrationResult:
        """
        Fit Heston parameters to ``market_price`` and derive an implied volatility.

        Args:
            market_price: Observed call price
            contract: Contract and market state
            pricer: Overrides the calibrator's pricer for this call

        Returns:
            Calibration result; ``used_fallback`` and ``fallback_reason`` record
            any departure from sqrt(v0) of the best candidate

        Raises:
            BlackScholesAnchorError: If the anchor implied volatility is undefined
            NumericInstabilityError: If no candidate produced a finite price
        """
        pricer = pricer or self.pricer
        cfg = self.config
        log = get_contextual_logger(
            __name__, strike=contract.strike, expiry=contract.time_to_expiry
        )

        bs_vol = BlackScholesModel.implied_volatility(
            market_price,
            contract.spot,
            contract.strike,
            contract.time_to_expiry,
            contract.risk_free_rate,
            contract.dividend_yield,
        )
        if bs_vol is None:
            raise BlackScholesAnchorError(
                f"Black-Scholes implied volatility undefined for price {market_price} "
                f"(S={contract.spot}, K={contract.strike}, T={contract.time_to_expiry})"
            )

        v0, kappa = self.initial_guess(contract, bs_vol)
        log.debug(f"BS anchor {bs_vol:.6f}, initial v0={v0:.6f}, kappa={kappa:.2f}")

        best_params: Optional[HestonParams] = None
        best_diff = math.inf
        evaluations = 0
        early_exit = cfg.early_exit_fraction * market_price

        for params in self.candidates(v0, kappa):
            price = pricer(contract, params)
            evaluations += 1

            if not math.isfinite(price):
                log.debug(f"Skipping candidate {params.to_dict()}: non-finite price")
                continue

            diff = abs(price - market_price)

            if evaluations == 1 and diff < cfg.degenerate_match_abs:
                log.info(
                    f"First candidate matches market price (diff={diff:.6f}); using BS anchor"
                )
                return CalibrationResult(
                    best_params=params,
                    best_price_diff=diff,
                    implied_vol=bs_vol,
                    used_fallback=True,
                    bs_anchor=bs_vol,
                    fallback_reason=FallbackReason.ANCHOR_MATCH,
                    evaluations=evaluations,
                )

            if diff < best_diff:
                best_diff = diff
                best_params = params

            if diff < early_exit:
                log.debug(f"Early exit after {evaluations} evaluations (diff={diff:.6f})")
                break

        if best_params is None:
            raise NumericInstabilityError(
                f"No finite Heston price among {evaluations} candidates"
            )

        sv_vol = math.sqrt(best_params.v0)
        implied_vol = sv_vol
        reason = FallbackReason.NONE
        notes: list[str] = []

        if best_diff > cfg.acceptance_fraction * market_price:
            weight = 1.0 - min(1.0, best_diff / market_price)
            implied_vol = weight * sv_vol + (1.0 - weight) * bs_vol
            reason = FallbackReason.NON_CONVERGENCE
            notes.append(
                f"best diff {best_diff:.6f} exceeds {cfg.acceptance_fraction:.0%} of market price; "
                f"blended with weight {weight:.4f}"
            )
            log.warning(
                f"Calibration did not converge (diff={best_diff:.6f}); "
                f"blending SV vol {sv_vol:.6f} with BS anchor {bs_vol:.6f}"
            )

        if not cfg.min_implied_vol <= implied_vol <= cfg.max_implied_vol:
            notes.append(
                f"implied vol {implied_vol:.6f} outside "
                f"[{cfg.min_implied_vol}, {cfg.max_implied_vol}]; using BS anchor"
            )
            log.warning(f"Implied vol {implied_vol:.6f} out of bounds; using BS anchor")
            implied_vol = self._clip_anchor(bs_vol)
            reason = FallbackReason.BOUNDS_VIOLATION

        return CalibrationResult(
            best_params=best_params,
            best_price_diff=best_diff,
            implied_vol=implied_vol,
            used_fallback=reason is not FallbackReason.NONE,
            bs_anchor=bs_vol,
            fallback_reason=reason,
            evaluations=evaluations,
            notes=notes,
        )

    def _clip_anchor(self, bs_vol: float) -> float:
        low, high = self.config.min_implied_vol, self.config.max_implied_vol
        clipped = min(max(bs_vol, low), high)
        if clipped != bs_vol:
            logger.warning(f"BS anchor {bs_vol:.6f} clipped to {clipped:.6f}")
        return clipped
