"""
Bounded retry of the pricing chain over alternate grid presets, with a
closed-form Black-Scholes fallback once the presets are exhausted.

Only numerical instability and allocation failures are retried; invalid
inputs and an undefined Black-Scholes anchor propagate to the caller.
"""

import math
from typing import Optional

from heston_fft.calibration.calibrator import Calibrator
from heston_fft.core.config import CalibrationConfig, GridConfig, RecoveryConfig
from heston_fft.core.errors import (
    AllocationFailureError,
    BlackScholesAnchorError,
    NumericInstabilityError,
    PricingError,
)
from heston_fft.core.types import (
    CalibrationResult,
    ContractParams,
    FallbackReason,
    HestonParams,
)
from heston_fft.models.black_scholes import BlackScholesModel
from heston_fft.pricing.session import PricingSession
from heston_fft.utils.logging import get_logger

logger = get_logger(__name__)

RECOVERABLE_ERRORS = (NumericInstabilityError, AllocationFailureError)


class RecoveryGuard:
    """
    Fallible-operation boundary around the transform and the calibrator.

    Example:
        >>> with PricingSession() as session:
        ...     guard = RecoveryGuard(session)
        ...     result = guard.solve(5.0, ContractParams(spot=100, strike=100, time_to_expiry=0.25))
    """

    def __init__(
        self,
        session: PricingSession,
        calibration: Optional[CalibrationConfig] = None,
        recovery: Optional[RecoveryConfig] = None,
    ):
        """
        Initialize recovery guard.

        Args:
            session: Pricing session that owns grid, cache and FFT
            calibration: Calibration search configuration
            recovery: Presets, attempt limit and Black-Scholes fallback switch
        """
        self.session = session
        self.recovery = recovery or RecoveryConfig()
        self.calibrator = Calibrator(self.price, calibration)

    def grid_sequence(self, base: GridConfig) -> list[GridConfig]:
        """Base grid followed by presets, at most ``max_attempts`` in total."""
        return [base, *self.recovery.presets][: self.recovery.max_attempts]

    def transform_price(
        self,
        contract: ContractParams,
        heston: HestonParams,
        grid: Optional[GridConfig] = None,
    ) -> float:
        """
        Heston call price from the first grid whose transform succeeds.

        The grid is adapted for challenging inputs, then the transform is
        retried under each preset.

        Raises:
            NumericInstabilityError: If the last grid's transform is unstable
            AllocationFailureError: If the last grid's buffers cannot be allocated
        """
        session = self.session
        _, adapted = session.adapter.classify_and_adapt(contract, heston, grid or session.grid)
        *retries, final = self.grid_sequence(adapted)

        for attempt, candidate_grid in enumerate(retries, start=1):
            try:
                return session.transform.price(contract, heston, candidate_grid)
            except RECOVERABLE_ERRORS as e:
                logger.debug(
                    f"Transform attempt {attempt} failed (N={candidate_grid.fft_n}, "
                    f"eta={candidate_grid.eta}, alpha={candidate_grid.alpha}): {e}"
                )

        return session.transform.price(contract, heston, final)

    def fallback_price(
        self, contract: ContractParams, heston: HestonParams, error: PricingError
    ) -> float:
        """
        Black-Scholes price at sqrt(v0) standing in for a failed Heston price.

        Raises:
            PricingError: ``error`` itself, when the fallback is disabled or v0 is zero
        """
        if not self.recovery.bs_fallback or heston.v0 <= 0:
            raise error

        logger.warning(f"All transform attempts failed; pricing with Black-Scholes: {error}")
        return BlackScholesModel.call_price(
            contract.spot,
            contract.strike,
            contract.time_to_expiry,
            contract.risk_free_rate,
            contract.dividend_yield,
            math.sqrt(heston.v0),
        )

    def price(
        self,
        contract: ContractParams,
        heston: HestonParams,
        grid: Optional[GridConfig] = None,
    ) -> float:
        """
        Heston call price with per-price recovery.

        If every grid fails, the contract is priced with Black-Scholes at
        sqrt(v0).

        Raises:
            PricingError: If every grid fails and the Black-Scholes fallback
                is disabled or undefined
        """
        try:
            return self.transform_price(contract, heston, grid)
        except RECOVERABLE_ERRORS as e:
            return self.fallback_price(contract, heston, e)

    def solve(
        self,
        market_price: float,
        contract: ContractParams,
        grid: Optional[GridConfig] = None,
    ) -> CalibrationResult:
        """
        Calibrate under the base grid, retrying with presets on failure.

        Args:
            market_price: Observed call price
            contract: Contract and market state
            grid: Base grid, defaults to the session grid

        Returns:
            Calibration result from the first grid that succeeds, or the
            Black-Scholes anchor once every grid has failed

        Raises:
            BlackScholesAnchorError: If the anchor implied volatility is undefined
            PricingError: If every grid fails and the fallback is disabled
        """
        grids = self.grid_sequence(grid or self.session.grid)
        *retries, final = grids

        for attempt, attempt_grid in enumerate(retries, start=1):
            try:
                return self._solve_on_grid(market_price, contract, attempt_grid, attempt)
            except RECOVERABLE_ERRORS as e:
                logger.warning(f"Calibration attempt {attempt}/{len(grids)} failed: {e}")

        try:
            return self._solve_on_grid(market_price, contract, final, len(grids))
        except RECOVERABLE_ERRORS as e:
            logger.warning(f"Calibration attempt {len(grids)}/{len(grids)} failed: {e}")
            if not self.recovery.bs_fallback:
                raise
            return self._anchor_result(market_price, contract, e, len(grids))

    def _solve_on_grid(
        self,
        market_price: float,
        contract: ContractParams,
        grid: GridConfig,
        attempt: int,
    ) -> CalibrationResult:
        substituted = 0

        def pricer(candidate_contract: ContractParams, heston: HestonParams) -> float:
            nonlocal substituted
            try:
                return self.transform_price(candidate_contract, heston, grid)
            except RECOVERABLE_ERRORS as e:
                price = self.fallback_price(candidate_contract, heston, e)
                substituted += 1
                return price

        result = self.calibrator.solve(market_price, contract, pricer=pricer)

        if substituted >= result.evaluations > 0:
            raise NumericInstabilityError(
                f"All {result.evaluations} candidates priced with Black-Scholes "
                f"on grid N={grid.fft_n}, eta={grid.eta}, alpha={grid.alpha}"
            )
        if substituted:
            result.used_fallback = True
            if result.fallback_reason is FallbackReason.NONE:
                result.fallback_reason = FallbackReason.NUMERIC_INSTABILITY
            result.notes.append(
                f"{substituted} of {result.evaluations} candidates priced with "
                f"Black-Scholes at sqrt(v0)"
            )

        result.attempts = attempt
        result.grid = grid
        return result

    def _anchor_result(
        self,
        market_price: float,
        contract: ContractParams,
        error: PricingError,
        attempts: int,
    ) -> CalibrationResult:
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
                f"Recovery exhausted and Black-Scholes fallback undefined: {error}"
            ) from error

        logger.warning(f"Recovery exhausted after {attempts} attempts; returning BS anchor {bs_vol:.6f}")
        variance = bs_vol**2
        return CalibrationResult(
            best_params=HestonParams(v0=variance, kappa=1.0, theta=variance, sigma=0.0, rho=0.0),
            best_price_diff=math.nan,
            implied_vol=bs_vol,
            used_fallback=True,
            bs_anchor=bs_vol,
            fallback_reason=error.reason,
            attempts=attempts,
            notes=[str(error)],
        )
