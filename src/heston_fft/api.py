"""
Entry points of the pricing engine.

Inputs are validated before any computation starts; invalid inputs raise
InputValidationError. Every other failure either degrades to the
Black-Scholes anchor (recorded on the result) or surfaces as a PricingError.
"""

import math
from typing import Any, Optional, Sequence, Union

import pandas as pd
from pydantic import ValidationError

from heston_fft.calibration.recovery import RecoveryGuard
from heston_fft.core.config import Config, GridConfig
from heston_fft.core.errors import InputValidationError
from heston_fft.core.types import CalibrationResult, ContractParams, HestonParams
from heston_fft.models.black_scholes import BlackScholesModel
from heston_fft.pricing.session import PricingSession
from heston_fft.utils.logging import get_logger

logger = get_logger(__name__)

# Representative parameters used to classify a contract before calibration
PROBE_PARAMS = HestonParams(v0=0.04, kappa=1.0, theta=0.04, sigma=0.4, rho=-0.7)

GridOverride = Union[GridConfig, dict[str, Any], None]


def _resolve_grid(grid: GridOverride, config: Config) -> GridConfig:
    if grid is None:
        return config.grid
    if isinstance(grid, GridConfig):
        return grid
    unknown = set(grid) - set(GridConfig.model_fields)
    if unknown:
        raise InputValidationError(f"Unknown grid fields: {sorted(unknown)}")
    try:
        return GridConfig(**{**config.grid.model_dump(), **grid})
    except ValidationError as e:
        raise InputValidationError(f"Invalid grid override: {e}") from e


def _make_contract(
    spot: float,
    strike: float,
    time_to_expiry: float,
    risk_free_rate: float,
    dividend_yield: float,
) -> ContractParams:
    for name, value in (
        ("spot", spot),
        ("strike", strike),
        ("time_to_expiry", time_to_expiry),
        ("risk_free_rate", risk_free_rate),
        ("dividend_yield", dividend_yield),
    ):
        if not math.isfinite(value):
            raise InputValidationError(f"{name} must be finite, got {value}")
    try:
        return ContractParams(
            spot=spot,
            strike=strike,
            time_to_expiry=time_to_expiry,
            risk_free_rate=risk_free_rate,
            dividend_yield=dividend_yield,
        )
    except ValidationError as e:
        raise InputValidationError(f"Invalid contract: {e}") from e


def _make_session(
    grid: GridConfig, config: Config, session: Optional[PricingSession]
) -> tuple[PricingSession, bool]:
    if session is not None:
        return session, False
    return PricingSession(grid=grid, engine=config.engine), True


def price_implied_vol(
    market_price: float,
    spot: float,
    strike: float,
    time_to_expiry: float,
    risk_free_rate: float = 0.0,
    dividend_yield: float = 0.0,
    grid: GridOverride = None,
    config: Optional[Config] = None,
    session: Optional[PricingSession] = None,
) -> CalibrationResult:
    """
    Implied volatility of a European call under the Heston model.

    Args:
        market_price: Observed call price
        spot: Spot price
        strike: Strike price
        time_to_expiry: Time to expiry in years
        risk_free_rate: Continuously compounded risk-free rate
        dividend_yield: Continuous dividend yield
        grid: Grid override, a GridConfig or a dict of GridConfig fields
        config: Engine configuration, defaults to Config()
        session: Existing session to reuse; a private one is created otherwise

    Returns:
        Calibration result carrying the implied volatility

    Raises:
        InputValidationError: If an input or grid override is invalid
        BlackScholesAnchorError: If the Black-Scholes anchor is undefined
        PricingError: If recovery is exhausted with the fallback disabled

    Example:
        >>> result = price_implied_vol(5.0, 100.0, 100.0, 0.25, 0.05, 0.02)
        >>> 0.05 <= result.implied_vol <= 1.5
        True
    """
    config = config or Config()
    if not math.isfinite(market_price) or market_price <= 0:
        raise InputValidationError(f"market_price must be positive, got {market_price}")
    contract = _make_contract(spot, strike, time_to_expiry, risk_free_rate, dividend_yield)
    base_grid = _resolve_grid(grid, config)

    session, owned = _make_session(base_grid, config, session)
    try:
        challenging, adapted = session.adapter.classify_and_adapt(
            contract, PROBE_PARAMS, base_grid
        )
        if challenging:
            logger.info(
                f"Challenging contract K/S={contract.moneyness:.3f}, "
                f"T={contract.time_to_expiry:.4f}"
            )

        guard = RecoveryGuard(session, config.calibration, config.recovery)
        result = guard.solve(market_price, contract, grid=adapted)
        result.challenging = challenging
    finally:
        if owned:
            session.close()

    logger.info(
        f"Implied vol {format_implied_vol(result.implied_vol)} for K={strike}, T={time_to_expiry} "
        f"(reason={result.fallback_reason.value}, evaluations={result.evaluations})"
    )
    return result


def heston_call_price(
    spot: float,
    strike: float,
    time_to_expiry: float,
    params: Union[HestonParams, dict[str, float]],
    risk_free_rate: float = 0.0,
    dividend_yield: float = 0.0,
    grid: GridOverride = None,
    config: Optional[Config] = None,
    session: Optional[PricingSession] = None,
) -> float:
    """
    Heston call price for known parameters, with per-price recovery.

    Raises:
        InputValidationError: If an input, the parameters or the grid are invalid
    """
    config = config or Config()
    contract = _make_contract(spot, strike, time_to_expiry, risk_free_rate, dividend_yield)
    if isinstance(params, dict):
        try:
            params = HestonParams.from_dict(params)
        except (KeyError, ValueError) as e:
            raise InputValidationError(f"Invalid Heston parameters: {e}") from e
    base_grid = _resolve_grid(grid, config)

    session, owned = _make_session(base_grid, config, session)
    try:
        guard = RecoveryGuard(session, config.calibration, config.recovery)
        return guard.price(contract, params, base_grid)
    finally:
        if owned:
            session.close()


def implied_vol_smile(
    spot: float,
    strikes: Sequence[float],
    time_to_expiry: float,
    base_vol: float,
    risk_free_rate: float = 0.0,
    dividend_yield: float = 0.0,
    grid: GridOverride = None,
    config: Optional[Config] = None,
) -> pd.DataFrame:
    """
    Black-Scholes and stochastic-volatility implied vols across a strike ladder.

    Market prices are generated with Black-Scholes at ``base_vol``, then each
    is run through ``price_implied_vol`` on one shared session.

    Returns:
        DataFrame with columns strike, moneyness, market_price, bs_iv, sv_iv,
        used_fallback and fallback_reason
    """
    config = config or Config()
    if not base_vol > 0:
        raise InputValidationError(f"base_vol must be positive, got {base_vol}")
    base_grid = _resolve_grid(grid, config)

    rows = []
    with PricingSession(grid=base_grid, engine=config.engine) as session:
        for strike in strikes:
            contract = _make_contract(
                spot, strike, time_to_expiry, risk_free_rate, dividend_yield
            )
            market_price = BlackScholesModel.call_price(
                spot, strike, time_to_expiry, risk_free_rate, dividend_yield, base_vol
            )
            result = price_implied_vol(
                market_price,
                spot,
                strike,
                time_to_expiry,
                risk_free_rate,
                dividend_yield,
                grid=base_grid,
                config=config,
                session=session,
            )
            rows.append(
                {
                    "strike": strike,
                    "moneyness": contract.moneyness,
                    "market_price": market_price,
                    "bs_iv": result.bs_anchor,
                    "sv_iv": result.implied_vol,
                    "used_fallback": result.used_fallback,
                    "fallback_reason": result.fallback_reason.value,
                }
            )

    return pd.DataFrame(rows)


def compare_to_black_scholes(
    spot: float,
    strikes: Sequence[float],
    expiries: Sequence[float],
    params: HestonParams,
    risk_free_rate: float = 0.0,
    dividend_yield: float = 0.0,
    grid: GridOverride = None,
    config: Optional[Config] = None,
) -> pd.DataFrame:
    """
    Heston FFT prices against Black-Scholes prices at sqrt(theta).

    Strikes of one expiry share a cached curve, so each expiry costs a single
    transform.

    Returns:
        DataFrame with columns expiry, strike, heston_price, bs_price,
        difference and heston_iv
    """
    config = config or Config()
    base_grid = _resolve_grid(grid, config)
    bs_vol = math.sqrt(params.theta)
    if bs_vol <= 0:
        raise InputValidationError("theta must be positive to compare with Black-Scholes")

    rows = []
    with PricingSession(grid=base_grid, engine=config.engine) as session:
        guard = RecoveryGuard(session, config.calibration, config.recovery)
        for expiry in expiries:
            for strike in strikes:
                contract = _make_contract(
                    spot, strike, expiry, risk_free_rate, dividend_yield
                )
                heston_price = guard.price(contract, params, base_grid)
                bs_price = BlackScholesModel.call_price(
                    spot, strike, expiry, risk_free_rate, dividend_yield, bs_vol
                )
                heston_iv = BlackScholesModel.implied_volatility(
                    heston_price, spot, strike, expiry, risk_free_rate, dividend_yield
                )
                rows.append(
                    {
                        "expiry": expiry,
                        "strike": strike,
                        "heston_price": heston_price,
                        "bs_price": bs_price,
                        "difference": heston_price - bs_price,
                        "heston_iv": heston_iv if heston_iv is not None else math.nan,
                    }
                )

        logger.debug(f"Model comparison session stats: {session.stats}")

    return pd.DataFrame(rows)


def format_implied_vol(implied_vol: float) -> str:
    """
    Format an implied volatility with six decimal digits.

    Example:
        >>> format_implied_vol(0.2)
        '0.200000'
    """
    return f"{implied_vol:.6f}"
