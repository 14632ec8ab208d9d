"""
Core data types for the Heston FFT pricing engine.

Contract inputs are Pydantic models and are immutable per pricing call.
Heston parameter sets are frozen dataclasses so the calibrator can generate
and discard thousands of them cheaply.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from heston_fft.core.config import GridConfig


class FallbackReason(str, Enum):
    """Why a result departed from the plain stochastic-volatility estimate."""

    NONE = "none"
    INVALID_INPUT = "invalid_input"
    ANCHOR_MATCH = "anchor_match"
    NON_CONVERGENCE = "non_convergence"
    BOUNDS_VIOLATION = "bounds_violation"
    NUMERIC_INSTABILITY = "numeric_instability"
    ALLOCATION_FAILURE = "allocation_failure"
    ANCHOR_UNAVAILABLE = "anchor_unavailable"


class ContractParams(BaseModel):
    """
    European call contract and market state.

    Spot, strike and time to expiry must be positive; rates may take any sign.
    """

    model_config = ConfigDict(frozen=True)

    spot: float = Field(..., description="Spot price S", gt=0)
    strike: float = Field(..., description="Strike price K", gt=0)
    time_to_expiry: float = Field(..., description="Time to expiry T in years", gt=0)
    risk_free_rate: float = Field(default=0.0, description="Continuously compounded rate r")
    dividend_yield: float = Field(default=0.0, description="Continuous dividend yield q")

    @property
    def moneyness(self) -> float:
        """Strike over spot (K/S)."""
        return self.strike / self.spot

    @property
    def forward(self) -> float:
        """Forward price S * exp((r - q) T)."""
        return self.spot * math.exp(
            (self.risk_free_rate - self.dividend_yield) * self.time_to_expiry
        )

    def with_strike(self, strike: float) -> "ContractParams":
        """Same market state at a different strike."""
        return self.model_copy(update={"strike": strike})


@dataclass(frozen=True)
class HestonParams:
    """
    Heston model parameters.

    Attributes:
        v0: Initial variance
        kappa: Mean reversion speed
        theta: Long-run variance
        sigma: Volatility of variance
        rho: Correlation between asset and variance
    """

    v0: float
    kappa: float
    theta: float
    sigma: float
    rho: float

    def __post_init__(self) -> None:
        """Validate parameters."""
        if not self.v0 >= 0:
            raise ValueError(f"v0 must be non-negative, got {self.v0}")
        if not self.kappa > 0:
            raise ValueError(f"kappa must be positive, got {self.kappa}")
        if not self.theta >= 0:
            raise ValueError(f"theta must be non-negative, got {self.theta}")
        if not self.sigma >= 0:
            raise ValueError(f"sigma must be non-negative, got {self.sigma}")
        if not -1 <= self.rho <= 1:
            raise ValueError(f"rho must be in [-1, 1], got {self.rho}")

    @property
    def satisfies_feller(self) -> bool:
        """Feller condition 2*kappa*theta > sigma^2."""
        return 2 * self.kappa * self.theta > self.sigma**2

    def to_dict(self) -> dict[str, float]:
        """Convert parameters to dictionary."""
        return {
            "v0": self.v0,
            "kappa": self.kappa,
            "theta": self.theta,
            "sigma": self.sigma,
            "rho": self.rho,
        }

    @classmethod
    def from_dict(cls, params: dict[str, float]) -> "HestonParams":
        """Create parameters from dictionary."""
        return cls(
            v0=float(params["v0"]),
            kappa=float(params["kappa"]),
            theta=float(params["theta"]),
            sigma=float(params["sigma"]),
            rho=float(params["rho"]),
        )


@dataclass
class CalibrationResult:
    """
    Outcome of one top-level implied volatility solve.

    ``used_fallback`` is set whenever the returned volatility is not the
    plain sqrt(v0) of the best-fitting candidate; ``fallback_reason`` says why.
    """

    best_params: HestonParams
    best_price_diff: float
    implied_vol: float
    used_fallback: bool
    bs_anchor: float
    fallback_reason: FallbackReason = FallbackReason.NONE
    evaluations: int = 0
    challenging: bool = False
    attempts: int = 1
    grid: Optional[GridConfig] = None
    notes: list[str] = field(default_factory=list)

    @property
    def converged(self) -> bool:
        """True when the stochastic-volatility estimate was used as is."""
        return not self.used_fallback

    def to_dict(self) -> dict[str, Any]:
        """Flatten to a dictionary for reporting."""
        return {
            "implied_vol": self.implied_vol,
            "bs_anchor": self.bs_anchor,
            "best_price_diff": self.best_price_diff,
            "used_fallback": self.used_fallback,
            "fallback_reason": self.fallback_reason.value,
            "evaluations": self.evaluations,
            "challenging": self.challenging,
            "attempts": self.attempts,
            **{f"best_{k}": v for k, v in self.best_params.to_dict().items()},
        }
