"""
Shared pytest fixtures for the test suite.

Provides reusable contracts, parameter sets and configurations.
"""

from typing import Callable

import numpy as np
import pytest

from heston_fft.core.config import (
    CalibrationConfig,
    Config,
    EngineConfig,
    GridConfig,
    LoggingConfig,
    RecoveryConfig,
)
from heston_fft.core.types import ContractParams, HestonParams
from heston_fft.pricing.session import PricingSession


@pytest.fixture
def atm_contract() -> ContractParams:
    """At-the-money quarter-year call."""
    return ContractParams(
        spot=100.0,
        strike=100.0,
        time_to_expiry=0.25,
        risk_free_rate=0.05,
        dividend_yield=0.02,
    )


@pytest.fixture
def heston_params() -> HestonParams:
    """Typical equity-index Heston parameters."""
    return HestonParams(v0=0.04, kappa=1.5, theta=0.04, sigma=0.3, rho=-0.7)


@pytest.fixture
def small_grid() -> GridConfig:
    """Smaller FFT grid that keeps transform-heavy tests fast."""
    return GridConfig(fft_n=1024, eta=0.1, alpha=1.5, log_strike_range=2.0)


@pytest.fixture
def session() -> PricingSession:
    """Pricing session on the default grid, released after the test."""
    with PricingSession() as s:
        yield s


@pytest.fixture
def counting_fft() -> Callable[[np.ndarray], np.ndarray]:
    """numpy FFT wrapper that records how often it was called."""

    def fft(x: np.ndarray) -> np.ndarray:
        fft.calls += 1
        return np.fft.fft(x)

    fft.calls = 0
    return fft


@pytest.fixture
def default_config() -> Config:
    """Default configuration for testing."""
    return Config(
        grid=GridConfig(),
        calibration=CalibrationConfig(),
        recovery=RecoveryConfig(),
        engine=EngineConfig(),
        logging=LoggingConfig(
            level="WARNING",  # Reduce noise in tests
            format="json",
            console_output=False,
        ),
    )


def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "slow: Slow running tests")
