"""
Tests for the public entry points.
"""

import math

import numpy as np
import pandas as pd
import pytest

from heston_fft import (
    Config,
    FallbackReason,
    GridConfig,
    HestonParams,
    PricingSession,
    compare_to_black_scholes,
    format_implied_vol,
    heston_call_price,
    implied_vol_smile,
    price_implied_vol,
)
from heston_fft.core.config import RecoveryConfig
from heston_fft.core.errors import (
    BlackScholesAnchorError,
    InputValidationError,
    NumericInstabilityError,
)
from heston_fft.models.black_scholes import BlackScholesModel


@pytest.mark.unit
class TestInputValidation:
    """Tests that invalid inputs are rejected before any computation."""

    @pytest.mark.parametrize(
        "args",
        [
            (0.0, 100.0, 100.0, 0.25),
            (-1.0, 100.0, 100.0, 0.25),
            (5.0, 0.0, 100.0, 0.25),
            (5.0, 100.0, -5.0, 0.25),
            (5.0, 100.0, 100.0, 0.0),
            (math.nan, 100.0, 100.0, 0.25),
            (5.0, math.inf, 100.0, 0.25),
        ],
    )
    def test_non_positive_inputs(self, args):
        """Test non-positive or non-finite scalars raise InputValidationError."""
        with pytest.raises(InputValidationError):
            price_implied_vol(*args)

    @pytest.mark.parametrize(
        "grid",
        [{"fft_n": 3000}, {"eta": 0.0}, {"alpha": -1.0}, {"log_strike_range": 0.0}, {"fftn": 4096}],
    )
    def test_invalid_grid_override(self, grid):
        """Test invalid grid overrides are rejected, not clamped."""
        with pytest.raises(InputValidationError):
            price_implied_vol(5.0, 100.0, 100.0, 0.25, grid=grid)

    def test_no_fft_on_invalid_input(self, counting_fft):
        """Test validation happens before the transform runs."""
        session = PricingSession(fft=counting_fft)
        with pytest.raises(InputValidationError):
            price_implied_vol(5.0, 100.0, 100.0, -0.25, session=session)
        assert counting_fft.calls == 0


@pytest.mark.integration
class TestPriceImpliedVol:
    """End-to-end implied volatility tests."""

    def test_reference_example(self):
        """Test the reference contract returns a bounded vol near the BS anchor."""
        result = price_implied_vol(5.0, 100.0, 100.0, 0.25, 0.05, 0.02)

        assert 0.05 <= result.implied_vol <= 1.5
        assert math.isfinite(result.implied_vol)
        assert result.implied_vol == pytest.approx(result.bs_anchor, abs=0.02)
        assert not result.challenging
        assert result.attempts == 1
        assert len(format_implied_vol(result.implied_vol).split(".")[1]) == 6

    def test_round_trip_bs_price(self):
        """Test a BS-generated price recovers its volatility."""
        market = BlackScholesModel.call_price(100.0, 100.0, 0.25, 0.05, 0.02, 0.20)
        result = price_implied_vol(market, 100.0, 100.0, 0.25, 0.05, 0.02)

        assert result.bs_anchor == pytest.approx(0.20, abs=1e-4)
        assert result.implied_vol == pytest.approx(0.20, abs=1e-4)

    def test_failed_transforms_reported(self):
        """Test a session whose FFT never yields a finite price reports the fallback."""
        market = BlackScholesModel.call_price(100.0, 85.0, 0.25, 0.05, 0.02, 0.25)
        with PricingSession(fft=lambda x: np.full_like(x, np.nan)) as session:
            result = price_implied_vol(
                market, 100.0, 85.0, 0.25, 0.05, 0.02, session=session
            )

        assert result.used_fallback
        assert result.fallback_reason is FallbackReason.NUMERIC_INSTABILITY
        assert result.implied_vol == pytest.approx(0.25, abs=1e-6)

    def test_grid_override_dict(self):
        """Test a dict override is merged over the configured grid."""
        result = price_implied_vol(
            5.0, 100.0, 100.0, 0.25, 0.05, 0.02, grid={"fft_n": 2048, "eta": 0.1}
        )
        assert result.grid.fft_n == 2048
        assert result.grid.eta == 0.1
        assert result.grid.alpha == 1.5

    def test_deep_otm_short_expiry(self):
        """Test an extreme contract is classified challenging and stays finite."""
        market = BlackScholesModel.call_price(100.0, 300.0, 0.02, 0.05, 0.0, 1.4)
        result = price_implied_vol(market, 100.0, 300.0, 0.02, 0.05, 0.0)

        assert result.challenging
        assert math.isfinite(result.implied_vol)
        assert 0.05 <= result.implied_vol <= 1.5
        assert result.grid.fft_n == 8192
        assert result.grid.eta == 0.025

    def test_shared_session(self, counting_fft):
        """Test a caller-owned session is reused and left open."""
        session = PricingSession(fft=counting_fft)
        price_implied_vol(5.0, 100.0, 100.0, 0.25, 0.05, 0.02, session=session)
        price_implied_vol(5.0, 100.0, 100.0, 0.25, 0.05, 0.02, session=session)

        assert session.fft_calls == counting_fft.calls >= 1
        assert session.cache.size() == 1
        session.close()

    def test_undefined_anchor(self):
        """Test a price above spot surfaces the anchor failure."""
        with pytest.raises(BlackScholesAnchorError):
            price_implied_vol(150.0, 100.0, 100.0, 0.25, 0.05, 0.02)

    def test_fallback_disabled_propagates(self):
        """Test an exhausted chain raises when the BS fallback is off."""
        config = Config(
            grid=GridConfig(fft_n=32, eta=1.0),
            recovery=RecoveryConfig(
                presets=[GridConfig(fft_n=32, eta=2.0)], max_attempts=2, bs_fallback=False
            ),
        )
        with pytest.raises(NumericInstabilityError):
            price_implied_vol(5.0, 100.0, 100.0, 0.25, 0.05, 0.02, config=config)


@pytest.mark.integration
class TestHestonCallPrice:
    """Tests for pricing with known parameters."""

    def test_price_positive(self, heston_params):
        """Test an ATM Heston call has a plausible price."""
        price = heston_call_price(100.0, 100.0, 0.25, heston_params, 0.05, 0.02)
        assert 3.0 < price < 6.0

    def test_dict_params(self, heston_params):
        """Test parameters may be given as a dictionary."""
        a = heston_call_price(100.0, 105.0, 0.5, heston_params)
        b = heston_call_price(100.0, 105.0, 0.5, heston_params.to_dict())
        assert a == b

    def test_invalid_params(self):
        """Test invalid parameters are input errors."""
        with pytest.raises(InputValidationError):
            heston_call_price(
                100.0, 100.0, 0.25, {"v0": 0.04, "kappa": -1.0, "theta": 0.04, "sigma": 0.3, "rho": 0.0}
            )


@pytest.mark.slow
class TestReports:
    """Tests for the DataFrame reports."""

    def test_implied_vol_smile(self):
        """Test the smile table covers every strike with bounded vols."""
        strikes = [90.0, 100.0, 110.0]
        smile = implied_vol_smile(100.0, strikes, 90 / 365, 0.2, 0.05, 0.01)

        assert isinstance(smile, pd.DataFrame)
        assert list(smile["strike"]) == strikes
        assert smile["bs_iv"].to_numpy() == pytest.approx([0.2] * 3, abs=1e-4)
        assert smile["sv_iv"].between(0.05, 1.5).all()

    def test_compare_to_black_scholes(self):
        """Test Heston and BS prices agree closely for near-constant variance."""
        params = HestonParams(v0=0.04, kappa=1.0, theta=0.04, sigma=0.01, rho=0.0)
        table = compare_to_black_scholes(100.0, [95.0, 100.0, 105.0], [0.25, 0.5], params, 0.05, 0.0)

        assert len(table) == 6
        assert set(table.columns) >= {"expiry", "strike", "heston_price", "bs_price", "difference"}
        assert table["difference"].abs().max() < 0.02
        assert table["heston_iv"].to_numpy() == pytest.approx([0.2] * 6, abs=5e-3)


@pytest.mark.unit
def test_format_implied_vol():
    """Test six-decimal formatting."""
    assert format_implied_vol(0.123456789) == "0.123457"
