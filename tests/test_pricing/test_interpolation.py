"""
Unit tests for strike interpolation.
"""

import numpy as np
import pytest

from heston_fft.core.errors import NumericInstabilityError
from heston_fft.pricing.cache import CacheEntry
from heston_fft.pricing.interpolation import StrikeInterpolator


@pytest.fixture
def entry() -> CacheEntry:
    return CacheEntry(
        strikes=np.array([80.0, 90.0, 100.0, 110.0, 120.0]),
        prices=np.array([21.0, 12.5, 5.0, 1.5, 0.25]),
        is_valid=True,
    )


@pytest.mark.unit
class TestStrikeInterpolator:
    """Tests for StrikeInterpolator."""

    def test_exact_node(self, entry):
        """Test a cached strike returns its price."""
        assert StrikeInterpolator().price(entry, 100.0) == 5.0

    def test_linear_between_nodes(self, entry):
        """Test linear interpolation between the bracketing pair."""
        assert StrikeInterpolator().price(entry, 105.0) == pytest.approx(3.25)
        assert StrikeInterpolator().price(entry, 82.0) == pytest.approx(21.0 - 0.2 * 8.5)

    @pytest.mark.parametrize("strike", [80.0, 79.9, 1.0])
    def test_clamped_below(self, entry, strike):
        """Test strikes at or below the lowest node return the first price exactly."""
        assert StrikeInterpolator().price(entry, strike) == 21.0

    @pytest.mark.parametrize("strike", [120.0, 120.1, 1e6])
    def test_clamped_above(self, entry, strike):
        """Test strikes at or above the highest node return the last price exactly."""
        assert StrikeInterpolator().price(entry, strike) == 0.25

    def test_non_finite_bracket_fails(self, entry):
        """Test non-finite bracketing prices are reported."""
        entry.prices[3] = np.nan
        with pytest.raises(NumericInstabilityError):
            StrikeInterpolator().price(entry, 105.0)
        # Brackets away from the bad sample are unaffected
        assert StrikeInterpolator().price(entry, 85.0) == pytest.approx(16.75)

    def test_invalid_entry_fails(self, entry):
        """Test an invalidated entry cannot be read."""
        entry.is_valid = False
        with pytest.raises(NumericInstabilityError, match="not valid"):
            StrikeInterpolator().price(entry, 100.0)
