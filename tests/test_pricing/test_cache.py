"""
Unit tests for the tolerance-keyed price cache.
"""

import numpy as np
import pytest

from heston_fft.core.config import GridConfig
from heston_fft.core.types import HestonParams
from heston_fft.pricing.cache import CacheEntry, PriceCache


def _fill(cache, contract, params, grid):
    entry = cache.acquire(grid.fft_n)
    entry.strikes[:] = np.linspace(50.0, 150.0, grid.fft_n)
    entry.prices[:] = np.linspace(50.0, 0.0, grid.fft_n)
    entry.store(contract, params, grid)
    return entry


@pytest.mark.unit
class TestCacheEntry:
    """Tests for CacheEntry buffers."""

    def test_resize_allocates_once(self):
        """Test buffers are reallocated only when N changes."""
        entry = CacheEntry()
        assert entry.resize(8)
        strikes = entry.strikes
        assert not entry.resize(8)
        assert entry.strikes is strikes
        assert entry.resize(16)
        assert entry.size == 16

    def test_resize_invalidates(self, atm_contract, heston_params):
        """Test a resized entry must be rewritten before use."""
        entry = CacheEntry()
        entry.resize(8)
        entry.store(atm_contract, heston_params, GridConfig(fft_n=8))
        entry.resize(8)
        assert not entry.is_valid

    def test_release(self):
        """Test release leaves both arrays empty."""
        entry = CacheEntry()
        entry.resize(8)
        entry.release()
        assert entry.strikes is None and entry.prices is None
        assert not entry.is_valid


@pytest.mark.unit
class TestPriceCache:
    """Tests for hit/miss decisions."""

    def test_empty_cache_misses(self, atm_contract, heston_params):
        """Test lookup on an empty cache misses."""
        cache = PriceCache()
        assert cache.lookup(atm_contract, heston_params, GridConfig()) is None
        assert cache.misses == 1

    def test_identical_inputs_hit(self, atm_contract, heston_params):
        """Test identical inputs hit."""
        cache = PriceCache()
        grid = GridConfig(fft_n=64)
        entry = _fill(cache, atm_contract, heston_params, grid)
        assert cache.lookup(atm_contract, heston_params, grid) is entry
        assert cache.hits == 1

    def test_strike_is_not_part_of_key(self, atm_contract, heston_params):
        """Test every strike shares one curve."""
        cache = PriceCache()
        grid = GridConfig(fft_n=64)
        _fill(cache, atm_contract, heston_params, grid)
        assert cache.lookup(atm_contract.with_strike(120.0), heston_params, grid) is not None

    def test_within_tolerance_hits(self, atm_contract, heston_params):
        """Test sub-tolerance perturbations still hit."""
        cache = PriceCache()
        grid = GridConfig(fft_n=64)
        _fill(cache, atm_contract, heston_params, grid)
        nudged = HestonParams(**{**heston_params.to_dict(), "v0": heston_params.v0 + 1e-7})
        assert cache.lookup(atm_contract, nudged, grid) is not None

    @pytest.mark.parametrize("field", ["spot", "risk_free_rate", "dividend_yield", "time_to_expiry"])
    def test_contract_change_misses(self, atm_contract, heston_params, field):
        """Test each contract scalar is part of the key."""
        cache = PriceCache()
        grid = GridConfig(fft_n=64)
        _fill(cache, atm_contract, heston_params, grid)
        changed = atm_contract.model_copy(update={field: getattr(atm_contract, field) + 1e-3})
        assert cache.lookup(changed, heston_params, grid) is None

    @pytest.mark.parametrize("field", ["v0", "kappa", "theta", "sigma", "rho"])
    def test_heston_change_misses(self, atm_contract, heston_params, field):
        """Test each Heston parameter is part of the key."""
        cache = PriceCache()
        grid = GridConfig(fft_n=64)
        _fill(cache, atm_contract, heston_params, grid)
        values = heston_params.to_dict()
        values[field] += 1e-3
        assert cache.lookup(atm_contract, HestonParams(**values), grid) is None

    @pytest.mark.parametrize(
        "change", [{"fft_n": 128}, {"eta": 0.051}, {"alpha": 1.501}, {"log_strike_range": 3.01}]
    )
    def test_grid_change_misses(self, atm_contract, heston_params, change):
        """Test each grid field is part of the key."""
        cache = PriceCache()
        grid = GridConfig(fft_n=64)
        _fill(cache, atm_contract, heston_params, grid)
        assert cache.lookup(atm_contract, heston_params, grid.model_copy(update=change)) is None

    def test_single_slot_evicts(self, atm_contract, heston_params):
        """Test the default capacity keeps only the latest curve."""
        cache = PriceCache()
        grid = GridConfig(fft_n=64)
        other = HestonParams(v0=0.09, kappa=2.0, theta=0.09, sigma=0.5, rho=-0.3)

        first = _fill(cache, atm_contract, heston_params, grid)
        second = _fill(cache, atm_contract, other, grid)

        assert second is first  # slot reused in place
        assert cache.size() == 1
        assert cache.lookup(atm_contract, heston_params, grid) is None
        assert cache.reallocations == 1

    def test_larger_capacity_keeps_lru(self, atm_contract, heston_params):
        """Test a two-slot cache keeps the two most recent curves."""
        cache = PriceCache(capacity=2)
        grid = GridConfig(fft_n=64)
        a = heston_params
        b = HestonParams(v0=0.09, kappa=2.0, theta=0.09, sigma=0.5, rho=-0.3)
        c = HestonParams(v0=0.01, kappa=3.0, theta=0.02, sigma=0.2, rho=0.0)

        _fill(cache, atm_contract, a, grid)
        _fill(cache, atm_contract, b, grid)
        assert cache.lookup(atm_contract, a, grid) is not None  # a now most recent
        _fill(cache, atm_contract, c, grid)  # evicts b

        assert cache.lookup(atm_contract, a, grid) is not None
        assert cache.lookup(atm_contract, b, grid) is None
        assert cache.lookup(atm_contract, c, grid) is not None

    def test_n_change_reallocates(self, atm_contract, heston_params):
        """Test a new N reallocates the slot's arrays."""
        cache = PriceCache()
        _fill(cache, atm_contract, heston_params, GridConfig(fft_n=64))
        entry = _fill(cache, atm_contract, heston_params, GridConfig(fft_n=128))
        assert entry.size == 128
        assert cache.reallocations == 2

    def test_invalid_capacity(self):
        """Test capacity must be positive."""
        with pytest.raises(ValueError):
            PriceCache(capacity=0)

    def test_stats_and_clear(self, atm_contract, heston_params):
        """Test statistics and clearing."""
        cache = PriceCache()
        grid = GridConfig(fft_n=64)
        cache.lookup(atm_contract, heston_params, grid)
        _fill(cache, atm_contract, heston_params, grid)
        cache.lookup(atm_contract, heston_params, grid)

        stats = cache.stats
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["hit_rate"] == 0.5

        cache.clear()
        assert cache.size() == 0
