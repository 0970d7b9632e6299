"""
Tests for resampling schemes and weight normalization.

Run: pytest test_resampling.py -v
"""

import pytest
import numpy as np

from pomp_pfilter.utils.resampling import (
    RESAMPLERS,
    get_resampler,
    systematic_resample,
    effective_sample_size,
    normalize_log_weights,
)

METHODS = sorted(RESAMPLERS)


def counts(indices: np.ndarray, N: int) -> np.ndarray:
    return np.bincount(indices, minlength=N)


@pytest.fixture
def rng():
    return np.random.default_rng(2024)


class TestResamplers:

    @pytest.mark.parametrize("method", METHODS)
    def test_returns_n_valid_indices(self, method, rng):
        weights = rng.uniform(size=37)
        indices = get_resampler(method)(weights, rng)

        assert indices.shape == (37,)
        assert np.issubdtype(indices.dtype, np.integer)
        assert indices.min() >= 0 and indices.max() < 37

    @pytest.mark.parametrize("method", METHODS)
    def test_single_dominant_weight(self, method, rng):
        weights = np.zeros(20)
        weights[7] = 3.0
        indices = get_resampler(method)(weights, rng)

        np.testing.assert_array_equal(indices, np.full(20, 7))

    @pytest.mark.parametrize("method", METHODS)
    def test_zero_weights_never_selected(self, method, rng):
        weights = np.tile([0.0, 1.0, 0.0, 2.0, 0.0], 10)
        for _ in range(200):
            indices = get_resampler(method)(weights, rng)
            assert np.all(weights[indices] > 0)

    @pytest.mark.parametrize("method", METHODS)
    def test_expected_counts(self, method, rng):
        """E[count_i] = N * w_i."""
        weights = np.array([0.1, 0.2, 0.3, 0.4, 0.0])
        resample = get_resampler(method)
        mean_counts = np.mean(
            [counts(resample(weights, rng), 5) for _ in range(4000)], axis=0
        )
        np.testing.assert_allclose(mean_counts, 5 * weights, atol=0.1)

    @pytest.mark.parametrize("method", METHODS)
    def test_equal_weights_resample_uniformly(self, method, rng):
        """Equal weights: every particle is selected once on average."""
        N = 8
        resample = get_resampler(method)
        all_counts = np.array([counts(resample(np.ones(N), rng), N) for _ in range(4000)])

        np.testing.assert_allclose(all_counts.mean(axis=0), np.ones(N), atol=0.06)
        assert np.all(all_counts.sum(axis=1) == N)

    @pytest.mark.parametrize("method", METHODS)
    def test_weights_normalized_internally(self, method):
        weights = np.array([1.0, 1.0, 2.0])
        idx_raw = get_resampler(method)(weights, np.random.default_rng(0))
        idx_norm = get_resampler(method)(weights / 4.0, np.random.default_rng(0))
        np.testing.assert_array_equal(idx_raw, idx_norm)

    def test_systematic_equal_weights_keep_every_particle(self):
        for seed in range(20):
            indices = systematic_resample(np.ones(50), np.random.default_rng(seed))
            np.testing.assert_array_equal(indices, np.arange(50))

    def test_systematic_counts_are_floor_or_ceil(self, rng):
        """Systematic resampling never departs from N * w_i by a full copy."""
        N = 100
        for _ in range(50):
            weights = rng.dirichlet(np.ones(N))
            c = counts(systematic_resample(weights, rng), N)
            assert np.all(c >= np.floor(N * weights) - 1e-9)
            assert np.all(c <= np.ceil(N * weights) + 1e-9)

    @pytest.mark.parametrize(
        "weights",
        [
            np.array([0.5, -0.1, 0.6]),
            np.array([0.5, np.nan, 0.5]),
            np.array([0.5, np.inf, 0.5]),
            np.zeros(4),
            np.array([]),
        ],
    )
    def test_invalid_weights_raise(self, weights, rng):
        with pytest.raises(ValueError):
            systematic_resample(weights, rng)

    def test_unknown_method(self):
        with pytest.raises(ValueError, match="Unknown resample method"):
            get_resampler("bogus")


class TestWeights:

    def test_normalize_log_weights(self):
        log_w = np.log(np.array([1.0, 3.0, 0.0, 4.0]))
        with np.errstate(divide="ignore"):
            weights, log_sum = normalize_log_weights(log_w)

        np.testing.assert_allclose(weights, [0.125, 0.375, 0.0, 0.5])
        assert np.isclose(log_sum, np.log(8.0))

    def test_normalize_large_log_weights(self):
        """No overflow for log weights far from zero."""
        weights, log_sum = normalize_log_weights(np.array([-1000.0, -1000.0]))
        np.testing.assert_allclose(weights, [0.5, 0.5])
        assert np.isclose(log_sum, -1000.0 + np.log(2.0))

    def test_normalize_all_zero(self):
        weights, log_sum = normalize_log_weights(np.full(3, -np.inf))
        np.testing.assert_array_equal(weights, np.zeros(3))
        assert log_sum == -np.inf

    def test_ess_bounds(self):
        assert np.isclose(effective_sample_size(np.full(10, 0.1)), 10.0)
        assert np.isclose(effective_sample_size(np.eye(10)[3]), 1.0)
