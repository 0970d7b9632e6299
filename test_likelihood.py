"""
Tests for replicated likelihood evaluation, parameter designs, random streams
and Monte Carlo summaries.

Run: pytest test_likelihood.py -v
"""

import pytest
import numpy as np

from pomp_pfilter.likelihood import (
    evaluate_design,
    grid_design,
    replicate_loglik,
    slice_design,
)
from pomp_pfilter.models.linear_gaussian import make_lgssm
from pomp_pfilter.filters.particle import pfilter
from pomp_pfilter.simulation import simulate
from pomp_pfilter.utils.random import run_generator, run_seed_sequence, spawn_generators
from pomp_pfilter.utils.stats import logmeanexp, mc_summary


@pytest.fixture(scope="module")
def ar1_model():
    return make_lgssm(A=[[0.9]], C=[[1.0]], Q=[[0.5]], R=[[1.0]], m0=[0.0], P0=[[1.0]])


@pytest.fixture(scope="module")
def ar1_data(ar1_model):
    return simulate(ar1_model, {}, T=20, seed=5)


# ============================================================================
# logmeanexp
# ============================================================================

class TestLogMeanExp:

    def test_values(self):
        assert np.isclose(logmeanexp(np.log([1.0, 3.0])), np.log(2.0))
        assert np.isclose(logmeanexp([0.0, 0.0, 0.0]), 0.0)

    def test_stable_for_large_magnitudes(self):
        assert np.isclose(logmeanexp([-1000.0, -1000.0]), -1000.0)
        assert np.isclose(logmeanexp([1000.0, 1000.0 + np.log(3.0)]), 1000.0 + np.log(2.0))

    def test_negative_infinity_entries(self):
        """Collapsed replicates contribute zero likelihood."""
        assert np.isclose(logmeanexp([0.0, -np.inf]), np.log(0.5))
        assert logmeanexp([-np.inf, -np.inf]) == -np.inf

    def test_jackknife_se(self):
        x = np.array([-10.0, -10.5, -9.7, -10.2, -11.0])
        est, se = logmeanexp(x, se=True)

        jk = np.array([np.log(np.mean(np.exp(np.delete(x, k)))) for k in range(5)])
        expected = 4 * np.std(jk, ddof=1) / np.sqrt(5)

        assert np.isclose(est, np.log(np.mean(np.exp(x))))
        assert np.isclose(se, expected)

    def test_constant_input_has_zero_se(self):
        _, se = logmeanexp(np.full(4, -3.0), se=True)
        assert np.isclose(se, 0.0)

    def test_errors(self):
        with pytest.raises(ValueError):
            logmeanexp([])
        with pytest.raises(ValueError):
            logmeanexp([1.0], se=True)

    def test_mc_summary(self):
        summary = mc_summary(np.array([-10.0, -11.0, -np.inf, -10.5]))

        assert summary["n"] == 4
        assert summary["n_infinite"] == 1
        assert np.isclose(summary["mean"], -10.5)
        assert np.isclose(summary["logmeanexp"], logmeanexp([-10.0, -11.0, -np.inf, -10.5]))


# ============================================================================
# Random streams
# ============================================================================

class TestRandomStreams:

    def test_run_generator_matches_spawned_child(self):
        children = spawn_generators(123, 5)
        for k in range(5):
            np.testing.assert_array_equal(
                run_generator(123, k).standard_normal(10),
                children[k].standard_normal(10),
            )

    def test_streams_differ(self):
        a = run_generator(123, 0).standard_normal(10)
        b = run_generator(123, 1).standard_normal(10)
        c = run_generator(124, 0).standard_normal(10)
        assert not np.array_equal(a, b)
        assert not np.array_equal(a, c)

    def test_negative_index(self):
        with pytest.raises(ValueError):
            run_seed_sequence(1, -1)


# ============================================================================
# Designs
# ============================================================================

class TestDesigns:

    CENTER = {"Beta": 15.0, "mu_IR": 0.5, "rho": 0.5}

    def test_slice_design(self):
        design = slice_design(self.CENTER, Beta=[5.0, 10.0, 20.0], rho=[0.1, 0.9])

        assert len(design) == 5
        assert [row["slice"] for row in design] == ["Beta"] * 3 + ["rho"] * 2
        assert [row["Beta"] for row in design[:3]] == [5.0, 10.0, 20.0]
        for row in design[:3]:
            assert row["mu_IR"] == 0.5 and row["rho"] == 0.5
        for row in design[3:]:
            assert row["Beta"] == 15.0

    def test_slice_design_unknown_parameter(self):
        with pytest.raises(KeyError):
            slice_design(self.CENTER, gamma=[1.0])

    def test_slice_design_leaves_center_unchanged(self):
        center = dict(self.CENTER)
        slice_design(center, Beta=[1.0, 2.0])
        assert center == self.CENTER

    def test_grid_design(self):
        design = grid_design(self.CENTER, Beta=[1.0, 2.0], rho=[0.1, 0.2, 0.3])

        assert len(design) == 6
        assert [(row["Beta"], row["rho"]) for row in design] == [
            (1.0, 0.1), (1.0, 0.2), (1.0, 0.3),
            (2.0, 0.1), (2.0, 0.2), (2.0, 0.3),
        ]
        assert all(row["mu_IR"] == 0.5 for row in design)


# ============================================================================
# Replicated evaluation
# ============================================================================

class TestReplicates:

    def test_replicates_are_reproducible(self, ar1_model, ar1_data):
        a = replicate_loglik(ar1_model, ar1_data, {}, n_particles=100, n_replicates=4, seed=9)
        b = replicate_loglik(ar1_model, ar1_data, {}, n_particles=100, n_replicates=4, seed=9)

        np.testing.assert_array_equal(a, b)
        assert a.shape == (4,)
        assert len(np.unique(a)) == 4

    def test_replicate_k_uses_stream_k(self, ar1_model, ar1_data):
        logliks = replicate_loglik(ar1_model, ar1_data, {}, n_particles=100, n_replicates=3, seed=9)
        single = pfilter(ar1_model, ar1_data, {}, n_particles=100, rng=run_generator(9, 2))
        assert logliks[2] == single.log_likelihood

    def test_independent_of_worker_count(self, ar1_model, ar1_data):
        serial = replicate_loglik(ar1_model, ar1_data, {}, n_particles=100,
                                  n_replicates=4, seed=3, n_jobs=1)
        parallel = replicate_loglik(ar1_model, ar1_data, {}, n_particles=100,
                                    n_replicates=4, seed=3, n_jobs=2)
        np.testing.assert_array_equal(serial, parallel)

    def test_options_forwarded(self, ar1_model, ar1_data):
        a = replicate_loglik(ar1_model, ar1_data, {}, n_particles=100, n_replicates=2,
                             seed=9, resample_method="multinomial")
        b = replicate_loglik(ar1_model, ar1_data, {}, n_particles=100, n_replicates=2, seed=9)
        assert not np.array_equal(a, b)

    def test_invalid_replicate_count(self, ar1_model, ar1_data):
        with pytest.raises(ValueError):
            replicate_loglik(ar1_model, ar1_data, {}, n_replicates=0, seed=1)

    def test_evaluate_design(self, ar1_model, ar1_data):
        design = slice_design({"R": 1.0, "Q": 0.5}, R=[0.5, 1.0, 2.0])
        results = evaluate_design(ar1_model, ar1_data, design, n_particles=200, seed=4)

        assert len(results) == 3
        assert [row["R"] for row in results] == [0.5, 1.0, 2.0]
        assert all(row["slice"] == "R" for row in results)
        assert all(np.isfinite(row["loglik"]) for row in results)
        assert "loglik" not in design[0]

        # Row i with one replicate uses stream i
        single = pfilter(ar1_model, ar1_data, {"R": 2.0, "Q": 0.5}, n_particles=200,
                         rng=run_generator(4, 2))
        assert results[2]["loglik"] == single.log_likelihood

    def test_evaluate_design_with_replicates(self, ar1_model, ar1_data):
        design = grid_design(R=[0.5, 2.0])
        results = evaluate_design(ar1_model, ar1_data, design, n_particles=100,
                                  n_replicates=3, seed=4)

        assert all("loglik_se" in row and row["loglik_se"] >= 0 for row in results)

        # Row 1, replicate 0 uses stream 1 * 3 + 0
        logliks = [
            pfilter(ar1_model, ar1_data, {"R": 2.0}, n_particles=100,
                    rng=run_generator(4, 3 + r)).log_likelihood
            for r in range(3)
        ]
        assert np.isclose(results[1]["loglik"], logmeanexp(logliks))
