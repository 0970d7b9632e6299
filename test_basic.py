"""
Basic test script for the pomp_pfilter library.

Run: python test_basic.py
"""

import numpy as np
from numpy.random import default_rng

from pomp_pfilter.models import make_lgssm, make_two_state_lgssm, make_sir_pomp, SIR_DEFAULT_PARAMS
from pomp_pfilter.simulation import simulate
from pomp_pfilter.filters import KalmanFilter, ParticleFilter
from pomp_pfilter.likelihood import replicate_loglik
from pomp_pfilter.utils import logmeanexp


def test_equivalence_lgssm():
    """Particle filter log-likelihood against the exact Kalman value."""
    print("=" * 60)
    print("Testing Linear Gaussian POMP")
    print("=" * 60)

    model = make_two_state_lgssm()
    print(f"Model: {model}")

    T = 50
    trajectory = simulate(model, {}, T=T, seed=42)
    print(f"Simulated {T} steps")
    print(f"States shape: {trajectory.states.shape}")
    print(f"Observations shape: {trajectory.observations.shape}")

    result_kf = KalmanFilter().filter(model, trajectory.observations)
    logliks = replicate_loglik(model, trajectory, {}, n_particles=1000, n_replicates=10, seed=1)
    est, se = logmeanexp(logliks, se=True)

    print("\n" + "-" * 40)
    print("Results:")
    print("-" * 40)
    print(f"KF  - loglik: {result_kf.log_likelihood:.4f}")
    print(f"PF  - logmeanexp: {est:.4f} (se {se:.4f}), sd: {np.std(logliks, ddof=1):.4f}")

    assert abs(est - result_kf.log_likelihood) < 0.5

    print("\n✓ Particle filter matches Kalman likelihood!")


def test_model_simulation():
    """Sample the SIR process and score reports."""
    print("\n" + "=" * 60)
    print("Testing Model Simulation")
    print("=" * 60)

    model = make_sir_pomp()
    rng = default_rng(42)

    x0 = model.sample_initial(SIR_DEFAULT_PARAMS, 100, rng)
    print(f"Initial state: {dict(zip(model.state_names, x0[0]))}")

    x1 = model.sample_process(x0, SIR_DEFAULT_PARAMS, 0.0, 1.0, rng)
    print(f"Week 1: I mean={x1[:, 1].mean():.2f}, cases mean={x1[:, 3].mean():.2f}")

    y = model.sample_observation(x1[:1], SIR_DEFAULT_PARAMS, 1.0, rng)
    print(f"Reports: {y[0, 0]:.0f}")

    log_probs = model.measurement_log_density(y[0], x1, SIR_DEFAULT_PARAMS, 1.0)
    finite = np.isfinite(log_probs)
    print(f"Log probs: {finite.sum()}/{len(log_probs)} finite")

    assert np.all(x1[:, :3].sum(axis=1) == x0[:, :3].sum(axis=1))
    assert np.isfinite(log_probs[0])

    print("\n✓ Model simulation working correctly!")


def test_particle_filter_resampling():
    """Test different resampling schemes."""
    print("\n" + "=" * 60)
    print("Testing Particle Filter Resampling")
    print("=" * 60)

    # Simple model
    A = np.array([[0.9]])
    C = np.array([[1.0]])
    Q = np.array([[0.1]])
    R = np.array([[0.5]])
    m0 = np.array([0.0])
    P0 = np.array([[1.0]])

    model = make_lgssm(A, C, Q, R, m0, P0)
    trajectory = simulate(model, {}, T=30, seed=42)
    exact = KalmanFilter().filter(model, trajectory.observations).log_likelihood

    methods = ["systematic", "stratified", "multinomial", "residual"]

    for method in methods:
        pf = ParticleFilter(
            n_particles=200,
            resample_method=method,
            seed=123,
        )
        result = pf.filter(model, trajectory.observations, {})
        print(f"{method:12s} - loglik: {result.log_likelihood:.4f} (exact {exact:.4f}), "
              f"Avg ESS: {result.average_ess():.1f}, "
              f"Failures: {result.n_failures}")
        assert np.isfinite(result.log_likelihood)

    print("\n✓ All resampling methods working!")


def main():
    """Run all tests."""
    print("\n" + "#" * 60)
    print("# POMP Particle Filter Library Tests")
    print("#" * 60)

    tests = [
        test_model_simulation,
        test_equivalence_lgssm,
        test_particle_filter_resampling,
    ]

    passed = 0
    failed = 0

    for test in tests:
        try:
            test()
            passed += 1
        except Exception as e:
            print(f"\n✗ {test.__name__} FAILED: {e}")
            import traceback
            traceback.print_exc()
            failed += 1

    print("\n" + "#" * 60)
    print(f"# Results: {passed} passed, {failed} failed")
    print("#" * 60)

    return failed == 0


if __name__ == "__main__":
    success = main()
    exit(0 if success else 1)
