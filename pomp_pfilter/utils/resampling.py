"""
Resampling algorithms for particle filters.

Every scheme draws N ancestor indices with replacement, with expected counts
N * w_i, so the resampled particle set always has exactly N members and
equal weights 1/N. Indices are returned in non-decreasing order for the
systematic and stratified schemes.
"""

import numpy as np
from numpy.random import Generator
from scipy.special import logsumexp


def _check_weights(weights: np.ndarray) -> np.ndarray:
    weights = np.asarray(weights, dtype=np.float64)
    if weights.ndim != 1 or weights.shape[0] == 0:
        raise ValueError(f"weights must be a non-empty 1-D array, got shape {weights.shape}")
    if not np.all(np.isfinite(weights)) or np.any(weights < 0):
        raise ValueError("weights must be finite and non-negative")
    total = weights.sum()
    if total <= 0:
        raise ValueError("weights sum to zero; nothing to resample")
    return weights / total


def _inverse_cdf(weights: np.ndarray, u: np.ndarray) -> np.ndarray:
    """Map sorted uniforms in [0, 1) to indices through the weight CDF."""
    N = len(weights)
    cdf = np.cumsum(weights)
    cdf[-1] = 1.0  # Ensure exactly 1.0 to avoid numerical issues

    # side='right' never selects a zero-weight particle, even when u hits 0
    indices = np.searchsorted(cdf, u, side="right")
    return np.minimum(indices, N - 1)


def systematic_resample(weights: np.ndarray, rng: Generator) -> np.ndarray:
    """
    Systematic resampling.

    Deterministic spacing with single random offset. Low variance.

    Args:
        weights: [N] Non-negative weights (normalized internally)
        rng: NumPy random generator

    Returns:
        indices: [N] Resampled particle indices
    """
    weights = _check_weights(weights)
    N = len(weights)

    u0 = rng.uniform(0.0, 1.0 / N)
    u = u0 + np.arange(N) / N

    return _inverse_cdf(weights, u)


def stratified_resample(weights: np.ndarray, rng: Generator) -> np.ndarray:
    """
    Stratified resampling.

    Independent random draw within each stratum [i/N, (i+1)/N).

    Args:
        weights: [N] Non-negative weights (normalized internally)
        rng: NumPy random generator

    Returns:
        indices: [N] Resampled particle indices
    """
    weights = _check_weights(weights)
    N = len(weights)

    u = (np.arange(N) + rng.uniform(0.0, 1.0, N)) / N

    return _inverse_cdf(weights, u)


def multinomial_resample(weights: np.ndarray, rng: Generator) -> np.ndarray:
    """
    Multinomial resampling.

    Standard resampling with replacement. Higher variance than systematic.
    """
    weights = _check_weights(weights)
    N = len(weights)
    return rng.choice(N, size=N, replace=True, p=weights)


def residual_resample(weights: np.ndarray, rng: Generator) -> np.ndarray:
    """
    Residual resampling.

    Deterministic replication of floor(N * w_i), then multinomial on residuals.
    """
    weights = _check_weights(weights)
    N = len(weights)

    n_copies = np.floor(N * weights).astype(int)
    indices = np.repeat(np.arange(N), n_copies)

    n_residual = N - len(indices)
    if n_residual > 0:
        residual_weights = N * weights - n_copies
        residual_weights = residual_weights / residual_weights.sum()
        residual_indices = rng.choice(N, size=n_residual, replace=True, p=residual_weights)
        indices = np.concatenate([indices, residual_indices])

    return indices.astype(int)


RESAMPLERS = {
    "systematic": systematic_resample,
    "stratified": stratified_resample,
    "multinomial": multinomial_resample,
    "residual": residual_resample,
}


def get_resampler(method: str):
    """Look up a resampling function by name."""
    try:
        return RESAMPLERS[method]
    except KeyError:
        raise ValueError(
            f"Unknown resample method: {method!r} (choose from {sorted(RESAMPLERS)})"
        ) from None


def effective_sample_size(weights: np.ndarray) -> float:
    """
    Compute effective sample size (ESS).

    ESS = 1 / sum(w_i^2), where weights are normalized.

    Returns:
        ESS value in [1, N]
    """
    return 1.0 / np.sum(weights ** 2)


def normalize_log_weights(log_weights: np.ndarray) -> tuple:
    """
    Normalize log weights to get normalized weights.

    Args:
        log_weights: [N] Unnormalized log weights (-inf allowed)

    Returns:
        weights: [N] Normalized weights (sum to 1), or all zeros when every
            log weight is -inf
        log_normalizer: Log of the normalizing constant (-inf on collapse)
    """
    with np.errstate(divide="ignore"):
        log_sum = logsumexp(log_weights)
    if not np.isfinite(log_sum):
        return np.zeros_like(log_weights), log_sum
    return np.exp(log_weights - log_sum), log_sum
