"""
Filter result containers.
"""

import numpy as np
from dataclasses import dataclass
from typing import Optional


def _freeze(*arrays):
    for a in arrays:
        if a is not None:
            a.flags.writeable = False


@dataclass(frozen=True)
class PfilterResult:
    """
    Output of one particle filter run.

    Attributes:
        log_likelihood: Monte Carlo estimate of log L(theta), the sum of
            cond_log_likelihood (may be -inf or include sentinels after a
            filtering failure)
        cond_log_likelihood: [T] log of the conditional likelihood estimate
            L_n_hat = (1/J) sum_j w_nj at each step
        ess: [T] Effective sample size of the weights at each step
        filter_mean: [T+1, nx] Mean of the filtering particles (t0, t_1, ..., t_T)
        pred_mean: [T, nx] Mean of the prediction particles (t_1, ..., t_T)
        n_particles: Number of particles J
        n_failures: Number of steps at which every weight was zero
        failed_steps: [n_failures] 0-based indices of those steps
        times: [T] Observation times
        particles: [T+1, J, nx] Filtering particle history (optional)
    """
    log_likelihood: float
    cond_log_likelihood: np.ndarray
    ess: np.ndarray
    filter_mean: np.ndarray
    pred_mean: np.ndarray
    n_particles: int
    n_failures: int
    failed_steps: np.ndarray
    times: np.ndarray
    particles: Optional[np.ndarray] = None

    def __post_init__(self):
        _freeze(
            self.cond_log_likelihood,
            self.ess,
            self.filter_mean,
            self.pred_mean,
            self.failed_steps,
            self.times,
            self.particles,
        )

    @property
    def T(self) -> int:
        """Number of time steps (observations)."""
        return self.cond_log_likelihood.shape[0]

    @property
    def state_dim(self) -> int:
        """State dimension."""
        return self.filter_mean.shape[1]

    @property
    def cond_likelihood(self) -> np.ndarray:
        """[T] Conditional likelihood estimates on the natural scale."""
        return np.exp(self.cond_log_likelihood)

    @property
    def collapsed(self) -> bool:
        """True if any step had all weights zero."""
        return self.n_failures > 0

    def average_ess(self) -> float:
        """Return average ESS over the steps."""
        return float(np.mean(self.ess))

    def __repr__(self) -> str:
        return (
            f"PfilterResult(loglik={self.log_likelihood:.4f}, T={self.T}, "
            f"J={self.n_particles}, n_failures={self.n_failures})"
        )


@dataclass
class FilterResult:
    """
    Output of a Kalman filter run.

    Attributes:
        means: [T+1, nx] Filtered state means (m_0, m_1, ..., m_T)
        covariances: [T+1, nx, nx] Filtered state covariances
        log_likelihood: Exact log likelihood
        log_likelihood_increments: [T] Per-step log conditional likelihood
    """
    means: np.ndarray
    covariances: np.ndarray
    log_likelihood: float
    log_likelihood_increments: np.ndarray

    @property
    def T(self) -> int:
        """Number of time steps (observations)."""
        return self.means.shape[0] - 1

    @property
    def state_dim(self) -> int:
        """State dimension."""
        return self.means.shape[1]
