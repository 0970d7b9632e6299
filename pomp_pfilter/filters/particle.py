"""
Particle filter for POMP likelihood evaluation.

Bootstrap/SIR particle filter: the process model is the proposal, so only
simulators for the latent process and a measurement density are needed.
"""

import logging
import warnings
import numpy as np
from typing import Literal, Optional
from numpy.random import Generator, default_rng

from .base import PfilterResult
from ..exceptions import DimensionMismatchError, FilterCollapseError, InvalidParameterError
from ..models.base import POMPModel
from ..utils.resampling import (
    get_resampler,
    effective_sample_size,
    normalize_log_weights,
)

logger = logging.getLogger(__name__)


def prepare_data(
    model: POMPModel,
    observations,
    times=None,
    t0: Optional[float] = None,
) -> tuple:
    """
    Validate observations and time stamps against a model.

    Args:
        model: POMPModel
        observations: [T, ny] or [T] (when ny == 1) observations
        times: [T] strictly increasing observation times (default t0 + 1..T)
        t0: Time of the initial state (default model.t0)

    Returns:
        y: [T, ny] observations
        times: [T] observation times
        t0: Initial time
    """
    y = np.asarray(observations, dtype=np.float64)
    if y.ndim == 1 and model.obs_dim == 1:
        y = y[:, np.newaxis]
    if y.ndim != 2 or y.shape[1] != model.obs_dim:
        raise DimensionMismatchError(
            f"observations have shape {y.shape}, model expects [T, {model.obs_dim}]"
        )

    T = y.shape[0]
    if T < 1:
        raise DimensionMismatchError("need at least one observation")

    t0 = model.t0 if t0 is None else float(t0)
    if times is None:
        times = t0 + np.arange(1, T + 1, dtype=np.float64)
    else:
        times = np.array(times, dtype=np.float64).ravel()

    if times.shape[0] != T:
        raise DimensionMismatchError(f"{times.shape[0]} time stamps for {T} observations")
    if np.any(np.diff(times) <= 0):
        raise DimensionMismatchError("observation times must be strictly increasing")
    if times[0] < t0:
        raise DimensionMismatchError(f"first observation time {times[0]} precedes t0={t0}")

    return y, times, t0


class ParticleFilter:
    """
    Bootstrap Particle Filter (Sequential Importance Resampling).

    At each observation the particles are propagated with the process
    simulator, weighted by the measurement density, and resampled. The mean
    weight at each step estimates the conditional likelihood; their logs
    are summed into the log-likelihood estimate.
    """

    def __init__(
        self,
        n_particles: int = 1000,
        resample_method: Literal["systematic", "stratified", "multinomial", "residual"] = "systematic",
        collapse_log_likelihood: float = -np.inf,
        max_failures: Optional[int] = None,
        seed: Optional[int] = None,
    ):
        """
        Args:
            n_particles: Number of particles J (>= 1)
            resample_method: Resampling algorithm
            collapse_log_likelihood: Conditional log-likelihood recorded at a
                step where every weight is zero (-inf, or a large negative
                sentinel to keep totals finite)
            max_failures: Raise FilterCollapseError once more than this many
                steps have collapsed (None = never)
            seed: Random seed used when filter() gets no rng
        """
        if int(n_particles) != n_particles or n_particles < 1:
            raise DimensionMismatchError(f"n_particles must be an integer >= 1, got {n_particles}")
        if np.isnan(collapse_log_likelihood) or collapse_log_likelihood > 0:
            raise ValueError(
                f"collapse_log_likelihood must be <= 0 or -inf, got {collapse_log_likelihood}"
            )
        if max_failures is not None and max_failures < 0:
            raise ValueError(f"max_failures must be >= 0, got {max_failures}")

        self.n_particles = int(n_particles)
        self.resample_method = resample_method
        self.collapse_log_likelihood = float(collapse_log_likelihood)
        self.max_failures = max_failures
        self.seed = seed

        self._resample = get_resampler(resample_method)

    def filter(
        self,
        model: POMPModel,
        observations: np.ndarray,
        theta,
        times: Optional[np.ndarray] = None,
        t0: Optional[float] = None,
        return_particles: bool = False,
        rng: Optional[Generator] = None,
    ) -> PfilterResult:
        """
        Run the particle filter.

        Args:
            model: POMPModel
            observations: [T, ny] Observations (y_1, ..., y_T)
            theta: Parameters, passed unchanged to every model call
            times: [T] Observation times (default t0 + 1..T)
            t0: Time of the initial state (default model.t0)
            return_particles: If True, store the filtering particle history
            rng: Optional random generator (uses self.seed if None)

        Returns:
            PfilterResult
        """
        y, times, t0 = prepare_data(model, observations, times, t0)

        if rng is None:
            rng = default_rng(self.seed)

        T = y.shape[0]
        J = self.n_particles
        nx = model.state_dim
        log_J = np.log(J)

        logger.debug("pfilter %s: T=%d, J=%d, resample=%s", model.name, T, J, self.resample_method)

        # Storage
        cond_loglik = np.zeros(T)
        ess_history = np.zeros(T)
        filter_mean = np.zeros((T + 1, nx))
        pred_mean = np.zeros((T, nx))
        failed_steps = []

        particles = model.sample_initial(theta, J, rng)  # [J, nx]
        filter_mean[0] = particles.mean(axis=0)

        if return_particles:
            particles_history = np.zeros((T + 1, J, nx))
            particles_history[0] = particles

        t_prev = t0
        for t in range(T):
            # Propagate: prediction particles at times[t]
            x_pred = model.sample_process(particles, theta, t_prev, times[t] - t_prev, rng)
            pred_mean[t] = x_pred.mean(axis=0)

            # Weight
            log_w = model.measurement_log_density(y[t], x_pred, theta, times[t])
            log_w = self._check_log_weights(log_w, model, t)

            weights, log_sum = normalize_log_weights(log_w)

            if np.isfinite(log_sum):
                cond_loglik[t] = log_sum - log_J
                ess_history[t] = effective_sample_size(weights)

                # Resample
                indices = self._resample(weights, rng)
                particles = x_pred[indices]
            else:
                # Every particle is incompatible with y[t]: keep the
                # prediction particles unweighted and move on
                failed_steps.append(t)
                cond_loglik[t] = self.collapse_log_likelihood
                ess_history[t] = 0.0
                particles = x_pred

                logger.warning(
                    "pfilter %s: all %d particles have zero weight at step %d (t=%g)",
                    model.name, J, t, times[t],
                )
                if self.max_failures is not None and len(failed_steps) > self.max_failures:
                    raise FilterCollapseError(
                        f"{len(failed_steps)} filtering failures exceed max_failures="
                        f"{self.max_failures}",
                        n_failures=len(failed_steps),
                        step=t,
                    )

            filter_mean[t + 1] = particles.mean(axis=0)
            if return_particles:
                particles_history[t + 1] = particles

            t_prev = times[t]

        log_likelihood = float(np.sum(cond_loglik))
        logger.debug(
            "pfilter %s: loglik=%.4f, failures=%d, mean ESS=%.1f",
            model.name, log_likelihood, len(failed_steps), ess_history.mean(),
        )

        return PfilterResult(
            log_likelihood=log_likelihood,
            cond_log_likelihood=cond_loglik,
            ess=ess_history,
            filter_mean=filter_mean,
            pred_mean=pred_mean,
            n_particles=J,
            n_failures=len(failed_steps),
            failed_steps=np.array(failed_steps, dtype=int),
            times=times,
            particles=particles_history if return_particles else None,
        )

    def _check_log_weights(self, log_w: np.ndarray, model: POMPModel, t: int) -> np.ndarray:
        """NaN densities count as zero weight; infinite densities are illegal."""
        if np.any(np.isposinf(log_w)):
            raise InvalidParameterError(
                f"{model.name}: dmeasure returned an infinite density at step {t}"
            )
        nan_mask = np.isnan(log_w)
        if np.any(nan_mask):
            warnings.warn(
                f"{model.name}: dmeasure returned NaN for {nan_mask.sum()} of "
                f"{log_w.shape[0]} particles at step {t}; treating as zero weight",
                RuntimeWarning,
            )
            log_w = np.where(nan_mask, -np.inf, log_w)
        return log_w


def pfilter(
    model: POMPModel,
    data,
    theta,
    n_particles: int = 1000,
    seed: Optional[int] = None,
    rng: Optional[Generator] = None,
    times: Optional[np.ndarray] = None,
    return_particles: bool = False,
    **options,
) -> PfilterResult:
    """
    Estimate the log-likelihood of theta by particle filtering.

    Args:
        model: POMPModel
        data: Trajectory, or [T, ny] observations
        theta: Parameters
        n_particles: Number of particles J
        seed: Random seed (ignored if rng is provided)
        rng: NumPy random generator (optional)
        times: [T] Observation times when data is an array (a Trajectory
            supplies its own; passing both raises ValueError)
        return_particles: If True, keep the filtering particle history
        **options: Further ParticleFilter arguments (resample_method,
            collapse_log_likelihood, max_failures)

    Returns:
        PfilterResult
    """
    t0 = None
    observations = data
    if hasattr(data, "observations"):
        if times is not None:
            raise ValueError("times cannot be given with a Trajectory, which carries its own")
        observations = data.observations
        times = data.times
        t0 = data.t0

    pf = ParticleFilter(n_particles=n_particles, seed=seed, **options)
    return pf.filter(
        model,
        observations,
        theta,
        times=times,
        t0=t0,
        return_particles=return_particles,
        rng=rng,
    )
