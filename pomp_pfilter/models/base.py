"""
POMP model base class.

Plug-and-play model specification shared by all filters. A model is defined by
simulators for the latent process and a density for the measurements; no
transition density is ever required.

All functions operate on batched inputs where the first axis is the particle
dimension.
"""

import numpy as np
from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence
from numpy.random import Generator

from ..exceptions import DimensionMismatchError, InvalidParameterError, PompError


@dataclass
class POMPModel:
    """
    Partially observed Markov process model.

    Process:     X_0 ~ rinit(theta),  X_n ~ rprocess(X_{n-1}, theta, t_{n-1}, dt_n)
    Measurement: Y_n ~ dmeasure(. | X_n, theta, t_n)

    Attributes:
        state_dim: State dimension (nx)
        obs_dim: Observation dimension (ny)

        rinit: (theta, n, rng) -> [n, nx] initial states
        rprocess: (x, theta, t, dt, rng) -> [N, nx] states advanced by dt.
            Receives a read-only view of the particle array and must return
            a new array.
        dmeasure: (y, x, theta, t, log) -> [N] measurement density (or its
            log when log=True) of observation y [ny] for each state

        rmeasure: Optional (x, theta, t, rng) -> [N, ny] measurement sampler
        kalman_params: Optional theta -> dict(A, C, Q, R, m0, P0) for models
            that are linear Gaussian, enabling exact likelihood evaluation

        t0: Time of the initial state
        state_names: Optional names of the state components
        param_names: Optional names of the parameters the model reads
        name: Label used in logs and repr
    """
    state_dim: int
    obs_dim: int

    rinit: Callable[[Any, int, Generator], np.ndarray]
    rprocess: Callable[[np.ndarray, Any, float, float, Generator], np.ndarray]
    dmeasure: Callable[..., np.ndarray]

    rmeasure: Optional[Callable[[np.ndarray, Any, float, Generator], np.ndarray]] = None
    kalman_params: Optional[Callable[[Any], dict]] = None

    t0: float = 0.0
    state_names: Optional[Sequence[str]] = None
    param_names: Optional[Sequence[str]] = None
    name: str = "pomp"

    def __post_init__(self):
        if self.state_dim < 1 or self.obs_dim < 1:
            raise DimensionMismatchError(
                f"state_dim and obs_dim must be >= 1, got {self.state_dim}, {self.obs_dim}"
            )
        if self.state_names is not None and len(self.state_names) != self.state_dim:
            raise DimensionMismatchError(
                f"{len(self.state_names)} state names given for state_dim={self.state_dim}"
            )

    # -------------------------------------------------------------------------
    # Sampling methods
    # -------------------------------------------------------------------------

    def sample_initial(self, theta, n: int, rng: Generator) -> np.ndarray:
        """
        Sample n particles from the initial distribution.

        Returns:
            x: [n, nx] initial states
        """
        x = np.asarray(self.rinit(theta, n, rng), dtype=np.float64)
        return self._check_states(x, n, "rinit")

    def sample_process(
        self,
        x: np.ndarray,
        theta,
        t: float,
        dt: float,
        rng: Generator,
    ) -> np.ndarray:
        """
        Advance every particle by one inter-observation interval.

        Args:
            x: [N, nx] states at time t
            theta: Parameters
            t: Start of the interval
            dt: Length of the interval
            rng: NumPy random generator

        Returns:
            x_next: [N, nx] states at time t + dt
        """
        view = x.view()
        view.flags.writeable = False
        x_next = np.asarray(self.rprocess(view, theta, t, dt, rng), dtype=np.float64)
        if np.shares_memory(x_next, x):
            x_next = x_next.copy()
        return self._check_states(x_next, x.shape[0], "rprocess")

    def sample_observation(self, x: np.ndarray, theta, t: float, rng: Generator) -> np.ndarray:
        """
        Sample observations for a batch of states.

        Returns:
            y: [N, ny] observations
        """
        if self.rmeasure is None:
            raise NotImplementedError(f"{self.name}: no rmeasure component")
        y = np.asarray(self.rmeasure(x, theta, t, rng), dtype=np.float64)
        return y.reshape(x.shape[0], self.obs_dim)

    # -------------------------------------------------------------------------
    # Density methods
    # -------------------------------------------------------------------------

    def measurement_log_density(self, y: np.ndarray, x: np.ndarray, theta, t: float) -> np.ndarray:
        """
        Compute log f(y | x; theta) for all particles.

        Args:
            x: [N, nx] particles
            y: [ny] single observation

        Returns:
            log_prob: [N] log densities (-inf where the density is zero)
        """
        log_prob = np.asarray(self.dmeasure(y, x, theta, t, log=True), dtype=np.float64)
        if log_prob.shape != (x.shape[0],):
            raise DimensionMismatchError(
                f"{self.name}: dmeasure returned shape {log_prob.shape}, "
                f"expected ({x.shape[0]},)"
            )
        return log_prob

    # -------------------------------------------------------------------------
    # Simulation
    # -------------------------------------------------------------------------

    def simulate(self, theta, times: np.ndarray, rng: Generator) -> tuple:
        """
        Simulate one realization of the process and its measurements.

        Args:
            theta: Parameters
            times: [T] observation times (strictly increasing, > t0)
            rng: NumPy random generator

        Returns:
            states: [T+1, nx] states at (t0, t_1, ..., t_T)
            observations: [T, ny] observations at (t_1, ..., t_T)
        """
        times = np.asarray(times, dtype=np.float64)
        T = times.shape[0]

        states = np.zeros((T + 1, self.state_dim))
        observations = np.zeros((T, self.obs_dim))

        states[0] = self.sample_initial(theta, 1, rng)[0]

        t_prev = self.t0
        for t in range(T):
            x_curr = states[t:t + 1]
            states[t + 1] = self.sample_process(x_curr, theta, t_prev, times[t] - t_prev, rng)[0]
            observations[t] = self.sample_observation(states[t + 1:t + 2], theta, times[t], rng)[0]
            t_prev = times[t]

        return states, observations

    # -------------------------------------------------------------------------
    # Construction from per-state callables
    # -------------------------------------------------------------------------

    @classmethod
    def from_pointwise(
        cls,
        state_dim: int,
        obs_dim: int,
        initial_sampler: Callable[[Any, Generator], np.ndarray],
        transition_sampler: Callable[[np.ndarray, Any, float, Generator], np.ndarray],
        measurement_density: Callable[[np.ndarray, np.ndarray, Any], float],
        observation_sampler: Optional[Callable[[np.ndarray, Any, Generator], np.ndarray]] = None,
        **kwargs,
    ) -> "POMPModel":
        """
        Build a model from unbatched per-state functions.

        Args:
            initial_sampler: (theta, rng) -> [nx] one initial state
            transition_sampler: (state, theta, dt, rng) -> [nx] next state
            measurement_density: (state, y, theta) -> density of y given state
            observation_sampler: Optional (state, theta, rng) -> [ny]
            **kwargs: Passed to the POMPModel constructor

        A measurement density that raises ArithmeticError or ValueError for a
        single state yields NaN for that particle; pomp_pfilter errors are
        propagated, and a negative density raises InvalidParameterError.
        """
        def rinit(theta, n, rng):
            return np.array([initial_sampler(theta, rng) for _ in range(n)]).reshape(n, state_dim)

        def rprocess(x, theta, t, dt, rng):
            return np.array([transition_sampler(xi, theta, dt, rng) for xi in x]).reshape(x.shape)

        def dmeasure(y, x, theta, t, log=False):
            dens = np.empty(x.shape[0])
            for j, xj in enumerate(x):
                try:
                    dens[j] = measurement_density(xj, y, theta)
                except PompError:
                    raise
                except (ArithmeticError, ValueError):
                    dens[j] = np.nan
            if np.any(dens < 0):
                raise InvalidParameterError("measurement_density returned a negative value")
            if log:
                with np.errstate(divide="ignore", invalid="ignore"):
                    return np.log(dens)
            return dens

        rmeasure = None
        if observation_sampler is not None:
            def rmeasure(x, theta, t, rng):
                return np.array([observation_sampler(xi, theta, rng) for xi in x]).reshape(
                    x.shape[0], obs_dim
                )

        return cls(
            state_dim=state_dim,
            obs_dim=obs_dim,
            rinit=rinit,
            rprocess=rprocess,
            dmeasure=dmeasure,
            rmeasure=rmeasure,
            **kwargs,
        )

    def _check_states(self, x: np.ndarray, n: int, source: str) -> np.ndarray:
        if x.ndim == 1 and self.state_dim == 1 and x.shape[0] == n:
            x = x[:, np.newaxis]
        if x.shape != (n, self.state_dim):
            raise DimensionMismatchError(
                f"{self.name}: {source} returned shape {x.shape}, expected ({n}, {self.state_dim})"
            )
        if not np.all(np.isfinite(x)):
            raise InvalidParameterError(f"{self.name}: {source} returned non-finite states")
        return x

    def __repr__(self) -> str:
        return f"POMPModel(name={self.name!r}, nx={self.state_dim}, ny={self.obs_dim})"
