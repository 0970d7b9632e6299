"""
Linear Gaussian POMP model.

x_n = A @ x_{n-1} + v_n,  v_n ~ N(0, Q)
y_n = C @ x_n + w_n,      w_n ~ N(0, R)
x_0 ~ N(m0, P0)

The exact likelihood is available from the Kalman filter, which makes this the
reference model for checking particle filter estimates.
"""

import numpy as np
from typing import Optional

from .base import POMPModel
from ..exceptions import InvalidParameterError

LGSSM_PARAMS = ("A", "C", "Q", "R", "m0", "P0")

_JITTER = 1e-10


def _cholesky(M: np.ndarray, label: str) -> np.ndarray:
    M = 0.5 * (M + M.T)
    try:
        return np.linalg.cholesky(M + _JITTER * np.eye(M.shape[0]))
    except np.linalg.LinAlgError:
        raise InvalidParameterError(f"{label} is not positive semi-definite") from None


def make_lgssm(
    A: np.ndarray,
    C: np.ndarray,
    Q: np.ndarray,
    R: np.ndarray,
    m0: np.ndarray,
    P0: np.ndarray,
    t0: float = 0.0,
    name: str = "lgssm",
) -> POMPModel:
    """
    Create a linear Gaussian POMP model.

    The matrices given here are defaults. Any of them can be overridden per
    call through theta, e.g. ``{"R": 0.5}`` or ``{"A": A_new}``; scalars are
    broadcast to the default's shape. Time steps are discrete, so dt is
    ignored by the process model.

    Args:
        A: [nx, nx] State transition matrix
        C: [ny, nx] Observation matrix
        Q: [nx, nx] Process noise covariance
        R: [ny, ny] Observation noise covariance
        m0: [nx] Initial state mean
        P0: [nx, nx] Initial state covariance

    Returns:
        POMPModel instance with kalman_params set
    """
    defaults = {
        "A": np.atleast_2d(np.asarray(A, dtype=np.float64)),
        "C": np.atleast_2d(np.asarray(C, dtype=np.float64)),
        "Q": np.atleast_2d(np.asarray(Q, dtype=np.float64)),
        "R": np.atleast_2d(np.asarray(R, dtype=np.float64)),
        "m0": np.atleast_1d(np.asarray(m0, dtype=np.float64)),
        "P0": np.atleast_2d(np.asarray(P0, dtype=np.float64)),
    }

    nx = defaults["A"].shape[0]
    ny = defaults["C"].shape[0]

    def resolve(theta: Optional[dict]) -> dict:
        """Merge theta overrides into the default matrices."""
        params = dict(defaults)
        overrides = theta.items() if theta is not None else ()
        for key, value in overrides:
            if key not in params:
                continue
            value = np.asarray(value, dtype=np.float64)
            if value.ndim == 0:
                value = np.full(params[key].shape, float(value))
            params[key] = value.reshape(params[key].shape)
        for key, value in params.items():
            if not np.all(np.isfinite(value)):
                raise InvalidParameterError(f"{key} has non-finite entries")
        return params

    def rinit(theta, n, rng):
        p = resolve(theta)
        L = _cholesky(p["P0"], "P0")
        noise = rng.standard_normal((n, nx))
        return p["m0"] + noise @ L.T

    def rprocess(x, theta, t, dt, rng):
        p = resolve(theta)
        L = _cholesky(p["Q"], "Q")
        noise = rng.standard_normal(x.shape)
        return x @ p["A"].T + noise @ L.T

    def dmeasure(y, x, theta, t, log=False):
        p = resolve(theta)
        L = _cholesky(p["R"], "R")
        residual = np.asarray(y, dtype=np.float64) - x @ p["C"].T   # [N, ny]

        # Mahalanobis distance via the Cholesky factor
        solved = np.linalg.solve(L, residual.T)                     # [ny, N]
        mahal_sq = np.sum(solved ** 2, axis=0)
        logdet = 2.0 * np.sum(np.log(np.diag(L)))

        log_prob = -0.5 * (ny * np.log(2 * np.pi) + logdet + mahal_sq)
        return log_prob if log else np.exp(log_prob)

    def rmeasure(x, theta, t, rng):
        p = resolve(theta)
        L = _cholesky(p["R"], "R")
        noise = rng.standard_normal((x.shape[0], ny))
        return x @ p["C"].T + noise @ L.T

    return POMPModel(
        state_dim=nx,
        obs_dim=ny,
        rinit=rinit,
        rprocess=rprocess,
        dmeasure=dmeasure,
        rmeasure=rmeasure,
        kalman_params=resolve,
        t0=t0,
        param_names=LGSSM_PARAMS,
        name=name,
    )


def make_two_state_lgssm(
    a: float = 0.8,
    b: float = 0.3,
    q: float = 0.5,
    r: float = 1.0,
) -> POMPModel:
    """
    Two-state linear Gaussian model observed through the sum of its states.

    x_n = [[a, b], [0, a]] @ x_{n-1} + v_n,  v_n ~ N(0, q I)
    y_n = x_n[0] + x_n[1] + w_n,             w_n ~ N(0, r)
    x_0 ~ N(0, I)
    """
    A = np.array([[a, b], [0.0, a]])
    C = np.array([[1.0, 1.0]])
    Q = q * np.eye(2)
    R = np.array([[r]])
    return make_lgssm(A, C, Q, R, m0=np.zeros(2), P0=np.eye(2), name="two_state_lgssm")
