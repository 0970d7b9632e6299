"""
Stochastic SIR model for weekly case reports (measles outbreak).

Latent process: Euler-binomial discretization of an SIR epidemic with a
fixed time step delta_t (days within weekly observation intervals).

    dN_SI ~ Binomial(S, 1 - exp(-Beta * I / N * dt))
    dN_IR ~ Binomial(I, 1 - exp(-mu_IR * dt))
    S -= dN_SI;  I += dN_SI - dN_IR;  R += dN_IR;  H += dN_IR

H accumulates recoveries and is reset to zero at each observation time, so
it counts the new cases in the current reporting interval.

Measurement: reports ~ Binomial(H, rho); a missing (NaN) report has density 1.

Initial state: S = round(eta * N), I = 1, R = round((1 - eta) * N), H = 0.
"""

import numpy as np
from scipy.stats import binom

from .base import POMPModel
from ..exceptions import InvalidParameterError

SIR_STATE_NAMES = ("S", "I", "R", "H")
SIR_PARAM_NAMES = ("Beta", "mu_IR", "rho", "eta", "N")

SIR_DEFAULT_PARAMS = {
    "Beta": 15.0,
    "mu_IR": 0.5,
    "rho": 0.5,
    "eta": 0.06,
    "N": 38000.0,
}

S, I, R, H = range(4)


def _get_params(theta) -> tuple:
    try:
        beta = float(theta["Beta"])
        mu_ir = float(theta["mu_IR"])
        rho = float(theta["rho"])
        eta = float(theta["eta"])
        pop = float(theta["N"])
    except KeyError as e:
        raise InvalidParameterError(f"missing SIR parameter {e.args[0]!r}") from None

    if not (beta >= 0 and mu_ir >= 0):
        raise InvalidParameterError(f"rates must be non-negative: Beta={beta}, mu_IR={mu_ir}")
    if not (0 <= rho <= 1 and 0 <= eta <= 1):
        raise InvalidParameterError(f"probabilities must lie in [0, 1]: rho={rho}, eta={eta}")
    if not pop > 0:
        raise InvalidParameterError(f"population size must be positive: N={pop}")

    return beta, mu_ir, rho, eta, pop


def euler_steps(dt: float, delta_t: float) -> tuple:
    """
    Split an interval of length dt into Euler steps no longer than delta_t.

    Returns:
        n_steps: Number of steps
        h: Step size (dt / n_steps)
    """
    if dt <= delta_t:
        return 1, dt
    n_steps = int(np.ceil(dt / delta_t / (1.0 + 1e-8)))
    return n_steps, dt / n_steps


def make_sir_pomp(delta_t: float = 1.0 / 7.0, t0: float = 0.0) -> POMPModel:
    """
    Create the Euler-binomial SIR model with binomial reporting.

    Args:
        delta_t: Euler step size in observation time units (1/7 = daily
            steps for weekly data)
        t0: Time of the initial state

    Parameters read from theta: Beta, mu_IR, rho, eta, N
    (see SIR_DEFAULT_PARAMS).

    Returns:
        POMPModel with states (S, I, R, H) and one observation (reports)
    """

    def rinit(theta, n, rng):
        _, _, _, eta, pop = _get_params(theta)
        x = np.zeros((n, 4))
        x[:, S] = np.rint(eta * pop)
        x[:, I] = 1.0
        x[:, R] = np.rint((1.0 - eta) * pop)
        return x

    def rprocess(x, theta, t, dt, rng):
        beta, mu_ir, _, _, pop = _get_params(theta)
        n_steps, h = euler_steps(dt, delta_t)

        s = x[:, S].astype(np.int64)
        i = x[:, I].astype(np.int64)
        r = x[:, R].astype(np.int64)
        cases = np.zeros_like(s)

        p_ir = 1.0 - np.exp(-mu_ir * h)
        for _ in range(n_steps):
            p_si = 1.0 - np.exp(-beta * i / pop * h)
            d_si = rng.binomial(s, p_si)
            d_ir = rng.binomial(i, p_ir)
            s = s - d_si
            i = i + d_si - d_ir
            r = r + d_ir
            cases = cases + d_ir

        return np.column_stack([s, i, r, cases]).astype(np.float64)

    def dmeasure(y, x, theta, t, log=False):
        _, _, rho, _, _ = _get_params(theta)
        reports = np.asarray(y, dtype=np.float64).reshape(-1)[0]
        if np.isnan(reports):
            # Missing report: uninformative
            return np.zeros(x.shape[0]) if log else np.ones(x.shape[0])
        if log:
            return binom.logpmf(reports, x[:, H], rho)
        return binom.pmf(reports, x[:, H], rho)

    def rmeasure(x, theta, t, rng):
        _, _, rho, _, _ = _get_params(theta)
        return rng.binomial(x[:, H].astype(np.int64), rho)[:, np.newaxis].astype(np.float64)

    return POMPModel(
        state_dim=4,
        obs_dim=1,
        rinit=rinit,
        rprocess=rprocess,
        dmeasure=dmeasure,
        rmeasure=rmeasure,
        t0=t0,
        state_names=SIR_STATE_NAMES,
        param_names=SIR_PARAM_NAMES,
        name="measles_sir",
    )
