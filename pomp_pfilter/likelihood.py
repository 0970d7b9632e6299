"""
Likelihood evaluation over replicates and parameter designs.

Filter runs are independent and are distributed with joblib. Run k of a
call draws from ``run_generator(seed, k)``, so results are reproducible for a
given seed whatever the number of workers.
"""

import itertools
import logging
import numpy as np
from typing import Dict, List, Optional, Sequence
from joblib import Parallel, delayed

from .filters.particle import pfilter
from .models.base import POMPModel
from .utils.random import entropy_seed, run_generator
from .utils.stats import logmeanexp

logger = logging.getLogger(__name__)

# Columns added to design rows that are not model parameters
DESIGN_COLUMNS = ("slice", "loglik", "loglik_se")


def _run_loglik(model, data, theta, n_particles, seed, index, options) -> float:
    rng = run_generator(seed, index)
    return pfilter(model, data, theta, n_particles=n_particles, rng=rng, **options).log_likelihood


def _theta_from_row(row: Dict) -> Dict:
    return {k: v for k, v in row.items() if k not in DESIGN_COLUMNS}


def replicate_loglik(
    model: POMPModel,
    data,
    theta,
    n_particles: int = 1000,
    n_replicates: int = 10,
    seed: Optional[int] = None,
    n_jobs: int = 1,
    **options,
) -> np.ndarray:
    """
    Run independent particle filters at the same parameters.

    Args:
        model: POMPModel
        data: Trajectory or [T, ny] observations
        theta: Parameters
        n_particles: Particles per filter
        n_replicates: Number of filters
        seed: Master seed; replicate k uses stream k
        n_jobs: joblib workers (-1 = all cores)
        **options: Passed to ParticleFilter

    Returns:
        logliks: [n_replicates] log-likelihood estimates; combine them with
            utils.stats.logmeanexp
    """
    if n_replicates < 1:
        raise ValueError(f"n_replicates must be >= 1, got {n_replicates}")
    if seed is None:
        seed = entropy_seed()

    logger.info(
        "%d replicate filters of %s with J=%d (seed=%d, n_jobs=%d)",
        n_replicates, model.name, n_particles, seed, n_jobs,
    )
    logliks = Parallel(n_jobs=n_jobs)(
        delayed(_run_loglik)(model, data, theta, n_particles, seed, k, options)
        for k in range(n_replicates)
    )
    return np.array(logliks, dtype=np.float64)


def slice_design(center: Dict[str, float], **slices: Sequence[float]) -> List[Dict]:
    """
    Likelihood slices through a central point.

    For each keyword, one row per value with that parameter varied and all
    others held at `center`. Rows carry a "slice" entry naming the varied
    parameter.

    Example:
        slice_design(theta, Beta=np.linspace(5, 20, 40), mu_IR=[0.5, 1.0])
    """
    rows = []
    for name, values in slices.items():
        if name not in center:
            raise KeyError(f"slice variable {name!r} is not in center")
        for value in values:
            row = dict(center)
            row[name] = float(value)
            row["slice"] = name
            rows.append(row)
    return rows


def grid_design(base: Optional[Dict[str, float]] = None, **axes: Sequence[float]) -> List[Dict]:
    """
    Full factorial grid over the given axes; other parameters from `base`.

    The first axis varies slowest.
    """
    base = dict(base or {})
    names = list(axes)
    rows = []
    for values in itertools.product(*(axes[n] for n in names)):
        row = dict(base)
        row.update({n: float(v) for n, v in zip(names, values)})
        rows.append(row)
    return rows


def evaluate_design(
    model: POMPModel,
    data,
    design: List[Dict],
    n_particles: int = 1000,
    n_replicates: int = 1,
    seed: Optional[int] = None,
    n_jobs: int = 1,
    **options,
) -> List[Dict]:
    """
    Estimate the log-likelihood at every point of a design.

    Args:
        model: POMPModel
        data: Trajectory or [T, ny] observations
        design: Rows of parameters (from slice_design, grid_design, ...)
        n_particles: Particles per filter
        n_replicates: Filters per design point; with more than one, "loglik"
            is their logmeanexp and "loglik_se" its jackknife standard error
        seed: Master seed; filter r at row i uses stream i * n_replicates + r
        n_jobs: joblib workers (-1 = all cores)
        **options: Passed to ParticleFilter

    Returns:
        Copies of the design rows with "loglik" (and "loglik_se") added, in
        design order
    """
    if n_replicates < 1:
        raise ValueError(f"n_replicates must be >= 1, got {n_replicates}")
    if seed is None:
        seed = entropy_seed()

    logger.info(
        "evaluating %d design points x %d replicates of %s with J=%d (seed=%d)",
        len(design), n_replicates, model.name, n_particles, seed,
    )

    tasks = [
        (i, r) for i in range(len(design)) for r in range(n_replicates)
    ]
    logliks = Parallel(n_jobs=n_jobs)(
        delayed(_run_loglik)(
            model, data, _theta_from_row(design[i]), n_particles, seed, i * n_replicates + r, options
        )
        for i, r in tasks
    )
    logliks = np.array(logliks, dtype=np.float64).reshape(len(design), n_replicates)

    results = []
    for row, ll in zip(design, logliks):
        out = dict(row)
        if n_replicates == 1:
            out["loglik"] = float(ll[0])
        else:
            est, se = logmeanexp(ll, se=True)
            out["loglik"] = float(est)
            out["loglik_se"] = float(se)
        results.append(out)
    return results
