"""
Summaries of replicated Monte Carlo log-likelihood estimates.
"""

import numpy as np
from scipy.special import logsumexp


def logmeanexp(x: np.ndarray, se: bool = False):
    """
    Log of the mean of exp(x), computed stably.

    Averages replicate particle-filter estimates on the likelihood scale, where
    each estimate is unbiased, rather than averaging the logs.

    Args:
        x: [n] log-likelihood estimates
        se: If True also return a jackknife standard error

    Returns:
        est, or (est, se) when se=True
    """
    x = np.asarray(x, dtype=np.float64).ravel()
    n = x.shape[0]
    if n == 0:
        raise ValueError("logmeanexp of an empty array")

    with np.errstate(divide="ignore"):
        est = logsumexp(x) - np.log(n)
    if not se:
        return est

    if n < 2:
        raise ValueError("jackknife standard error needs at least 2 values")

    # Leave-one-out estimates
    jk = np.empty(n)
    for k in range(n):
        with np.errstate(divide="ignore"):
            jk[k] = logsumexp(np.delete(x, k)) - np.log(n - 1)

    return est, (n - 1) * np.std(jk, ddof=1) / np.sqrt(n)


def mc_summary(logliks: np.ndarray) -> dict:
    """
    Describe a set of replicate log-likelihood estimates.

    Returns:
        dict with n, logmeanexp, se (jackknife), mean, sd and the number of
        replicates that returned -inf
    """
    logliks = np.asarray(logliks, dtype=np.float64)
    finite = logliks[np.isfinite(logliks)]
    summary = {
        "n": int(logliks.size),
        "n_infinite": int(logliks.size - finite.size),
        "mean": float(np.mean(finite)) if finite.size else -np.inf,
        "sd": float(np.std(finite, ddof=1)) if finite.size > 1 else np.nan,
    }
    if logliks.size > 1:
        est, se = logmeanexp(logliks, se=True)
        summary["logmeanexp"] = float(est)
        summary["se"] = float(se)
    else:
        summary["logmeanexp"] = float(logmeanexp(logliks))
        summary["se"] = np.nan
    return summary
