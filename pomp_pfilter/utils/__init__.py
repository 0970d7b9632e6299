"""
Utility functions.
"""

from .resampling import (
    systematic_resample,
    stratified_resample,
    multinomial_resample,
    residual_resample,
    get_resampler,
    effective_sample_size,
    normalize_log_weights,
)

from .random import (
    run_generator,
    spawn_generators,
)

from .stats import (
    logmeanexp,
    mc_summary,
)

from .log import (
    setup_logging,
)

__all__ = [
    "systematic_resample",
    "stratified_resample",
    "multinomial_resample",
    "residual_resample",
    "get_resampler",
    "effective_sample_size",
    "normalize_log_weights",
    "run_generator",
    "spawn_generators",
    "logmeanexp",
    "mc_summary",
    "setup_logging",
]
