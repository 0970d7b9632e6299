"""
POMP Particle Filtering Library.

A NumPy-based library for likelihood-based inference on partially observed
Markov process (POMP) models:
- Plug-and-play POMP models (simulators + measurement density)
- Bootstrap particle filter log-likelihood estimates
- Kalman filter reference likelihood for linear Gaussian models
- Replicated and parallel likelihood evaluation over parameter designs
"""

from . import models
from . import filters
from . import simulation
from . import utils
from .exceptions import (
    PompError,
    InvalidParameterError,
    DimensionMismatchError,
    FilterCollapseError,
)
from .filters import ParticleFilter, PfilterResult, pfilter
from .likelihood import replicate_loglik, slice_design, grid_design, evaluate_design

__version__ = "0.1.0"
