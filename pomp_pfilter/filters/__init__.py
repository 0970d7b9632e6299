"""
Filtering algorithms.
"""

from .base import FilterResult, PfilterResult
from .kalman import KalmanFilter
from .particle import ParticleFilter, pfilter

__all__ = [
    "FilterResult",
    "PfilterResult",
    "KalmanFilter",
    "ParticleFilter",
    "pfilter",
]
