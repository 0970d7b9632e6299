"""
Trajectory simulation and data loading.
"""

from .trajectory import Trajectory, simulate

__all__ = [
    "Trajectory",
    "simulate",
]
