"""
POMP model definitions.
"""

from .base import POMPModel
from .linear_gaussian import make_lgssm, make_two_state_lgssm
from .sir import make_sir_pomp, SIR_DEFAULT_PARAMS

__all__ = [
    "POMPModel",
    "make_lgssm",
    "make_two_state_lgssm",
    "make_sir_pomp",
    "SIR_DEFAULT_PARAMS",
]
