"""
Independent random streams for replicated and parallel filter runs.

Each run gets its own Generator derived from a master seed and the run's
index, so a run's random numbers depend only on (seed, index) and never on
how runs are scheduled across workers.
"""

import numpy as np
from typing import List, Optional
from numpy.random import Generator, SeedSequence, default_rng


def run_seed_sequence(seed: Optional[int], index: int) -> SeedSequence:
    """
    Seed sequence for run `index` under master `seed`.

    Identical to ``SeedSequence(seed).spawn(n)[index]`` for any n > index.
    """
    if index < 0:
        raise ValueError(f"run index must be non-negative, got {index}")
    return SeedSequence(seed, spawn_key=(index,))


def run_generator(seed: Optional[int], index: int) -> Generator:
    """Generator for run `index` under master `seed`."""
    return default_rng(run_seed_sequence(seed, index))


def spawn_generators(seed: Optional[int], n: int) -> List[Generator]:
    """
    Create n independent generators from one master seed.

    With seed=None fresh OS entropy is drawn once and shared by all children,
    which are still mutually independent.
    """
    return [default_rng(child) for child in SeedSequence(seed).spawn(n)]


def entropy_seed() -> int:
    """Draw a fresh master seed from OS entropy (for logging and reruns)."""
    return int(SeedSequence().entropy % np.iinfo(np.int64).max)
