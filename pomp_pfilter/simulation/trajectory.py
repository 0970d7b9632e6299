"""
Observed or simulated data: time stamps, observations and (optionally) states.
"""

import csv
import numpy as np
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Union
from numpy.random import Generator, default_rng

from ..exceptions import DimensionMismatchError
from ..models.base import POMPModel


@dataclass
class Trajectory:
    """
    Container for a time series of observations.

    Attributes:
        times: [T] Observation times (t_1, ..., t_T)
        observations: [T, ny] Observations (y_1, ..., y_T)
        t0: Time of the initial state
        states: [T+1, nx] Latent states (x_0, ..., x_T), when simulated
        obs_names: Optional column names of the observations
        metadata: Optional dictionary for additional info
    """
    times: np.ndarray
    observations: np.ndarray
    t0: float = 0.0
    states: Optional[np.ndarray] = None
    obs_names: Optional[Sequence[str]] = None
    metadata: Optional[Dict[str, Any]] = None

    def __post_init__(self):
        self.times = np.asarray(self.times, dtype=np.float64).ravel()
        self.observations = np.asarray(self.observations, dtype=np.float64)
        if self.observations.ndim == 1:
            self.observations = self.observations[:, np.newaxis]
        if self.observations.shape[0] != self.times.shape[0]:
            raise DimensionMismatchError(
                f"{self.times.shape[0]} times for {self.observations.shape[0]} observations"
            )

    @property
    def T(self) -> int:
        """Number of observations."""
        return self.observations.shape[0]

    @property
    def obs_dim(self) -> int:
        """Observation dimension."""
        return self.observations.shape[1]

    def subset(self, start: int, end: int) -> "Trajectory":
        """
        Observations start..end-1; t0 moves to the time preceding `start`.
        """
        t0 = self.t0 if start == 0 else float(self.times[start - 1])
        states = None
        if self.states is not None:
            states = self.states[start:end + 1].copy()
        return Trajectory(
            times=self.times[start:end].copy(),
            observations=self.observations[start:end].copy(),
            t0=t0,
            states=states,
            obs_names=self.obs_names,
            metadata=self.metadata,
        )

    # -------------------------------------------------------------------------
    # CSV I/O
    # -------------------------------------------------------------------------

    @classmethod
    def from_csv(
        cls,
        path: Union[str, Path],
        time_column: str,
        obs_columns: Sequence[str],
        t0: float = 0.0,
        max_time: Optional[float] = None,
    ) -> "Trajectory":
        """
        Load observations from a delimited text file with a header row.

        Args:
            path: CSV file
            time_column: Name of the time column
            obs_columns: Names of the observation columns
            t0: Time of the initial state
            max_time: Drop rows with time greater than this

        Missing values ("", "NA") are read as NaN.
        """
        times, rows = [], []
        with open(path, newline="", encoding="utf-8") as f:
            reader = csv.DictReader(f)
            missing = [c for c in [time_column, *obs_columns] if c not in (reader.fieldnames or [])]
            if missing:
                raise KeyError(f"{path}: missing columns {missing}")
            for record in reader:
                t = float(record[time_column])
                if max_time is not None and t > max_time:
                    continue
                times.append(t)
                rows.append([_parse_value(record[c]) for c in obs_columns])

        return cls(
            times=np.array(times),
            observations=np.array(rows, dtype=np.float64).reshape(len(rows), len(obs_columns)),
            t0=t0,
            obs_names=list(obs_columns),
            metadata={"source": str(path)},
        )

    def to_csv(self, path: Union[str, Path], time_column: str = "time"):
        """Write times and observations to a CSV file."""
        names = self.obs_names or [f"y{i}" for i in range(self.obs_dim)]
        with open(path, "w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            writer.writerow([time_column, *names])
            for t, row in zip(self.times, self.observations):
                writer.writerow([_format_value(t), *(_format_value(v) for v in row)])


def _parse_value(s: str) -> float:
    s = s.strip()
    if s in ("", "NA", "NaN", "nan"):
        return np.nan
    return float(s)


def _format_value(v: float) -> str:
    if np.isnan(v):
        return "NA"
    return repr(int(v)) if float(v).is_integer() else repr(float(v))


def simulate(
    model: POMPModel,
    theta,
    times: Optional[np.ndarray] = None,
    T: Optional[int] = None,
    seed: Optional[int] = None,
    rng: Optional[Generator] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> Trajectory:
    """
    Simulate a trajectory from a POMP model.

    Args:
        model: POMPModel instance (with rmeasure)
        theta: Parameters
        times: [T] Observation times (default model.t0 + 1..T)
        T: Number of observations when times is not given
        seed: Random seed (ignored if rng is provided)
        rng: NumPy random generator (optional)
        metadata: Optional metadata to attach

    Returns:
        Trajectory object with states
    """
    if rng is None:
        rng = default_rng(seed)

    if times is None:
        if T is None:
            raise ValueError("give either times or T")
        times = model.t0 + np.arange(1, T + 1, dtype=np.float64)

    states, observations = model.simulate(theta, times, rng)

    return Trajectory(
        times=times,
        observations=observations,
        t0=model.t0,
        states=states,
        metadata=metadata,
    )
