"""
running.py
----------

Constant-memory running statistics of a parameter trajectory.

RunningAverage keeps, per parameter, the arithmetic mean of the snapshots
folded in so far plus the count n. The update is the incremental mean

    avg_n = avg_{n-1} + (x_n - avg_{n-1}) / n

so after n updates ``mean`` equals (x_1 + ... + x_n) / n up to rounding,
whatever the trajectory length. RunningMoments extends this with
Welford's sum of squared deviations for the variance.

Accumulators live on the host as float64 NumPy arrays, whatever the
dtype of the parameters (float32 on default JAX, or integers from a stub
engine). Rounding error then stays near 1e-12 relative over millions of
float32 snapshots instead of drifting at float32 precision.

Both are immutable: update() returns a new object. Use start() at the
beginning of the production phase; the template passed there fixes the key
set and shapes but is not counted, so the first update() stores its
snapshot verbatim.

Examples
--------
>>> avg = RunningAverage.start({"w": jnp.zeros(2)})
>>> avg = avg.update({"w": jnp.array([1.0, 3.0])})
>>> avg = avg.update({"w": jnp.array([3.0, 5.0])})
>>> avg.mean["w"]
array([2., 4.])
"""

from __future__ import annotations

from typing import NamedTuple

import jax.numpy as jnp
import numpy as np

from sgstep.errors import ConfigurationError
from sgstep.utils.validation import check_key_set

Params = dict[str, jnp.ndarray]
HostParams = dict[str, np.ndarray]


def _as_float64(value) -> np.ndarray:
    """Copy one snapshot leaf to the host as float64."""
    return np.array(value, dtype=np.float64, copy=True)


def _check_compatible(reference: HostParams, params: Params) -> None:
    check_key_set(params.keys(), reference.keys(), what="snapshot")
    for name, value in reference.items():
        if np.shape(params[name]) != value.shape:
            raise ConfigurationError(
                f"snapshot['{name}'] has shape {np.shape(params[name])}, "
                f"expected {value.shape}"
            )


class RunningAverage(NamedTuple):
    """
    Running mean of parameter snapshots.

    Attributes
    ----------
    mean : dict[str, np.ndarray]
        Current average per parameter, float64 (the start template while
        count == 0).
    count : int
        Number of snapshots folded in.
    """

    mean: HostParams
    count: int = 0

    @classmethod
    def start(cls, params: Params) -> RunningAverage:
        """
        Create an empty accumulator shaped like ``params``.

        Parameters
        ----------
        params : dict
            Current parameters; copied and used as a key/shape template.
        """
        return cls(mean={name: _as_float64(x) for name, x in params.items()}, count=0)

    def update(self, params: Params) -> RunningAverage:
        """
        Fold one snapshot into the average.

        Parameters
        ----------
        params : dict
            Snapshot with the same keys and shapes as the accumulator.

        Returns
        -------
        RunningAverage
            Accumulator over ``count + 1`` snapshots.
        """
        _check_compatible(self.mean, params)
        n = self.count + 1
        mean = {}
        for name, avg in self.mean.items():
            x = _as_float64(params[name])
            # first snapshot replaces the template, never mixed with it
            mean[name] = x if n == 1 else avg + (x - avg) / n
        return RunningAverage(mean=mean, count=n)


class RunningMoments(NamedTuple):
    """
    Running mean and variance (Welford) of parameter snapshots.

    Attributes
    ----------
    mean : dict[str, np.ndarray]
        Running mean per parameter, float64.
    m2 : dict[str, np.ndarray]
        Running sum of squared deviations from the mean, float64.
    count : int
        Number of snapshots folded in.
    """

    mean: HostParams
    m2: HostParams
    count: int = 0

    @classmethod
    def start(cls, params: Params) -> RunningMoments:
        """Create an empty accumulator shaped like ``params``."""
        mean = {name: _as_float64(x) for name, x in params.items()}
        return cls(mean=mean, m2={name: np.zeros_like(x) for name, x in mean.items()}, count=0)

    def update(self, params: Params) -> RunningMoments:
        """Fold one snapshot into the mean and the sum of squares."""
        _check_compatible(self.mean, params)
        n = self.count + 1
        mean, m2 = {}, {}
        for name, avg in self.mean.items():
            x = _as_float64(params[name])
            if n == 1:
                mean[name] = x
                m2[name] = np.zeros_like(x)
                continue
            delta = x - avg
            mean[name] = avg + delta / n
            m2[name] = self.m2[name] + delta * (x - mean[name])
        return RunningMoments(mean=mean, m2=m2, count=n)

    def variance(self, ddof: int = 0) -> HostParams:
        """
        Per-element variance of the snapshots.

        Parameters
        ----------
        ddof : int, default=0
            Delta degrees of freedom (1 for the unbiased sample variance).

        Raises
        ------
        ValueError
            If fewer than ``ddof + 1`` snapshots were observed.
        """
        if self.count <= ddof:
            raise ValueError(
                f"need more than {ddof} snapshots for ddof={ddof}, got {self.count}"
            )
        return {name: m2 / (self.count - ddof) for name, m2 in self.m2.items()}

    def std(self, ddof: int = 0) -> HostParams:
        """Per-element standard deviation; see variance()."""
        return {name: np.sqrt(var) for name, var in self.variance(ddof).items()}
