"""
dataset.py
-----------

Core data container for sgstep.

defines:
- Dataset: named arrays sharing a leading "row" dimension
- sample_minibatch: draw rows with or without replacement (jit-friendly)
- resolve_minibatch_size: turn a fraction or a count into a row count
- DatasetLoader: interface of an external loader fetching a named dataset

Notes
-----
- Arrays are stored as jax.numpy (immutable!) arrays so minibatches can be
  drawn inside jitted sampler steps.
- The first axis of every array indexes observations; the remaining axes
  are free (e.g. images flattened to 784 features, one-hot labels).
"""

from __future__ import annotations

import math
from collections.abc import Iterator, Mapping
from typing import Any, Protocol

import jax
import jax.numpy as jnp
import jax.random as jr
import numpy as np

from sgstep.errors import ConfigurationError


class Dataset:
    """
    Container for observations used by the log-likelihood.

    Parameters
    ----------
    arrays : Mapping[str, array-like]
        Named arrays, all with the same length along axis 0.

    Attributes
    ----------
    arrays : dict[str, jnp.ndarray]
        The validated arrays.

    Examples
    --------
    >>> X = jnp.ones((100, 3))
    >>> y = jnp.zeros(100)
    >>> data = Dataset({"X": X, "y": y})
    >>> len(data)
    100
    """

    def __init__(self, arrays: Mapping[str, Any]) -> None:
        if isinstance(arrays, Dataset):
            arrays = arrays.arrays
        if not isinstance(arrays, Mapping) or len(arrays) == 0:
            raise ConfigurationError("dataset must be a non-empty mapping of named arrays")

        converted: dict[str, jnp.ndarray] = {}
        n_rows = None
        for name, value in arrays.items():
            try:
                array = jnp.asarray(value)
            except (TypeError, ValueError) as err:
                raise ConfigurationError(
                    f"dataset['{name}'] is not a numeric array: {err}"
                ) from err
            if array.ndim == 0:
                raise ConfigurationError(
                    f"dataset['{name}'] must have a leading observation axis, got a scalar"
                )
            if n_rows is None:
                n_rows = array.shape[0]
            elif array.shape[0] != n_rows:
                raise ConfigurationError(
                    "all dataset arrays must share the first dimension: "
                    f"'{name}' has {array.shape[0]} rows, expected {n_rows}"
                )
            converted[name] = array

        if n_rows == 0:
            raise ConfigurationError("dataset must contain at least one observation")

        self.arrays = converted
        self._n_rows = int(n_rows)

    @classmethod
    def from_arrays(cls, **arrays: Any) -> Dataset:
        """
        Construct a Dataset from keyword arrays.

        Examples
        --------
        >>> data = Dataset.from_arrays(X=jnp.ones((10, 2)), y=jnp.zeros(10))
        """
        return cls(arrays)

    def __len__(self) -> int:
        """Return number of observations."""
        return self._n_rows

    def __getitem__(self, name: str) -> jnp.ndarray:
        return self.arrays[name]

    def keys(self):
        return self.arrays.keys()

    def take(self, indices: jnp.ndarray | np.ndarray) -> dict[str, jnp.ndarray]:
        """
        Return the rows at ``indices`` from every array.

        Parameters
        ----------
        indices : array of int, shape (n,)
            Row indices.

        Returns
        -------
        dict[str, jnp.ndarray]
            Minibatch with the same keys as the dataset.
        """
        return {name: array[indices] for name, array in self.arrays.items()}

    def sample(
        self, key: jax.Array, size: int, *, replace: bool = True
    ) -> dict[str, jnp.ndarray]:
        """Draw ``size`` rows; see sample_minibatch()."""
        return sample_minibatch(key, self.arrays, size, replace=replace)

    def batches(self, chunk_size: int | None = None) -> Iterator[dict[str, jnp.ndarray]]:
        """
        Iterate over the dataset in sequential chunks.

        Parameters
        ----------
        chunk_size : int | None
            Rows per chunk. None yields the whole dataset at once.

        Yields
        ------
        dict[str, jnp.ndarray]
            Consecutive, non-overlapping chunks covering every row once.
        """
        if chunk_size is None or chunk_size >= self._n_rows:
            yield dict(self.arrays)
            return
        if chunk_size < 1:
            raise ConfigurationError(f"chunk_size must be positive, got {chunk_size}")
        for start in range(0, self._n_rows, chunk_size):
            stop = min(start + chunk_size, self._n_rows)
            yield {name: array[start:stop] for name, array in self.arrays.items()}

    def split(self, test_fraction: float, *, key: jax.Array) -> tuple[Dataset, Dataset]:
        """
        Randomly split rows into a training and a held-out dataset.

        Parameters
        ----------
        test_fraction : float
            Fraction of rows assigned to the held-out set, in (0, 1).
        key : jax.Array
            PRNG key for the permutation.

        Returns
        -------
        (Dataset, Dataset)
            Training and held-out datasets with the same keys.
        """
        if not 0.0 < test_fraction < 1.0:
            raise ConfigurationError(f"test_fraction must be in (0, 1), got {test_fraction}")
        n_test = max(1, int(round(test_fraction * self._n_rows)))
        if n_test >= self._n_rows:
            raise ConfigurationError(
                f"test_fraction={test_fraction} leaves no training rows "
                f"out of {self._n_rows}"
            )
        perm = jr.permutation(key, self._n_rows)
        return Dataset(self.take(perm[n_test:])), Dataset(self.take(perm[:n_test]))

    def __repr__(self) -> str:
        shapes = ", ".join(f"{k}={tuple(v.shape)}" for k, v in self.arrays.items())
        return f"Dataset({shapes})"


def sample_minibatch(
    key: jax.Array,
    arrays: Mapping[str, jnp.ndarray],
    size: int,
    *,
    replace: bool = True,
) -> dict[str, jnp.ndarray]:
    """
    Draw ``size`` rows from every array in ``arrays``.

    Parameters
    ----------
    key : jax.Array
        PRNG key.
    arrays : Mapping[str, jnp.ndarray]
        Arrays sharing the leading row dimension.
    size : int
        Rows to draw. Must be a Python int so the function can be traced
        by jax.jit with the row count known statically.
    replace : bool, default=True
        With replacement, indices are drawn uniformly in O(size). Without
        replacement the rows are distinct, but every draw permutes all
        N rows, so a step costs O(N log N).
    """
    n_rows = next(iter(arrays.values())).shape[0]
    if replace:
        indices = jr.randint(key, (size,), 0, n_rows)
    else:
        indices = jr.choice(key, n_rows, shape=(size,), replace=False)
    return {name: array[indices] for name, array in arrays.items()}


def resolve_minibatch_size(size: float | int, n_rows: int) -> int:
    """
    Convert a minibatch size given as a fraction or a count into rows.

    Parameters
    ----------
    size : float | int
        Either a fraction of the dataset in (0, 1) or a row count
        in [1, n_rows].
    n_rows : int
        Dataset length.

    Returns
    -------
    int
        Number of rows per minibatch.

    Raises
    ------
    ConfigurationError
        If ``size`` is not a valid fraction or count.

    Examples
    --------
    >>> resolve_minibatch_size(0.01, 50_000)
    500
    >>> resolve_minibatch_size(32, 50_000)
    32
    """
    if isinstance(size, bool) or not isinstance(size, int | float | np.integer | np.floating):
        raise ConfigurationError(f"minibatch_size must be a number, got {size!r}")
    if not math.isfinite(size):
        raise ConfigurationError(f"minibatch_size must be finite, got {size}")
    if isinstance(size, float | np.floating) and 0.0 < size < 1.0:
        return max(1, int(round(size * n_rows)))
    if float(size) != int(size) or not 1 <= int(size) <= n_rows:
        raise ConfigurationError(
            "minibatch_size must be a fraction in (0, 1) or an integer in "
            f"[1, {n_rows}], got {size}"
        )
    return int(size)


class DatasetLoader(Protocol):
    """
    Interface of an external loader that fetches a dataset by name.

    Implementations live outside sgstep (e.g. a download-and-extract
    helper). An unknown name should raise ConfigurationError; fetch
    failures propagate unchanged.
    """

    def __call__(self, name: str) -> Dataset: ...
