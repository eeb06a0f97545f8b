"""
rng.py
------

Random number utilities for sgstep.

This module standardizes RNG handling across the package,
especially important when mixing NumPy and JAX.

- seed() turns an optional integer into a JAX PRNG key. ``None`` draws a
  fresh seed from NumPy's entropy source, so unseeded runs differ.
- split() wraps jax.random.split.

Examples
--------
>>> from sgstep.utils.rng import seed, split
>>> key = seed(0)
>>> k1, k2 = split(key)
"""

from __future__ import annotations

import jax
import jax.random as jr
import numpy as np


def seed(seed_value: int | None = None) -> jax.Array:
    """
    Create a new PRNG key from an integer seed.

    Parameters
    ----------
    seed_value : int | None
        Seed for random number generation. If None, a seed is drawn
        from the operating system via NumPy.

    Returns
    -------
    jax.Array
        New PRNG key.
    """
    if seed_value is None:
        seed_value = int(np.random.default_rng().integers(0, 2**31 - 1))
    return jr.PRNGKey(int(seed_value))


def split(key: jax.Array, num: int = 2) -> jax.Array:
    """
    Split a PRNG key into multiple independent keys.

    Parameters
    ----------
    key : jax.Array
        RNG key to split.
    num : int, default=2
        Number of new keys to return.

    Returns
    -------
    jax.Array
        Stacked independent PRNG keys, unpackable as a tuple.
    """
    return jr.split(key, num=num)
