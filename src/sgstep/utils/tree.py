"""
tree.py
-------

Small helpers for parameter dictionaries (flat ``dict[str, jnp.ndarray]``
PyTrees) shared by the engines, the samplers and the driver.
"""

from __future__ import annotations

import jax
import jax.numpy as jnp
import jax.random as jr

Params = dict[str, jnp.ndarray]


def normal_like(key: jax.Array, tree: Params) -> Params:
    """
    Draw independent standard normal noise with the structure of ``tree``.

    Parameters
    ----------
    key : jax.Array
        PRNG key; split once per leaf.
    tree : dict
        Template PyTree.

    Returns
    -------
    dict
        PyTree of N(0, 1) draws, same shapes and dtypes as ``tree``.
    """
    leaves, treedef = jax.tree.flatten(tree)
    keys = jr.split(key, len(leaves))
    noise = [jr.normal(k, jnp.shape(x), jnp.result_type(x)) for k, x in zip(keys, leaves)]
    return jax.tree.unflatten(treedef, noise)


def first_nonfinite(params: Params) -> str | None:
    """
    Return the name of the first parameter holding NaN or inf, else None.

    Parameters are checked in sorted key order so the reported name is
    stable across runs.
    """
    for name in sorted(params):
        if not bool(jnp.all(jnp.isfinite(params[name]))):
            return name
    return None


def stack(samples: list[Params]) -> Params:
    """Stack a list of parameter dictionaries along a new leading axis."""
    return jax.tree.map(lambda *xs: jnp.stack(xs), *samples)
