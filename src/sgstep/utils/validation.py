"""
validation.py
-------------

Setup-time checks shared by every sampler.

All parameter-keyed structures (parameters, stepsize and the
variant-specific tuning constants, running aggregates) must share one key
set. A scalar tuning constant is shorthand for "the same value for every
parameter" and is broadcast here. Every failure raises ConfigurationError
before any step is taken.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from typing import Any

import jax.numpy as jnp
import numpy as np

from sgstep.errors import ConfigurationError

Params = dict[str, jnp.ndarray]


def check_params(params: Mapping[str, Any]) -> Params:
    """
    Validate a parameter dictionary and convert values to float arrays.

    Parameters
    ----------
    params : Mapping[str, array-like]
        Initial parameter values keyed by name.

    Returns
    -------
    dict[str, jnp.ndarray]
        Parameters as floating point JAX arrays.

    Raises
    ------
    ConfigurationError
        If ``params`` is empty or not a mapping, or holds a non-string key
        or a non-numeric value.
    """
    if not isinstance(params, Mapping):
        raise ConfigurationError(
            f"params must be a mapping from name to array, got {type(params).__name__}"
        )
    if len(params) == 0:
        raise ConfigurationError("params must contain at least one parameter")

    checked: Params = {}
    for name, value in params.items():
        if not isinstance(name, str):
            raise ConfigurationError(f"parameter names must be strings, got {name!r}")
        try:
            array = jnp.asarray(value)
        except (TypeError, ValueError) as err:
            raise ConfigurationError(
                f"params['{name}'] is not a numeric array: {err}"
            ) from err
        if not jnp.issubdtype(array.dtype, jnp.floating):
            array = array.astype(jnp.result_type(float))
        checked[name] = array
    return checked


def check_key_set(keys, expected, *, what: str, against: str = "parameters") -> None:
    """
    Raise ConfigurationError unless ``keys`` equals ``expected`` exactly.

    The message lists missing and unexpected names separately.
    """
    keys, expected = set(keys), set(expected)
    if keys == expected:
        return
    missing = sorted(expected - keys)
    extra = sorted(keys - expected)
    parts = []
    if missing:
        parts.append(f"missing {missing}")
    if extra:
        parts.append(f"unexpected {extra}")
    raise ConfigurationError(f"{what} keys do not match {against}: " + ", ".join(parts))


def _check_positive(value: Any, *, name: str, key: str | None = None) -> float:
    where = name if key is None else f"{name}['{key}']"
    try:
        value = float(value)
    except (TypeError, ValueError) as err:
        raise ConfigurationError(f"{where} must be a positive scalar, got {value!r}") from err
    if not math.isfinite(value) or value <= 0:
        raise ConfigurationError(f"{where} must be a positive finite scalar, got {value}")
    return value


def broadcast_tuning(value: Any, params: Mapping[str, Any], name: str) -> dict[str, float]:
    """
    Expand a tuning constant to one value per parameter.

    Parameters
    ----------
    value : float | Mapping[str, float]
        Scalar shorthand (applies to every parameter) or an explicit
        mapping keyed exactly like ``params``.
    params : Mapping
        Parameter dictionary providing the reference key set.
    name : str
        Name of the constant, used in error messages (e.g. "stepsize").

    Returns
    -------
    dict[str, float]
        One positive float per parameter name.

    Raises
    ------
    ConfigurationError
        If the mapping's key set differs from the parameter key set, or a
        value is not a positive finite scalar.

    Examples
    --------
    >>> broadcast_tuning(1e-3, {"beta": 0.0, "bias": 0.0}, "stepsize")
    {'beta': 0.001, 'bias': 0.001}
    """
    if value is None:
        raise ConfigurationError(f"{name} is required")
    if isinstance(value, Mapping):
        check_key_set(value.keys(), params.keys(), what=name)
        return {key: _check_positive(value[key], name=name, key=key) for key in params}
    scalar = _check_positive(value, name=name)
    return {key: scalar for key in params}


def check_positive_int(value: Any, *, name: str, allow_zero: bool = False) -> int:
    """Validate an integer count (iterations, steps, cadence)."""
    if isinstance(value, bool) or not isinstance(value, int | np.integer):
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")
    value = int(value)
    lower = 0 if allow_zero else 1
    if value < lower:
        bound = "non-negative" if allow_zero else "positive"
        raise ConfigurationError(f"{name} must be {bound}, got {value}")
    return value
