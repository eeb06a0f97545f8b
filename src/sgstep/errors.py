"""
errors.py
---------

Exception types raised by sgstep.

- ConfigurationError : inconsistent setup (parameter / tuning-constant key
  sets, dataset shapes, run configuration). Raised before any step is taken.
- DivergenceError : the sampler state became non-finite mid-run.

Both subclass builtin exceptions so callers catching ValueError or
RuntimeError keep working.
"""

from __future__ import annotations


class ConfigurationError(ValueError):
    """Invalid or inconsistent sampler configuration."""


class DivergenceError(RuntimeError):
    """
    Sampler state contains NaN or infinite values.

    Parameters
    ----------
    message : str
        Human readable description.
    name : str | None
        Parameter that diverged, if known.
    step : int | None
        Step counter at which the divergence was detected.
    """

    def __init__(self, message: str, *, name: str | None = None, step: int | None = None):
        super().__init__(message)
        self.name = name
        self.step = step
