"""
utils
=====

Shared utility functions and helpers for sgstep.

This subpackage provides:
- rng : seed() and split() for JAX PRNG keys.
- tree : helpers for parameter dictionaries (noise draws, finiteness
  checks, stacking).
- validation : setup-time checks and tuning-constant broadcasting.
"""

from .rng import seed, split
from .tree import first_nonfinite, normal_like, stack
from .validation import broadcast_tuning, check_key_set, check_params, check_positive_int

__all__ = [
    # rng
    "seed",
    "split",
    # tree
    "normal_like",
    "stack",
    "first_nonfinite",
    # validation
    "check_params",
    "check_key_set",
    "broadcast_tuning",
    "check_positive_int",
]
