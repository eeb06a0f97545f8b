"""
posterior
=========

Posterior summaries computed from sampler output.

This subpackage provides:
- RunningAverage : constant-memory running mean of parameter snapshots.
- RunningMoments : running mean and variance (Welford).
- diagnostics : held-out log predictive density, ESS, R-hat, chain
  summaries.

Streaming vs batch
------------------
- Streaming (step-style, StepLoopDriver): RunningAverage / RunningMoments
  keep O(1) memory per parameter regardless of chain length.
- Batch (sgld(), sghmc(), ...): the full chain is in memory, so ESS,
  R-hat and quantiles are available.
"""

from .diagnostics import (
    chain_summary,
    effective_sample_size,
    log_predictive_density,
    print_chain_summary,
    rhat,
)
from .running import RunningAverage, RunningMoments

__all__ = [
    # streaming
    "RunningAverage",
    "RunningMoments",
    # diagnostics
    "log_predictive_density",
    "effective_sample_size",
    "rhat",
    "chain_summary",
    "print_chain_summary",
]
