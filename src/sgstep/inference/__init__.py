"""
inference
=========

Stochastic gradient MCMC engines and the samplers built on them.

This subpackage provides:
- StepEngine / SamplerState : explicit-state interface of one SGMCMC step.
- SGLD, SGHMC, SGNHT : update rules.
- ControlVariate, find_mode : variance reduction around the posterior mode
  (mode search uses Optax).
- Sampler : binds an engine to a dataset and minibatch size (step style).
- *_setup helpers and the SAMPLERS registry : build Samplers.
- sgld, sghmc, sgnht, sgldcv, sghmccv, sgnhtcv : batch-style runs returning
  the full chain.
"""

from .base import SamplerState, StepEngine
from .batch import sample_chain, sghmc, sghmccv, sgld, sgldcv, sgnht, sgnhtcv
from .builders import (
    SAMPLERS,
    setup,
    sghmc_setup,
    sghmccv_setup,
    sgld_setup,
    sgldcv_setup,
    sgnht_setup,
    sgnhtcv_setup,
)
from .control_variates import ControlVariate, find_mode
from .sampler import Sampler
from .sghmc import SGHMC
from .sgld import SGLD
from .sgnht import SGNHT

__all__ = [
    # engines
    "StepEngine",
    "SamplerState",
    "SGLD",
    "SGHMC",
    "SGNHT",
    # control variates
    "ControlVariate",
    "find_mode",
    # step style
    "Sampler",
    "SAMPLERS",
    "setup",
    "sgld_setup",
    "sghmc_setup",
    "sgnht_setup",
    "sgldcv_setup",
    "sghmccv_setup",
    "sgnhtcv_setup",
    # batch style
    "sample_chain",
    "sgld",
    "sghmc",
    "sgnht",
    "sgldcv",
    "sghmccv",
    "sgnhtcv",
]
