"""
sgstep
======

Stochastic gradient MCMC in JAX, with a step-wise, fixed-memory run loop.

This package implements SGLD, SGHMC and SGNHT together with their
control-variate variants (SGLD-CV, SGHMC-CV, SGNHT-CV). Users supply a
log-likelihood, an optional log-prior, a parameter dictionary and a
dataset; gradients come from JAX automatic differentiation. Chains can be
collected in full (batch style) or advanced one step at a time (step
style) while only a running average of the parameters is kept.

----------------------------------------------------------------------
Workflow
----------------------------------------------------------------------

Core design
-----------
1. Dataset (data/dataset.py):
   - Named arrays sharing a leading observation axis.
   - Minibatches drawn without replacement inside jitted steps.

2. LogPosterior (model/log_posterior.py):
   - Unbiased minibatch estimate log_prior + N/n * log_lik.
   - Plain or control-variate gradient estimators.

3. StepEngine (inference/):
   - SGLD, SGHMC, SGNHT update rules with explicit state passing:
     advance(state, minibatch) -> state.
   - Control variates: Optax mode search + full-data gradient at the mode.

4. Sampler (inference/sampler.py):
   - Step style: init_state(), step(state), get_params(state).

5. StepLoopDriver (session/driver.py):
   - BURN_IN -> PRODUCTION -> DONE state machine.
   - RunningAverage of the production phase, held-out diagnostics every
     report_every steps.

Unified import style
--------------------
Top-level:
  from sgstep import sgld, sghmc, sgnht, sgldcv, sghmccv, sgnhtcv
  from sgstep import sgld_setup, setup, RunConfig, run_online, StepLoopDriver
  from sgstep import Dataset, RunningAverage, ConfigurationError

Subpackages:
  from sgstep.inference import SGLD, SGHMC, SGNHT, Sampler, SAMPLERS
  from sgstep.posterior import RunningMoments, effective_sample_size, rhat
  from sgstep.posterior import log_predictive_density, print_chain_summary
  from sgstep.utils import seed, split, broadcast_tuning

Data flow
---------
- *_setup() validates params / dataset / tuning constants and returns a
  Sampler. Configuration errors are raised here, before any step.
- Sampler.step(state) draws a minibatch and calls engine.advance().
- StepLoopDriver folds each production state into a RunningAverage and
  evaluates diagnostic(params, held_out) on its cadence.

Extensibility
-------------
- To add a new algorithm: subclass StepEngine, implement advance(), add a
  setup helper and register it in SAMPLERS.

----------------------------------------------------------------------
"""

import logging

# Re-export subpackages for unified import style (e.g., sgstep.inference)
from . import data as data
from . import inference as inference
from . import model as model
from . import posterior as posterior
from . import session as session
from . import utils as utils
from .data.dataset import Dataset
from .errors import ConfigurationError, DivergenceError

# Samplers
from .inference import (
    SAMPLERS,
    Sampler,
    SamplerState,
    StepEngine,
    setup,
    sghmc,
    sghmc_setup,
    sghmccv,
    sghmccv_setup,
    sgld,
    sgld_setup,
    sgldcv,
    sgldcv_setup,
    sgnht,
    sgnht_setup,
    sgnhtcv,
    sgnhtcv_setup,
)
from .model.log_posterior import LogPosterior

# Posterior summaries
from .posterior import RunningAverage, RunningMoments, log_predictive_density

# Run orchestration
from .session import Phase, RunConfig, RunResult, StepLoopDriver, run_online

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    # Batch style
    "sgld",
    "sghmc",
    "sgnht",
    "sgldcv",
    "sghmccv",
    "sgnhtcv",
    # Step style
    "sgld_setup",
    "sghmc_setup",
    "sgnht_setup",
    "sgldcv_setup",
    "sghmccv_setup",
    "sgnhtcv_setup",
    "setup",
    "SAMPLERS",
    "Sampler",
    "SamplerState",
    "StepEngine",
    # Model and data
    "LogPosterior",
    "Dataset",
    # Streaming summaries
    "RunningAverage",
    "RunningMoments",
    "log_predictive_density",
    # Run orchestration
    "StepLoopDriver",
    "RunConfig",
    "RunResult",
    "Phase",
    "run_online",
    # Errors
    "ConfigurationError",
    "DivergenceError",
    # Subpackages
    "data",
    "model",
    "inference",
    "posterior",
    "session",
    "utils",
]
