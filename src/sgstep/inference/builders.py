"""
builders.py
-----------

Setup helpers returning step-style Samplers.

One helper per algorithm:

    sgld_setup    sghmc_setup    sgnht_setup
    sgldcv_setup  sghmccv_setup  sgnhtcv_setup

Each validates every input before anything is computed (parameter and
tuning-constant key sets, dataset shapes, minibatch size), then builds
the LogPosterior, the engine and the Sampler. Control-variate variants also
run the mode search and start the chain at the mode.

String-based selection goes through the SAMPLERS registry:

    >>> sampler = setup("sghmc", log_lik=log_lik, dataset=data, params=params)
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Callable

import optax

from sgstep.data.dataset import Dataset, resolve_minibatch_size
from sgstep.errors import ConfigurationError
from sgstep.inference.base import StepEngine
from sgstep.inference.control_variates import ControlVariate, find_mode
from sgstep.inference.sampler import Sampler
from sgstep.inference.sghmc import SGHMC
from sgstep.inference.sgld import SGLD
from sgstep.inference.sgnht import SGNHT
from sgstep.model.log_posterior import LogPosterior
from sgstep.utils.rng import seed as make_seed
from sgstep.utils.rng import split
from sgstep.utils.validation import broadcast_tuning, check_params, check_positive_int

logger = logging.getLogger(__name__)


class _Prepared:
    """Validated inputs shared by every setup helper."""

    def __init__(self, log_lik, dataset, params, stepsize, log_prior, minibatch_size, replace):
        self.params = check_params(params)
        self.dataset = dataset if isinstance(dataset, Dataset) else Dataset(dataset)
        self.stepsize = broadcast_tuning(stepsize, self.params, "stepsize")
        self.minibatch_size = resolve_minibatch_size(minibatch_size, len(self.dataset))
        self.log_posterior = LogPosterior(log_lik, len(self.dataset), log_prior)
        if not isinstance(replace, bool):
            raise ConfigurationError(f"replace must be True or False, got {replace!r}")
        self.replace = replace


def _build(
    method: str,
    prepared: _Prepared,
    make_engine: Callable[[Any], StepEngine],
    *,
    seed: int | None,
    control_variate: dict[str, Any] | None = None,
) -> Sampler:
    key = make_seed(seed)
    params = prepared.params
    cv = None
    if control_variate is not None:
        key, opt_key = split(key)
        logger.info("Finding posterior mode for the control variate...")
        params = find_mode(
            prepared.log_posterior,
            prepared.dataset,
            params,
            key=opt_key,
            minibatch_size=prepared.minibatch_size,
            replace=prepared.replace,
            **control_variate["opt"],
        )
        cv = ControlVariate.from_mode(
            prepared.log_posterior,
            prepared.dataset,
            params,
            chunk_size=control_variate["chunk_size"],
        )
    engine = make_engine(prepared.log_posterior.gradient_estimator(cv))
    return Sampler(
        engine,
        prepared.log_posterior,
        prepared.dataset,
        params,
        minibatch_size=prepared.minibatch_size,
        key=key,
        method=method,
        replace=prepared.replace,
    )


def _cv_options(opt_stepsize, n_iters_opt, optimizer, chunk_size) -> dict[str, Any]:
    if optimizer is None:
        if opt_stepsize is None:
            raise ConfigurationError("opt_stepsize is required for control-variate samplers")
        opt_stepsize = float(opt_stepsize)
        if not opt_stepsize > 0:
            raise ConfigurationError(f"opt_stepsize must be positive, got {opt_stepsize}")
    return {
        "opt": {
            "opt_stepsize": opt_stepsize,
            "n_iters_opt": check_positive_int(n_iters_opt, name="n_iters_opt"),
            "optimizer": optimizer,
        },
        "chunk_size": chunk_size,
    }


# ----------------------------------------------------------------------
# Plain stochastic gradient samplers
# ----------------------------------------------------------------------
def sgld_setup(
    log_lik: Callable,
    dataset: Dataset | Mapping[str, Any],
    params: Mapping[str, Any],
    stepsize: float | Mapping[str, float] = 0.01,
    log_prior: Callable | None = None,
    minibatch_size: float | int = 0.01,
    seed: int | None = None,
    *,
    replace: bool = True,
) -> Sampler:
    """
    Set up a step-style SGLD sampler.

    Parameters
    ----------
    log_lik : callable
        ``log_lik(params, minibatch)``: summed log-likelihood of the rows.
    dataset : Dataset | Mapping[str, array]
        Training data; arrays share the first dimension.
    params : Mapping[str, array]
        Starting values.
    stepsize : float | Mapping[str, float], default=0.01
        Scalar for every parameter, or one value per parameter name.
    log_prior : callable | None
        ``log_prior(params)``; None means a flat prior.
    minibatch_size : float | int, default=0.01
        Fraction of the dataset in (0, 1) or a row count.
    seed : int | None
        Seed for the PRNG key; None draws a random seed.
    replace : bool, default=True
        Draw minibatch rows with replacement (O(minibatch_size) per step).
        False draws distinct rows at the cost of a full permutation of
        the dataset every step.

    Returns
    -------
    Sampler
        Call ``init_state()`` then ``step(state)`` repeatedly.
    """
    prepared = _Prepared(
        log_lik, dataset, params, stepsize, log_prior, minibatch_size, replace
    )
    return _build(
        "sgld", prepared, lambda grad: SGLD(grad, prepared.stepsize), seed=seed
    )


def sghmc_setup(
    log_lik: Callable,
    dataset: Dataset | Mapping[str, Any],
    params: Mapping[str, Any],
    stepsize: float | Mapping[str, float] = 0.01,
    log_prior: Callable | None = None,
    minibatch_size: float | int = 0.01,
    alpha: float | Mapping[str, float] = 0.01,
    L: int = 5,
    seed: int | None = None,
    *,
    replace: bool = True,
) -> Sampler:
    """
    Set up a step-style SGHMC sampler.

    Same arguments as sgld_setup, plus

    alpha : float | Mapping[str, float], default=0.01
        Friction per parameter.
    L : int, default=5
        Inner updates per step.
    """
    prepared = _Prepared(
        log_lik, dataset, params, stepsize, log_prior, minibatch_size, replace
    )
    alpha = broadcast_tuning(alpha, prepared.params, "alpha")
    L = check_positive_int(L, name="L")
    return _build(
        "sghmc",
        prepared,
        lambda grad: SGHMC(grad, prepared.stepsize, alpha, L),
        seed=seed,
    )


def sgnht_setup(
    log_lik: Callable,
    dataset: Dataset | Mapping[str, Any],
    params: Mapping[str, Any],
    stepsize: float | Mapping[str, float] = 0.01,
    log_prior: Callable | None = None,
    minibatch_size: float | int = 0.01,
    a: float | Mapping[str, float] = 0.01,
    seed: int | None = None,
    *,
    replace: bool = True,
) -> Sampler:
    """
    Set up a step-style SGNHT sampler.

    Same arguments as sgld_setup, plus

    a : float | Mapping[str, float], default=0.01
        Diffusion constant and initial thermostat value per parameter.
    """
    prepared = _Prepared(
        log_lik, dataset, params, stepsize, log_prior, minibatch_size, replace
    )
    a = broadcast_tuning(a, prepared.params, "a")
    return _build(
        "sgnht", prepared, lambda grad: SGNHT(grad, prepared.stepsize, a), seed=seed
    )


# ----------------------------------------------------------------------
# Control-variate samplers
# ----------------------------------------------------------------------
def sgldcv_setup(
    log_lik: Callable,
    dataset: Dataset | Mapping[str, Any],
    params: Mapping[str, Any],
    stepsize: float | Mapping[str, float] = 0.01,
    opt_stepsize: float | None = None,
    log_prior: Callable | None = None,
    minibatch_size: float | int = 0.01,
    n_iters_opt: int = 10_000,
    seed: int | None = None,
    *,
    optimizer: optax.GradientTransformation | None = None,
    chunk_size: int | None = None,
    replace: bool = True,
) -> Sampler:
    """
    Set up a step-style SGLD sampler with control variates.

    Same arguments as sgld_setup, plus

    opt_stepsize : float
        Learning rate of the SGD mode search. Required unless
        ``optimizer`` is given.
    n_iters_opt : int, default=10_000
        Mode search iterations.
    optimizer : optax.GradientTransformation | None
        Replaces the default SGD optimizer.
    chunk_size : int | None
        Rows per chunk for the full-data gradient at the mode.

    Notes
    -----
    The mode search runs during setup; the chain starts at the mode.
    """
    prepared = _Prepared(
        log_lik, dataset, params, stepsize, log_prior, minibatch_size, replace
    )
    cv = _cv_options(opt_stepsize, n_iters_opt, optimizer, chunk_size)
    return _build(
        "sgldcv",
        prepared,
        lambda grad: SGLD(grad, prepared.stepsize),
        seed=seed,
        control_variate=cv,
    )


def sghmccv_setup(
    log_lik: Callable,
    dataset: Dataset | Mapping[str, Any],
    params: Mapping[str, Any],
    stepsize: float | Mapping[str, float] = 0.01,
    opt_stepsize: float | None = None,
    log_prior: Callable | None = None,
    minibatch_size: float | int = 0.01,
    alpha: float | Mapping[str, float] = 0.01,
    L: int = 5,
    n_iters_opt: int = 10_000,
    seed: int | None = None,
    *,
    optimizer: optax.GradientTransformation | None = None,
    chunk_size: int | None = None,
    replace: bool = True,
) -> Sampler:
    """Set up a step-style SGHMC sampler with control variates (see sgldcv_setup)."""
    prepared = _Prepared(
        log_lik, dataset, params, stepsize, log_prior, minibatch_size, replace
    )
    alpha = broadcast_tuning(alpha, prepared.params, "alpha")
    L = check_positive_int(L, name="L")
    cv = _cv_options(opt_stepsize, n_iters_opt, optimizer, chunk_size)
    return _build(
        "sghmccv",
        prepared,
        lambda grad: SGHMC(grad, prepared.stepsize, alpha, L),
        seed=seed,
        control_variate=cv,
    )


def sgnhtcv_setup(
    log_lik: Callable,
    dataset: Dataset | Mapping[str, Any],
    params: Mapping[str, Any],
    stepsize: float | Mapping[str, float] = 0.01,
    opt_stepsize: float | None = None,
    log_prior: Callable | None = None,
    minibatch_size: float | int = 0.01,
    a: float | Mapping[str, float] = 0.01,
    n_iters_opt: int = 10_000,
    seed: int | None = None,
    *,
    optimizer: optax.GradientTransformation | None = None,
    chunk_size: int | None = None,
    replace: bool = True,
) -> Sampler:
    """Set up a step-style SGNHT sampler with control variates (see sgldcv_setup)."""
    prepared = _Prepared(
        log_lik, dataset, params, stepsize, log_prior, minibatch_size, replace
    )
    a = broadcast_tuning(a, prepared.params, "a")
    cv = _cv_options(opt_stepsize, n_iters_opt, optimizer, chunk_size)
    return _build(
        "sgnhtcv",
        prepared,
        lambda grad: SGNHT(grad, prepared.stepsize, a),
        seed=seed,
        control_variate=cv,
    )


# Registry for string-based sampler selection
SAMPLERS: dict[str, Callable[..., Sampler]] = {
    "sgld": sgld_setup,
    "sghmc": sghmc_setup,
    "sgnht": sgnht_setup,
    "sgldcv": sgldcv_setup,
    "sghmccv": sghmccv_setup,
    "sgnhtcv": sgnhtcv_setup,
}


def setup(method: str, **config: Any) -> Sampler:
    """
    Build a Sampler by algorithm name.

    Parameters
    ----------
    method : str
        One of the keys of SAMPLERS.
    **config
        Keyword arguments forwarded to the matching ``*_setup`` helper.

    Raises
    ------
    ConfigurationError
        If ``method`` is unknown.
    """
    if method not in SAMPLERS:
        available = ", ".join(SAMPLERS.keys())
        raise ConfigurationError(f"Unknown sampler: '{method}'. Available: {available}")
    return SAMPLERS[method](**config)
