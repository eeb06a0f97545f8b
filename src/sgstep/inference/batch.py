"""
batch.py
--------

Batch-style samplers: run a chain for ``n_iters`` steps and return it.

    chain = sgld(log_lik, dataset, params, stepsize=1e-4, n_iters=5_000)
    chain["beta"].shape  # (5_000, *params["beta"].shape)

These keep every iteration in memory. For long runs or high-dimensional
parameters use the step-style samplers with the StepLoopDriver, which
keeps only a running average.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Callable

import jax.numpy as jnp
from tqdm import tqdm

from sgstep.errors import DivergenceError
from sgstep.inference.builders import (
    sghmc_setup,
    sghmccv_setup,
    sgld_setup,
    sgldcv_setup,
    sgnht_setup,
    sgnhtcv_setup,
)
from sgstep.inference.sampler import Sampler
from sgstep.utils.tree import first_nonfinite, stack
from sgstep.utils.validation import check_positive_int

logger = logging.getLogger(__name__)

Params = dict[str, jnp.ndarray]


def sample_chain(
    sampler: Sampler,
    n_iters: int,
    *,
    verbose: bool = True,
    report_every: int = 100,
) -> Params:
    """
    Run ``sampler`` for ``n_iters`` steps and stack every state.

    Parameters
    ----------
    sampler : Sampler
        Step-style sampler.
    n_iters : int
        Number of iterations (and stored samples).
    verbose : bool, default=True
        Show a progress bar and log the log-posterior estimate every
        ``report_every`` iterations.
    report_every : int, default=100
        Cadence of the finiteness check and of the verbose log line.

    Returns
    -------
    dict
        One array per parameter with leading dimension ``n_iters``.

    Raises
    ------
    DivergenceError
        If a parameter becomes non-finite (checked every ``report_every``
        iterations and at the end).
    """
    n_iters = check_positive_int(n_iters, name="n_iters")
    report_every = check_positive_int(report_every, name="report_every")

    state = sampler.init_state()
    samples: list[Params] = []
    progress = tqdm(
        range(n_iters),
        desc=f"Running {sampler.method.upper()}",
        disable=not verbose,
    )
    for i in progress:
        state = sampler.step(state)
        samples.append(state.params)
        iteration = i + 1
        if iteration % report_every == 0 or iteration == n_iters:
            name = first_nonfinite(state.params)
            if name is not None:
                raise DivergenceError(
                    f"{sampler.method} diverged at iteration {iteration}: "
                    f"parameter '{name}' is not finite; try a smaller stepsize",
                    name=name,
                    step=iteration,
                )
            if verbose:
                estimate = sampler.log_posterior_estimate(state)
                progress.set_postfix(log_post=f"{estimate:.2f}")
                logger.info(
                    "Iteration: %d\tlog posterior estimate: %.4f", iteration, estimate
                )
    return stack(samples)


def sgld(
    log_lik: Callable,
    dataset: Any,
    params: Mapping[str, Any],
    stepsize: float | Mapping[str, float] = 0.01,
    log_prior: Callable | None = None,
    minibatch_size: float | int = 0.01,
    n_iters: int = 10_000,
    verbose: bool = True,
    seed: int | None = None,
    **options: Any,
) -> Params:
    """
    Run stochastic gradient Langevin dynamics.

    Parameters
    ----------
    log_lik : callable
        ``log_lik(params, minibatch)``: summed log-likelihood of the rows.
    dataset : Dataset | Mapping[str, array]
        Training data.
    params : Mapping[str, array]
        Starting values.
    stepsize : float | Mapping[str, float], default=0.01
        Stepsize, scalar or per parameter.
    log_prior : callable | None
        ``log_prior(params)``; None means a flat prior.
    minibatch_size : float | int, default=0.01
        Fraction of the dataset or a row count.
    n_iters : int, default=10_000
        Chain length.
    verbose : bool, default=True
        Show progress.
    seed : int | None
        PRNG seed.
    **options
        Forwarded to sgld_setup() (e.g. ``replace=False``).

    Returns
    -------
    dict
        Chains with leading dimension ``n_iters``.
    """
    sampler = sgld_setup(
        log_lik, dataset, params, stepsize, log_prior, minibatch_size, seed, **options
    )
    return sample_chain(sampler, n_iters, verbose=verbose)


def sghmc(
    log_lik: Callable,
    dataset: Any,
    params: Mapping[str, Any],
    stepsize: float | Mapping[str, float] = 0.01,
    log_prior: Callable | None = None,
    minibatch_size: float | int = 0.01,
    alpha: float | Mapping[str, float] = 0.01,
    L: int = 5,
    n_iters: int = 10_000,
    verbose: bool = True,
    seed: int | None = None,
    **options: Any,
) -> Params:
    """Run SGHMC; see sgld() and sghmc_setup() for the arguments."""
    sampler = sghmc_setup(
        log_lik,
        dataset,
        params,
        stepsize,
        log_prior,
        minibatch_size,
        alpha,
        L,
        seed,
        **options,
    )
    return sample_chain(sampler, n_iters, verbose=verbose)


def sgnht(
    log_lik: Callable,
    dataset: Any,
    params: Mapping[str, Any],
    stepsize: float | Mapping[str, float] = 0.01,
    log_prior: Callable | None = None,
    minibatch_size: float | int = 0.01,
    a: float | Mapping[str, float] = 0.01,
    n_iters: int = 10_000,
    verbose: bool = True,
    seed: int | None = None,
    **options: Any,
) -> Params:
    """Run SGNHT; see sgld() and sgnht_setup() for the arguments."""
    sampler = sgnht_setup(
        log_lik, dataset, params, stepsize, log_prior, minibatch_size, a, seed, **options
    )
    return sample_chain(sampler, n_iters, verbose=verbose)


def sgldcv(
    log_lik: Callable,
    dataset: Any,
    params: Mapping[str, Any],
    stepsize: float | Mapping[str, float] = 0.01,
    opt_stepsize: float | None = None,
    log_prior: Callable | None = None,
    minibatch_size: float | int = 0.01,
    n_iters: int = 10_000,
    n_iters_opt: int = 10_000,
    verbose: bool = True,
    seed: int | None = None,
    **options: Any,
) -> Params:
    """
    Run SGLD with control variates.

    The mode search (``n_iters_opt`` SGD steps with ``opt_stepsize``) runs
    first; the returned chain starts at the mode. Extra keyword options
    (``optimizer``, ``chunk_size``, ``replace``) go to sgldcv_setup().
    """
    sampler = sgldcv_setup(
        log_lik,
        dataset,
        params,
        stepsize,
        opt_stepsize,
        log_prior,
        minibatch_size,
        n_iters_opt,
        seed,
        **options,
    )
    return sample_chain(sampler, n_iters, verbose=verbose)


def sghmccv(
    log_lik: Callable,
    dataset: Any,
    params: Mapping[str, Any],
    stepsize: float | Mapping[str, float] = 0.01,
    opt_stepsize: float | None = None,
    log_prior: Callable | None = None,
    minibatch_size: float | int = 0.01,
    alpha: float | Mapping[str, float] = 0.01,
    L: int = 5,
    n_iters: int = 10_000,
    n_iters_opt: int = 10_000,
    verbose: bool = True,
    seed: int | None = None,
    **options: Any,
) -> Params:
    """Run SGHMC with control variates; see sgldcv()."""
    sampler = sghmccv_setup(
        log_lik,
        dataset,
        params,
        stepsize,
        opt_stepsize,
        log_prior,
        minibatch_size,
        alpha,
        L,
        n_iters_opt,
        seed,
        **options,
    )
    return sample_chain(sampler, n_iters, verbose=verbose)


def sgnhtcv(
    log_lik: Callable,
    dataset: Any,
    params: Mapping[str, Any],
    stepsize: float | Mapping[str, float] = 0.01,
    opt_stepsize: float | None = None,
    log_prior: Callable | None = None,
    minibatch_size: float | int = 0.01,
    a: float | Mapping[str, float] = 0.01,
    n_iters: int = 10_000,
    n_iters_opt: int = 10_000,
    verbose: bool = True,
    seed: int | None = None,
    **options: Any,
) -> Params:
    """Run SGNHT with control variates; see sgldcv()."""
    sampler = sgnhtcv_setup(
        log_lik,
        dataset,
        params,
        stepsize,
        opt_stepsize,
        log_prior,
        minibatch_size,
        a,
        n_iters_opt,
        seed,
        **options,
    )
    return sample_chain(sampler, n_iters, verbose=verbose)
