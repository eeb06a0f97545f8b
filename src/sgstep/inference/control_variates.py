"""
control_variates.py
-------------------

Control variates for the gradient estimate (Baker et al., 2019).

Setup runs in two stages:
1. find_mode(): stochastic gradient ascent on the minibatch log-posterior
   estimate with an Optax optimizer (SGD by default) to locate θ̂.
2. ControlVariate.from_mode(): evaluate the full-data log-likelihood
   gradient at θ̂ once.

The resulting ControlVariate is passed to
LogPosterior.gradient_estimator(), which recentres every minibatch gradient
around θ̂. The samplers then start their chain at θ̂.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

import jax
import jax.numpy as jnp
import jax.random as jr
import optax

from sgstep.data.dataset import sample_minibatch
from sgstep.errors import DivergenceError
from sgstep.utils.tree import first_nonfinite

if TYPE_CHECKING:
    from sgstep.data import Dataset
    from sgstep.model import LogPosterior

logger = logging.getLogger(__name__)

Params = dict[str, jnp.ndarray]


@dataclass(frozen=True)
class ControlVariate:
    """
    Reference point for the control-variate gradient estimator.

    Attributes
    ----------
    centre : dict
        Reference parameters θ̂ (usually an estimate of the mode).
    full_grad : dict
        Full-data log-likelihood gradient at ``centre``.
    """

    centre: Params
    full_grad: Params

    @classmethod
    def from_mode(
        cls,
        log_posterior: LogPosterior,
        dataset: Dataset,
        mode: Params,
        *,
        chunk_size: int | None = None,
    ) -> ControlVariate:
        """
        Build a control variate centred at ``mode``.

        Parameters
        ----------
        log_posterior : LogPosterior
            Model whose log-likelihood gradient is evaluated.
        dataset : Dataset
            Full training data.
        mode : dict
            Reference parameters.
        chunk_size : int | None
            Rows per chunk for the full-data gradient.
        """
        full_grad = log_posterior.full_log_lik_gradient(mode, dataset, chunk_size)
        name = first_nonfinite(full_grad)
        if name is not None:
            raise DivergenceError(
                f"full-data gradient at the control-variate centre is not finite for '{name}'",
                name=name,
            )
        return cls(centre=dict(mode), full_grad=full_grad)


def find_mode(
    log_posterior: LogPosterior,
    dataset: Dataset,
    params: Params,
    *,
    opt_stepsize: float,
    n_iters_opt: int = 10_000,
    minibatch_size: int,
    key: jax.Array,
    optimizer: optax.GradientTransformation | None = None,
    log_every: int = 1_000,
    replace: bool = True,
) -> Params:
    """
    Locate the posterior mode by stochastic gradient ascent.

    Parameters
    ----------
    log_posterior : LogPosterior
        Objective; its minibatch estimate is maximised.
    dataset : Dataset
        Training data to draw minibatches from.
    params : dict
        Starting point.
    opt_stepsize : float
        Learning rate of the default optimizer (plain SGD).
    n_iters_opt : int, default=10_000
        Number of optimisation steps.
    minibatch_size : int
        Rows per minibatch (already resolved).
    key : jax.Array
        PRNG key for minibatch sampling.
    optimizer : optax.GradientTransformation | None
        Optax optimizer overriding the default SGD.
    log_every : int, default=1_000
        Log the log-posterior estimate every N steps (and at the last step).
    replace : bool, default=True
        Draw minibatch rows with replacement.

    Returns
    -------
    dict
        Estimated mode.

    Raises
    ------
    DivergenceError
        If the optimiser produces non-finite parameters.
    """
    optimizer = optimizer or optax.sgd(learning_rate=opt_stepsize)

    def loss_fn(params, minibatch):
        return -log_posterior.estimate(params, minibatch)

    @jax.jit
    def step(params, opt_state, key, arrays):
        key, batch_key = jr.split(key)
        minibatch = sample_minibatch(batch_key, arrays, minibatch_size, replace=replace)
        loss, grads = jax.value_and_grad(loss_fn)(params, minibatch)  # auto-diff
        updates, opt_state = optimizer.update(grads, opt_state, params)
        params = optax.apply_updates(params, updates)
        return params, opt_state, key, loss

    opt_state = optimizer.init(params)
    log_every = max(1, int(log_every))
    for i in range(n_iters_opt):
        params, opt_state, key, loss = step(params, opt_state, key, dataset.arrays)
        if i % log_every == 0 or i == n_iters_opt - 1:
            logger.info(
                "Optimisation iteration %d\tlog posterior estimate: %.4f",
                i + 1,
                -float(loss),
            )

    name = first_nonfinite(params)
    if name is not None:
        raise DivergenceError(
            f"mode search diverged: parameter '{name}' is not finite; "
            "try a smaller opt_stepsize",
            name=name,
        )
    return params
