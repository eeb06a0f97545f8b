"""
sampler.py
----------

Step-style sampler: binds a step engine to a dataset and a minibatch size.

The Sampler is the object a caller (or the StepLoopDriver) drives:

    sampler = sgld_setup(log_lik, dataset, params, stepsize=1e-4)
    state = sampler.init_state()
    for _ in range(n):
        state = sampler.step(state)
        theta = sampler.get_params(state)

step() draws a minibatch (with replacement by default) and calls
engine.advance(state, minibatch) inside one jitted function. The dataset
arrays are passed as jit arguments, not baked in as constants.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import jax
import jax.numpy as jnp
import jax.random as jr

from sgstep.data.dataset import sample_minibatch

if TYPE_CHECKING:
    from sgstep.data import Dataset
    from sgstep.inference.base import SamplerState, StepEngine
    from sgstep.model import LogPosterior

Params = dict[str, jnp.ndarray]


class Sampler:
    """
    Step-style SGMCMC sampler.

    Parameters
    ----------
    engine : StepEngine
        Update rule (SGLD, SGHMC, SGNHT, ...).
    log_posterior : LogPosterior
        Model, used for log-posterior estimates.
    dataset : Dataset
        Training data.
    params : dict
        Starting parameter values (validated).
    minibatch_size : int
        Rows per minibatch (already resolved).
    key : jax.Array
        PRNG key of the initial state.
    replace : bool, default=True
        Draw minibatch rows with replacement (see sample_minibatch).

    Attributes
    ----------
    method : str
        Name of the algorithm, e.g. "sgld" or "sgldcv".
    """

    def __init__(
        self,
        engine: StepEngine,
        log_posterior: LogPosterior,
        dataset: Dataset,
        params: Params,
        *,
        minibatch_size: int,
        key: jax.Array,
        method: str | None = None,
        replace: bool = True,
    ):
        self.engine = engine
        self.log_posterior = log_posterior
        self.dataset = dataset
        self.params = dict(params)
        self.minibatch_size = int(minibatch_size)
        self.key = key
        self.replace = bool(replace)
        self.method = method or engine.name

        def _step(state, arrays):
            key, batch_key = jr.split(state.key)
            minibatch = sample_minibatch(
                batch_key, arrays, self.minibatch_size, replace=self.replace
            )
            return engine.advance(state._replace(key=key), minibatch)

        def _estimate(state, arrays):
            batch_key = jr.fold_in(state.key, 1)
            minibatch = sample_minibatch(
                batch_key, arrays, self.minibatch_size, replace=self.replace
            )
            return log_posterior.estimate(state.params, minibatch)

        self._step = jax.jit(_step)
        self._estimate = jax.jit(_estimate)

    def init_state(self) -> SamplerState:
        """Return the initial state built from the starting parameters."""
        return self.engine.init(self.params, self.key)

    def step(self, state: SamplerState) -> SamplerState:
        """
        Advance the chain by one step.

        Parameters
        ----------
        state : SamplerState
            Current state; not modified.

        Returns
        -------
        SamplerState
            Next state.
        """
        return self._step(state, self.dataset.arrays)

    def get_params(self, state: SamplerState) -> Params:
        """Return the current parameter values held in ``state``."""
        return state.params

    def log_posterior_estimate(self, state: SamplerState) -> float:
        """
        Minibatch estimate of the log posterior at the current parameters.

        The minibatch key is derived from ``state.key`` without consuming
        it, so calling this does not change the chain.
        """
        return float(self._estimate(state, self.dataset.arrays))

    def __repr__(self) -> str:
        return (
            f"Sampler(method='{self.method}', params={sorted(self.params)}, "
            f"n_data={len(self.dataset)}, minibatch_size={self.minibatch_size}, "
            f"replace={self.replace})"
        )
