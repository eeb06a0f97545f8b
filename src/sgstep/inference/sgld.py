"""
sgld.py
-------

Stochastic gradient Langevin dynamics (Welling & Teh, 2011).

Update, per parameter with stepsize h:

    θ' = θ + h / 2 * ĝ(θ) + sqrt(h) * z,    z ~ N(0, I)

where ĝ is a minibatch (or control-variate) estimate of the log-posterior
gradient. No auxiliary state.
"""

from __future__ import annotations

import jax
import jax.numpy as jnp
import jax.random as jr

from sgstep.inference.base import SamplerState, StepEngine
from sgstep.utils.tree import normal_like


class SGLD(StepEngine):
    """
    SGLD step engine.

    Parameters
    ----------
    gradient : callable
        Gradient estimator ``(params, minibatch) -> grads``.
    stepsize : dict[str, float]
        Per-parameter stepsize h.
    """

    name = "sgld"

    def advance(self, state: SamplerState, minibatch: dict[str, jnp.ndarray]) -> SamplerState:
        key, noise_key = jr.split(state.key)
        grads = self.gradient(state.params, minibatch)
        noise = normal_like(noise_key, state.params)
        params = jax.tree.map(
            lambda theta, g, h, z: theta + 0.5 * h * g + jnp.sqrt(h) * z,
            state.params,
            grads,
            self.stepsize,
            noise,
        )
        return SamplerState(params=params, aux=state.aux, key=key)
