"""
sghmc.py
--------

Stochastic gradient Hamiltonian Monte Carlo (Chen, Fox & Guestrin, 2014).

Each step resamples the momentum and runs L inner updates on the same
minibatch, with friction α compensating for the gradient noise:

    v ~ sqrt(h) * N(0, I)
    repeat L times:
        v ← v + h * ĝ(θ) - α * v + sqrt(2 α h) * z
        θ ← θ + v

The final momentum is kept in state.aux["momentum"] for inspection only;
it is resampled at the start of the next step.
"""

from __future__ import annotations

import jax
import jax.numpy as jnp
import jax.random as jr

from sgstep.errors import ConfigurationError
from sgstep.inference.base import SamplerState, StepEngine
from sgstep.model.log_posterior import GradientEstimator
from sgstep.utils.tree import normal_like


class SGHMC(StepEngine):
    """
    SGHMC step engine.

    Parameters
    ----------
    gradient : callable
        Gradient estimator ``(params, minibatch) -> grads``.
    stepsize : dict[str, float]
        Per-parameter stepsize h.
    alpha : dict[str, float]
        Per-parameter friction α (default used by the setup helpers: 0.01).
    L : int, default=5
        Number of inner leapfrog-style updates per step.
    """

    name = "sghmc"

    def __init__(
        self,
        gradient: GradientEstimator,
        stepsize: dict[str, float],
        alpha: dict[str, float],
        L: int = 5,
    ):
        super().__init__(gradient, stepsize)
        if int(L) < 1:
            raise ConfigurationError(f"L must be a positive integer, got {L}")
        self.alpha = dict(alpha)
        self.L = int(L)

    def init(self, params, key) -> SamplerState:
        momentum = jax.tree.map(jnp.zeros_like, dict(params))
        return SamplerState(params=dict(params), aux={"momentum": momentum}, key=key)

    def advance(self, state: SamplerState, minibatch: dict[str, jnp.ndarray]) -> SamplerState:
        key, momentum_key, *inner_keys = jr.split(state.key, self.L + 2)
        params = state.params
        v = jax.tree.map(
            lambda h, z: jnp.sqrt(h) * z,
            self.stepsize,
            normal_like(momentum_key, params),
        )
        for inner_key in inner_keys:
            grads = self.gradient(params, minibatch)
            noise = normal_like(inner_key, params)
            v = jax.tree.map(
                lambda v_, g, h, a, z: v_ + h * g - a * v_ + jnp.sqrt(2.0 * a * h) * z,
                v,
                grads,
                self.stepsize,
                self.alpha,
                noise,
            )
            params = jax.tree.map(jnp.add, params, v)
        return SamplerState(params=params, aux={"momentum": v}, key=key)
