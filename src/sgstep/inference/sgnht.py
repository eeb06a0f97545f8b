"""
sgnht.py
--------

Stochastic gradient Nosé-Hoover thermostat (Ding et al., 2014).

A thermostat variable ξ adapts the friction so that the kinetic energy
matches the target temperature, absorbing the unknown minibatch gradient
noise. Per parameter with d elements, stepsize h and diffusion a:

    init:  v ~ sqrt(h) * N(0, I),  ξ = a
    step:  v ← v + h * ĝ(θ) - ξ * v + sqrt(2 a h) * z
           θ ← θ + v
           ξ ← ξ + (vᵀv) / d - h

Momentum and thermostat persist across steps in state.aux.
"""

from __future__ import annotations

import jax
import jax.numpy as jnp
import jax.random as jr

from sgstep.inference.base import SamplerState, StepEngine
from sgstep.model.log_posterior import GradientEstimator
from sgstep.utils.tree import normal_like


class SGNHT(StepEngine):
    """
    SGNHT step engine.

    Parameters
    ----------
    gradient : callable
        Gradient estimator ``(params, minibatch) -> grads``.
    stepsize : dict[str, float]
        Per-parameter stepsize h.
    a : dict[str, float]
        Per-parameter diffusion constant, also the initial thermostat value
        (default used by the setup helpers: 0.01).
    """

    name = "sgnht"

    def __init__(self, gradient: GradientEstimator, stepsize: dict[str, float], a: dict[str, float]):
        super().__init__(gradient, stepsize)
        self.a = dict(a)

    def init(self, params, key) -> SamplerState:
        params = dict(params)
        key, momentum_key = jr.split(key)
        momentum = jax.tree.map(
            lambda h, z: jnp.sqrt(h) * z,
            self.stepsize,
            normal_like(momentum_key, params),
        )
        thermostat = {
            name: jnp.asarray(self.a[name], dtype=jnp.result_type(value))
            for name, value in params.items()
        }
        return SamplerState(
            params=params,
            aux={"momentum": momentum, "thermostat": thermostat},
            key=key,
        )

    def advance(self, state: SamplerState, minibatch: dict[str, jnp.ndarray]) -> SamplerState:
        key, noise_key = jr.split(state.key)
        grads = self.gradient(state.params, minibatch)
        noise = normal_like(noise_key, state.params)
        v = jax.tree.map(
            lambda v_, g, xi, h, a, z: v_ + h * g - xi * v_ + jnp.sqrt(2.0 * a * h) * z,
            state.aux["momentum"],
            grads,
            state.aux["thermostat"],
            self.stepsize,
            self.a,
            noise,
        )
        params = jax.tree.map(jnp.add, state.params, v)
        thermostat = jax.tree.map(
            lambda xi, v_, h: xi + jnp.mean(jnp.square(v_)) - h,
            state.aux["thermostat"],
            v,
            self.stepsize,
        )
        return SamplerState(
            params=params,
            aux={"momentum": v, "thermostat": thermostat},
            key=key,
        )
