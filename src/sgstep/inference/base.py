"""
base.py
-------

Abstract base class for step engines.

A step engine owns the SGMCMC update rule. All engines (SGLD, SGHMC,
SGNHT and their control-variate variants) subclass from this base and
implement:

- init(params, key) -> SamplerState
- advance(state, minibatch) -> SamplerState

State is passed explicitly: advance() never mutates its input and keeps
no hidden state, so it can be wrapped in jax.jit.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, NamedTuple

import jax
import jax.numpy as jnp

from sgstep.model.log_posterior import GradientEstimator

Params = dict[str, jnp.ndarray]


class SamplerState(NamedTuple):
    """
    Sampler state (a JAX PyTree).

    Attributes
    ----------
    params : dict[str, jnp.ndarray]
        Current parameter values.
    aux : dict[str, Any]
        Engine-private auxiliary tensors (momentum, thermostat, ...).
        Empty for SGLD.
    key : jax.Array
        PRNG key consumed by the next step.
    """

    params: Params
    aux: dict[str, Any]
    key: jax.Array


class StepEngine(ABC):
    """
    Abstract interface for one-step SGMCMC transitions.

    Parameters
    ----------
    gradient : callable
        ``gradient(params, minibatch) -> grads`` estimator of the
        log-posterior gradient (see LogPosterior.gradient_estimator).
    stepsize : dict[str, float]
        Per-parameter stepsize, already broadcast.

    Methods
    -------
    init(params, key) -> SamplerState
        Build the initial state from starting values.
    advance(state, minibatch) -> SamplerState
        Apply one update.
    """

    name: str = "base"

    def __init__(self, gradient: GradientEstimator, stepsize: dict[str, float]):
        self.gradient = gradient
        self.stepsize = dict(stepsize)

    def init(self, params: Params, key: jax.Array) -> SamplerState:
        """
        Build the initial sampler state.

        Parameters
        ----------
        params : dict
            Starting parameter values.
        key : jax.Array
            PRNG key for every subsequent step.

        Returns
        -------
        SamplerState
            State with no auxiliary variables. Engines carrying momentum
            or a thermostat override this.
        """
        return SamplerState(params=dict(params), aux={}, key=key)

    @abstractmethod
    def advance(self, state: SamplerState, minibatch: dict[str, jnp.ndarray]) -> SamplerState:
        """
        Produce the next state from the current one and a minibatch.

        Parameters
        ----------
        state : SamplerState
            Current state.
        minibatch : dict
            Rows drawn from the dataset.

        Returns
        -------
        SamplerState
            Next state.
        """
        ...
