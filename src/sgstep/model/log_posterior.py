"""
log_posterior.py
----------------

Log posterior assembled from a user log-likelihood and log-prior.

The user supplies
    log_lik(params, minibatch) -> scalar   (sum over the rows given)
    log_prior(params) -> scalar            (optional, flat if omitted)

and the sampler works with the minibatch estimate

    log p(θ | x) ≈ log_prior(θ) + N / n * log_lik(θ, minibatch)

which is unbiased for the full-data log posterior. Gradients come from
jax.grad; the control-variate estimator recentres the minibatch gradient
around a fixed reference point θ̂ (usually the posterior mode):

    ∇ log_prior(θ) + ∇ L(θ̂) + N / n * (∇ log_lik(θ, b) - ∇ log_lik(θ̂, b))

where ∇ L(θ̂) is the full-data log-likelihood gradient at θ̂.

Connections
-----------
- Step engines (sgstep.inference) call the estimator returned by
  gradient_estimator() once per (inner) step.
- find_mode() (inference/control_variates.py) ascends estimate().
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable

import jax
import jax.numpy as jnp

from sgstep.errors import ConfigurationError

if TYPE_CHECKING:
    from sgstep.data import Dataset
    from sgstep.inference.control_variates import ControlVariate

Params = dict[str, jnp.ndarray]
Minibatch = dict[str, jnp.ndarray]
GradientEstimator = Callable[[Params, Minibatch], Params]


def flat_log_prior(params: Params) -> jnp.ndarray:
    """Improper uniform prior: contributes nothing to the log posterior."""
    return jnp.zeros(())


class LogPosterior:
    """
    Minibatch log-posterior estimator and its gradients.

    Parameters
    ----------
    log_lik : callable
        ``log_lik(params, minibatch)`` returning the summed log-likelihood
        of the rows in ``minibatch``.
    n_data : int
        Number of observations in the full dataset (N).
    log_prior : callable | None
        ``log_prior(params)``. None means a flat prior.
    """

    def __init__(
        self,
        log_lik: Callable[[Params, Minibatch], Any],
        n_data: int,
        log_prior: Callable[[Params], Any] | None = None,
    ):
        if not callable(log_lik):
            raise ConfigurationError("log_lik must be callable")
        if log_prior is not None and not callable(log_prior):
            raise ConfigurationError("log_prior must be callable or None")
        if n_data < 1:
            raise ConfigurationError(f"n_data must be positive, got {n_data}")
        self.log_lik = log_lik
        self.log_prior = log_prior if log_prior is not None else flat_log_prior
        self.n_data = int(n_data)

    @staticmethod
    def _batch_size(minibatch: Minibatch) -> int:
        return next(iter(minibatch.values())).shape[0]

    def estimate(self, params: Params, minibatch: Minibatch) -> jnp.ndarray:
        """
        Unbiased estimate of the full-data log posterior.

        Parameters
        ----------
        params : dict
            Parameter values.
        minibatch : dict
            Rows drawn from the dataset.

        Returns
        -------
        jnp.ndarray
            Scalar estimate.
        """
        scale = self.n_data / self._batch_size(minibatch)
        return self.log_prior(params) + scale * self.log_lik(params, minibatch)

    def stochastic_gradient(self, params: Params, minibatch: Minibatch) -> Params:
        """Gradient of estimate() with respect to params."""
        return jax.grad(self.estimate)(params, minibatch)

    def full_log_lik_gradient(
        self, params: Params, dataset: Dataset, chunk_size: int | None = None
    ) -> Params:
        """
        Exact gradient of the full-data log-likelihood.

        The sum is accumulated chunk by chunk so that datasets larger than
        device memory can still be processed.

        Parameters
        ----------
        params : dict
            Point at which to evaluate the gradient.
        dataset : Dataset
            Full training data.
        chunk_size : int | None
            Rows per chunk; None evaluates everything at once.

        Returns
        -------
        dict
            Gradient PyTree with the same structure as ``params``.
        """
        grad_fn = jax.jit(jax.grad(self.log_lik))
        total = jax.tree.map(jnp.zeros_like, params)
        for chunk in dataset.batches(chunk_size):
            total = jax.tree.map(jnp.add, total, grad_fn(params, chunk))
        return total

    def gradient_estimator(
        self, control_variate: ControlVariate | None = None
    ) -> GradientEstimator:
        """
        Return the gradient estimator used by the step engines.

        Parameters
        ----------
        control_variate : ControlVariate | None
            Reference point and full-data gradient there. None returns the
            plain stochastic gradient.

        Returns
        -------
        callable
            ``estimator(params, minibatch) -> grads``.
        """
        if control_variate is None:
            return self.stochastic_gradient

        centre = control_variate.centre
        full_grad = control_variate.full_grad
        prior_grad = jax.grad(self.log_prior)
        lik_grad = jax.grad(self.log_lik)

        def estimator(params: Params, minibatch: Minibatch) -> Params:
            scale = self.n_data / self._batch_size(minibatch)
            g_prior = prior_grad(params)
            g_here = lik_grad(params, minibatch)
            g_centre = lik_grad(centre, minibatch)
            return jax.tree.map(
                lambda gp, gf, gh, gc: gp + gf + scale * (gh - gc),
                g_prior,
                full_grad,
                g_here,
                g_centre,
            )

        return estimator
