"""
Central pytest configuration for this project.

This file is automatically discovered by pytest and is intended for:

- **Fixtures**: reusable objects or setup logic shared across multiple test files.
- **Pytest hooks**: project-wide customizations of pytest behavior (e.g., modifying CLI options, adding markers).

Notes
-----
- Contributors should
  install the package in editable mode (`pip install -e .`) so that imports are resolved
  consistently in local dev and CI environments.
- Keep this file focused on test setup. Do not add application logic here.
- Most sampler tests use a conjugate Gaussian-mean model: rows y_i ~ N(mu, I)
  in two dimensions with a flat prior, so the posterior mean is the sample
  mean of y and the log-likelihood gradient is linear in mu.
"""

import jax.numpy as jnp
import jax.random as jr
import pytest

from sgstep import Dataset

N_ROWS = 1_000
TRUE_MEAN = jnp.array([2.0, -1.0])


def gaussian_log_lik(params, minibatch):
    """Summed log-likelihood (up to a constant) of unit-variance Gaussian rows."""
    return -0.5 * jnp.sum((minibatch["y"] - params["mu"]) ** 2)


class CountingSampler:
    """
    Deterministic stand-in for a Sampler.

    The state is the step count; the parameter "x" equals it, except that
    steps listed in ``nan_at`` report NaN.
    """

    def __init__(self, nan_at=()):
        self.nan_at = set(nan_at)
        self.calls = 0

    def init_state(self):
        return 0

    def step(self, state):
        self.calls += 1
        return state + 1

    def get_params(self, state):
        value = jnp.nan if state in self.nan_at else float(state)
        return {"x": jnp.asarray(value)}


@pytest.fixture
def log_lik():
    """Gaussian-mean log-likelihood."""
    return gaussian_log_lik


@pytest.fixture
def gaussian_data():
    """Return N_ROWS two-dimensional rows drawn around TRUE_MEAN."""
    y = TRUE_MEAN + jr.normal(jr.PRNGKey(0), (N_ROWS, 2))
    return Dataset({"y": y})


@pytest.fixture
def held_out_data():
    """Return a small held-out set from the same distribution."""
    y = TRUE_MEAN + jr.normal(jr.PRNGKey(1), (50, 2))
    return Dataset({"y": y})


@pytest.fixture
def init_params():
    """Starting values away from the posterior mean."""
    return {"mu": jnp.zeros(2)}


@pytest.fixture
def posterior_mean(gaussian_data):
    """Exact posterior mean under the flat prior."""
    return jnp.mean(gaussian_data["y"], axis=0)


@pytest.fixture
def counting_sampler():
    """Deterministic stub sampler (see CountingSampler)."""
    return CountingSampler()
