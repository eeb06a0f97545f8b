"""
test_log_posterior.py
---------------------

Tests for the minibatch log-posterior estimate and its gradients.
"""

import jax
import jax.numpy as jnp
import numpy as np
import pytest

from sgstep import ConfigurationError, Dataset, LogPosterior
from sgstep.model import flat_log_prior


def log_lik(params, minibatch):
    return jnp.sum(minibatch["y"] * params["w"])


def log_prior(params):
    return -jnp.sum(params["w"] ** 2)


@pytest.fixture
def data():
    return Dataset({"y": jnp.arange(10.0)})


class TestEstimate:
    def test_scales_likelihood(self, data):
        posterior = LogPosterior(log_lik, len(data), log_prior)
        params = {"w": jnp.asarray(2.0)}
        minibatch = {"y": jnp.array([1.0, 3.0])}
        # prior -4, likelihood 8 scaled by 10 / 2
        assert float(posterior.estimate(params, minibatch)) == pytest.approx(-4.0 + 5 * 8.0)

    def test_flat_prior_default(self, data):
        posterior = LogPosterior(log_lik, len(data))
        assert posterior.log_prior is flat_log_prior
        params = {"w": jnp.asarray(1.0)}
        assert float(posterior.estimate(params, data.arrays)) == pytest.approx(45.0)

    def test_stochastic_gradient(self, data):
        posterior = LogPosterior(log_lik, len(data), log_prior)
        params = {"w": jnp.asarray(1.0)}
        grad = posterior.stochastic_gradient(params, {"y": jnp.array([2.0, 4.0])})
        assert float(grad["w"]) == pytest.approx(-2.0 + 5 * 6.0)

    @pytest.mark.parametrize("n_data", [0, -5])
    def test_invalid_n_data(self, n_data):
        with pytest.raises(ConfigurationError):
            LogPosterior(log_lik, n_data)

    def test_log_prior_must_be_callable(self):
        with pytest.raises(ConfigurationError, match="log_prior"):
            LogPosterior(log_lik, 10, log_prior=1.0)


class TestFullGradient:
    @pytest.mark.parametrize("chunk_size", [None, 3, 10, 64])
    def test_chunking_gives_same_sum(self, data, chunk_size):
        posterior = LogPosterior(log_lik, len(data), log_prior)
        grad = posterior.full_log_lik_gradient({"w": jnp.asarray(0.5)}, data, chunk_size)
        assert float(grad["w"]) == pytest.approx(45.0)

    def test_matches_autodiff(self, data):
        posterior = LogPosterior(log_lik, len(data))
        params = {"w": jnp.asarray(0.5)}
        expected = jax.grad(log_lik)(params, data.arrays)
        np.testing.assert_allclose(
            posterior.full_log_lik_gradient(params, data)["w"], expected["w"]
        )
