"""
test_samplers.py
----------------

End-to-end tests for the step-style and batch-style samplers on the
Gaussian-mean model:
- shapes and determinism under a fixed seed
- the SAMPLERS registry and setup()
- rough recovery of the posterior mean
- divergence reporting in batch mode
"""

import jax.numpy as jnp
import numpy as np
import pytest

import sgstep
from sgstep import (
    SAMPLERS,
    ConfigurationError,
    DivergenceError,
    RunConfig,
    Sampler,
    run_online,
    setup,
    sghmc_setup,
    sgld_setup,
    sgnht_setup,
)
from sgstep.inference import sample_chain

STEPSIZE = 1e-4
MINIBATCH = 100


# ============================================================================
# Step style
# ============================================================================


class TestStepStyle:
    @pytest.fixture
    def sampler(self, log_lik, gaussian_data, init_params):
        return sgld_setup(
            log_lik,
            gaussian_data,
            init_params,
            stepsize=STEPSIZE,
            minibatch_size=MINIBATCH,
            seed=0,
        )

    def test_returns_sampler(self, sampler):
        assert isinstance(sampler, Sampler)
        assert sampler.method == "sgld"
        assert sampler.minibatch_size == MINIBATCH

    def test_step_keeps_shapes(self, sampler):
        state = sampler.step(sampler.init_state())
        assert sampler.get_params(state)["mu"].shape == (2,)

    def test_step_does_not_modify_input(self, sampler):
        state = sampler.init_state()
        sampler.step(state)
        assert jnp.array_equal(state.params["mu"], jnp.zeros(2))

    def test_same_seed_same_chain(self, log_lik, gaussian_data, init_params):
        def run(seed):
            s = sgld_setup(
                log_lik, gaussian_data, init_params, stepsize=STEPSIZE,
                minibatch_size=MINIBATCH, seed=seed,
            )
            state = s.init_state()
            for _ in range(10):
                state = s.step(state)
            return s.get_params(state)["mu"]

        assert jnp.array_equal(run(1), run(1))
        assert not jnp.array_equal(run(1), run(2))

    def test_log_posterior_estimate_does_not_advance(self, sampler):
        state = sampler.init_state()
        first = sampler.log_posterior_estimate(state)
        assert isinstance(first, float)
        assert first == sampler.log_posterior_estimate(state)
        assert jnp.array_equal(sampler.step(state).params["mu"], sampler.step(state).params["mu"])

    def test_repr(self, sampler):
        assert "method='sgld'" in repr(sampler)
        assert "minibatch_size=100" in repr(sampler)
        assert "replace=True" in repr(sampler)

    def test_minibatches_drawn_with_replacement_by_default(self, sampler):
        assert sampler.replace is True

    def test_without_replacement_option(self, log_lik, gaussian_data, init_params):
        sampler = sgld_setup(
            log_lik, gaussian_data, init_params, stepsize=STEPSIZE,
            minibatch_size=MINIBATCH, seed=0, replace=False,
        )
        assert sampler.replace is False
        state = sampler.step(sampler.init_state())
        assert bool(jnp.all(jnp.isfinite(state.params["mu"])))

    def test_replacement_policy_changes_chain(self, log_lik, gaussian_data, init_params):
        def first_step(replace):
            s = sgld_setup(
                log_lik, gaussian_data, init_params, stepsize=STEPSIZE,
                minibatch_size=MINIBATCH, seed=0, replace=replace,
            )
            return s.step(s.init_state()).params["mu"]

        assert not jnp.array_equal(first_step(True), first_step(False))

    def test_sghmc_state_has_momentum(self, log_lik, gaussian_data, init_params):
        sampler = sghmc_setup(log_lik, gaussian_data, init_params, minibatch_size=MINIBATCH, seed=0)
        state = sampler.step(sampler.init_state())
        assert state.aux["momentum"]["mu"].shape == (2,)

    def test_sgnht_state_has_thermostat(self, log_lik, gaussian_data, init_params):
        sampler = sgnht_setup(
            log_lik, gaussian_data, init_params, a=0.05, minibatch_size=MINIBATCH, seed=0
        )
        state = sampler.init_state()
        assert float(state.aux["thermostat"]["mu"]) == pytest.approx(0.05)
        state = sampler.step(state)
        assert set(state.aux) == {"momentum", "thermostat"}


# ============================================================================
# Registry
# ============================================================================


class TestRegistry:
    def test_all_methods_registered(self):
        assert set(SAMPLERS) == {"sgld", "sghmc", "sgnht", "sgldcv", "sghmccv", "sgnhtcv"}

    def test_setup_by_name(self, log_lik, gaussian_data, init_params):
        sampler = setup(
            "sghmc",
            log_lik=log_lik,
            dataset=gaussian_data,
            params=init_params,
            minibatch_size=MINIBATCH,
            seed=0,
        )
        assert sampler.method == "sghmc"

    def test_unknown_method(self):
        with pytest.raises(ConfigurationError, match="Unknown sampler"):
            setup("nuts")


# ============================================================================
# Posterior recovery
# ============================================================================


class TestPosteriorMean:
    """Running averages land near the exact posterior mean (sd ~ 0.03)."""

    def test_sgld(self, log_lik, gaussian_data, init_params, posterior_mean):
        sampler = sgld_setup(
            log_lik, gaussian_data, init_params, stepsize=STEPSIZE,
            minibatch_size=MINIBATCH, seed=0,
        )
        result = run_online(sampler, RunConfig(burn_in_steps=500, production_steps=2_000))
        np.testing.assert_allclose(result.average.mean["mu"], posterior_mean, atol=0.1)

    def test_sghmc(self, log_lik, gaussian_data, init_params, posterior_mean):
        sampler = sghmc_setup(
            log_lik, gaussian_data, init_params, stepsize=STEPSIZE,
            minibatch_size=MINIBATCH, alpha=0.1, L=5, seed=0,
        )
        result = run_online(sampler, RunConfig(burn_in_steps=500, production_steps=2_000))
        np.testing.assert_allclose(result.average.mean["mu"], posterior_mean, atol=0.1)

    def test_sgnht(self, log_lik, gaussian_data, posterior_mean):
        # start close to the mode: the thermostat needs a moderate initial energy
        params = {"mu": jnp.round(posterior_mean, 1)}
        sampler = sgnht_setup(
            log_lik, gaussian_data, params, stepsize=STEPSIZE,
            minibatch_size=MINIBATCH, a=0.01, seed=0,
        )
        result = run_online(sampler, RunConfig(burn_in_steps=500, production_steps=2_000))
        np.testing.assert_allclose(result.average.mean["mu"], posterior_mean, atol=0.15)


# ============================================================================
# Batch style
# ============================================================================


class TestBatchStyle:
    @pytest.mark.parametrize("name", ["sgld", "sghmc", "sgnht"])
    def test_chain_shape(self, name, log_lik, gaussian_data, init_params):
        run = getattr(sgstep, name)
        chain = run(
            log_lik, gaussian_data, init_params, stepsize=STEPSIZE,
            minibatch_size=MINIBATCH, n_iters=20, verbose=False, seed=0,
        )
        assert chain["mu"].shape == (20, 2)
        assert bool(jnp.all(jnp.isfinite(chain["mu"])))

    def test_batch_forwards_replace(self, log_lik, gaussian_data, init_params):
        chain = sgstep.sghmc(
            log_lik, gaussian_data, init_params, stepsize=STEPSIZE,
            minibatch_size=MINIBATCH, n_iters=5, verbose=False, seed=0, replace=False,
        )
        assert chain["mu"].shape == (5, 2)

    @pytest.mark.parametrize("name", ["sgldcv", "sghmccv", "sgnhtcv"])
    def test_cv_chain_shape(self, name, log_lik, gaussian_data, init_params):
        run = getattr(sgstep, name)
        chain = run(
            log_lik, gaussian_data, init_params, stepsize=STEPSIZE, opt_stepsize=1e-4,
            minibatch_size=MINIBATCH, n_iters=20, n_iters_opt=50, verbose=False, seed=0,
        )
        assert chain["mu"].shape == (20, 2)

    def test_batch_matches_step_style(self, log_lik, gaussian_data, init_params):
        chain = sgstep.sgld(
            log_lik, gaussian_data, init_params, stepsize=STEPSIZE,
            minibatch_size=MINIBATCH, n_iters=5, verbose=False, seed=4,
        )
        sampler = sgld_setup(
            log_lik, gaussian_data, init_params, stepsize=STEPSIZE,
            minibatch_size=MINIBATCH, seed=4,
        )
        state = sampler.init_state()
        for i in range(5):
            state = sampler.step(state)
            assert jnp.array_equal(chain["mu"][i], state.params["mu"])

    def test_divergence_raises(self, log_lik, gaussian_data, init_params):
        with pytest.raises(DivergenceError) as excinfo:
            sgstep.sgld(
                log_lik, gaussian_data, init_params, stepsize=10.0,
                minibatch_size=MINIBATCH, n_iters=50, verbose=False, seed=0,
            )
        assert excinfo.value.name == "mu"

    def test_verbose_logs_progress(self, log_lik, gaussian_data, init_params, caplog):
        sampler = sgld_setup(
            log_lik, gaussian_data, init_params, stepsize=STEPSIZE,
            minibatch_size=MINIBATCH, seed=0,
        )
        with caplog.at_level("INFO", logger="sgstep"):
            sample_chain(sampler, 10, verbose=True, report_every=5)
        assert "Iteration: 5\tlog posterior estimate" in caplog.text
        assert "Iteration: 10\tlog posterior estimate" in caplog.text

    def test_invalid_n_iters(self, log_lik, gaussian_data, init_params):
        with pytest.raises(ConfigurationError):
            sgstep.sgld(log_lik, gaussian_data, init_params, n_iters=0, verbose=False)
