"""
test_validation.py
------------------

Setup-time validation: every inconsistency is reported as a
ConfigurationError before the first step.
"""

import jax.numpy as jnp
import pytest

from sgstep import ConfigurationError, sghmc_setup, sgld_setup, sgldcv_setup, sgnht_setup
from sgstep.utils import broadcast_tuning, check_key_set, check_params, check_positive_int


class TestCheckParams:
    def test_converts_to_float_arrays(self):
        params = check_params({"a": 1, "b": [1, 2]})
        assert jnp.issubdtype(params["a"].dtype, jnp.floating)
        assert params["b"].shape == (2,)

    def test_rejects_empty(self):
        with pytest.raises(ConfigurationError):
            check_params({})

    def test_rejects_non_mapping(self):
        with pytest.raises(ConfigurationError):
            check_params([jnp.zeros(2)])

    def test_rejects_non_string_names(self):
        with pytest.raises(ConfigurationError):
            check_params({0: jnp.zeros(2)})

    def test_rejects_non_numeric_values(self):
        with pytest.raises(ConfigurationError, match="params\['w'\]"):
            check_params({"w": "zero"})


class TestBroadcastTuning:
    def test_scalar_applies_to_every_parameter(self):
        out = broadcast_tuning(1e-3, {"beta": 0.0, "bias": 0.0}, "stepsize")
        assert out == {"beta": 1e-3, "bias": 1e-3}

    def test_mapping_with_matching_keys(self):
        out = broadcast_tuning({"beta": 1e-3, "bias": 1e-2}, {"beta": 0.0, "bias": 0.0}, "stepsize")
        assert out == {"beta": 1e-3, "bias": 1e-2}

    def test_missing_key(self):
        with pytest.raises(ConfigurationError, match="stepsize keys do not match parameters"):
            broadcast_tuning({"beta": 1e-3}, {"beta": 0.0, "bias": 0.0}, "stepsize")

    def test_unexpected_key(self):
        with pytest.raises(ConfigurationError, match="unexpected \\['gamma'\\]"):
            broadcast_tuning({"beta": 1e-3, "gamma": 1.0}, {"beta": 0.0}, "alpha")

    @pytest.mark.parametrize("value", [0.0, -1.0, float("nan"), float("inf"), "fast"])
    def test_non_positive_values(self, value):
        with pytest.raises(ConfigurationError):
            broadcast_tuning(value, {"beta": 0.0}, "stepsize")

    def test_none_is_required(self):
        with pytest.raises(ConfigurationError, match="required"):
            broadcast_tuning(None, {"beta": 0.0}, "opt_stepsize")


class TestHelpers:
    def test_check_key_set_reports_both_sides(self):
        with pytest.raises(ConfigurationError) as excinfo:
            check_key_set({"a", "c"}, {"a", "b"}, what="snapshot")
        message = str(excinfo.value)
        assert "missing ['b']" in message
        assert "unexpected ['c']" in message

    def test_check_positive_int(self):
        assert check_positive_int(3, name="L") == 3
        assert check_positive_int(0, name="burn_in_steps", allow_zero=True) == 0
        with pytest.raises(ConfigurationError):
            check_positive_int(0, name="L")
        with pytest.raises(ConfigurationError):
            check_positive_int(2.0, name="L")
        with pytest.raises(ConfigurationError):
            check_positive_int(True, name="L")


class TestSetupValidation:
    """Errors surface in *_setup, before any step is taken."""

    def test_stepsize_missing_parameter(self, log_lik, gaussian_data, init_params):
        with pytest.raises(ConfigurationError, match="missing \\['mu'\\]"):
            sgld_setup(log_lik, gaussian_data, init_params, stepsize={"sigma": 1e-3})

    def test_alpha_key_mismatch(self, log_lik, gaussian_data, init_params):
        with pytest.raises(ConfigurationError, match="alpha"):
            sghmc_setup(log_lik, gaussian_data, init_params, alpha={"nu": 0.1})

    def test_a_key_mismatch(self, log_lik, gaussian_data, init_params):
        with pytest.raises(ConfigurationError, match="a keys"):
            sgnht_setup(log_lik, gaussian_data, init_params, a={"nu": 0.1})

    def test_bad_L(self, log_lik, gaussian_data, init_params):
        with pytest.raises(ConfigurationError):
            sghmc_setup(log_lik, gaussian_data, init_params, L=0)

    def test_dataset_rows_mismatch(self, log_lik, init_params):
        data = {"y": jnp.zeros((10, 2)), "w": jnp.zeros(9)}
        with pytest.raises(ConfigurationError, match="first dimension"):
            sgld_setup(log_lik, data, init_params)

    def test_minibatch_larger_than_dataset(self, log_lik, gaussian_data, init_params):
        with pytest.raises(ConfigurationError, match="minibatch_size"):
            sgld_setup(log_lik, gaussian_data, init_params, minibatch_size=5_000)

    def test_cv_requires_opt_stepsize(self, log_lik, gaussian_data, init_params):
        with pytest.raises(ConfigurationError, match="opt_stepsize"):
            sgldcv_setup(log_lik, gaussian_data, init_params, minibatch_size=100)

    def test_log_lik_must_be_callable(self, gaussian_data, init_params):
        with pytest.raises(ConfigurationError, match="log_lik"):
            sgld_setup("not a function", gaussian_data, init_params)

    def test_replace_must_be_bool(self, log_lik, gaussian_data, init_params):
        with pytest.raises(ConfigurationError, match="replace"):
            sgld_setup(log_lik, gaussian_data, init_params, replace="no")

    def test_non_numeric_param(self, log_lik, gaussian_data):
        with pytest.raises(ConfigurationError):
            sgld_setup(log_lik, gaussian_data, {"mu": object()})

    def test_per_parameter_stepsize_accepted(self, log_lik, gaussian_data):
        params = {"mu": jnp.zeros(2), "unused": jnp.zeros(())}
        sampler = sgld_setup(
            log_lik,
            gaussian_data,
            params,
            stepsize={"mu": 1e-4, "unused": 1e-3},
            minibatch_size=100,
            seed=0,
        )
        assert sampler.engine.stepsize == {"mu": 1e-4, "unused": 1e-3}
