def test_top_level_api_imports():
    import sgstep as s

    for name in [
        "sgld",
        "sghmc",
        "sgnht",
        "sgldcv",
        "sghmccv",
        "sgnhtcv",
        "sgld_setup",
        "sgldcv_setup",
        "setup",
        "SAMPLERS",
        "Dataset",
        "LogPosterior",
        "RunningAverage",
        "RunningMoments",
        "StepLoopDriver",
        "RunConfig",
        "run_online",
        "ConfigurationError",
        "DivergenceError",
    ]:
        assert hasattr(s, name)


def test_subpackage_imports():
    from sgstep.data import Dataset, DatasetLoader
    from sgstep.inference import SGHMC, SGLD, SGNHT, ControlVariate, Sampler, find_mode
    from sgstep.posterior import effective_sample_size, rhat
    from sgstep.session import Phase, StepLoopDriver

    assert all(
        obj is not None
        for obj in [
            Dataset,
            DatasetLoader,
            SGLD,
            SGHMC,
            SGNHT,
            ControlVariate,
            Sampler,
            find_mode,
            effective_sample_size,
            rhat,
            Phase,
            StepLoopDriver,
        ]
    )


def test_errors_subclass_builtins():
    from sgstep import ConfigurationError, DivergenceError

    assert issubclass(ConfigurationError, ValueError)
    assert issubclass(DivergenceError, RuntimeError)
