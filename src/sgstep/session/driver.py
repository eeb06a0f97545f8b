"""
driver.py
---------

StepLoopDriver orchestrates a two-phase, memory-bounded sampling run.

Responsibilities
----------------
1. Advance the sampler one step at a time (burn-in, then production).
2. Keep a RunningAverage (and optionally RunningMoments) of the
   production-phase parameters instead of the full chain.
3. Evaluate a held-out diagnostic every ``report_every`` steps of each
   phase, log it and record it, without altering control flow.

The run is an explicit state machine:

    BURN_IN --(burn_in_steps done)--> PRODUCTION --(production_steps done)--> DONE

Entering PRODUCTION takes the accumulator template from the current state.
With ``burn_in_steps == 0`` the driver starts in PRODUCTION.

Between step() calls the caller may read ``driver.state``,
``driver.average`` and ``driver.phase``, e.g. to write its own
checkpoints. Any exception from the sampler propagates immediately; there
is no retry.

Examples
--------
>>> sampler = sgld_setup(log_lik, train, params, stepsize=1e-4, seed=0)
>>> config = RunConfig(burn_in_steps=1_000, production_steps=10_000, report_every=500)
>>> result = run_online(
...     sampler, config, diagnostic=log_predictive_density(log_lik), held_out=test
... )
>>> result.average.mean["beta"]
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, NamedTuple, Protocol, runtime_checkable

import jax.numpy as jnp

from sgstep.data.dataset import Dataset
from sgstep.errors import ConfigurationError, DivergenceError
from sgstep.posterior.running import RunningAverage, RunningMoments
from sgstep.utils.tree import first_nonfinite
from sgstep.utils.validation import check_key_set, check_positive_int

logger = logging.getLogger(__name__)

Params = dict[str, jnp.ndarray]


@runtime_checkable
class Steppable(Protocol):
    """Anything the driver can advance: a Sampler or a test stub."""

    def init_state(self) -> Any: ...

    def step(self, state: Any) -> Any: ...

    def get_params(self, state: Any) -> Params: ...


class Phase(enum.Enum):
    BURN_IN = "burn-in"
    PRODUCTION = "production"
    DONE = "done"


@dataclass
class RunConfig:
    """
    Configuration of a two-phase run.

    Attributes
    ----------
    burn_in_steps : int
        Steps discarded before averaging starts (may be 0).
    production_steps : int
        Steps folded into the running average (positive).
    report_every : int
        Steps between diagnostic evaluations within each phase.
        Trades diagnostic freshness against throughput.
    check_finite : bool
        Raise DivergenceError as soon as a parameter becomes NaN or inf.
        Costs one device-to-host sync per step.
    track_moments : bool
        Also keep a RunningMoments (mean and variance).

    Examples
    --------
    >>> RunConfig(burn_in_steps=100, production_steps=1_000, report_every=100)
    """

    burn_in_steps: int = 0
    production_steps: int = 1_000
    report_every: int = 100
    check_finite: bool = True
    track_moments: bool = False

    def __post_init__(self):
        """Validate configuration."""
        self.burn_in_steps = check_positive_int(
            self.burn_in_steps, name="burn_in_steps", allow_zero=True
        )
        self.production_steps = check_positive_int(
            self.production_steps, name="production_steps"
        )
        self.report_every = check_positive_int(self.report_every, name="report_every")


class DiagnosticReport(NamedTuple):
    """One diagnostic evaluation: phase, 1-based step within it, value."""

    phase: Phase
    step: int
    value: float


@dataclass
class RunResult:
    """Final state of a completed run."""

    state: Any
    average: RunningAverage
    moments: RunningMoments | None = None
    reports: list[DiagnosticReport] = field(default_factory=list)


class StepLoopDriver:
    """
    Two-phase step loop with running averaging and diagnostic cadence.

    Parameters
    ----------
    sampler : Steppable
        Object exposing ``step(state) -> state`` and
        ``get_params(state) -> dict``.
    state : Any
        Initial sampler state (e.g. ``sampler.init_state()``).
    config : RunConfig
        Phase lengths and reporting cadence.
    diagnostic : callable | None
        Pure function ``(params, held_out) -> scalar``.
    held_out : Any
        Data passed to ``diagnostic``. Required when ``diagnostic`` is set.

    Attributes
    ----------
    phase : Phase
        Current phase.
    step_in_phase : int
        Steps completed in the current phase.
    state : Any
        Latest sampler state.
    average : RunningAverage | None
        Running mean over production snapshots (None during burn-in).
    moments : RunningMoments | None
        Running mean/variance when ``config.track_moments``.
    reports : list[DiagnosticReport]
        Every diagnostic evaluation so far.
    """

    def __init__(
        self,
        sampler: Steppable,
        state: Any,
        config: RunConfig,
        *,
        diagnostic: Callable[[Params, Any], Any] | None = None,
        held_out: Any = None,
    ):
        if diagnostic is not None and held_out is None:
            raise ConfigurationError("held_out data is required when a diagnostic is given")
        train = getattr(sampler, "dataset", None)
        if isinstance(train, Dataset) and isinstance(held_out, Dataset):
            check_key_set(
                held_out.keys(), train.keys(), what="held_out", against="training dataset"
            )

        self.sampler = sampler
        self.config = config
        self.diagnostic = diagnostic
        self.held_out = held_out

        self.state = state
        self.average: RunningAverage | None = None
        self.moments: RunningMoments | None = None
        self.reports: list[DiagnosticReport] = []

        self.phase = Phase.BURN_IN
        self.step_in_phase = 0
        if config.burn_in_steps == 0:
            self._begin_production()

    # ------------------------------------------------------------------
    # STATE MACHINE
    # ------------------------------------------------------------------
    def _begin_production(self) -> None:
        params = self.sampler.get_params(self.state)
        self.average = RunningAverage.start(params)
        if self.config.track_moments:
            self.moments = RunningMoments.start(params)
        self.phase = Phase.PRODUCTION
        self.step_in_phase = 0
        logger.info("Entering production phase: averaging %d steps", self.config.production_steps)

    def step(self) -> Phase:
        """
        Perform exactly one transition.

        Returns
        -------
        Phase
            Phase after the transition.

        Raises
        ------
        RuntimeError
            If the run is already DONE.
        DivergenceError
            If ``config.check_finite`` and the new state is not finite.
        """
        if self.phase is Phase.DONE:
            raise RuntimeError("run already complete; create a new driver to continue")

        self.state = self.sampler.step(self.state)
        self.step_in_phase += 1
        params = self.sampler.get_params(self.state)
        if self.config.check_finite:
            self._check_finite(params)

        if self.phase is Phase.PRODUCTION:
            self.average = self.average.update(params)
            if self.moments is not None:
                self.moments = self.moments.update(params)

        if self.step_in_phase % self.config.report_every == 0:
            self._report(params)

        if self.phase is Phase.BURN_IN and self.step_in_phase == self.config.burn_in_steps:
            self._begin_production()
        elif (
            self.phase is Phase.PRODUCTION
            and self.step_in_phase == self.config.production_steps
        ):
            self.phase = Phase.DONE
        return self.phase

    def run(self) -> RunResult:
        """Step until DONE and return the final state and aggregates."""
        while self.phase is not Phase.DONE:
            self.step()
        return RunResult(
            state=self.state,
            average=self.average,
            moments=self.moments,
            reports=list(self.reports),
        )

    # ------------------------------------------------------------------
    # HELPERS
    # ------------------------------------------------------------------
    def _check_finite(self, params: Params) -> None:
        name = first_nonfinite(params)
        if name is not None:
            raise DivergenceError(
                f"parameter '{name}' is not finite at {self.phase.value} "
                f"step {self.step_in_phase}; try a smaller stepsize",
                name=name,
                step=self.step_in_phase,
            )

    def _report(self, params: Params) -> None:
        if self.diagnostic is None:
            return
        value = float(self.diagnostic(params, self.held_out))
        report = DiagnosticReport(self.phase, self.step_in_phase, value)
        self.reports.append(report)
        logger.info(
            "%s step %d\tdiagnostic: %.4f", self.phase.value, self.step_in_phase, value
        )


def run_online(
    sampler: Steppable,
    config: RunConfig,
    *,
    state: Any = None,
    diagnostic: Callable[[Params, Any], Any] | None = None,
    held_out: Any = None,
) -> RunResult:
    """
    Run a full burn-in + production loop.

    Parameters
    ----------
    sampler : Steppable
        Step-style sampler.
    config : RunConfig
        Phase lengths and reporting cadence.
    state : Any, optional
        Initial state; defaults to ``sampler.init_state()``.
    diagnostic, held_out
        See StepLoopDriver.

    Returns
    -------
    RunResult
        Final state, running average (and moments) and diagnostic reports.
    """
    if state is None:
        state = sampler.init_state()
    driver = StepLoopDriver(
        sampler, state, config, diagnostic=diagnostic, held_out=held_out
    )
    return driver.run()
