"""
session
=======

Run orchestration.

This subpackage provides:
- StepLoopDriver : burn-in / production state machine that keeps a running
  average of the production-phase parameters and evaluates a held-out
  diagnostic at a fixed cadence.
- RunConfig : validated phase lengths and cadence.
- run_online : build a driver and run it to completion.
"""

from .driver import (
    DiagnosticReport,
    Phase,
    RunConfig,
    RunResult,
    StepLoopDriver,
    Steppable,
    run_online,
)

__all__ = [
    "StepLoopDriver",
    "RunConfig",
    "RunResult",
    "DiagnosticReport",
    "Phase",
    "Steppable",
    "run_online",
]
