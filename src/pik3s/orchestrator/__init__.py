"""Step sequencing for idempotent provisioning."""

from .models import FailureKind, RunContext, RunResult, RunState, Step, StepOutcome, StepResult
from .runner import Orchestrator
from .waiter import Clock, SystemClock, wait_until

__all__ = [
    "Clock",
    "FailureKind",
    "Orchestrator",
    "RunContext",
    "RunResult",
    "RunState",
    "Step",
    "StepOutcome",
    "StepResult",
    "SystemClock",
    "wait_until",
]
