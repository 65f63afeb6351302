"""Step, result and run context types"""

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional

from pik3s.errors import ExitCode

if TYPE_CHECKING:
    from pik3s.installer.host import HostFacts, HostProbe
    from pik3s.installer.kube import Kubectl
    from pik3s.installer.shell import CommandRunner
    from pik3s.orchestrator.waiter import Clock
    from pik3s.output import Reporter


class StepOutcome(str, Enum):
    """Outcome of one step"""

    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failed"


class FailureKind(str, Enum):
    """Why a step failed"""

    PRECONDITION = "precondition"
    TIMEOUT = "timeout"
    FAULT = "fault"

    @property
    def exit_code(self) -> ExitCode:
        return {
            FailureKind.PRECONDITION: ExitCode.PRECONDITION,
            FailureKind.TIMEOUT: ExitCode.TIMEOUT,
            FailureKind.FAULT: ExitCode.FAULT,
        }[self]


class RunState(str, Enum):
    """Orchestrator state; linear, terminal in SUCCEEDED or FAILED"""

    NOT_STARTED = "not-started"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


Predicate = Callable[["RunContext"], bool]
Action = Callable[["RunContext"], None]


@dataclass
class Step:
    """An ordered unit of provisioning work.

    ``is_satisfied`` is the precondition: when it returns True the effect
    already holds and the step is skipped. ``is_ready`` is the postcondition
    polled after the action; ``None`` means the action alone is enough.
    ``timeout`` and ``poll_interval`` fall back to the configured defaults.
    """

    name: str
    description: str
    is_satisfied: Predicate
    execute: Action
    is_ready: Optional[Predicate] = None
    timeout: Optional[float] = None
    poll_interval: Optional[float] = None


@dataclass
class StepResult:
    """Outcome of one executed or skipped step"""

    name: str
    outcome: StepOutcome
    duration: float = 0.0
    failure: Optional[FailureKind] = None
    reason: str = ""
    diagnostics: Optional[str] = None
    hint: str = ""

    @property
    def failed(self) -> bool:
        return self.outcome is StepOutcome.FAILED


@dataclass
class RunResult:
    """Ordered step results of one invocation"""

    results: List[StepResult] = field(default_factory=list)
    state: RunState = RunState.NOT_STARTED

    @property
    def succeeded(self) -> bool:
        return not any(r.failed for r in self.results)

    @property
    def failed_step(self) -> Optional[StepResult]:
        for result in self.results:
            if result.failed:
                return result
        return None

    @property
    def exit_code(self) -> ExitCode:
        failed = self.failed_step
        if failed is None:
            return ExitCode.OK
        return failed.failure.exit_code if failed.failure else ExitCode.FAULT

    def outcomes(self) -> List[tuple]:
        """(name, outcome) pairs in execution order"""
        return [(r.name, r.outcome) for r in self.results]

    def duration(self) -> float:
        return sum(r.duration for r in self.results)


@dataclass
class RunContext:
    """Everything a step may touch, passed explicitly"""

    config: Dict[str, Any]
    runner: "CommandRunner"
    host: "HostProbe"
    kube: "Kubectl"
    clock: "Clock"
    reporter: "Reporter"
    hostname: str = ""
    facts: Optional["HostFacts"] = None
    warnings: List[str] = field(default_factory=list)
    executed: List[str] = field(default_factory=list)

    def warn(self, message: str) -> None:
        """Record a non-fatal warning"""
        self.warnings.append(message)
        self.reporter.warn(message)

    def step_timeout(self, step: Step) -> float:
        """Effective readiness timeout for a step"""
        if step.timeout is not None:
            return float(step.timeout)
        timeouts = self.config.get("timeouts", {})
        overrides = timeouts.get("steps") or {}
        if step.name in overrides:
            return float(overrides[step.name])
        return float(timeouts.get("readiness", 300))

    def step_interval(self, step: Step) -> float:
        """Effective poll interval for a step"""
        if step.poll_interval is not None:
            return float(step.poll_interval)
        return float(self.config.get("timeouts", {}).get("poll_interval", 5))
