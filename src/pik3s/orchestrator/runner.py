"""Sequential, fail-fast step execution"""

from typing import List, Optional, Sequence, Tuple

from pik3s.errors import (
    BootstrapError,
    CommandError,
    MissingRequiredResource,
    ReadinessTimeout,
    WaitCancelled,
)
from pik3s.orchestrator.models import (
    FailureKind,
    RunContext,
    RunResult,
    RunState,
    Step,
    StepOutcome,
    StepResult,
)
from pik3s.orchestrator.waiter import wait_until


class Orchestrator:
    """Runs an ordered step sequence against one host.

    Each step is skipped when its precondition already holds, otherwise its
    action runs and its postcondition is polled. The first failure stops
    the run; later steps are never attempted.
    """

    def __init__(self, ctx: RunContext):
        self.ctx = ctx

    def run(self, steps: Sequence[Step], preflight: Optional[Step] = None) -> RunResult:
        """Execute ``steps`` in order.

        ``preflight`` runs before the first step on every invocation. It is
        recorded in the result only when it fails, so a fully provisioned
        host reports nothing but skipped steps.
        """
        _check_unique(steps)
        run = RunResult(state=RunState.RUNNING)
        total = len(steps)

        if preflight is not None:
            self.ctx.reporter.step_started(0, total, preflight)
            result = self._run_step(preflight)
            if result.failed:
                run.results.append(result)
                self.ctx.reporter.step_finished(result)
                run.state = RunState.FAILED
                return run

        for index, step in enumerate(steps):
            if self.ctx.clock.cancelled:
                raise WaitCancelled(f"Run cancelled before '{step.name}'")
            self.ctx.reporter.step_started(index + 1, total, step)
            result = self._run_step(step)
            run.results.append(result)
            self.ctx.reporter.step_finished(result)

            if result.failed:
                run.state = RunState.FAILED
                return run

        run.state = RunState.SUCCEEDED
        return run

    def plan(self, steps: Sequence[Step]) -> List[Tuple[Step, bool]]:
        """Evaluate preconditions only; True means the step would be skipped.

        A precondition that cannot be evaluated yet (e.g. the cluster API is
        not installed) is reported as pending.
        """
        _check_unique(steps)
        planned = []
        for step in steps:
            try:
                satisfied = bool(step.is_satisfied(self.ctx))
            except BootstrapError:
                satisfied = False
            planned.append((step, satisfied))
        return planned

    def _run_step(self, step: Step) -> StepResult:
        clock = self.ctx.clock
        started = clock.now()

        def finish(outcome: StepOutcome, **kwargs) -> StepResult:
            return StepResult(step.name, outcome, duration=clock.now() - started, **kwargs)

        try:
            if step.is_satisfied(self.ctx):
                return finish(StepOutcome.SKIPPED, reason="already satisfied")

            self.ctx.executed.append(step.name)
            step.execute(self.ctx)

            if step.is_ready is not None:
                wait_until(
                    lambda: step.is_ready(self.ctx),
                    timeout=self.ctx.step_timeout(step),
                    interval=self.ctx.step_interval(step),
                    clock=clock,
                    on_poll=lambda remaining: self.ctx.reporter.waiting(step, remaining),
                )
        except MissingRequiredResource as e:
            return finish(
                StepOutcome.FAILED,
                failure=FailureKind.PRECONDITION,
                reason=str(e),
                hint=e.hint,
            )
        except ReadinessTimeout as e:
            return finish(
                StepOutcome.FAILED,
                failure=FailureKind.TIMEOUT,
                reason=str(ReadinessTimeout(e.elapsed, e.timeout, step.name)),
            )
        except WaitCancelled:
            raise
        except CommandError as e:
            return finish(
                StepOutcome.FAILED,
                failure=FailureKind.FAULT,
                reason=str(e),
                diagnostics=e.diagnostics,
            )
        except Exception as e:
            return finish(
                StepOutcome.FAILED,
                failure=FailureKind.FAULT,
                reason=f"{type(e).__name__}: {e}",
            )

        return finish(StepOutcome.SUCCESS)


def _check_unique(steps: Sequence[Step]) -> None:
    seen = set()
    for step in steps:
        if step.name in seen:
            raise ValueError(f"Duplicate step name: {step.name}")
        seen.add(step.name)
