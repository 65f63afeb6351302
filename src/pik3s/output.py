"""Console reporting for bootstrap runs"""

from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from pik3s.orchestrator.models import RunResult, Step, StepOutcome, StepResult

LEVELS = ["debug", "info", "warning", "error"]

OUTCOME_STYLE = {
    StepOutcome.SUCCESS: ("green", "✓"),
    StepOutcome.SKIPPED: ("cyan", "↷"),
    StepOutcome.FAILED: ("red", "✗"),
}


class Reporter:
    """Log sink carried by the run context.

    Human-readable lines go to ``console``; warnings and errors go to
    ``err_console`` (stderr by default). Each step produces one structured
    ``[STEP]`` line on start and one on finish.
    """

    def __init__(
        self,
        console: Optional[Console] = None,
        err_console: Optional[Console] = None,
        level: str = "info",
    ):
        self.console = console or Console()
        self.err_console = err_console or Console(stderr=True)
        self.level = level if level in LEVELS else "info"

    def _enabled(self, level: str) -> bool:
        return LEVELS.index(level) >= LEVELS.index(self.level)

    def debug(self, message: str) -> None:
        if self._enabled("debug"):
            self.console.print(f"[dim]{escape(message)}[/dim]")

    def info(self, message: str) -> None:
        if self._enabled("info"):
            self.console.print(f"[green][INFO][/green] {escape(message)}")

    def success(self, message: str) -> None:
        self.console.print(f"[green]✓ {escape(message)}[/green]")

    def warn(self, message: str) -> None:
        if self._enabled("warning"):
            self.err_console.print(f"[yellow][WARN][/yellow] ⚠ {escape(message)}")

    def error(self, message: str) -> None:
        self.err_console.print(f"[red][ERROR][/red] {escape(message)}")

    def step_started(self, index: int, total: int, step: Step) -> None:
        self.console.print(
            f"[blue][STEP][/blue] {index}/{total} {step.name} "
            f"[dim]- {escape(step.description)}[/dim]"
        )

    def step_finished(self, result: StepResult) -> None:
        color, icon = OUTCOME_STYLE[result.outcome]
        line = (
            f"[blue][STEP][/blue] {result.name} "
            f"outcome=[{color}]{result.outcome.value}[/{color}] "
            f"duration={result.duration:.1f}s"
        )
        if result.failure:
            line += f" failure={result.failure.value}"
        self.console.print(f"{line} [{color}]{icon}[/{color}]")

        if result.failed:
            self.error(f"{result.name}: {result.reason}")
            if result.diagnostics:
                self.err_console.print(f"[dim]{escape(result.diagnostics)}[/dim]")
            if result.hint:
                self.err_console.print(f"[cyan]Hint:[/cyan] {escape(result.hint)}")

    def waiting(self, step: Step, remaining: float) -> None:
        self.debug(f"Waiting for {step.name}... ({remaining:.0f}s remaining)")

    def summary(self, run: RunResult, title: str = "Bootstrap Summary") -> None:
        table = Table(title=title, show_header=True, header_style="bold cyan")
        table.add_column("#", justify="right", style="dim")
        table.add_column("Step", style="cyan")
        table.add_column("Outcome", justify="center")
        table.add_column("Duration", justify="right")
        table.add_column("Detail")

        for i, result in enumerate(run.results, start=1):
            color, icon = OUTCOME_STYLE[result.outcome]
            table.add_row(
                str(i),
                result.name,
                f"[{color}]{icon} {result.outcome.value}[/{color}]",
                f"{result.duration:.1f}s",
                escape(result.reason),
            )

        self.console.print(table)

        if run.succeeded:
            self.console.print(f"\n[bold green]✓ Completed in {run.duration():.1f}s[/bold green]")
        else:
            failed = run.failed_step
            self.err_console.print(
                f"\n[bold red]✗ Stopped at: {failed.name}[/bold red] "
                f"(exit code {int(run.exit_code)})"
            )
