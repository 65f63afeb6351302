"""Bootstrap and teardown commands"""

import click
from rich.console import Console
from rich.table import Table

from pik3s.errors import ExitCode, WaitCancelled
from pik3s.installer.bootstrap import PREFLIGHT, build_bootstrap_steps, build_context
from pik3s.installer.teardown import build_teardown_steps
from pik3s.orchestrator.runner import Orchestrator
from pik3s.orchestrator.waiter import cancel_on_signal

console = Console()


@click.command()
@click.option("--dry-run", is_flag=True, help="Show which steps would run without executing")
@click.option("--timeout", type=click.FloatRange(min=0), help="Readiness timeout in seconds")
@click.option("--poll-interval", type=click.FloatRange(min=0, min_open=True), help="Readiness poll interval in seconds")
@click.pass_context
def bootstrap(ctx, dry_run, timeout, poll_interval):
    """Bootstrap k3s, Argo CD and the root application"""
    cfg = ctx.obj["config"]
    reporter = ctx.obj["reporter"]

    if timeout is not None:
        cfg["timeouts"]["readiness"] = timeout
    if poll_interval is not None:
        cfg["timeouts"]["poll_interval"] = poll_interval

    run_ctx = build_context(cfg, reporter, verbose=ctx.obj["verbose"])
    steps = build_bootstrap_steps(cfg)
    orchestrator = Orchestrator(run_ctx)

    if dry_run:
        console.print("[bold cyan]Dry run mode - evaluating preconditions only[/bold cyan]\n")
        show_plan(orchestrator, steps)
        return

    console.print("[bold green]Starting Raspberry Pi k3s GitOps Platform Bootstrap[/bold green]\n")

    try:
        with cancel_on_signal(run_ctx.clock):
            result = orchestrator.run(steps, preflight=PREFLIGHT)
    except (KeyboardInterrupt, WaitCancelled):
        reporter.error("Interrupted. Run 'pik3s bootstrap' again to resume.")
        ctx.exit(ExitCode.INTERRUPTED)

    reporter.summary(result)

    if result.succeeded:
        console.print("\n[bold]Next steps:[/bold]")
        console.print("  1. Wait for applications to sync: pik3s status")
        console.print("  2. Get the Argo CD admin password: pik3s password")
        console.print("  3. Open dashboards: pik3s port-forward grafana | argocd")

    ctx.exit(result.exit_code)


@click.command()
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def teardown(ctx, yes):
    """Remove applications, platform namespaces and k3s"""
    cfg = ctx.obj["config"]
    reporter = ctx.obj["reporter"]

    if not yes:
        click.confirm("This will remove all applications and data. Are you sure?", abort=True)

    run_ctx = build_context(cfg, reporter, verbose=ctx.obj["verbose"])

    try:
        with cancel_on_signal(run_ctx.clock):
            result = Orchestrator(run_ctx).run(build_teardown_steps(cfg))
    except (KeyboardInterrupt, WaitCancelled):
        reporter.error("Interrupted. Run 'pik3s teardown' again to resume.")
        ctx.exit(ExitCode.INTERRUPTED)

    reporter.summary(result, title="Teardown Summary")
    ctx.exit(result.exit_code)


def show_plan(orchestrator: Orchestrator, steps):
    """Print which steps would run"""
    table = Table(title="Bootstrap Plan", show_header=True)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Step", style="cyan")
    table.add_column("Description")
    table.add_column("Action")

    for i, (step, satisfied) in enumerate(orchestrator.plan(steps), start=1):
        action = "[dim]skip (satisfied)[/dim]" if satisfied else "[yellow]run[/yellow]"
        table.add_row(str(i), step.name, step.description, action)

    console.print(table)
