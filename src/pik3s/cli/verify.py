"""Prerequisite verification command"""

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from pik3s.errors import ExitCode, PrerequisiteError
from pik3s.installer.bootstrap import build_context, check_prerequisites

console = Console()


@click.command()
@click.pass_context
def check(ctx):
    """Verify host prerequisites without changing anything"""
    cfg = ctx.obj["config"]
    run_ctx = build_context(cfg, ctx.obj["reporter"], verbose=ctx.obj["verbose"])

    console.print("[bold]Checking system prerequisites...[/bold]\n")

    failure = None
    try:
        check_prerequisites(run_ctx)
    except PrerequisiteError as e:
        failure = e

    facts = run_ctx.facts
    if facts is not None:
        table = Table(title=f"Host: {facts.hostname}", show_header=True)
        table.add_column("Check", style="cyan")
        table.add_column("Value")

        def status_icon(value):
            return "[green]✓[/green]" if value else "[red]✗[/red]"

        table.add_row("Raspberry Pi", status_icon(facts.raspberry_pi))
        table.add_row("Memory", f"{facts.memory_gb:.1f}GB")
        table.add_row("Free disk", f"{facts.disk_free_gb:.1f}GB")
        table.add_row(f"Storage mounted ({cfg['storage']['mount_point']})", status_icon(facts.storage_mounted))
        table.add_row("Running as root", "yes" if facts.root else "no")
        console.print(table)

    if run_ctx.warnings:
        console.print(f"\n[yellow]⚠ {len(run_ctx.warnings)} warning(s)[/yellow]")

    if failure is not None:
        console.print(f"\n[red]✗ {escape(str(failure))}[/red]")
        if failure.hint:
            console.print(f"[cyan]Hint:[/cyan] {escape(failure.hint)}")
        ctx.exit(ExitCode.PRECONDITION)

    if facts is not None and not facts.storage_mounted:
        console.print("\n[yellow]Storage is not mounted yet; 'pik3s bootstrap' will mount it.[/yellow]")
