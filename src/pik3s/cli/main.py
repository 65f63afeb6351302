#!/usr/bin/env python3
"""pik3s CLI - Main entry point"""

from pathlib import Path

import click
import yaml
from rich.console import Console
from rich.markup import escape

from pik3s.config.manager import DEFAULT_CONFIG_PATH, ConfigManager
from pik3s.errors import ConfigError, ExitCode
from pik3s.output import Reporter

console = Console()


@click.group()
@click.option("--config", type=click.Path(dir_okay=False), help="Config file path")
@click.option("--kubeconfig", envvar="PIK3S_KUBECONFIG", help="Kubeconfig used for every kubectl call")
@click.option("-v", "--verbose", is_flag=True, help="Verbose output")
@click.pass_context
def cli(ctx, config, kubeconfig, verbose):
    """pik3s - Raspberry Pi k3s GitOps platform bootstrap"""
    ctx.ensure_object(dict)

    # Load configuration
    config_path = Path(config) if config else DEFAULT_CONFIG_PATH
    config_manager = ConfigManager(config_path)
    try:
        cfg = config_manager.load()
    except ConfigError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        ctx.exit(ExitCode.USAGE)

    # Override with command-line options
    if kubeconfig:
        cfg["kubeconfig"] = kubeconfig

    level = "debug" if verbose else cfg.get("logging", {}).get("level", "info")

    ctx.obj["config"] = cfg
    ctx.obj["config_manager"] = config_manager
    ctx.obj["verbose"] = verbose
    ctx.obj["reporter"] = Reporter(level=level)


@cli.command()
def version():
    """Show version information"""
    from pik3s import __version__

    console.print(f"pik3s version {__version__}")


@cli.group("config")
def config_group():
    """Show or initialise the configuration file"""
    pass


@config_group.command("show")
@click.pass_context
def config_show(ctx):
    """Print the effective configuration"""
    click.echo(yaml.safe_dump(ctx.obj["config"], default_flow_style=False, sort_keys=False))


@config_group.command("init")
@click.option("--force", is_flag=True, help="Overwrite an existing file")
@click.pass_context
def config_init(ctx, force):
    """Write the effective configuration to the config file"""
    manager = ctx.obj["config_manager"]

    if manager.config_path.exists() and not force:
        console.print(f"[yellow]⚠ {manager.config_path} already exists (use --force)[/yellow]")
        ctx.exit(ExitCode.USAGE)

    manager.save(ctx.obj["config"])
    console.print(f"[green]✓[/green] Configuration written to {manager.config_path}")


# Import subcommands
from pik3s.cli import cluster, install, verify

cli.add_command(install.bootstrap)
cli.add_command(install.teardown)
cli.add_command(verify.check)
cli.add_command(cluster.status)
cli.add_command(cluster.sync)
cli.add_command(cluster.password)
cli.add_command(cluster.port_forward)


if __name__ == "__main__":
    cli()
