"""Cluster inspection and day-two commands"""

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from pik3s.errors import BootstrapError
from pik3s.installer.bootstrap import ARGO_APPLICATION
from pik3s.installer.kube import Kubectl
from pik3s.installer.shell import CommandRunner

console = Console()

PORT_FORWARDS = {
    "grafana": ("svc/kube-prometheus-stack-grafana", "monitoring", "3000:80", "http://localhost:3000"),
    "argocd": ("svc/argocd-server", "argocd", "8080:443", "http://localhost:8080"),
}

ADMIN_SECRET = "argocd-initial-admin-secret"


def kubectl_for(ctx) -> Kubectl:
    cfg = ctx.obj["config"]
    runner = CommandRunner(sudo=cfg["privilege"]["sudo"], verbose=ctx.obj["verbose"])
    return Kubectl(runner, cfg["kubeconfig"], request_timeout=cfg["timeouts"].get("kubectl", 5))


def _status_color(value: str) -> str:
    return {
        "True": "green",
        "Ready": "green",
        "Running": "green",
        "Synced": "green",
        "Healthy": "green",
        "Succeeded": "green",
        "Bound": "green",
        "Available": "green",
        "Released": "yellow",
        "Pending": "yellow",
        "Progressing": "yellow",
        "OutOfSync": "yellow",
    }.get(value, "red")


def _colored(value: str) -> str:
    color = _status_color(value)
    return f"[{color}]{value}[/{color}]"


def nodes_table(kube: Kubectl) -> Table:
    table = Table(title="Nodes", show_header=True, header_style="bold cyan")
    table.add_column("Name", style="cyan")
    table.add_column("Status", justify="center")
    table.add_column("Version", style="dim")

    for node in kube.get_json("nodes").get("items", []):
        ready = "NotReady"
        for condition in node.get("status", {}).get("conditions", []):
            if condition.get("type") == "Ready" and condition.get("status") == "True":
                ready = "Ready"
        table.add_row(
            node["metadata"]["name"],
            _colored(ready),
            node.get("status", {}).get("nodeInfo", {}).get("kubeletVersion", ""),
        )

    return table


def applications_table(kube: Kubectl, namespace: str) -> Table:
    table = Table(title="Argo CD Applications", show_header=True, header_style="bold magenta")
    table.add_column("Name", style="magenta")
    table.add_column("Sync", justify="center")
    table.add_column("Health", justify="center")

    for app in kube.get_json(ARGO_APPLICATION, namespace=namespace).get("items", []):
        status = app.get("status", {})
        table.add_row(
            app["metadata"]["name"],
            _colored(status.get("sync", {}).get("status", "Unknown")),
            _colored(status.get("health", {}).get("status", "Unknown")),
        )

    return table


def pods_table(kube: Kubectl) -> Table:
    table = Table(title="Pods", show_header=True)
    table.add_column("Namespace", style="dim")
    table.add_column("Name", style="blue")
    table.add_column("Phase", justify="center")

    for pod in kube.get_json("pods", "--all-namespaces").get("items", []):
        table.add_row(
            pod["metadata"].get("namespace", ""),
            pod["metadata"]["name"],
            _colored(pod.get("status", {}).get("phase", "Unknown")),
        )

    return table


def volumes_table(kube: Kubectl) -> Table:
    table = Table(title="Storage", show_header=True)
    table.add_column("Kind", style="dim")
    table.add_column("Namespace", style="dim")
    table.add_column("Name", style="blue")
    table.add_column("Status", justify="center")
    table.add_column("Capacity", justify="right")

    for volume in kube.get_json("pv,pvc", "--all-namespaces").get("items", []):
        status = volume.get("status", {})
        capacity = status.get("capacity") or volume.get("spec", {}).get("capacity") or {}
        table.add_row(
            volume.get("kind", ""),
            volume["metadata"].get("namespace", ""),
            volume["metadata"]["name"],
            _colored(status.get("phase", "Unknown")),
            capacity.get("storage", ""),
        )

    return table


def ingress_table(kube: Kubectl) -> Table:
    table = Table(title="Ingress", show_header=True)
    table.add_column("Namespace", style="dim")
    table.add_column("Name", style="blue")
    table.add_column("Hosts")
    table.add_column("Address", style="dim")

    for ingress in kube.get_json("ingress", "--all-namespaces").get("items", []):
        hosts = [rule.get("host", "*") for rule in ingress.get("spec", {}).get("rules", [])]
        balancers = ingress.get("status", {}).get("loadBalancer", {}).get("ingress", []) or []
        addresses = [lb.get("ip") or lb.get("hostname", "") for lb in balancers]
        table.add_row(
            ingress["metadata"].get("namespace", ""),
            ingress["metadata"]["name"],
            ", ".join(hosts),
            ", ".join(addresses),
        )

    return table


@click.command()
@click.option("--pods/--no-pods", default=True, help="Include all pods")
@click.pass_context
def status(ctx, pods):
    """Show nodes, applications, pods, storage and ingress"""
    kube = kubectl_for(ctx)
    namespace = ctx.obj["config"]["gitops"]["namespace"]

    try:
        console.print(nodes_table(kube))
    except BootstrapError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise click.Abort()

    try:
        console.print(applications_table(kube, namespace))
    except BootstrapError:
        console.print("[yellow]Applications will appear as Argo CD syncs...[/yellow]")

    if pods:
        try:
            console.print(pods_table(kube))
        except BootstrapError as e:
            console.print(f"[red]Error:[/red] {escape(str(e))}")
            raise click.Abort()

    try:
        console.print(volumes_table(kube))
        console.print(ingress_table(kube))
    except BootstrapError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise click.Abort()


@click.command()
@click.pass_context
def sync(ctx):
    """Force sync the root application"""
    kube = kubectl_for(ctx)
    gitops = ctx.obj["config"]["gitops"]
    patch = {"operation": {"sync": {"syncStrategy": {"hook": {"force": True}}}}}

    try:
        kube.patch_merge("application", gitops["root_app_name"], gitops["namespace"], patch)
    except BootstrapError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise click.Abort()

    console.print("[green]✓[/green] Sync initiated. Check status with: pik3s status")


@click.command()
@click.pass_context
def password(ctx):
    """Print the Argo CD initial admin password"""
    kube = kubectl_for(ctx)
    namespace = ctx.obj["config"]["gitops"]["namespace"]

    try:
        value = kube.secret_value(ADMIN_SECRET, "password", namespace)
    except (BootstrapError, KeyError) as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise click.Abort()

    click.echo(value)


def show_argocd_credentials(kube: Kubectl, namespace: str):
    """Print the Argo CD admin login"""
    try:
        value = kube.secret_value(ADMIN_SECRET, "password", namespace)
    except (BootstrapError, KeyError):
        console.print(
            f"[yellow]⚠ Initial admin password not available ({ADMIN_SECRET} missing)[/yellow]"
        )
        return

    console.print("Username: admin")
    console.print(f"Password: {escape(value)}")


@click.command("port-forward")
@click.argument("service", type=click.Choice(sorted(PORT_FORWARDS)))
@click.pass_context
def port_forward(ctx, service):
    """Port forward Grafana or Argo CD to localhost"""
    target, namespace, ports, url = PORT_FORWARDS[service]
    kube = kubectl_for(ctx)

    if service == "argocd":
        show_argocd_credentials(kube, ctx.obj["config"]["gitops"]["namespace"])

    console.print(f"Access {service} at {url} (Ctrl+C to stop)")
    try:
        kube.port_forward(target, namespace, ports)
    except KeyboardInterrupt:
        console.print("\n[yellow]Port forward closed[/yellow]")
    except BootstrapError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise click.Abort()
