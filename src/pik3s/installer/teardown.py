"""Teardown sequence, roughly the bootstrap in reverse"""

from typing import Any, Dict, List

from pik3s.errors import MissingRequiredResource
from pik3s.installer.bootstrap import ARGO_APPLICATION, root_app_exists
from pik3s.orchestrator.models import RunContext, Step


def root_app_absent(ctx: RunContext) -> bool:
    return not root_app_exists(ctx)


def delete_root_app(ctx: RunContext) -> None:
    gitops = ctx.config["gitops"]
    ctx.reporter.info(f"Deleting application {gitops['root_app_name']}")
    ctx.kube.delete_resource(ARGO_APPLICATION, gitops["root_app_name"], gitops["namespace"])


def remaining_namespaces(ctx: RunContext) -> List[str]:
    return [ns for ns in ctx.config["gitops"]["managed_namespaces"] if ctx.kube.namespace_exists(ns)]


def namespaces_absent(ctx: RunContext) -> bool:
    return not remaining_namespaces(ctx)


def delete_namespaces(ctx: RunContext) -> None:
    names = remaining_namespaces(ctx)
    ctx.reporter.info(f"Deleting namespaces: {', '.join(names)}")
    ctx.kube.delete_namespaces(names)


def runtime_absent(ctx: RunContext) -> bool:
    return ctx.runner.which("k3s") is None


def uninstall_runtime(ctx: RunContext) -> None:
    script = ctx.config["runtime"]["uninstall_script"]
    runner = ctx.runner

    if not ctx.host.exists(script):
        raise MissingRequiredResource(
            f"k3s uninstall script {script} not found",
            hint="k3s may have been installed by other means; remove it manually",
        )

    runner.run(runner.privileged(["systemctl", "stop", "k3s"]), check=False)
    runner.run(runner.privileged([script]))
    ctx.reporter.info("k3s uninstalled")


def build_teardown_steps(config: Dict[str, Any]) -> List[Step]:
    """Remove the root application, platform namespaces, then k3s"""
    return [
        Step(
            "delete-root-application",
            "Delete the Argo CD root application",
            is_satisfied=root_app_absent,
            execute=delete_root_app,
            is_ready=root_app_absent,
        ),
        Step(
            "delete-namespaces",
            "Delete platform namespaces",
            is_satisfied=namespaces_absent,
            execute=delete_namespaces,
            is_ready=namespaces_absent,
        ),
        Step(
            "uninstall-runtime",
            "Stop and uninstall k3s",
            is_satisfied=runtime_absent,
            execute=uninstall_runtime,
            is_ready=runtime_absent,
        ),
    ]
