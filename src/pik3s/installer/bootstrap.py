"""Bootstrap sequence: storage, K3s, Argo CD and the root application.

Every step pairs an action with a precondition telling whether its effect
already holds, so a second invocation on a provisioned host skips
everything and a run interrupted half way resumes where it stopped.
"""

from pathlib import Path
from typing import Any, Dict, List

from pik3s.errors import CommandError, MissingRequiredResource, PrerequisiteError
from pik3s.installer.host import HostProbe
from pik3s.installer.kube import Kubectl
from pik3s.installer.network import probe_endpoints
from pik3s.installer.shell import CommandRunner
from pik3s.orchestrator.models import RunContext, Step
from pik3s.orchestrator.waiter import Clock, SystemClock, wait_until
from pik3s.output import Reporter

ARGO_APPLICATION = "applications.argoproj.io"


def build_context(
    config: Dict[str, Any],
    reporter: Reporter,
    verbose: bool = False,
    clock: Clock = None,
) -> RunContext:
    """Wire the real host, runner and kubectl into a run context"""
    runner = CommandRunner(sudo=config["privilege"]["sudo"], verbose=verbose)
    host = HostProbe()
    return RunContext(
        config=config,
        runner=runner,
        host=host,
        kube=Kubectl(
            runner,
            config["kubeconfig"],
            request_timeout=config["timeouts"].get("kubectl", 5),
        ),
        clock=clock or SystemClock(),
        reporter=reporter,
        hostname=host.hostname(),
    )


# Prerequisites

def check_prerequisites(ctx: RunContext) -> None:
    """Gather host facts; warn on soft limits, fail on hard ones"""
    resources = ctx.config["resources"]
    mount_point = ctx.config["storage"]["mount_point"]

    facts = ctx.host.facts(mount_point, resources.get("disk_path", "/"))
    ctx.facts = facts
    ctx.hostname = facts.hostname

    if facts.root and not ctx.config["privilege"].get("allow_root", False):
        raise PrerequisiteError(
            "This tool should not be run as root",
            hint="Run as a regular user with sudo rights, or set privilege.allow_root",
        )

    if facts.raspberry_pi:
        ctx.reporter.info("Raspberry Pi detected")
    else:
        ctx.warn("Not running on Raspberry Pi - continuing anyway")

    _check_resource(
        ctx,
        "memory",
        facts.memory_gb,
        resources["memory_recommended_gb"],
        resources["memory_minimum_gb"],
        "RAM",
    )
    _check_resource(
        ctx,
        "disk",
        facts.disk_free_gb,
        resources["disk_recommended_gb"],
        resources["disk_minimum_gb"],
        "free disk",
    )

    network = ctx.config.get("network", {})
    if network.get("check", True):
        failures = probe_endpoints(network.get("endpoints", []), network.get("timeout", 5))
        for url, error in failures.items():
            ctx.warn(f"Cannot reach {url}: {error}")

    ctx.reporter.success("Prerequisites check passed")


def _check_resource(
    ctx: RunContext, name: str, value: float, recommended: float, minimum: float, label: str
) -> None:
    if value < minimum:
        raise PrerequisiteError(
            f"Insufficient {name}: {value:.1f}GB {label}, {minimum}GB required"
        )
    if value < recommended:
        ctx.warn(f"System has {value:.1f}GB {label}. {recommended}GB+ recommended for full stack")
    else:
        ctx.reporter.info(f"{name.capitalize()} check passed: {value:.1f}GB {label}")


# Storage

def storage_mounted(ctx: RunContext) -> bool:
    return ctx.host.is_mounted(ctx.config["storage"]["mount_point"])


def mount_storage(ctx: RunContext) -> None:
    storage = ctx.config["storage"]
    device = storage["device"]
    mount_point = storage["mount_point"]
    runner = ctx.runner

    if not ctx.host.is_block_device(device):
        raise MissingRequiredResource(
            f"Storage device {device} not found",
            hint=f"Connect the USB drive and format it as {storage['fstype']}: "
            f"sudo mkfs.{storage['fstype']} {device}",
        )

    runner.run(runner.privileged(["mkdir", "-p", mount_point]))
    ctx.reporter.info(f"Mounting {device} at {mount_point}")
    runner.run(runner.privileged(["mount", device, mount_point]))

    if not ctx.host.fstab_has(mount_point):
        entry = f"{device} {mount_point} {storage['fstype']} defaults 0 2\n"
        runner.run(runner.privileged(["tee", "-a", "/etc/fstab"]), input=entry)
        ctx.reporter.info(f"Added {mount_point} to /etc/fstab")


def storage_directories(ctx: RunContext) -> List[str]:
    storage = ctx.config["storage"]
    return [str(Path(storage["mount_point"]) / d) for d in storage["directories"]]


def storage_prepared(ctx: RunContext) -> bool:
    return all(ctx.host.is_dir(path) for path in storage_directories(ctx))


def prepare_storage(ctx: RunContext) -> None:
    mount_point = ctx.config["storage"]["mount_point"]
    user = ctx.facts.user if ctx.facts else ctx.host.user()

    ctx.runner.run(ctx.runner.privileged(["chown", f"{user}:{user}", mount_point]))
    for path in storage_directories(ctx):
        ctx.host.make_dirs(path)
    ctx.reporter.info(f"Created storage directories under {mount_point}")


# K3s

def runtime_installed(ctx: RunContext) -> bool:
    return ctx.runner.which("k3s") is not None and ctx.host.exists(ctx.config["kubeconfig"])


def install_runtime(ctx: RunContext) -> None:
    runtime = ctx.config["runtime"]
    runner = ctx.runner

    if runner.which("k3s") is None:
        ctx.reporter.info("Installing k3s with Pi-optimized settings...")
        script = runner.run(["curl", "-sfL", runtime["installer_url"]]).stdout
        runner.run(
            ["sh", "-"],
            input=script,
            env={"INSTALL_K3S_EXEC": " ".join(runtime["exec_flags"])},
        )
    else:
        ctx.reporter.info("k3s already installed")

    install_kubeconfig(ctx)


def install_kubeconfig(ctx: RunContext) -> None:
    """Copy the k3s admin kubeconfig to the user's kubeconfig path"""
    system_kubeconfig = ctx.config["runtime"]["system_kubeconfig"]
    kubeconfig = ctx.config["kubeconfig"]
    user = ctx.facts.user if ctx.facts else ctx.host.user()
    runner = ctx.runner

    # k3s writes its kubeconfig once the server has started
    wait_until(
        lambda: ctx.host.exists(system_kubeconfig),
        timeout=ctx.config["timeouts"]["readiness"],
        interval=ctx.config["timeouts"]["poll_interval"],
        clock=ctx.clock,
    )

    ctx.host.make_dirs(str(Path(kubeconfig).parent))
    runner.run(runner.privileged(["cp", system_kubeconfig, kubeconfig]))
    runner.run(runner.privileged(["chown", f"{user}:{user}", kubeconfig]))
    ctx.reporter.info(f"Kubeconfig written to {kubeconfig}")


def nodes_ready(ctx: RunContext) -> bool:
    return ctx.kube.nodes_ready()


def unless_ran(upstream: str, predicate):
    """Precondition that holds only if ``upstream`` did not run in this invocation"""

    def is_satisfied(ctx: RunContext) -> bool:
        return upstream not in ctx.executed and predicate(ctx)

    return is_satisfied


def announce_wait(message: str):
    def action(ctx: RunContext) -> None:
        ctx.reporter.info(message)

    return action


# Argo CD

def gitops_installed(ctx: RunContext) -> bool:
    gitops = ctx.config["gitops"]
    return ctx.kube.namespace_exists(gitops["namespace"]) and ctx.kube.resource_exists(
        "deployment", gitops["server_deployment"], gitops["namespace"]
    )


def install_gitops(ctx: RunContext) -> None:
    gitops = ctx.config["gitops"]
    namespace = gitops["namespace"]

    if not ctx.kube.namespace_exists(namespace):
        ctx.reporter.info(f"Creating namespace {namespace}")
        ctx.kube.create_namespace(namespace)

    ctx.reporter.info("Applying Argo CD install manifest")
    ctx.kube.apply_url(gitops["install_manifest"], namespace)


def gitops_server_created(ctx: RunContext) -> bool:
    gitops = ctx.config["gitops"]
    return ctx.kube.resource_exists("deployment", gitops["server_deployment"], gitops["namespace"])


def gitops_ready(ctx: RunContext) -> bool:
    gitops = ctx.config["gitops"]
    return ctx.kube.deployment_available(gitops["server_deployment"], gitops["namespace"])


# Terraform

def terraform_dir(ctx: RunContext) -> str:
    return ctx.config["terraform"]["directory"]


def terraform_converged(ctx: RunContext) -> bool:
    """``terraform plan -detailed-exitcode``: 0 no changes, 2 changes pending"""
    directory = terraform_dir(ctx)
    if ctx.runner.which("terraform") is None:
        raise MissingRequiredResource(
            "terraform not found",
            hint="Install Terraform or set terraform.enabled to false",
        )
    if not ctx.host.exists(str(Path(directory) / ".terraform")):
        return False

    cmd = ["terraform", "plan", "-detailed-exitcode", "-input=false", "-lock=false"]
    result = ctx.runner.run(cmd, cwd=Path(directory), check=False)
    if result.returncode == 0:
        return True
    if result.returncode == 2:
        return False
    raise CommandError(cmd, result.returncode, result.stdout, result.stderr)


def apply_terraform(ctx: RunContext) -> None:
    directory = Path(terraform_dir(ctx))
    if not ctx.host.is_dir(str(directory)):
        raise MissingRequiredResource(f"Terraform directory {directory} not found")

    ctx.runner.run(["terraform", "init", "-input=false"], cwd=directory)
    ctx.runner.run(["terraform", "apply", "-auto-approve", "-input=false"], cwd=directory)
    ctx.reporter.info("Terraform applied")


# Root application

def root_app_exists(ctx: RunContext) -> bool:
    gitops = ctx.config["gitops"]
    return ctx.kube.resource_exists(ARGO_APPLICATION, gitops["root_app_name"], gitops["namespace"])


def apply_root_app(ctx: RunContext) -> None:
    manifest = ctx.config["gitops"]["root_app_manifest"]
    if not ctx.host.exists(manifest):
        raise MissingRequiredResource(
            f"Root application manifest {manifest} not found",
            hint="Run from the repository root or set gitops.root_app_manifest",
        )

    ctx.reporter.info(f"Applying root application {manifest}")
    ctx.kube.apply_file(manifest)


PREFLIGHT = Step(
    "check-prerequisites",
    "Check host resources and connectivity",
    is_satisfied=lambda ctx: False,
    execute=check_prerequisites,
)


def build_bootstrap_steps(config: Dict[str, Any]) -> List[Step]:
    """The fixed bootstrap order, run after ``PREFLIGHT``"""
    steps = [
        Step(
            "mount-storage",
            "Mount the USB storage device",
            is_satisfied=storage_mounted,
            execute=mount_storage,
            is_ready=storage_mounted,
        ),
        Step(
            "prepare-storage",
            "Create persistent volume directories",
            is_satisfied=storage_prepared,
            execute=prepare_storage,
            is_ready=storage_prepared,
        ),
        Step(
            "install-runtime",
            "Install k3s",
            is_satisfied=runtime_installed,
            execute=install_runtime,
            is_ready=runtime_installed,
        ),
        Step(
            "wait-runtime-ready",
            "Wait for the k3s node to be Ready",
            is_satisfied=unless_ran("install-runtime", nodes_ready),
            execute=announce_wait("Waiting for k3s to be ready..."),
            is_ready=nodes_ready,
        ),
        Step(
            "install-gitops-controller",
            "Install Argo CD",
            is_satisfied=gitops_installed,
            execute=install_gitops,
            is_ready=gitops_server_created,
        ),
        Step(
            "wait-gitops-controller-ready",
            "Wait for the Argo CD server to be Available",
            is_satisfied=unless_ran("install-gitops-controller", gitops_ready),
            execute=announce_wait("Waiting for Argo CD to be ready..."),
            is_ready=gitops_ready,
        ),
    ]

    if config.get("terraform", {}).get("enabled", False):
        steps.append(
            Step(
                "apply-terraform",
                "Apply Terraform configuration",
                is_satisfied=terraform_converged,
                execute=apply_terraform,
            )
        )

    steps.append(
        Step(
            "apply-root-application",
            "Apply the Argo CD root application",
            is_satisfied=root_app_exists,
            execute=apply_root_app,
            is_ready=root_app_exists,
        )
    )

    return steps
