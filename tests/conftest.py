"""Shared fakes: an in-memory Raspberry Pi host, k3s cluster and clock"""

import io
import subprocess
from pathlib import Path

import pytest
from rich.console import Console

from pik3s.config.manager import ConfigManager
from pik3s.errors import CommandError
from pik3s.installer.bootstrap import ARGO_APPLICATION
from pik3s.installer.host import HostProbe
from pik3s.installer.shell import CommandRunner
from pik3s.orchestrator.models import RunContext
from pik3s.orchestrator.waiter import Clock
from pik3s.output import Reporter

KUBECONFIG = "/home/pi/.kube/config"
SYSTEM_KUBECONFIG = "/etc/rancher/k3s/k3s.yaml"
ROOT_APP = "gitops/bootstrap/root-app.yaml"
NEVER = float("inf")


class FakeClock(Clock):
    """Advances only when slept on"""

    def __init__(self):
        self.t = 0.0
        self.sleeps = []

    def now(self) -> float:
        return self.t

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.t += seconds


class FakeHost(HostProbe):
    def __init__(self):
        super().__init__()
        self.memory = 3.8
        self.disk = 50.0
        self.pi = True
        self.root = False
        self.mounted = set()
        self.block_devices = {"/dev/sda1"}
        self.dirs = set()
        self.files = {ROOT_APP}
        self.fstab_entries = set()

    def hostname(self) -> str:
        return "raspberrypi"

    def user(self) -> str:
        return "pi"

    def is_root(self) -> bool:
        return self.root

    def memory_gb(self) -> float:
        return self.memory

    def disk_free_gb(self, path: str = "/") -> float:
        return self.disk

    def is_raspberry_pi(self) -> bool:
        return self.pi

    def is_mounted(self, path: str) -> bool:
        return path in self.mounted

    def is_block_device(self, path: str) -> bool:
        return path in self.block_devices

    def is_dir(self, path: str) -> bool:
        return path in self.dirs

    def exists(self, path: str) -> bool:
        return path in self.files or path in self.dirs

    def make_dirs(self, path: str) -> None:
        self.dirs.add(path)

    def fstab_has(self, mount_point: str) -> bool:
        return mount_point in self.fstab_entries


class FakeRunner(CommandRunner):
    """Records commands and applies their effects to the world"""

    def __init__(self, world):
        super().__init__(sudo=False)
        self.world = world
        self.calls = []
        self.binaries = set()
        self.failures = {}

    def which(self, name):
        return f"/usr/local/bin/{name}" if name in self.binaries else None

    def run(self, cmd, cwd=None, check=True, input=None, env=None, capture=True, timeout=None):
        cmd = list(cmd)
        self.calls.append(cmd)

        for prefix, (code, stderr) in self.failures.items():
            if tuple(cmd[: len(prefix)]) == prefix:
                if check:
                    raise CommandError(cmd, code, "", stderr)
                return subprocess.CompletedProcess(cmd, code, "", stderr)

        code, stdout = self.world.handle(cmd, cwd=cwd, input=input, env=env)
        if check and code != 0:
            raise CommandError(cmd, code, stdout, "")
        return subprocess.CompletedProcess(cmd, code, stdout, "")

    def commands(self, name):
        return [c for c in self.calls if c and c[0] == name]


class FakeKube:
    """In-memory stand-in for the Kubectl wrapper"""

    def __init__(self, world):
        self.world = world
        self.namespaces = set()
        self.resources = set()
        self.nodes_ready_after = 1
        self.node_polls = 0
        self.available_after = 1
        self.available_polls = 0
        self.patches = []
        self.secrets = {}
        self.objects = {}
        self.forwards = []

    def _running(self) -> bool:
        return "k3s" in self.world.runner.binaries

    def nodes_ready(self) -> bool:
        if not self._running():
            return False
        self.node_polls += 1
        return self.node_polls > self.nodes_ready_after

    def namespace_exists(self, name):
        return self._running() and name in self.namespaces

    def resource_exists(self, kind, name, namespace=None):
        return self._running() and (kind, name, namespace) in self.resources

    def deployment_available(self, name, namespace):
        if not self.resource_exists("deployment", name, namespace):
            return False
        self.available_polls += 1
        return self.available_polls > self.available_after

    def create_namespace(self, name):
        self.namespaces.add(name)

    def apply_url(self, url, namespace):
        self.resources.add(("deployment", "argocd-server", namespace))

    def apply_file(self, path, namespace=None):
        self.resources.add((ARGO_APPLICATION, "root", "argocd"))

    def delete_resource(self, kind, name, namespace=None):
        self.resources.discard((kind, name, namespace))

    def delete_namespaces(self, names):
        self.namespaces -= set(names)
        self.resources = {r for r in self.resources if r[2] not in names}

    def get_json(self, *args, namespace=None):
        return self.objects.get(args[0], {"items": []})

    def patch_merge(self, kind, name, namespace, patch):
        self.patches.append((kind, name, namespace, patch))

    def secret_value(self, name, key, namespace):
        return self.secrets[(namespace, name, key)]

    def port_forward(self, target, namespace, ports):
        self.forwards.append((target, namespace, ports))


class World:
    """A Raspberry Pi with optional k3s, wired to fakes"""

    def __init__(self, config):
        self.config = config
        self.host = FakeHost()
        self.runner = FakeRunner(self)
        self.kube = FakeKube(self)
        self.clock = FakeClock()
        self.out = io.StringIO()
        self.err = io.StringIO()
        self.reporter = Reporter(
            console=Console(file=self.out, width=200),
            err_console=Console(file=self.err, width=200),
            level="debug",
        )
        self.terraform_applied = False

    def context(self) -> RunContext:
        return RunContext(
            config=self.config,
            runner=self.runner,
            host=self.host,
            kube=self.kube,
            clock=self.clock,
            reporter=self.reporter,
        )

    def provision(self):
        """Put the world in the fully bootstrapped state"""
        storage = self.config["storage"]
        self.host.mounted.add(storage["mount_point"])
        self.host.fstab_entries.add(storage["mount_point"])
        for d in storage["directories"]:
            self.host.dirs.add(str(Path(storage["mount_point"]) / d))
        self.host.files.update({KUBECONFIG, SYSTEM_KUBECONFIG})
        self.runner.binaries.add("k3s")
        self.kube.nodes_ready_after = 0
        self.kube.available_after = 0
        self.kube.namespaces.add("argocd")
        self.kube.resources.add(("deployment", "argocd-server", "argocd"))
        self.kube.resources.add((ARGO_APPLICATION, "root", "argocd"))

    def handle(self, cmd, cwd=None, input=None, env=None):
        name = cmd[0]
        if name == "mkdir":
            self.host.dirs.add(cmd[-1])
        elif name == "mount":
            self.host.mounted.add(cmd[2])
        elif name == "tee":
            self.host.fstab_entries.add(input.split()[1])
        elif name == "curl":
            return 0, "#!/bin/sh\necho installing k3s\n"
        elif name == "sh":
            self.runner.binaries.add("k3s")
            self.host.files.add(SYSTEM_KUBECONFIG)
        elif name == "cp":
            self.host.files.add(cmd[2])
        elif name == "terraform":
            if cmd[1] == "init":
                self.host.dirs.add(str(Path(cwd) / ".terraform"))
            elif cmd[1] == "apply":
                self.terraform_applied = True
            elif cmd[1] == "plan":
                return (0 if self.terraform_applied else 2), ""
        elif name == self.config["runtime"]["uninstall_script"]:
            self.runner.binaries.discard("k3s")
        return 0, ""


@pytest.fixture
def config(tmp_path, monkeypatch):
    """Default configuration with network probing disabled"""
    for var in (
        "PIK3S_KUBECONFIG",
        "PIK3S_STORAGE_DEVICE",
        "PIK3S_MOUNT_POINT",
        "PIK3S_ROOT_APP",
        "PIK3S_READINESS_TIMEOUT",
        "PIK3S_POLL_INTERVAL",
    ):
        monkeypatch.delenv(var, raising=False)

    cfg = ConfigManager(tmp_path / "config.yaml").load()
    cfg["kubeconfig"] = KUBECONFIG
    cfg["network"]["check"] = False
    return cfg


@pytest.fixture
def world(config):
    return World(config)


@pytest.fixture
def ctx(world):
    return world.context()
