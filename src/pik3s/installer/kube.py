"""kubectl access bound to an explicit kubeconfig"""

import base64
import json
from typing import Any, Dict, List, Optional

from pik3s.errors import CommandError
from pik3s.installer.shell import CommandRunner


class Kubectl:
    """Thin kubectl wrapper; never uses the ambient context.

    Read queries are bounded by ``request_timeout`` seconds, both on the
    API request and on the kubectl process, so a hung API server shows up
    as a failed query instead of a stalled readiness wait.
    """

    def __init__(
        self,
        runner: CommandRunner,
        kubeconfig: str,
        binary: str = "kubectl",
        request_timeout: float = 5,
    ):
        self.runner = runner
        self.kubeconfig = kubeconfig
        self.binary = binary
        self.request_timeout = request_timeout

    def command(self, *args: str) -> List[str]:
        return [self.binary, "--kubeconfig", self.kubeconfig, *args]

    def run(
        self,
        *args: str,
        check: bool = True,
        input: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        return self.runner.run(self.command(*args), check=check, input=input, timeout=timeout)

    def _request_timeout_flag(self) -> str:
        return f"--request-timeout={self.request_timeout:g}s"

    def get_json(self, *args: str, namespace: Optional[str] = None) -> Dict[str, Any]:
        """``kubectl get ... -o json`` parsed"""
        cmd = ["get", *args, "-o", "json", self._request_timeout_flag()]
        if namespace:
            cmd += ["-n", namespace]
        result = self.run(*cmd, timeout=self.request_timeout)
        try:
            return json.loads(result.stdout or "{}")
        except json.JSONDecodeError as e:
            raise CommandError(self.command(*cmd), 0, result.stdout, f"Invalid JSON: {e}") from e

    def resource_exists(self, kind: str, name: str, namespace: Optional[str] = None) -> bool:
        cmd = ["get", kind, name, self._request_timeout_flag()]
        if namespace:
            cmd += ["-n", namespace]
        return self.runner.succeeds(self.command(*cmd), timeout=self.request_timeout)

    def namespace_exists(self, name: str) -> bool:
        return self.resource_exists("namespace", name)

    def nodes_ready(self) -> bool:
        """At least one node, and every node reports Ready=True"""
        try:
            nodes = self.get_json("nodes").get("items", [])
        except CommandError:
            return False
        return bool(nodes) and all(_condition(node, "Ready") for node in nodes)

    def deployment_available(self, name: str, namespace: str) -> bool:
        try:
            deployment = self.get_json("deployment", name, namespace=namespace)
        except CommandError:
            return False
        return _condition(deployment, "Available")

    def create_namespace(self, name: str) -> None:
        self.run("create", "namespace", name)

    def apply_file(self, path: str, namespace: Optional[str] = None) -> None:
        cmd = ["apply", "-f", path]
        if namespace:
            cmd += ["-n", namespace]
        self.run(*cmd)

    def apply_url(self, url: str, namespace: str) -> None:
        self.apply_file(url, namespace=namespace)

    def delete_resource(self, kind: str, name: str, namespace: Optional[str] = None) -> None:
        cmd = ["delete", kind, name, "--ignore-not-found"]
        if namespace:
            cmd += ["-n", namespace]
        self.run(*cmd)

    def delete_namespaces(self, names: List[str]) -> None:
        if names:
            self.run("delete", "namespace", *names, "--ignore-not-found")

    def patch_merge(self, kind: str, name: str, namespace: str, patch: Dict[str, Any]) -> None:
        self.run("patch", kind, name, "-n", namespace, "--type", "merge", "-p", json.dumps(patch))

    def secret_value(self, name: str, key: str, namespace: str) -> str:
        """Decoded value of one key of a Secret"""
        secret = self.get_json("secret", name, namespace=namespace)
        encoded = secret.get("data", {}).get(key)
        if encoded is None:
            raise KeyError(f"Secret {namespace}/{name} has no key '{key}'")
        return base64.b64decode(encoded).decode()

    def port_forward(self, target: str, namespace: str, ports: str) -> None:
        """Blocks until interrupted"""
        self.runner.run(
            self.command("port-forward", "-n", namespace, target, ports),
            capture=False,
        )


def _condition(obj: Dict[str, Any], kind: str) -> bool:
    for condition in obj.get("status", {}).get("conditions", []) or []:
        if condition.get("type") == kind:
            return condition.get("status") == "True"
    return False
