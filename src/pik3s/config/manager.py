"""Configuration management for pik3s"""

import os
from pathlib import Path
from typing import Any, Dict

import yaml

from pik3s.errors import ConfigError

DEFAULT_CONFIG_PATH = Path.home() / ".pik3s" / "config.yaml"

K3S_EXEC_FLAGS = [
    "--disable traefik",
    "--disable servicelb",
    "--write-kubeconfig-mode 644",
    "--kube-apiserver-arg=feature-gates=RemoveSelfLink=false",
    "--kubelet-arg=eviction-hard=memory.available<100Mi",
    "--kubelet-arg=eviction-soft=memory.available<300Mi",
    "--kubelet-arg=eviction-soft-grace-period=memory.available=1m30s",
]


class ConfigManager:
    """Manage pik3s configuration"""

    def __init__(self, config_path: Path = DEFAULT_CONFIG_PATH):
        self.config_path = Path(config_path)

    def load(self) -> Dict[str, Any]:
        """Load configuration from file and environment"""
        config = self._load_defaults()

        # Load from file if exists
        if self.config_path.exists():
            try:
                with open(self.config_path) as f:
                    file_config = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigError(f"Invalid YAML in {self.config_path}: {e}") from e

            if not isinstance(file_config, dict):
                raise ConfigError(f"{self.config_path} must contain a mapping")
            config = self._merge(config, file_config)

        # Override with environment variables
        config = self._apply_env_overrides(config)

        return config

    def save(self, config: Dict[str, Any]) -> None:
        """Save configuration to file"""
        self.config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(self.config_path, "w") as f:
            yaml.safe_dump(config, f, default_flow_style=False, sort_keys=False)

    def _load_defaults(self) -> Dict[str, Any]:
        """Load default configuration"""
        return {
            "kubeconfig": str(Path.home() / ".kube" / "config"),
            "storage": {
                "device": "/dev/sda1",
                "mount_point": "/mnt/usb-data",
                "fstype": "ext4",
                "directories": ["postgres", "prometheus", "loki", "velero"],
            },
            "runtime": {
                "installer_url": "https://get.k3s.io",
                "exec_flags": list(K3S_EXEC_FLAGS),
                "system_kubeconfig": "/etc/rancher/k3s/k3s.yaml",
                "uninstall_script": "/usr/local/bin/k3s-uninstall.sh",
            },
            "gitops": {
                "namespace": "argocd",
                "install_manifest": (
                    "https://raw.githubusercontent.com/argoproj/argo-cd/stable/manifests/install.yaml"
                ),
                "server_deployment": "argocd-server",
                "root_app_manifest": "gitops/bootstrap/root-app.yaml",
                "root_app_name": "root",
                "managed_namespaces": [
                    "argocd",
                    "monitoring",
                    "loki",
                    "ingress-nginx",
                    "cert-manager",
                    "velero",
                ],
            },
            "terraform": {
                "enabled": False,
                "directory": "infra/terraform",
            },
            "resources": {
                "memory_recommended_gb": 3,
                "memory_minimum_gb": 1,
                "disk_recommended_gb": 10,
                "disk_minimum_gb": 2,
                "disk_path": "/",
            },
            "network": {
                "check": True,
                "endpoints": ["https://get.k3s.io", "https://ghcr.io"],
                "timeout": 5,
            },
            "timeouts": {
                "poll_interval": 5,
                "readiness": 300,
                "kubectl": 5,
                "steps": {},
            },
            "privilege": {
                "sudo": True,
                "allow_root": False,
            },
            "logging": {
                "level": "info",
            },
        }

    def _merge(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Merge two configuration dictionaries"""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge(result[key], value)
            else:
                result[key] = value

        return result

    def _apply_env_overrides(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """Apply environment variable overrides"""
        if kubeconfig := os.getenv("PIK3S_KUBECONFIG"):
            config["kubeconfig"] = kubeconfig

        if device := os.getenv("PIK3S_STORAGE_DEVICE"):
            config["storage"]["device"] = device

        if mount_point := os.getenv("PIK3S_MOUNT_POINT"):
            config["storage"]["mount_point"] = mount_point

        if root_app := os.getenv("PIK3S_ROOT_APP"):
            config["gitops"]["root_app_manifest"] = root_app

        for env_name, key in (
            ("PIK3S_READINESS_TIMEOUT", "readiness"),
            ("PIK3S_POLL_INTERVAL", "poll_interval"),
        ):
            if value := os.getenv(env_name):
                try:
                    config["timeouts"][key] = float(value)
                except ValueError as e:
                    raise ConfigError(f"{env_name} must be a number, got {value!r}") from e

        return config
