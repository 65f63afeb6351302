"""Facts about the target host"""

import getpass
import os
import shutil
import socket
from dataclasses import dataclass
from pathlib import Path

GIB = 1024 ** 3


@dataclass
class HostFacts:
    """Snapshot gathered by the prerequisite check"""

    hostname: str
    user: str
    memory_gb: float
    disk_free_gb: float
    storage_mounted: bool
    raspberry_pi: bool
    root: bool


class HostProbe:
    """Read-only queries against the local machine"""

    def __init__(
        self,
        proc: Path = Path("/proc"),
        fstab: Path = Path("/etc/fstab"),
    ):
        self.proc = proc
        self.fstab = fstab

    def hostname(self) -> str:
        return socket.gethostname()

    def user(self) -> str:
        return getpass.getuser()

    def is_root(self) -> bool:
        return os.geteuid() == 0

    def memory_gb(self) -> float:
        """Total memory from /proc/meminfo"""
        for line in (self.proc / "meminfo").read_text().splitlines():
            if line.startswith("MemTotal:"):
                kib = int(line.split()[1])
                return kib * 1024 / GIB
        return 0.0

    def disk_free_gb(self, path: str = "/") -> float:
        return shutil.disk_usage(path).free / GIB

    def is_raspberry_pi(self) -> bool:
        try:
            cpuinfo = (self.proc / "cpuinfo").read_text(errors="ignore")
        except OSError:
            return False
        if "Raspberry Pi" in cpuinfo:
            return True

        model = self.proc / "device-tree" / "model"
        try:
            return "Raspberry Pi" in model.read_text(errors="ignore")
        except OSError:
            return False

    def is_mounted(self, path: str) -> bool:
        return os.path.ismount(path)

    def is_block_device(self, path: str) -> bool:
        return Path(path).is_block_device()

    def is_dir(self, path: str) -> bool:
        return Path(path).is_dir()

    def exists(self, path: str) -> bool:
        return Path(path).exists()

    def make_dirs(self, path: str) -> None:
        Path(path).mkdir(parents=True, exist_ok=True)

    def fstab_has(self, mount_point: str) -> bool:
        """True when an active fstab line mounts ``mount_point``"""
        try:
            lines = self.fstab.read_text().splitlines()
        except FileNotFoundError:
            return False

        for line in lines:
            fields = line.split()
            if len(fields) >= 2 and not fields[0].startswith("#") and fields[1] == mount_point:
                return True
        return False

    def facts(self, mount_point: str, disk_path: str = "/") -> HostFacts:
        return HostFacts(
            hostname=self.hostname(),
            user=self.user(),
            memory_gb=self.memory_gb(),
            disk_free_gb=self.disk_free_gb(disk_path),
            storage_mounted=self.is_mounted(mount_point),
            raspberry_pi=self.is_raspberry_pi(),
            root=self.is_root(),
        )
