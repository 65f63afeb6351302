"""Command execution on the target host"""

import os
import shutil
import subprocess
from pathlib import Path
from typing import Dict, List, Optional

from rich.console import Console
from rich.markup import escape

from pik3s.errors import CommandError

console = Console(stderr=True)


class CommandRunner:
    """Run argv commands without a shell, raising on failure"""

    def __init__(self, sudo: bool = True, verbose: bool = False):
        self.sudo = sudo
        self.verbose = verbose

    def run(
        self,
        cmd: List[str],
        cwd: Optional[Path] = None,
        check: bool = True,
        input: Optional[str] = None,
        env: Optional[Dict[str, str]] = None,
        capture: bool = True,
        timeout: Optional[float] = None,
    ) -> subprocess.CompletedProcess:
        """Run a command and return the result.

        A command still running after ``timeout`` seconds is killed and
        reported as a ``CommandError`` with return code 124.
        """
        if self.verbose:
            console.print(f"[dim]Running: {escape(' '.join(cmd))}[/dim]")

        run_env = None
        if env:
            run_env = os.environ.copy()
            run_env.update(env)

        try:
            result = subprocess.run(
                cmd,
                cwd=cwd,
                input=input,
                env=run_env,
                capture_output=capture,
                text=True,
                check=False,
                timeout=timeout,
            )
        except FileNotFoundError as e:
            raise CommandError(cmd, 127, stderr=str(e)) from e
        except PermissionError as e:
            raise CommandError(cmd, 126, stderr=str(e)) from e
        except subprocess.TimeoutExpired as e:
            raise CommandError(cmd, 124, stderr=f"Timed out after {timeout}s") from e

        if check and result.returncode != 0:
            raise CommandError(cmd, result.returncode, result.stdout, result.stderr)

        return result

    def succeeds(
        self, cmd: List[str], cwd: Optional[Path] = None, timeout: Optional[float] = None
    ) -> bool:
        """True when the command exits 0 within ``timeout``"""
        try:
            return self.run(cmd, cwd=cwd, check=False, timeout=timeout).returncode == 0
        except CommandError:
            return False

    def privileged(self, cmd: List[str]) -> List[str]:
        """Prefix sudo when configured and not already root"""
        if self.sudo and os.geteuid() != 0:
            return ["sudo"] + cmd
        return cmd

    def which(self, name: str) -> Optional[str]:
        return shutil.which(name)
