"""Error taxonomy and process exit codes"""

from enum import IntEnum
from typing import List, Optional


class ExitCode(IntEnum):
    """Process exit codes"""

    OK = 0
    USAGE = 1
    PRECONDITION = 2
    TIMEOUT = 3
    FAULT = 4
    INTERRUPTED = 130


class BootstrapError(Exception):
    """Base exception for bootstrap errors"""

    exit_code = ExitCode.FAULT


class ConfigError(BootstrapError):
    """Configuration file could not be loaded"""

    exit_code = ExitCode.USAGE


class MissingRequiredResource(BootstrapError):
    """A resource the step cannot do without is absent"""

    exit_code = ExitCode.PRECONDITION

    def __init__(self, message: str, hint: str = ""):
        super().__init__(message)
        self.hint = hint


class PrerequisiteError(MissingRequiredResource):
    """A hard host prerequisite is not met"""

    pass


class ReadinessTimeout(BootstrapError):
    """Postcondition did not hold within the timeout"""

    exit_code = ExitCode.TIMEOUT

    def __init__(self, elapsed: float, timeout: float, step: str = ""):
        self.elapsed = elapsed
        self.timeout = timeout
        self.step = step
        subject = f"'{step}'" if step else "condition"
        super().__init__(
            f"Timed out waiting for {subject} after {elapsed:.0f}s (limit {timeout:.0f}s)"
        )


class WaitCancelled(BootstrapError):
    """A readiness wait was cancelled"""

    exit_code = ExitCode.INTERRUPTED


class CommandError(BootstrapError):
    """An external command failed"""

    exit_code = ExitCode.FAULT

    def __init__(self, cmd: List[str], returncode: int, stdout: str = "", stderr: str = ""):
        self.cmd = list(cmd)
        self.returncode = returncode
        self.stdout = stdout or ""
        self.stderr = stderr or ""
        super().__init__(f"Command failed with code {returncode}: {' '.join(self.cmd)}")

    @property
    def diagnostics(self) -> Optional[str]:
        """Captured output worth showing to the operator"""
        text = (self.stderr or self.stdout).strip()
        return text or None
