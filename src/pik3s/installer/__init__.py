"""Installation orchestrator for the Pi GitOps platform."""

from .bootstrap import PREFLIGHT, build_bootstrap_steps, build_context, check_prerequisites
from .teardown import build_teardown_steps

__all__ = [
    "PREFLIGHT",
    "build_bootstrap_steps",
    "build_context",
    "build_teardown_steps",
    "check_prerequisites",
]
