"""pik3s - idempotent K3s and Argo CD bootstrap for Raspberry Pi."""

__version__ = "0.1.0"
