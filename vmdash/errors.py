"""Project-specific exception types."""

from __future__ import annotations


class VMDashError(RuntimeError):
    """Base error for domain-level vmdash failures."""


class MultipassNotFoundError(VMDashError):
    """Raised when the multipass binary is required but not on PATH."""


class UnknownTargetError(VMDashError):
    """Raised when a provider or channel name is not one vmdash manages."""
