"""CLI package exports for top-level command entry points."""

from __future__ import annotations

from .main import DashModalCLI, main

__all__ = ['DashModalCLI', 'main']
