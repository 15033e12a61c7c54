"""Runtime helpers for constructing multipass and in-VM command arguments."""

from __future__ import annotations

from .config import DashConfig
from .errors import MultipassNotFoundError
from .util import which

MULTIPASS = 'multipass'


def multipass_cmd(*args: str) -> list[str]:
    return [MULTIPASS, *args]


def exec_cmd(cfg: DashConfig, *argv: str) -> list[str]:
    return multipass_cmd('exec', cfg.vm.name, '--', *argv)


def agent_cmd(cfg: DashConfig, *args: str) -> list[str]:
    """Run the in-VM agent CLI with HOME pinned to the VM user's home."""
    return exec_cmd(cfg, 'env', f'HOME={cfg.vm.home}', cfg.agent.cli, *args)


def require_multipass() -> str:
    path = which(MULTIPASS)
    if not path:
        raise MultipassNotFoundError(
            'multipass is not installed or not on PATH; '
            'see https://multipass.run to install it.'
        )
    return path
