"""Host dependency checks."""

from __future__ import annotations

from .util import which

REQUIRED_CMDS = ['multipass']
OPTIONAL_CMDS = ['bash']


def check_commands() -> tuple[list[str], list[str]]:
    missing = [c for c in REQUIRED_CMDS if which(c) is None]
    missing_opt = [c for c in OPTIONAL_CMDS if which(c) is None]
    return missing, missing_opt
