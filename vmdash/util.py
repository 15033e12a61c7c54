"""Shared utility helpers for subprocess execution, paths, and command formatting."""

from __future__ import annotations

import os
import shlex
import subprocess
from dataclasses import dataclass
from typing import Optional, Sequence

from loguru import logger

log = logger

TIMEOUT_CODE = 124
NOT_FOUND_CODE = 127


@dataclass(frozen=True)
class CmdResult:
    code: int
    stdout: str
    stderr: str
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.code == 0 and not self.timed_out


class CmdError(RuntimeError):
    def __init__(self, cmd: Sequence[str] | str, result: CmdResult):
        self.cmd = cmd
        self.result = result
        super().__init__(
            f'Command failed (code={result.code}): {cmd}\n{result.stderr}'.strip()
        )


def shell_join(cmd: Sequence[str]) -> str:
    return ' '.join(shlex.quote(c) for c in cmd)


def shell_quote(text: str) -> str:
    return shlex.quote(text)


def run_cmd(
    cmd: Sequence[str],
    *,
    check: bool = True,
    capture: bool = True,
    text: bool = True,
    timeout: Optional[float] = None,
    input_text: Optional[str] = None,
    env: Optional[dict[str, str]] = None,
) -> CmdResult:
    """
    Run an external command and collect its result.

    When ``capture`` is False the child inherits the terminal streams, which
    is how interactive flows (device-code logins, shells) are handed to the
    operator. On timeout the child is killed and the result is reported with
    ``timed_out=True`` and code 124. A missing executable reports code 127.
    """
    cmd = list(cmd)
    log.opt(depth=1).debug('RUN: {}', shell_join(cmd))
    try:
        p = subprocess.run(
            cmd,
            input=input_text if input_text is not None else None,
            capture_output=capture,
            text=text,
            env=env,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as ex:
        # subprocess.run kills the child before re-raising.
        log.opt(depth=1).warning(
            'Command timed out after {}s cmd={}', timeout, shell_join(cmd)
        )
        res = CmdResult(
            TIMEOUT_CODE,
            _decode(ex.stdout),
            _decode(ex.stderr) or f'timed out after {timeout}s',
            timed_out=True,
        )
        if check:
            raise CmdError(cmd, res) from ex
        return res
    except FileNotFoundError as ex:
        log.opt(depth=1).warning('Command not found: {}', cmd[0])
        res = CmdResult(NOT_FOUND_CODE, '', str(ex))
        if check:
            raise CmdError(cmd, res) from ex
        return res
    res = CmdResult(p.returncode, p.stdout or '', p.stderr or '')
    if check and p.returncode != 0:
        log.opt(depth=1).error(
            'Command failed code={} cmd={} stderr={} stdout={}',
            p.returncode,
            shell_join(cmd),
            res.stderr.strip(),
            res.stdout.strip(),
        )
        raise CmdError(cmd, res)
    if p.returncode == 0:
        log.opt(depth=1).debug('Command ok code=0 cmd={}', shell_join(cmd))
    return res


def _decode(data: bytes | str | None) -> str:
    if data is None:
        return ''
    if isinstance(data, bytes):
        return data.decode('utf-8', errors='replace')
    return data


def which(cmd: str) -> Optional[str]:
    from shutil import which as _which

    return _which(cmd)


def expand(path: str) -> str:
    return os.path.expandvars(os.path.expanduser(path))
