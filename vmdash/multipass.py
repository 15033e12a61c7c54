"""VM info parsing and in-VM reads/probes performed through multipass."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from loguru import logger

from .config import DashConfig
from .results import FileRead
from .runtime import exec_cmd, multipass_cmd
from .util import CmdResult, run_cmd, shell_quote

log = logger

STATE_RUNNING = 'Running'
STATE_STOPPED = 'Stopped'
STATE_NOT_FOUND = 'NotFound'

UNKNOWN_VERSION = 'unknown'
MOUNT_SEP = ' => '


@dataclass(frozen=True)
class MountInfo:
    host_path: str
    vm_path: str


@dataclass(frozen=True)
class VMInfo:
    state: str = ''
    ipv4: str = ''
    load: str = ''
    memory: str = ''
    mounts: tuple[MountInfo, ...] = field(default_factory=tuple)


def parse_info_field(output: str, key: str) -> str:
    for line in (output or '').splitlines():
        if ':' not in line:
            continue
        name, val = line.split(':', 1)
        if name.strip() == key:
            return val.strip()
    return ''


def parse_mounts(output: str) -> list[MountInfo]:
    """
    Extract mount entries from ``multipass info`` output.

    The block looks like::

        Mounts:         /host/path => /vm/path
                            UID map: 1000:default
                            GID map: 1000:default
                        /other => /home/ubuntu/other
                            UID map: 1000:default

    Mount mode starts at the ``Mounts:`` line and ends at the next
    unindented ``Key:`` line. Only lines with the ``=>`` separator yield
    entries; the UID/GID map lines are skipped.
    """
    mounts: list[MountInfo] = []
    in_mounts = False
    for line in (output or '').splitlines():
        trimmed = line.strip()
        if line.startswith('Mounts:'):
            in_mounts = True
            trimmed = trimmed[len('Mounts:'):].strip()
        elif line and not line[0].isspace() and ':' in line:
            in_mounts = False
        if in_mounts and MOUNT_SEP in trimmed:
            host, vm = trimmed.split(MOUNT_SEP, 1)
            mounts.append(MountInfo(host.strip(), vm.strip()))
    return mounts


def parse_vm_info(output: str) -> VMInfo:
    return VMInfo(
        state=parse_info_field(output, 'State'),
        ipv4=parse_info_field(output, 'IPv4'),
        load=parse_info_field(output, 'Load'),
        memory=parse_info_field(output, 'Memory usage'),
        mounts=tuple(parse_mounts(output)),
    )


def vm_state(cfg: DashConfig) -> str:
    """Return the VM state, or ``NotFound`` when multipass cannot answer."""
    res = run_cmd(
        multipass_cmd('info', cfg.vm.name),
        check=False,
        timeout=cfg.timeouts.state,
    )
    if not res.ok:
        log.debug(
            'vm state query failed vm={} code={}: {}',
            cfg.vm.name,
            res.code,
            res.stderr.strip(),
        )
        return STATE_NOT_FOUND
    return parse_info_field(res.stdout, 'State')


def get_vm_info(cfg: DashConfig) -> VMInfo:
    res = run_cmd(
        multipass_cmd('info', cfg.vm.name),
        check=False,
        timeout=cfg.timeouts.info,
    )
    if not res.ok:
        log.debug(
            'vm info query failed vm={} code={}: {}',
            cfg.vm.name,
            res.code,
            res.stderr.strip(),
        )
        return VMInfo(state=STATE_NOT_FOUND)
    return parse_vm_info(res.stdout)


def vm_exec(cfg: DashConfig, *argv: str, timeout: float) -> CmdResult:
    return run_cmd(exec_cmd(cfg, *argv), check=False, timeout=timeout)


def vm_exec_shell(cfg: DashConfig, script: str, *, timeout: float) -> CmdResult:
    return vm_exec(cfg, 'bash', '-lc', script, timeout=timeout)


def vm_cat_file(cfg: DashConfig, path: str) -> FileRead:
    res = vm_exec(cfg, 'cat', path, timeout=cfg.timeouts.cat)
    if not res.ok:
        return FileRead(False, '', res.stderr.strip())
    return FileRead(True, res.stdout)


def read_host_file(path: str | Path) -> FileRead:
    try:
        text = Path(path).read_text(encoding='utf-8')
    except OSError as ex:
        return FileRead(False, '', str(ex))
    return FileRead(True, text)


def agent_version(cfg: DashConfig) -> str:
    res = vm_exec(cfg, cfg.agent.cli, '--version', timeout=cfg.timeouts.version)
    out = res.stdout.strip()
    if not res.ok or not out:
        return UNKNOWN_VERSION
    return out.splitlines()[0].strip()


def service_active(cfg: DashConfig) -> bool:
    unit = shell_quote(cfg.agent.service)
    res = vm_exec_shell(
        cfg,
        f'systemctl --user is-active {unit} 2>/dev/null || echo inactive',
        timeout=cfg.timeouts.service,
    )
    return res.ok and res.stdout.strip() == 'active'


def service_installed(cfg: DashConfig) -> bool:
    unit = shell_quote(f'{cfg.agent.service}.service')
    res = vm_exec_shell(
        cfg,
        f'test -f ~/.config/systemd/user/{unit} && echo yes || echo no',
        timeout=cfg.timeouts.service,
    )
    return res.ok and res.stdout.strip() == 'yes'


def workspace_exists(cfg: DashConfig, path: str) -> bool:
    target = shell_quote(cfg.vm_path(path))
    res = vm_exec_shell(
        cfg,
        f'test -d {target} && echo yes || echo no',
        timeout=cfg.timeouts.workspace,
    )
    return res.ok and res.stdout.strip() == 'yes'
