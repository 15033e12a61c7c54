"""One-shot operator actions against the VM; callers refresh the snapshot after."""

from __future__ import annotations

import json
import sys
import textwrap
import threading
from pathlib import Path

from loguru import logger

from .config import DashConfig
from .errors import UnknownTargetError
from .multipass import vm_exec_shell
from .results import ActionResult
from .runtime import agent_cmd, exec_cmd, multipass_cmd, require_multipass
from .snapshot import VMSnapshot
from .util import CmdResult, run_cmd, shell_quote

log = logger

# Serializes config mutations issued from this process.
_MUTATE_LOCK = threading.Lock()

_ADD_USER_SCRIPT = textwrap.dedent(
    """
    import fcntl, json, os, stat, tempfile
    path = {path!r}
    with open(path + '.lock', 'w') as lock:
        fcntl.flock(lock, fcntl.LOCK_EX)
        with open(path) as f:
            cfg = json.load(f)
        ch = cfg.setdefault('channels', {{}}).setdefault({channel!r}, {{}})
        af = ch.get('allow_from')
        if isinstance(af, str):
            af = [af] if af else []
        elif not isinstance(af, list):
            af = []
        ch['allow_from'] = af
        entry = json.loads({entry!r})
        if entry not in af:
            af.append(entry)
        mode = stat.S_IMODE(os.stat(path).st_mode)
        fd, tmp = tempfile.mkstemp(dir=os.path.dirname(path), prefix='.config-')
        with os.fdopen(fd, 'w') as f:
            json.dump(cfg, f, indent=2)
        os.chmod(tmp, mode)
        os.replace(tmp, path)
    print('ok')
    """
)

_REMOVE_USER_SCRIPT = textwrap.dedent(
    """
    import fcntl, json, os, stat, sys, tempfile
    path = {path!r}
    with open(path + '.lock', 'w') as lock:
        fcntl.flock(lock, fcntl.LOCK_EX)
        with open(path) as f:
            cfg = json.load(f)
        ch = cfg.get('channels', {{}}).get({channel!r}, {{}})
        af = ch.get('allow_from', [])
        if isinstance(af, str):
            af = [af] if af else []
            ch['allow_from'] = af
        if not isinstance(af, list) or not 0 <= {index} < len(af):
            sys.exit('index %d out of range for %s' % ({index}, {channel!r}))
        af.pop({index})
        mode = stat.S_IMODE(os.stat(path).st_mode)
        fd, tmp = tempfile.mkstemp(dir=os.path.dirname(path), prefix='.config-')
        with os.fdopen(fd, 'w') as f:
            json.dump(cfg, f, indent=2)
        os.chmod(tmp, mode)
        os.replace(tmp, path)
    print('ok')
    """
)


def _outcome(res: CmdResult, ok_msg: str, fail_msg: str) -> ActionResult:
    if res.ok:
        log.info(ok_msg)
        return ActionResult(True, ok_msg)
    reason = 'timed out' if res.timed_out else f'code={res.code}'
    detail = (res.stderr or res.stdout).strip()
    log.warning('{} ({}): {}', fail_msg, reason, detail)
    msg = f'{fail_msg} ({reason})'
    if detail:
        msg += f': {detail.splitlines()[-1]}'
    return ActionResult(False, msg, detail)


def _check_target(kind: str, name: str, allowed: list[str]) -> str:
    name = (name or '').strip().lower()
    if name not in allowed:
        raise UnknownTargetError(
            f'Unknown {kind} {name!r}; expected one of: {", ".join(allowed)}'
        )
    return name


def check_channel(cfg: DashConfig, channel: str) -> str:
    """Normalize a channel name or raise UnknownTargetError."""
    return _check_target('channel', channel, cfg.agent.channels)


def start_vm(cfg: DashConfig) -> ActionResult:
    require_multipass()
    res = run_cmd(
        multipass_cmd('start', cfg.vm.name),
        check=False,
        timeout=cfg.timeouts.lifecycle,
    )
    return _outcome(res, f'VM {cfg.vm.name} started.', 'Start failed')


def stop_vm(cfg: DashConfig) -> ActionResult:
    require_multipass()
    res = run_cmd(
        multipass_cmd('stop', cfg.vm.name),
        check=False,
        timeout=cfg.timeouts.lifecycle,
    )
    return _outcome(res, f'VM {cfg.vm.name} stopped.', 'Stop failed')


def mount_folder(cfg: DashConfig, host_path: str, vm_path: str) -> ActionResult:
    require_multipass()
    res = run_cmd(
        multipass_cmd(
            'mount', '-t', 'classic', host_path, f'{cfg.vm.name}:{vm_path}'
        ),
        check=False,
        timeout=cfg.timeouts.mount,
    )
    return _outcome(res, f'Mounted {host_path} at {vm_path}.', 'Mount failed')


def unmount_folder(cfg: DashConfig, vm_path: str) -> ActionResult:
    require_multipass()
    res = run_cmd(
        multipass_cmd('umount', f'{cfg.vm.name}:{vm_path}'),
        check=False,
        timeout=cfg.timeouts.mount,
    )
    return _outcome(res, f'Unmounted {vm_path}.', 'Unmount failed')


def project_is_mounted(snap: VMSnapshot, vm_path: str) -> bool:
    return any(m.vm_path == vm_path for m in snap.mounts)


def _interactive(cmd: list[str], ok_msg: str, fail_msg: str) -> ActionResult:
    """Hand the terminal to an in-VM flow (device codes, prompts, shells)."""
    require_multipass()
    res = run_cmd(cmd, check=False, capture=False)
    return _outcome(res, ok_msg, fail_msg)


def login(cfg: DashConfig, provider: str) -> ActionResult:
    provider = _check_target('provider', provider, cfg.agent.providers)
    return _interactive(
        agent_cmd(cfg, 'auth', 'login', '--provider', provider),
        'Login flow completed.',
        f'Login to {provider} failed',
    )


def logout(cfg: DashConfig, provider: str) -> ActionResult:
    provider = _check_target('provider', provider, cfg.agent.providers)
    require_multipass()
    script = (
        f'HOME={shell_quote(cfg.vm.home)} {shell_quote(cfg.agent.cli)} '
        f'auth logout --provider {shell_quote(provider)}'
    )
    res = vm_exec_shell(cfg, script, timeout=cfg.timeouts.mutate)
    return _outcome(res, f'Logged out from {provider}.', 'Logout failed')


def channel_setup(cfg: DashConfig, channel: str) -> ActionResult:
    channel = check_channel(cfg, channel)
    return _interactive(
        agent_cmd(cfg, 'channels', 'setup', channel),
        'Channel setup completed.',
        f'{channel} setup failed',
    )


def onboard(cfg: DashConfig) -> ActionResult:
    return _interactive(
        agent_cmd(cfg, 'onboard'),
        'Onboarding completed.',
        'Onboarding failed',
    )


def open_shell(cfg: DashConfig) -> ActionResult:
    workdir = shell_quote(cfg.vm.project_dir)
    return _interactive(
        exec_cmd(cfg, 'bash', '--login', '-c', f'cd {workdir} && exec bash'),
        'Shell closed.',
        'Shell exited with an error',
    )


SYNC_ACTIONS = ('push', 'pull')
PROJECT_STATE_FILE = '~/.cache/sciclaw/vm-project-path'


def sync_script_path(cfg: DashConfig) -> str:
    """Locate the host-side ``deploy/vm`` helper that implements push/pull."""
    candidates = []
    if cfg.host.sync_script:
        candidates.append(Path(cfg.host.sync_script))
    candidates.append(Path.cwd() / 'deploy' / 'vm')
    for name in ('sciclaw', 'picoclaw'):
        candidates.append(Path(sys.prefix) / 'share' / name / 'deploy' / 'vm')
    for cand in candidates:
        if cand.is_file():
            return str(cand)
    return ''


def default_project_dir(cfg: DashConfig) -> str:
    if cfg.host.project_dir:
        return cfg.host.project_dir
    state = Path(PROJECT_STATE_FILE).expanduser()
    try:
        text = state.read_text(encoding='utf-8').strip()
    except OSError:
        text = ''
    return text or str(Path.cwd())


def sync_project(
    cfg: DashConfig, action: str, snap: VMSnapshot, project_dir: str = ''
) -> ActionResult:
    """
    Copy the project between host and VM with the ``deploy/vm`` helper.

    Refused while the VM project folder is a live mount, since both copies
    are then the same files.
    """
    action = _check_target('sync action', action, list(SYNC_ACTIONS))
    if project_is_mounted(snap, cfg.vm.project_dir):
        return ActionResult(
            False,
            f'Push/pull disabled while {cfg.vm.project_dir} is mounted.',
        )
    script = sync_script_path(cfg)
    if not script:
        return ActionResult(False, 'Could not find deploy/vm script.')
    project_dir = project_dir or default_project_dir(cfg)
    cmd = ['bash', script, action]
    if project_dir:
        cmd.append(project_dir)
    return _interactive(cmd, f'{action} completed.', f'{action} failed')


def push_project(
    cfg: DashConfig, snap: VMSnapshot, project_dir: str = ''
) -> ActionResult:
    return sync_project(cfg, 'push', snap, project_dir)


def pull_project(
    cfg: DashConfig, snap: VMSnapshot, project_dir: str = ''
) -> ActionResult:
    return sync_project(cfg, 'pull', snap, project_dir)


def clean_reply(text: str) -> str:
    """
    Strip the agent's banner glyph and surrounding whitespace from a reply.

    Example:
        >>> clean_reply('🔬 Hello there\\n')
        'Hello there'
        >>> clean_reply('  \\n')
        '(no response)'
    """
    reply = (text or '').strip()
    reply = reply.removeprefix('🔬').strip()
    return reply or '(no response)'


def chat(cfg: DashConfig, message: str) -> ActionResult:
    """Send one message to the agent inside the VM and return its reply."""
    message = (message or '').strip()
    if not message:
        return ActionResult(False, 'Nothing to send: message is blank.')
    require_multipass()
    script = (
        f'HOME={shell_quote(cfg.vm.home)} {shell_quote(cfg.agent.cli)} '
        f'agent -m {shell_quote(message)} '
        f'-s {shell_quote(cfg.agent.chat_session)} 2>/dev/null'
    )
    res = vm_exec_shell(cfg, script, timeout=cfg.timeouts.chat)
    if not res.ok:
        return _outcome(res, '', 'Agent error')
    return ActionResult(True, clean_reply(res.stdout))


def add_user_script(cfg: DashConfig, channel: str, entry: str) -> str:
    # The entry is JSON-encoded so arbitrary names survive embedding.
    return _ADD_USER_SCRIPT.format(
        path=cfg.agent.config_path,
        channel=channel,
        entry=json.dumps(entry),
    )


def remove_user_script(cfg: DashConfig, channel: str, index: int) -> str:
    return _REMOVE_USER_SCRIPT.format(
        path=cfg.agent.config_path,
        channel=channel,
        index=int(index),
    )


def _run_edit(cfg: DashConfig, script: str) -> CmdResult:
    require_multipass()
    with _MUTATE_LOCK:
        return vm_exec_shell(
            cfg,
            f'python3 -c {shell_quote(script)}',
            timeout=cfg.timeouts.mutate,
        )


def add_approved_user(cfg: DashConfig, channel: str, entry: str) -> ActionResult:
    channel = check_channel(cfg, channel)
    entry = (entry or '').strip()
    if not entry:
        return ActionResult(False, 'Nothing to add: entry is blank.')
    res = _run_edit(cfg, add_user_script(cfg, channel, entry))
    return _outcome(res, 'User added.', f'Adding {entry} to {channel} failed')


def remove_approved_user(
    cfg: DashConfig, channel: str, index: int
) -> ActionResult:
    channel = check_channel(cfg, channel)
    if index < 0:
        return ActionResult(False, f'Invalid user index {index}.')
    res = _run_edit(cfg, remove_user_script(cfg, channel, index))
    return _outcome(res, 'User removed.', f'Removing user from {channel} failed')
