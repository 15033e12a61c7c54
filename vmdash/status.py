"""Text rendering of a VMSnapshot: VM panel, checklist, channels, and next step."""

from __future__ import annotations

from .classify import BROKEN, OFF, OPEN, READY, ChannelSnapshot
from .config import DashConfig
from .multipass import STATE_NOT_FOUND, STATE_RUNNING, STATE_STOPPED
from .snapshot import (
    NO_TAB,
    TAB_FILES,
    TAB_LOGIN,
    TAB_MESSAGING,
    NextStep,
    VMSnapshot,
    suggested_step,
)

CHANNEL_TEXT = {
    READY: 'ready',
    OPEN: 'open to anyone (no approved users)',
    BROKEN: 'enabled but missing token',
    OFF: 'off',
}


def status_line(ok: bool | None, label: str, detail: str = '') -> str:
    icon = '✅' if ok is True else ('➖' if ok is None else '❌')
    suffix = f' - {detail}' if detail else ''
    return f'{icon} {label}{suffix}'


def _dash(text: str) -> str:
    return text or '-'


def _channel_ok(status: str) -> bool | None:
    if status == READY:
        return True
    if status == OFF:
        return None
    return False


def channel_summary(ch: ChannelSnapshot) -> str:
    text = CHANNEL_TEXT.get(ch.status, ch.status)
    n = len(ch.approved_users)
    if n:
        text += f' ({n} approved user{"s" if n != 1 else ""})'
    return text


def drift_note(vm: ChannelSnapshot, host: ChannelSnapshot) -> str:
    """Describe how the host copy of a channel differs from the VM copy."""
    diffs: list[str] = []
    if vm.status != host.status:
        diffs.append(f'status {host.status} on host vs {vm.status} in VM')
    vm_users = [u.raw for u in vm.approved_users]
    host_users = [u.raw for u in host.approved_users]
    if vm_users != host_users:
        diffs.append(
            f'{len(host_users)} approved on host vs {len(vm_users)} in VM'
        )
    return '; '.join(diffs)


def next_command(cfg: DashConfig, step: NextStep, snap: VMSnapshot) -> str:
    """Map a suggested step to the vmdash command that performs it."""
    if step.tab == NO_TAB:
        if snap.state in (STATE_NOT_FOUND, ''):
            return f'multipass launch --name {cfg.vm.name}'
        return 'vmdash vm start'
    if step.tab == TAB_LOGIN:
        return f'vmdash auth login --provider {cfg.agent.providers[0]}'
    if step.tab == TAB_MESSAGING:
        return f'vmdash channels setup --channel {cfg.agent.channels[0]}'
    if step.tab == TAB_FILES and not snap.service_running:
        return 'vmdash vm onboard'
    return 'vmdash watch'


def render_status(
    snap: VMSnapshot, cfg: DashConfig, *, detail: bool = False
) -> str:
    lines: list[str] = [f'🧭 VM Control Center ({cfg.vm.name})']
    if snap.fetched_at is not None:
        lines.append(f'🕒 Fetched: {snap.fetched_at:%Y-%m-%d %H:%M:%S}')
    lines.append('')

    lines.append('🖥️ Virtual Machine')
    state_ok: bool | None = False
    if snap.state == STATE_RUNNING:
        state_ok = True
    elif snap.state == STATE_STOPPED:
        state_ok = None
    lines.append(status_line(state_ok, 'Status', _dash(snap.state)))
    lines.append(f'   IP: {_dash(snap.ipv4)}    CPU Load: {_dash(snap.load)}')
    lines.append(
        f'   Memory: {_dash(snap.memory)}    Agent: {_dash(snap.agent_version)}'
    )
    lines.append('')

    checks = [
        (snap.config_exists, 'Configuration file'),
        (snap.workspace_exists, 'Workspace folder'),
        (snap.auth_store_exists, 'Login credentials'),
        (snap.any_provider_ready, 'AI provider'),
        (snap.any_channel_ready, 'Messaging app'),
        (snap.service_installed, 'Agent service installed'),
        (snap.service_running, 'Agent service running'),
    ]
    done = sum(int(ok) for ok, _ in checks)
    lines.append('📋 Setup Checklist')
    for ok, label in checks:
        lines.append(status_line(ok, label))
    lines.append(f'📊 Progress: {done}/{len(checks)} checks complete')
    lines.append('')

    lines.append('🔑 AI Providers')
    for name, state in (('OpenAI', snap.openai), ('Anthropic', snap.anthropic)):
        text = 'active' if state == READY else 'not set'
        lines.append(status_line(state == READY, name, text))
    lines.append('')

    lines.append('💬 Messaging')
    channels = (
        ('Discord', snap.discord, snap.host_discord),
        ('Telegram', snap.telegram, snap.host_telegram),
    )
    for name, ch, host in channels:
        lines.append(
            status_line(_channel_ok(ch.status), name, channel_summary(ch))
        )
        if detail:
            for idx, user in enumerate(ch.approved_users):
                lines.append(
                    f'   {idx}. {user.display_name} ({user.display_id})'
                )
        if snap.host_config_exists:
            note = drift_note(ch, host)
            if note:
                lines.append(f'   ⚠️ host drift: {note}')
    lines.append('')

    lines.append('📁 Mounts')
    if snap.mounts:
        for m in snap.mounts:
            lines.append(f'   {m.host_path} => {m.vm_path}')
    else:
        lines.append('   (none)')
    if detail and snap.workspace_path:
        lines.append(f'   workspace: {snap.workspace_path}')
    lines.append('')

    step = suggested_step(snap)
    lines.append('🛠️ Suggested Next Step')
    lines.append(f'   {step.message}')
    lines.append(f'   {step.detail}')
    lines.append(f'   - `{next_command(cfg, step, snap)}`')
    return '\n'.join(lines)
