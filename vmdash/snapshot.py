"""Collect a consistent VM/agent read-model and derive the suggested next step."""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, TypeVar

from loguru import logger

from .agentconfig import (
    AgentConfig,
    AuthStore,
    parse_agent_config,
    parse_auth_store,
)
from .classify import (
    MISSING,
    READY,
    ChannelSnapshot,
    channel_state,
    provider_state,
)
from .config import DashConfig
from .multipass import (
    STATE_NOT_FOUND,
    STATE_RUNNING,
    UNKNOWN_VERSION,
    MountInfo,
    VMInfo,
    agent_version,
    get_vm_info,
    read_host_file,
    service_active,
    service_installed,
    vm_cat_file,
    workspace_exists,
)
from .results import FileRead

log = logger

T = TypeVar('T')

TAB_HOME = 0
TAB_MESSAGING = 1
TAB_LOGIN = 2
TAB_FILES = 3
NO_TAB = -1

SKIPPED = FileRead(False, '', 'skipped: vm not running')


@dataclass(frozen=True)
class VMSnapshot:
    state: str = ''
    ipv4: str = ''
    load: str = ''
    memory: str = ''
    agent_version: str = UNKNOWN_VERSION
    config_exists: bool = False
    workspace_exists: bool = False
    auth_store_exists: bool = False
    host_config_exists: bool = False
    workspace_path: str = ''
    openai: str = MISSING
    anthropic: str = MISSING
    discord: ChannelSnapshot = field(default_factory=ChannelSnapshot)
    telegram: ChannelSnapshot = field(default_factory=ChannelSnapshot)
    host_discord: ChannelSnapshot = field(default_factory=ChannelSnapshot)
    host_telegram: ChannelSnapshot = field(default_factory=ChannelSnapshot)
    service_installed: bool = False
    service_running: bool = False
    mounts: tuple[MountInfo, ...] = field(default_factory=tuple)
    fetched_at: datetime | None = None

    @property
    def running(self) -> bool:
        return self.state == STATE_RUNNING

    @property
    def any_provider_ready(self) -> bool:
        return READY in (self.openai, self.anthropic)

    @property
    def any_channel_ready(self) -> bool:
        return READY in (self.discord.status, self.telegram.status)


@dataclass(frozen=True)
class NextStep:
    message: str
    detail: str
    tab: int = NO_TAB


def _settle(fut: Future, default: T, what: str) -> T:
    """Wait for a probe and degrade to ``default`` if it raised."""
    try:
        return fut.result()
    except Exception as ex:
        log.warning('degraded field={} reason={!r}', what, ex)
        return default


def _when_running(
    info_fut: Future, fn: Callable[[], T], skipped: T
) -> Callable[[], T]:
    """Wrap an in-VM read so it only touches the VM once it is known to run."""

    def _task() -> T:
        info = _settle(info_fut, VMInfo(state=STATE_NOT_FOUND), 'state')
        if info.state != STATE_RUNNING:
            return skipped
        return fn()

    return _task


def collect_snapshot(cfg: DashConfig) -> VMSnapshot:
    """
    Gather VM state, agent config, credentials and service state.

    Never raises: each failing probe degrades one field to a safe default and
    logs a ``degraded field=...`` event. Safe to call from any thread; every
    call builds an independent value.

    Args:
        cfg: dashboard settings naming the VM and the in-VM/host paths.

    Returns:
        VMSnapshot: a frozen read-model. When the VM is not running only the
        identity fields (state, ip, load, memory, mounts) are populated and no
        command is executed inside the VM.
    """
    fetched_at = datetime.now()
    with ThreadPoolExecutor(
        max_workers=5, thread_name_prefix='vmdash-read'
    ) as pool:
        info_fut = pool.submit(get_vm_info, cfg)
        cfg_fut = pool.submit(
            _when_running(
                info_fut,
                lambda: vm_cat_file(cfg, cfg.agent.config_path),
                SKIPPED,
            )
        )
        auth_fut = pool.submit(
            _when_running(
                info_fut,
                lambda: vm_cat_file(cfg, cfg.agent.auth_path),
                SKIPPED,
            )
        )
        host_fut = pool.submit(read_host_file, cfg.host.config_path)
        ver_fut = pool.submit(
            _when_running(
                info_fut, lambda: agent_version(cfg), UNKNOWN_VERSION
            )
        )
        info = _settle(info_fut, VMInfo(state=STATE_NOT_FOUND), 'state')
        cfg_read = _settle(cfg_fut, SKIPPED, 'config_exists')
        auth_read = _settle(auth_fut, SKIPPED, 'auth_store_exists')
        host_read = _settle(host_fut, FileRead(False), 'host_config_exists')
        version = _settle(ver_fut, UNKNOWN_VERSION, 'agent_version')

    identity = dict(
        state=info.state,
        ipv4=info.ipv4,
        load=info.load,
        memory=info.memory,
        mounts=tuple(info.mounts),
        agent_version=version or UNKNOWN_VERSION,
        fetched_at=fetched_at,
    )
    if info.state != STATE_RUNNING:
        log.debug(
            'vm={} state={!r}; skipping in-VM probes', cfg.vm.name, info.state
        )
        return VMSnapshot(**identity)

    config_exists = cfg_read.exists
    agent_cfg = AgentConfig()
    if config_exists:
        agent_cfg = parse_agent_config(cfg_read.text)
    elif not cfg_read.ok:
        log.debug('degraded field=config_exists reason={}', cfg_read.error)

    auth_exists = auth_read.exists
    auth = AuthStore()
    if auth_exists:
        auth = parse_auth_store(auth_read.text)
    elif not auth_read.ok:
        log.debug(
            'degraded field=auth_store_exists reason={}', auth_read.error
        )

    # Host copy is only used to show drift against the VM config.
    host_exists = host_read.exists
    host_discord = ChannelSnapshot()
    host_telegram = ChannelSnapshot()
    if host_exists:
        host_cfg = parse_agent_config(host_read.text, what='host_config')
        host_discord = channel_state(host_cfg.channel('discord'))
        host_telegram = channel_state(host_cfg.channel('telegram'))
    elif not host_read.ok:
        log.debug(
            'degraded field=host_config_exists reason={}', host_read.error
        )

    ws_path = agent_cfg.workspace
    ws_exists = False
    if ws_path:
        try:
            ws_exists = workspace_exists(cfg, ws_path)
        except Exception as ex:
            log.warning('degraded field=workspace_exists reason={!r}', ex)

    with ThreadPoolExecutor(
        max_workers=2, thread_name_prefix='vmdash-svc'
    ) as pool:
        installed_fut = pool.submit(service_installed, cfg)
        active_fut = pool.submit(service_active, cfg)
        installed = _settle(installed_fut, False, 'service_installed')
        running = _settle(active_fut, False, 'service_running')

    return VMSnapshot(
        **identity,
        config_exists=config_exists,
        workspace_exists=ws_exists,
        auth_store_exists=auth_exists,
        host_config_exists=host_exists,
        workspace_path=ws_path,
        openai=provider_state(
            agent_cfg.provider('openai'), auth.credential('openai')
        ),
        anthropic=provider_state(
            agent_cfg.provider('anthropic'), auth.credential('anthropic')
        ),
        discord=channel_state(agent_cfg.channel('discord')),
        telegram=channel_state(agent_cfg.channel('telegram')),
        host_discord=host_discord,
        host_telegram=host_telegram,
        service_installed=installed,
        service_running=running,
    )


def suggested_step(snap: VMSnapshot) -> NextStep:
    """Pick the single most important thing the operator should do next."""
    if snap.state in (STATE_NOT_FOUND, ''):
        return NextStep(
            'Create and start the VM',
            'No VM was found. Launch it with multipass, then refresh.',
            NO_TAB,
        )
    if snap.state != STATE_RUNNING:
        return NextStep(
            'Start the VM',
            'The VM exists but is not running. Run `vmdash vm start`.',
            NO_TAB,
        )
    if not snap.any_provider_ready:
        return NextStep(
            'Log in to an AI provider',
            'You need credentials for OpenAI or Anthropic to use the agent.',
            TAB_LOGIN,
        )
    if not snap.any_channel_ready:
        return NextStep(
            'Set up a messaging app',
            'Connect Discord or Telegram so you can chat with your agent.',
            TAB_MESSAGING,
        )
    if not snap.service_installed:
        return NextStep(
            'Install the agent service',
            'The background service lets your agent run continuously.',
            TAB_FILES,
        )
    if not snap.service_running:
        return NextStep(
            'Start the agent service',
            'Your agent is installed but not running yet.',
            TAB_FILES,
        )
    return NextStep(
        "You're all set!",
        'Your agent is running and ready. Check the logs for activity.',
        TAB_FILES,
    )
