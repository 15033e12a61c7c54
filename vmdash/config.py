"""Dashboard settings: VM identity, agent paths, host paths, and probe timeouts."""

from __future__ import annotations

import tomllib
from dataclasses import asdict, dataclass, field
from pathlib import Path

import ubelt as ub

from .util import expand

SECTIONS = ('vm', 'agent', 'host', 'timeouts')


@dataclass
class VMConfig:
    name: str = 'sciclaw'
    home: str = '/home/ubuntu'
    project_dir: str = '/home/ubuntu/project'


@dataclass
class AgentConfig:
    cli: str = 'sciclaw'
    service: str = 'sciclaw-gateway'
    config_path: str = '/home/ubuntu/.picoclaw/config.json'
    auth_path: str = '/home/ubuntu/.picoclaw/auth.json'
    providers: list[str] = field(default_factory=lambda: ['openai', 'anthropic'])
    channels: list[str] = field(default_factory=lambda: ['discord', 'telegram'])
    chat_session: str = 'vmdash:chat'


@dataclass
class HostConfig:
    config_path: str = '~/.picoclaw/config.json'
    project_dir: str = ''
    sync_script: str = ''


@dataclass
class TimeoutConfig:
    state: float = 3
    info: float = 5
    cat: float = 5
    version: float = 5
    workspace: float = 3
    service: float = 5
    mutate: float = 5
    mount: float = 30
    lifecycle: float = 120
    chat: float = 120


@dataclass
class DashConfig:
    vm: VMConfig = field(default_factory=VMConfig)
    agent: AgentConfig = field(default_factory=AgentConfig)
    host: HostConfig = field(default_factory=HostConfig)
    timeouts: TimeoutConfig = field(default_factory=TimeoutConfig)
    verbosity: int = 1

    def expanded_paths(self) -> 'DashConfig':
        self.host.config_path = expand(self.host.config_path)
        self.host.project_dir = (
            expand(self.host.project_dir) if self.host.project_dir else ''
        )
        self.host.sync_script = (
            expand(self.host.sync_script) if self.host.sync_script else ''
        )
        return self

    def vm_path(self, path: str) -> str:
        """Expand a leading ``~/`` against the VM user's home directory."""
        if path == '~':
            return self.vm.home
        if path.startswith('~/'):
            return self.vm.home.rstrip('/') + '/' + path[2:]
        return path


def config_path() -> Path:
    p = ub.Path.appdir('vmdash', type='config').ensuredir()
    return Path(p) / 'config.toml'


def _toml_escape(s: str) -> str:
    return s.replace('\\', '\\\\').replace('"', '\\"')


def dump_toml(cfg: DashConfig) -> str:
    d = asdict(cfg)
    lines: list[str] = []
    # Top-level keys must precede the first table header.
    if d.get('verbosity', 1) != 1:
        lines.append(f'verbosity = {d["verbosity"]}')
        lines.append('')
    for section, body in d.items():
        if isinstance(body, dict):
            lines.append(f'[{section}]')
            for k, v in body.items():
                if isinstance(v, bool):
                    lines.append(f'{k} = {"true" if v else "false"}')
                elif isinstance(v, (int, float)):
                    lines.append(f'{k} = {v}')
                elif isinstance(v, list):
                    parts = [f'"{_toml_escape(str(item))}"' for item in v]
                    lines.append(f'{k} = [{", ".join(parts)}]')
                else:
                    lines.append(f'{k} = "{_toml_escape(str(v))}"')
            lines.append('')
    return '\n'.join(lines).rstrip() + '\n'


def load(path: Path | None = None) -> DashConfig:
    fpath = path or config_path()
    cfg = DashConfig()
    if not fpath.exists():
        return cfg
    raw = tomllib.loads(fpath.read_text(encoding='utf-8'))
    for section in SECTIONS:
        body = raw.get(section, None)
        if isinstance(body, dict):
            obj = getattr(cfg, section)
            for k, v in body.items():
                if hasattr(obj, k):
                    setattr(obj, k, v)
    if 'verbosity' in raw:
        cfg.verbosity = int(raw['verbosity'])
    return cfg


def save(path: Path, cfg: DashConfig) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(dump_toml(cfg), encoding='utf-8')
    return path
