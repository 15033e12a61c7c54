from __future__ import annotations

import sys
from pathlib import Path

import scriptconfig as scfg
from loguru import logger

from ..config import DashConfig, config_path, load
from ..results import ActionResult

log = logger


class _BaseCommand(scfg.DataConfig):
    """Base options shared by all commands."""

    config = scfg.Value(
        None, help='Path to settings TOML (default: user config dir).'
    )
    verbose = scfg.Value(
        0,
        short_alias=['v'],
        isflag='counter',
        help='Increase verbosity (-v, -vv).',
    )


def _cfg_path(p: str | None) -> Path:
    if p:
        return Path(p).expanduser().resolve()
    return config_path()


def _load_cfg(config_path_opt: str | None) -> DashConfig:
    cfg, _ = _load_cfg_with_path(config_path_opt)
    return cfg


def _load_cfg_with_path(config_path_opt: str | None) -> tuple[DashConfig, Path]:
    path = _cfg_path(config_path_opt)
    if config_path_opt and not path.exists():
        raise FileNotFoundError(
            f'Config not found: {path}. Run: vmdash config init --config {path}'
        )
    return load(path).expanded_paths(), path


def _report(result: ActionResult) -> int:
    """Print a one-line action outcome and map it to an exit code."""
    if result.ok:
        print(f'✅ {result.message}')
        return 0
    print(f'❌ {result.message}', file=sys.stderr)
    return 1


__all__ = [name for name in globals() if not name.startswith('__')]
