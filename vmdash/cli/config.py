from __future__ import annotations

import sys

import scriptconfig as scfg

from ..config import DashConfig, dump_toml, save
from ._common import _BaseCommand, _cfg_path, _load_cfg_with_path


class InitCLI(_BaseCommand):
    """Write a settings file with defaults for the given VM name."""

    vm = scfg.Value('', help='VM name override (default: sciclaw).')
    force = scfg.Value(
        False, isflag=True, help='Overwrite an existing settings file.'
    )

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        path = _cfg_path(args.config)
        if path.exists() and not args.force:
            print(f'Settings already exist: {path}', file=sys.stderr)
            print('Use --force to overwrite.', file=sys.stderr)
            return 2
        cfg = DashConfig()
        if str(args.vm or '').strip():
            cfg.vm.name = str(args.vm).strip()
        save(path, cfg)
        print(f'Wrote settings: {path}')
        print(f'VM: {cfg.vm.name}')
        return 0


class ConfigShowCLI(_BaseCommand):
    """Show resolved settings."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        cfg, path = _load_cfg_with_path(args.config)
        print(f'# Settings: {path}{"" if path.exists() else " (defaults)"}')
        print(dump_toml(cfg), end='')
        return 0


class ConfigModalCLI(scfg.ModalCLI):
    """Settings file subcommands."""

    init = InitCLI
    show = ConfigShowCLI
