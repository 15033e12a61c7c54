"""Top-level modal CLI wiring, argv normalization, and logging setup."""

from __future__ import annotations

import os
import sys
import time

import scriptconfig as scfg
from loguru import logger

from .. import actions
from ..host import check_commands
from ..snapshot import collect_snapshot, suggested_step
from ..status import next_command, render_status
from ._common import _BaseCommand, _cfg_path, _load_cfg, _report, log
from .agent import AuthModalCLI, ChannelsModalCLI
from .config import ConfigModalCLI
from .vm import VMModalCLI


class StatusCLI(_BaseCommand):
    """Collect one snapshot and render the dashboard."""

    detail = scfg.Value(
        False,
        isflag=True,
        help='Include approved users and workspace path.',
    )

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        cfg = _load_cfg(args.config)
        snap = collect_snapshot(cfg)
        print(render_status(snap, cfg, detail=bool(args.detail)))
        return 0


class WatchCLI(_BaseCommand):
    """Refresh the dashboard periodically until interrupted."""

    interval = scfg.Value(5.0, type=float, help='Seconds between refreshes.')
    count = scfg.Value(
        0, type=int, help='Stop after this many refreshes (0 = forever).'
    )
    detail = scfg.Value(False, isflag=True, help='Same as status --detail.')

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        cfg = _load_cfg(args.config)
        interval = max(float(args.interval), 0.0)
        done = 0
        try:
            while True:
                # The next cycle starts only after this one has finished.
                snap = collect_snapshot(cfg)
                if sys.stdout.isatty():
                    print('\033[2J\033[H', end='')
                print(render_status(snap, cfg, detail=bool(args.detail)))
                done += 1
                if args.count and done >= args.count:
                    break
                time.sleep(interval)
        except KeyboardInterrupt:
            print('')
        return 0


class NextCLI(_BaseCommand):
    """Print only the suggested next step."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        cfg = _load_cfg(args.config)
        snap = collect_snapshot(cfg)
        step = suggested_step(snap)
        print(step.message)
        print(step.detail)
        print(f'- `{next_command(cfg, step, snap)}`')
        return 0


class ChatCLI(_BaseCommand):
    """Send one message to the agent inside the VM and print its reply."""

    message = scfg.Value('', position=1, help='Message for the agent.')

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        cfg = _load_cfg(args.config)
        res = actions.chat(cfg, str(args.message or ''))
        if not res.ok:
            return _report(res)
        print(res.message)
        return 0


class DoctorCLI(_BaseCommand):
    """Check host prerequisites and list missing required tools."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        cls.cli(argv=argv, data=kwargs)
        missing, missing_opt = check_commands()
        if missing:
            print('❌ Missing required commands:', ', '.join(missing))
            print('💡 Install multipass from https://multipass.run')
            return 2
        if missing_opt:
            print('➖ Missing optional commands:', ', '.join(missing_opt))
        print('✅ Required host commands are present.')
        return 0


class DashModalCLI(scfg.ModalCLI):
    """Status dashboard and control panel for a multipass agent VM."""

    status = StatusCLI
    watch = WatchCLI
    next = NextCLI
    chat = ChatCLI
    doctor = DoctorCLI
    config = ConfigModalCLI
    vm = VMModalCLI
    auth = AuthModalCLI
    channels = ChannelsModalCLI


def main(argv: list[str] | None = None) -> None:
    verbosity = 1
    config_value = None
    if argv is None:
        argv = sys.argv[1:]
    argv = _normalize_argv(argv)
    if '--config' in argv:
        try:
            config_value = argv[argv.index('--config') + 1]
        except IndexError:
            pass
    try:
        if config_value is not None or _cfg_path(None).exists():
            verbosity = _load_cfg(config_value).verbosity
    except Exception:
        verbosity = 1

    explicit_verbose = _count_verbose(argv)
    _setup_logging(explicit_verbose, verbosity)

    try:
        rc = DashModalCLI.main(argv=argv, _noexit=True)
    except Exception as ex:
        print(f'ERROR: {ex}', file=sys.stderr)
        log.error('Unhandled vmdash error: {}', ex)
        sys.exit(2)

    if any(flag in argv for flag in ('-h', '--help')):
        sys.exit(0)
    if isinstance(rc, int):
        sys.exit(rc)
    sys.exit(0)


LOG_FORMAT = (
    '<green>{time:HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | '
    '<cyan>{name}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>'
)


def _log_level(verbosity: int) -> str:
    if verbosity >= 2:
        return 'DEBUG'
    if verbosity == 1:
        return 'INFO'
    return 'WARNING'


def _setup_logging(args_verbose: int, cfg_verbosity: int) -> str:
    """Route loguru to stderr; ``-v`` flags override the settings file."""
    logger.remove()
    verbosity = args_verbose if args_verbose > 0 else cfg_verbosity
    level = _log_level(verbosity)
    colorize = sys.stderr.isatty() and os.getenv('NO_COLOR') is None
    logger.add(sys.stderr, level=level, colorize=colorize, format=LOG_FORMAT)
    log.debug('logging level={} verbosity={}', level, verbosity)
    return level


def _normalize_argv(argv: list[str]) -> list[str]:
    """Normalize accepted hyphenated spellings to scriptconfig command names."""
    if not argv:
        return ['status']
    if argv[0] == 'init':
        return ['config', 'init', *argv[1:]]
    if len(argv) >= 2 and argv[0] == 'channels':
        if argv[1] in ('add-user', 'remove-user'):
            return [argv[0], argv[1].replace('-', '_'), *argv[2:]]
    if len(argv) >= 2 and argv[0] == 'vm' and argv[1] == 'unmount':
        return [argv[0], 'umount', *argv[2:]]
    return argv


def _count_verbose(argv: list[str]) -> int:
    count = 0
    for item in argv:
        if item == '--':
            # Everything after is payload, e.g. a chat message.
            break
        if item == '--verbose':
            count += 1
        elif item.startswith('-') and not item.startswith('--'):
            short = item[1:]
            if short and set(short) <= {'v'}:
                count += len(short)
    return count
