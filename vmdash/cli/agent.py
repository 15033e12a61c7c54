"""CLI commands for provider credentials and messaging channel allowlists."""

from __future__ import annotations

import sys

import scriptconfig as scfg

from .. import actions
from ..allowlist import format_entry
from ..classify import ChannelSnapshot
from ..snapshot import collect_snapshot
from ..status import channel_summary
from ._common import _BaseCommand, _load_cfg, _report


class AuthLoginCLI(_BaseCommand):
    """Log in to an AI provider inside the VM (browser/device-code flow)."""

    provider = scfg.Value('openai', help='One of: openai, anthropic.')

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        cfg = _load_cfg(args.config)
        return _report(actions.login(cfg, args.provider))


class AuthLogoutCLI(_BaseCommand):
    """Remove stored credentials for an AI provider inside the VM."""

    provider = scfg.Value('openai', help='One of: openai, anthropic.')

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        cfg = _load_cfg(args.config)
        return _report(actions.logout(cfg, args.provider))


class AuthModalCLI(scfg.ModalCLI):
    """Provider credential subcommands."""

    login = AuthLoginCLI
    logout = AuthLogoutCLI


class _ChannelCommand(_BaseCommand):
    channel = scfg.Value('discord', help='One of: discord, telegram.')


class ChannelSetupCLI(_ChannelCommand):
    """Run the full interactive setup for a messaging channel."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        cfg = _load_cfg(args.config)
        return _report(actions.channel_setup(cfg, args.channel))


class ChannelUsersCLI(_ChannelCommand):
    """List approved users for a channel, as configured inside the VM."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        cfg = _load_cfg(args.config)
        name = actions.check_channel(cfg, args.channel)
        snap = collect_snapshot(cfg)
        if not snap.running:
            print(f'VM {cfg.vm.name} is not running (state={snap.state}).')
            return 1
        ch = getattr(snap, name, None)
        if not isinstance(ch, ChannelSnapshot):
            print(f'{name}: not tracked by the dashboard')
            return 1
        print(f'{name}: {channel_summary(ch)}')
        if not ch.approved_users:
            print('  (no approved users)')
        for idx, user in enumerate(ch.approved_users):
            print(f'  {idx}. {user.display_name} | id={user.display_id}')
        return 0


class ChannelAddUserCLI(_ChannelCommand):
    """Approve a user on a channel (by numeric ID and optional name)."""

    user_id = scfg.Value('', help='Platform user ID, e.g. 123456789012345678.')
    username = scfg.Value('', help='Optional display name.')

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        cfg = _load_cfg(args.config)
        entry = format_entry(args.user_id, args.username)
        if not entry:
            print('Provide --user_id and/or --username.', file=sys.stderr)
            return 2
        return _report(actions.add_approved_user(cfg, args.channel, entry))


class ChannelRemoveUserCLI(_ChannelCommand):
    """Remove an approved user by its position in the allowlist."""

    index = scfg.Value(
        -1, type=int, help='Index shown by `vmdash channels users`.'
    )

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        cfg = _load_cfg(args.config)
        return _report(
            actions.remove_approved_user(cfg, args.channel, int(args.index))
        )


class ChannelsModalCLI(scfg.ModalCLI):
    """Messaging channel subcommands."""

    setup = ChannelSetupCLI
    users = ChannelUsersCLI
    add_user = ChannelAddUserCLI
    remove_user = ChannelRemoveUserCLI
