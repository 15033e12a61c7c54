"""CLI commands for VM lifecycle, folder mounts, and in-VM shells."""

from __future__ import annotations

from pathlib import Path

import scriptconfig as scfg

from .. import actions
from ..snapshot import collect_snapshot
from ._common import _BaseCommand, _load_cfg, _report


class VMStartCLI(_BaseCommand):
    """Start the VM."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        cfg = _load_cfg(args.config)
        return _report(actions.start_vm(cfg))


class VMStopCLI(_BaseCommand):
    """Stop the VM."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        cfg = _load_cfg(args.config)
        return _report(actions.stop_vm(cfg))


class VMMountCLI(_BaseCommand):
    """Mount a host folder into the VM (defaults to the project folder)."""

    host_src = scfg.Value(
        '',
        position=1,
        help='Host folder to mount (default: host.project_dir or cwd).',
    )
    vm_dst = scfg.Value(
        '', help='Mount point inside the VM (default: vm.project_dir).'
    )

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        cfg = _load_cfg(args.config)
        host_src = str(args.host_src or '').strip()
        if not host_src:
            host_src = actions.default_project_dir(cfg)
        host_src = str(Path(host_src).expanduser().resolve())
        vm_dst = str(args.vm_dst or '').strip() or cfg.vm.project_dir
        snap = collect_snapshot(cfg)
        if actions.project_is_mounted(snap, vm_dst):
            print(f'➖ {vm_dst} is already mounted.')
            return 0
        return _report(actions.mount_folder(cfg, host_src, vm_dst))


class VMUmountCLI(_BaseCommand):
    """Remove a folder mount from the VM."""

    vm_dst = scfg.Value(
        '',
        position=1,
        help='Mount point inside the VM (default: vm.project_dir).',
    )

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        cfg = _load_cfg(args.config)
        vm_dst = str(args.vm_dst or '').strip() or cfg.vm.project_dir
        return _report(actions.unmount_folder(cfg, vm_dst))


class VMShellCLI(_BaseCommand):
    """Open a login shell inside the VM in the project folder."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        cfg = _load_cfg(args.config)
        return _report(actions.open_shell(cfg))


class VMOnboardCLI(_BaseCommand):
    """Run the agent's onboarding flow (config, workspace, service)."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        cfg = _load_cfg(args.config)
        return _report(actions.onboard(cfg))


class _VMSyncCommand(_BaseCommand):
    project_dir = scfg.Value(
        '',
        position=1,
        help='Host project folder (default: host.project_dir, the saved '
        'project path, or cwd).',
    )

    @classmethod
    def _sync(cls, action, argv, kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        cfg = _load_cfg(args.config)
        snap = collect_snapshot(cfg)
        project_dir = str(args.project_dir or '').strip()
        return _report(actions.sync_project(cfg, action, snap, project_dir))


class VMPushCLI(_VMSyncCommand):
    """Copy the host project folder into the VM."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        return cls._sync('push', argv, kwargs)


class VMPullCLI(_VMSyncCommand):
    """Copy the VM project folder back to the host."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        return cls._sync('pull', argv, kwargs)


class VMModalCLI(scfg.ModalCLI):
    """VM lifecycle and folder subcommands."""

    start = VMStartCLI
    stop = VMStopCLI
    mount = VMMountCLI
    umount = VMUmountCLI
    shell = VMShellCLI
    onboard = VMOnboardCLI
    push = VMPushCLI
    pull = VMPullCLI
