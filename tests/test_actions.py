"""Tests for operator actions: command construction and allowlist scripts."""

from __future__ import annotations

import json
import stat
import sys

import pytest

from vmdash import actions
from vmdash.config import DashConfig
from vmdash.errors import MultipassNotFoundError, UnknownTargetError
from vmdash.multipass import MountInfo
from vmdash.snapshot import VMSnapshot
from vmdash.util import CmdResult, run_cmd, shell_quote


@pytest.fixture
def recorded(monkeypatch):
    calls = []

    def fake_run_cmd(cmd, **kwargs):
        calls.append((cmd, kwargs))
        return CmdResult(0, '', '')

    monkeypatch.setattr('vmdash.actions.require_multipass', lambda: 'multipass')
    monkeypatch.setattr('vmdash.actions.run_cmd', fake_run_cmd)
    return calls


@pytest.fixture
def scripts(monkeypatch):
    calls = []

    def fake_exec_shell(cfg, script, *, timeout):
        calls.append((script, timeout))
        return CmdResult(0, 'ok\n', '')

    monkeypatch.setattr('vmdash.actions.require_multipass', lambda: 'multipass')
    monkeypatch.setattr('vmdash.actions.vm_exec_shell', fake_exec_shell)
    return calls


def test_lifecycle_commands(recorded) -> None:
    cfg = DashConfig()
    assert actions.start_vm(cfg).ok
    assert actions.stop_vm(cfg).ok
    assert recorded[0][0] == ['multipass', 'start', 'sciclaw']
    assert recorded[1][0] == ['multipass', 'stop', 'sciclaw']
    assert recorded[0][1]['timeout'] == cfg.timeouts.lifecycle


def test_mount_commands(recorded) -> None:
    cfg = DashConfig()
    res = actions.mount_folder(cfg, '/Users/me/proj', '/home/ubuntu/project')
    assert res.ok
    assert recorded[0][0] == [
        'multipass',
        'mount',
        '-t',
        'classic',
        '/Users/me/proj',
        'sciclaw:/home/ubuntu/project',
    ]
    assert recorded[0][1]['timeout'] == 30
    actions.unmount_folder(cfg, '/home/ubuntu/project')
    assert recorded[1][0] == ['multipass', 'umount', 'sciclaw:/home/ubuntu/project']


def test_interactive_flows_inherit_terminal(recorded) -> None:
    cfg = DashConfig()
    actions.login(cfg, 'OpenAI')
    actions.channel_setup(cfg, 'telegram')
    actions.onboard(cfg)
    prefix = ['multipass', 'exec', 'sciclaw', '--', 'env', 'HOME=/home/ubuntu']
    assert recorded[0][0] == prefix + [
        'sciclaw',
        'auth',
        'login',
        '--provider',
        'openai',
    ]
    assert recorded[1][0] == prefix + ['sciclaw', 'channels', 'setup', 'telegram']
    assert recorded[2][0] == prefix + ['sciclaw', 'onboard']
    assert all(kw['capture'] is False for _, kw in recorded)


def test_open_shell_changes_to_project(recorded) -> None:
    actions.open_shell(DashConfig())
    cmd = recorded[0][0]
    assert cmd[:4] == ['multipass', 'exec', 'sciclaw', '--']
    assert 'cd /home/ubuntu/project' in cmd[-1]


def test_unknown_targets_raise(recorded) -> None:
    cfg = DashConfig()
    with pytest.raises(UnknownTargetError):
        actions.login(cfg, 'gemini')
    with pytest.raises(UnknownTargetError):
        actions.add_approved_user(cfg, 'slack', '1')
    assert recorded == []


def test_missing_multipass_raises(monkeypatch) -> None:
    def missing():
        raise MultipassNotFoundError('multipass is not installed')

    monkeypatch.setattr('vmdash.actions.require_multipass', missing)
    with pytest.raises(MultipassNotFoundError):
        actions.start_vm(DashConfig())


def test_failure_message_reports_reason(monkeypatch) -> None:
    monkeypatch.setattr('vmdash.actions.require_multipass', lambda: 'multipass')
    monkeypatch.setattr(
        'vmdash.actions.run_cmd',
        lambda *a, **k: CmdResult(124, '', '', timed_out=True),
    )
    res = actions.stop_vm(DashConfig())
    assert not res.ok
    assert res.message == 'Stop failed (timed out)'

    monkeypatch.setattr(
        'vmdash.actions.run_cmd',
        lambda *a, **k: CmdResult(1, '', 'launch failed\nmount: no such dir\n'),
    )
    res = actions.mount_folder(DashConfig(), '/nope', '/home/ubuntu/project')
    assert not res.ok
    assert res.message == 'Mount failed (code=1): mount: no such dir'
    assert 'launch failed' in res.diag


def test_logout_runs_in_vm(scripts) -> None:
    res = actions.logout(DashConfig(), 'anthropic')
    assert res.ok
    script, timeout = scripts[0]
    assert script == 'HOME=/home/ubuntu sciclaw auth logout --provider anthropic'
    assert timeout == 5


def test_add_user_script_contents() -> None:
    cfg = DashConfig()
    script = actions.add_user_script(cfg, 'discord', "42|o'brien")
    assert 'fcntl.flock' in script
    assert 'os.replace(tmp, path)' in script
    assert repr(cfg.agent.config_path) in script
    assert "'discord'" in script
    assert '42|o' in script
    compile(script, '<add-user>', 'exec')


def test_remove_user_script_contents() -> None:
    script = actions.remove_user_script(DashConfig(), 'telegram', 3)
    assert 'af.pop(3)' in script
    assert "'telegram'" in script
    compile(script, '<remove-user>', 'exec')


def test_add_approved_user(scripts) -> None:
    res = actions.add_approved_user(DashConfig(), 'discord', ' 42|alice ')
    assert res.ok
    script, timeout = scripts[0]
    assert script.startswith('python3 -c ')
    assert '42|alice' in script
    assert timeout == 5


def test_add_blank_user_is_rejected(scripts) -> None:
    res = actions.add_approved_user(DashConfig(), 'discord', '   ')
    assert not res.ok
    assert scripts == []


def test_remove_approved_user(scripts) -> None:
    assert actions.remove_approved_user(DashConfig(), 'telegram', 0).ok
    assert 'af.pop(0)' in scripts[0][0]
    res = actions.remove_approved_user(DashConfig(), 'telegram', -1)
    assert not res.ok
    assert len(scripts) == 1


def test_project_is_mounted() -> None:
    snap = VMSnapshot(mounts=(MountInfo('/h', '/home/ubuntu/project'),))
    assert actions.project_is_mounted(snap, '/home/ubuntu/project')
    assert not actions.project_is_mounted(snap, '/home/ubuntu/other')
    assert not actions.project_is_mounted(VMSnapshot(), '/home/ubuntu/project')


def _config_file(tmp_path, allow_from, mode=0o640):
    fpath = tmp_path / 'config.json'
    doc = {'channels': {'discord': {'enabled': True, 'allow_from': allow_from}}}
    fpath.write_text(json.dumps(doc), encoding='utf-8')
    fpath.chmod(mode)
    cfg = DashConfig()
    cfg.agent.config_path = str(fpath)
    return cfg, fpath


def _run_script(script):
    return run_cmd([sys.executable, '-c', script], check=False)


def test_remove_script_rejects_out_of_range_index(tmp_path) -> None:
    cfg, fpath = _config_file(tmp_path, ['1|a'])
    before = fpath.read_text(encoding='utf-8')
    res = _run_script(actions.remove_user_script(cfg, 'discord', 5))
    assert not res.ok
    assert 'index 5 out of range' in res.stderr
    assert 'ok' not in res.stdout
    assert fpath.read_text(encoding='utf-8') == before

    res = _run_script(actions.remove_user_script(cfg, 'telegram', 0))
    assert not res.ok
    assert fpath.read_text(encoding='utf-8') == before


def test_remove_script_pops_entry_and_keeps_mode(tmp_path) -> None:
    cfg, fpath = _config_file(tmp_path, ['1|a', '2|b'])
    res = _run_script(actions.remove_user_script(cfg, 'discord', 0))
    assert res.ok
    doc = json.loads(fpath.read_text(encoding='utf-8'))
    assert doc['channels']['discord']['allow_from'] == ['2|b']
    assert stat.S_IMODE(fpath.stat().st_mode) == 0o640


def test_add_script_appends_once_and_keeps_mode(tmp_path) -> None:
    cfg, fpath = _config_file(tmp_path, '1|a', mode=0o644)
    script = actions.add_user_script(cfg, 'discord', "42|o'brien")
    assert _run_script(script).ok
    assert _run_script(script).ok
    doc = json.loads(fpath.read_text(encoding='utf-8'))
    assert doc['channels']['discord']['allow_from'] == ['1|a', "42|o'brien"]
    assert stat.S_IMODE(fpath.stat().st_mode) == 0o644


def test_remove_failure_is_reported(monkeypatch) -> None:
    monkeypatch.setattr('vmdash.actions.require_multipass', lambda: 'multipass')
    monkeypatch.setattr(
        'vmdash.actions.vm_exec_shell',
        lambda cfg, script, *, timeout: CmdResult(
            1, '', "index 5 out of range for 'discord'\n"
        ),
    )
    res = actions.remove_approved_user(DashConfig(), 'discord', 5)
    assert not res.ok
    assert 'out of range' in res.message


def test_check_channel() -> None:
    assert actions.check_channel(DashConfig(), ' Discord ') == 'discord'
    with pytest.raises(UnknownTargetError):
        actions.check_channel(DashConfig(), 'slack')


def _sync_env(monkeypatch, tmp_path):
    script = tmp_path / 'deploy' / 'vm'
    script.parent.mkdir()
    script.write_text('#!/bin/bash\n', encoding='utf-8')
    cfg = DashConfig()
    cfg.host.sync_script = str(script)
    cfg.host.project_dir = str(tmp_path / 'proj')
    return cfg, script


def test_push_and_pull_run_deploy_script(
    recorded, monkeypatch, tmp_path
) -> None:
    cfg, script = _sync_env(monkeypatch, tmp_path)
    assert actions.push_project(cfg, VMSnapshot()).ok
    assert actions.pull_project(cfg, VMSnapshot(), '/elsewhere').ok
    assert recorded[0][0] == ['bash', str(script), 'push', cfg.host.project_dir]
    assert recorded[1][0] == ['bash', str(script), 'pull', '/elsewhere']
    assert recorded[0][1]['capture'] is False


def test_sync_refused_while_project_mounted(
    recorded, monkeypatch, tmp_path
) -> None:
    cfg, _ = _sync_env(monkeypatch, tmp_path)
    snap = VMSnapshot(mounts=(MountInfo('/h', cfg.vm.project_dir),))
    res = actions.push_project(cfg, snap)
    assert not res.ok
    assert 'mounted' in res.message
    assert recorded == []


def test_sync_without_script_fails(recorded, monkeypatch, tmp_path) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr('vmdash.actions.sys.prefix', str(tmp_path / 'prefix'))
    res = actions.pull_project(DashConfig(), VMSnapshot())
    assert not res.ok
    assert res.message == 'Could not find deploy/vm script.'
    assert recorded == []


def test_sync_script_lookup_order(monkeypatch, tmp_path) -> None:
    monkeypatch.chdir(tmp_path)
    prefix = tmp_path / 'prefix'
    monkeypatch.setattr('vmdash.actions.sys.prefix', str(prefix))
    shared = prefix / 'share' / 'picoclaw' / 'deploy' / 'vm'
    shared.parent.mkdir(parents=True)
    shared.write_text('', encoding='utf-8')
    assert actions.sync_script_path(DashConfig()) == str(shared)
    local = tmp_path / 'deploy' / 'vm'
    local.parent.mkdir()
    local.write_text('', encoding='utf-8')
    assert actions.sync_script_path(DashConfig()) == str(local)


def test_default_project_dir(monkeypatch, tmp_path) -> None:
    cfg = DashConfig()
    state = tmp_path / 'vm-project-path'
    monkeypatch.setattr('vmdash.actions.PROJECT_STATE_FILE', str(state))
    monkeypatch.chdir(tmp_path)
    assert actions.default_project_dir(cfg) == str(tmp_path)
    state.write_text('  /work/proj\n', encoding='utf-8')
    assert actions.default_project_dir(cfg) == '/work/proj'
    cfg.host.project_dir = '/configured'
    assert actions.default_project_dir(cfg) == '/configured'


def test_chat_sends_message(monkeypatch) -> None:
    calls = []

    def fake_exec_shell(cfg, script, *, timeout):
        calls.append((script, timeout))
        return CmdResult(0, '🔬 Hi! How can I help?\n', '')

    monkeypatch.setattr('vmdash.actions.require_multipass', lambda: 'multipass')
    monkeypatch.setattr('vmdash.actions.vm_exec_shell', fake_exec_shell)
    res = actions.chat(DashConfig(), " what's up? ")
    assert res.ok
    assert res.message == 'Hi! How can I help?'
    script, timeout = calls[0]
    assert timeout == 120
    assert script.startswith('HOME=/home/ubuntu sciclaw agent -m ')
    assert shell_quote("what's up?") in script
    assert '-s vmdash:chat' in script


def test_chat_blank_and_failure(monkeypatch) -> None:
    monkeypatch.setattr('vmdash.actions.require_multipass', lambda: 'multipass')
    monkeypatch.setattr(
        'vmdash.actions.vm_exec_shell',
        lambda cfg, script, *, timeout: CmdResult(124, '', '', timed_out=True),
    )
    assert not actions.chat(DashConfig(), '  ').ok
    res = actions.chat(DashConfig(), 'hello')
    assert not res.ok
    assert res.message == 'Agent error (timed out)'


def test_clean_reply() -> None:
    assert actions.clean_reply('🔬Done.') == 'Done.'
    assert actions.clean_reply('plain') == 'plain'
    assert actions.clean_reply('') == '(no response)'
