"""Tests for provider and channel classification."""

from __future__ import annotations

import itertools

import pytest

from vmdash.agentconfig import AuthCredential, ChannelConfig, ProviderConfig
from vmdash.classify import (
    BROKEN,
    MISSING,
    OFF,
    OPEN,
    READY,
    channel_state,
    provider_state,
)


def _expected(enabled: bool, has_token: bool, has_users: bool) -> str:
    if not enabled:
        return OFF
    if not has_token:
        return BROKEN
    return READY if has_users else OPEN


@pytest.mark.parametrize(
    'enabled, has_token, has_users',
    list(itertools.product([True, False], repeat=3)),
)
def test_channel_state_table(enabled, has_token, has_users) -> None:
    ch = ChannelConfig(
        enabled=enabled,
        token='tok' if has_token else '',
        allow_from=['123|alice'] if has_users else [],
    )
    snap = channel_state(ch)
    assert snap.status == _expected(enabled, has_token, has_users)
    assert snap.enabled is enabled
    assert snap.has_token is has_token
    assert len(snap.approved_users) == int(has_users)


def test_channel_state_blank_token_is_missing() -> None:
    snap = channel_state(ChannelConfig(enabled=True, token='   '))
    assert snap.status == BROKEN
    assert snap.has_token is False


def test_channel_state_preserves_user_order() -> None:
    ch = ChannelConfig(
        enabled=True, token='t', allow_from=['3|c', '1', 'bob', '']
    )
    users = channel_state(ch).approved_users
    assert [u.raw for u in users] == ['3|c', '1', 'bob', '']
    assert users[1].user_id == '1'
    assert users[2].username == 'bob'


def test_provider_state() -> None:
    assert provider_state(ProviderConfig(api_key='x'), AuthCredential()) == READY
    assert (
        provider_state(ProviderConfig(api_key='x'), AuthCredential(token='y'))
        == READY
    )
    assert provider_state(ProviderConfig(), AuthCredential(token='y')) == READY
    assert (
        provider_state(ProviderConfig(), AuthCredential(access_token='a'))
        == READY
    )
    assert provider_state(ProviderConfig(), AuthCredential(api_key='k')) == READY
    assert provider_state(ProviderConfig(), AuthCredential()) == MISSING
    assert provider_state(ProviderConfig(api_key='  '), None) == MISSING
