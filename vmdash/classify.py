"""Derive provider readiness and channel status from parsed agent config."""

from __future__ import annotations

from dataclasses import dataclass, field

from .agentconfig import AuthCredential, ChannelConfig, ProviderConfig
from .allowlist import ApprovedUser, parse_approved_user

READY = 'ready'
MISSING = 'missing'
OPEN = 'open'
BROKEN = 'broken'
OFF = 'off'


@dataclass(frozen=True)
class ChannelSnapshot:
    status: str = OFF
    enabled: bool = False
    has_token: bool = False
    approved_users: tuple[ApprovedUser, ...] = field(default_factory=tuple)


def _filled(text: str) -> bool:
    return bool((text or '').strip())


def provider_state(
    provider: ProviderConfig, credential: AuthCredential | None = None
) -> str:
    if _filled(provider.api_key):
        return READY
    cred = credential or AuthCredential()
    if _filled(cred.access_token) or _filled(cred.token) or _filled(cred.api_key):
        return READY
    return MISSING


def channel_state(channel: ChannelConfig) -> ChannelSnapshot:
    users = tuple(parse_approved_user(entry) for entry in channel.allow_from)
    has_token = _filled(channel.token)
    if channel.enabled and has_token and users:
        status = READY
    elif channel.enabled and has_token:
        status = OPEN
    elif channel.enabled:
        status = BROKEN
    else:
        status = OFF
    return ChannelSnapshot(
        status=status,
        enabled=channel.enabled,
        has_token=has_token,
        approved_users=users,
    )
