"""Permissive models for the agent's config.json and auth.json documents."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

log = logger


@dataclass
class ProviderConfig:
    api_key: str = ''
    auth_method: str = ''


@dataclass
class ChannelConfig:
    enabled: bool = False
    token: str = ''
    proxy: str = ''
    allow_from: list[str] = field(default_factory=list)


@dataclass
class AgentConfig:
    workspace: str = ''
    providers: dict[str, ProviderConfig] = field(default_factory=dict)
    channels: dict[str, ChannelConfig] = field(default_factory=dict)

    def provider(self, name: str) -> ProviderConfig:
        return self.providers.get(name) or ProviderConfig()

    def channel(self, name: str) -> ChannelConfig:
        return self.channels.get(name) or ChannelConfig()


@dataclass
class AuthCredential:
    access_token: str = ''
    token: str = ''
    api_key: str = ''


@dataclass
class AuthStore:
    credentials: dict[str, AuthCredential] = field(default_factory=dict)

    def credential(self, name: str) -> AuthCredential:
        return self.credentials.get(name) or AuthCredential()


def flex_string_list(value: Any) -> list[str]:
    """
    Normalize a field that may hold one string or a list of strings.

    Example:
        >>> flex_string_list(['1', '2|bob'])
        ['1', '2|bob']
        >>> flex_string_list('42')
        ['42']
        >>> flex_string_list('')
        []
        >>> flex_string_list(None)
        []
    """
    if isinstance(value, list):
        return [str(item) for item in value if isinstance(item, str)]
    if isinstance(value, str):
        return [value] if value else []
    return []


def _section(raw: Any, key: str) -> dict:
    body = raw.get(key, None) if isinstance(raw, dict) else None
    return body if isinstance(body, dict) else {}


def _str(body: dict, key: str) -> str:
    val = body.get(key, '')
    return val if isinstance(val, str) else ''


def _loads(text: str, what: str) -> dict:
    try:
        raw = json.loads(text)
    except (json.JSONDecodeError, TypeError) as ex:
        log.warning('degraded field={} reason=malformed json: {}', what, ex)
        return {}
    if not isinstance(raw, dict):
        log.warning(
            'degraded field={} reason=expected object, got {}',
            what,
            type(raw).__name__,
        )
        return {}
    return raw


def _provider_from_dict(body: dict) -> ProviderConfig:
    return ProviderConfig(
        api_key=_str(body, 'api_key'),
        auth_method=_str(body, 'auth_method'),
    )


def _channel_from_dict(body: dict) -> ChannelConfig:
    return ChannelConfig(
        enabled=body.get('enabled', False) is True,
        token=_str(body, 'token'),
        proxy=_str(body, 'proxy'),
        allow_from=flex_string_list(body.get('allow_from', None)),
    )


def parse_agent_config(text: str, *, what: str = 'config') -> AgentConfig:
    raw = _loads(text, what)
    defaults = _section(_section(raw, 'agents'), 'defaults')
    providers = {
        name: _provider_from_dict(body)
        for name, body in _section(raw, 'providers').items()
        if isinstance(body, dict)
    }
    channels = {
        name: _channel_from_dict(body)
        for name, body in _section(raw, 'channels').items()
        if isinstance(body, dict)
    }
    return AgentConfig(
        workspace=_str(defaults, 'workspace'),
        providers=providers,
        channels=channels,
    )


def parse_auth_store(text: str) -> AuthStore:
    raw = _loads(text, 'auth')
    creds: dict[str, AuthCredential] = {}
    for name, body in _section(raw, 'credentials').items():
        if not isinstance(body, dict):
            continue
        creds[name] = AuthCredential(
            access_token=_str(body, 'access_token'),
            token=_str(body, 'token'),
            api_key=_str(body, 'api_key'),
        )
    return AuthStore(credentials=creds)
