"""Parsing and formatting of channel allowlist ("approved user") entries."""

from __future__ import annotations

import re
from dataclasses import dataclass

SEP = '|'


@dataclass(frozen=True)
class ApprovedUser:
    raw: str
    user_id: str = ''
    username: str = ''

    @property
    def display_name(self) -> str:
        if self.username:
            return self.username
        if self.user_id:
            return '(no name)'
        return '(empty)'

    @property
    def display_id(self) -> str:
        return self.user_id or '(no ID)'


_INT_RE = re.compile(r'[+-]?[0-9]+')
INT64_MAX = 2**63 - 1


def _is_int(text: str) -> bool:
    """True for plain ASCII decimal integers that fit in a signed 64-bit int."""
    if not _INT_RE.fullmatch(text):
        return False
    return -INT64_MAX - 1 <= int(text) <= INT64_MAX


def parse_approved_user(raw: str) -> ApprovedUser:
    """
    Parse one allowlist entry.

    Accepted shapes are ``"123"``, ``"123|alice"`` and ``"alice"``. A blank
    entry is kept as a degenerate user with neither field set.

    Example:
        >>> parse_approved_user('123|alice')
        ApprovedUser(raw='123|alice', user_id='123', username='alice')
        >>> parse_approved_user(' 987654321 ').user_id
        '987654321'
        >>> parse_approved_user('alice').username
        'alice'
    """
    raw = (raw or '').strip()
    if not raw:
        return ApprovedUser(raw=raw)
    idx = raw.find(SEP)
    if idx > 0:
        return ApprovedUser(raw=raw, user_id=raw[:idx], username=raw[idx + 1:])
    if _is_int(raw):
        return ApprovedUser(raw=raw, user_id=raw)
    return ApprovedUser(raw=raw, username=raw)


def format_entry(user_id: str, username: str) -> str:
    """Build the ``id|name`` string that is written back to the allowlist."""
    user_id = (user_id or '').strip()
    username = (username or '').strip()
    if user_id and username:
        return f'{user_id}{SEP}{username}'
    if user_id:
        return user_id
    return username
