"""Result dataclasses returned by one-shot operator actions."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ActionResult:
    ok: bool
    message: str
    diag: str = ''


@dataclass(frozen=True)
class FileRead:
    """Outcome of reading a file on the host or inside the VM."""

    ok: bool
    text: str = ''
    error: str = ''

    @property
    def exists(self) -> bool:
        return self.ok and bool(self.text.strip())
