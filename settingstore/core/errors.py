"""Exceptions raised at the settings document boundary."""
from __future__ import annotations

from pathlib import Path


class SettingsError(Exception):
    """Base class for settings store errors."""

    def __init__(self, message: str, path: Path | str | None = None) -> None:
        super().__init__(message)
        self.path = Path(path) if path is not None else None


class ParseError(SettingsError):
    """The persisted settings document is malformed."""


class ConfigIOError(SettingsError):
    """Reading or writing the settings document failed."""
