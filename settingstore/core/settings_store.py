"""SettingsStore — user settings layered over defaults, addressed by key path."""
from __future__ import annotations

import logging
import math
import re
from pathlib import Path

from settingstore.core.errors import ConfigIOError
from settingstore.core.events import EventBus, SettingsUpdatedEvent
from settingstore.core.key_path import (
    ABSENT,
    TreeValue,
    deep_clone,
    deep_equal,
    deep_merge,
    set_value_at,
    split_key_path,
    value_at,
)
from settingstore.ports.persistence import PersistencePort

logger = logging.getLogger(__name__)

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def _parse_int(value: object) -> int | float:
    """Parse the leading base-10 integer of *value*; ``nan`` if there is none."""
    if value is None or isinstance(value, (bool, dict, list)):
        return math.nan
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return math.nan
        return int(value)
    match = _LEADING_INT.match(str(value))
    if match is None:
        return math.nan
    return int(match.group(1))


class SettingsStore:
    """Owns the default and user settings trees.

    Reads resolve the user tree first and fall back to defaults. Every
    effective write persists the user tree and publishes a
    SettingsUpdatedEvent on the event bus.
    """

    def __init__(
        self,
        config_file_path: Path,
        persistence: PersistencePort,
        event_bus: EventBus,
        default_settings: dict | None = None,
    ) -> None:
        self._config_file_path = Path(config_file_path)
        self._persistence = persistence
        self._event_bus = event_bus
        self._default_settings: dict = deep_clone(default_settings or {})
        self._user_settings: dict = {}
        # Set while the document on disk fails to parse; suspends writes.
        self.has_errors = False

    @property
    def config_file_path(self) -> Path:
        return self._config_file_path

    @property
    def event_bus(self) -> EventBus:
        return self._event_bus

    # -- Reads --------------------------------------------------------------

    def _resolve(self, key_path: str) -> TreeValue:
        value = value_at(self._user_settings, key_path)
        if value is ABSENT or value is None:
            value = value_at(self._default_settings, key_path)
        return value

    def get(self, key_path: str) -> TreeValue:
        """Return a copy of the resolved value at *key_path*, or None."""
        value = self._resolve(key_path)
        if value is ABSENT:
            return None
        return deep_clone(value)

    def get_int(self, key_path: str) -> int | float:
        """Return the value as an integer, or ``math.nan`` if it isn't one."""
        return _parse_int(self.get(key_path))

    def get_positive_int(self, key_path: str, fallback: int) -> int:
        """Return the value as a positive integer, else *fallback*."""
        value = max(self.get_int(key_path), 0)
        if math.isnan(value) or value == 0:
            return fallback
        return value

    def get_default(self, key_path: str) -> TreeValue:
        """Return a copy of the default value at *key_path*, or None."""
        value = value_at(self._default_settings, key_path)
        if value is ABSENT:
            return None
        return deep_clone(value)

    def is_default(self, key_path: str) -> bool:
        """True when no user override is stored at *key_path*."""
        value = value_at(self._user_settings, key_path)
        return value is ABSENT or value is None

    def get_settings(self) -> dict:
        """Return defaults combined with user settings (user values win)."""
        return deep_merge(self._default_settings, self._user_settings)

    def default_settings(self) -> dict:
        return deep_clone(self._default_settings)

    def user_settings(self) -> dict:
        """Return a copy of the user tree as it would be persisted."""
        return deep_clone(self._user_settings)

    # -- Writes -------------------------------------------------------------

    def set(self, key_path: str, value: TreeValue) -> TreeValue:
        """Store *value* at *key_path* and return it.

        Unchanged values are a no-op. None, or a value equal to the default,
        removes the user override so later default changes are inherited.
        If saving fails the write is rolled back and ConfigIOError is raised.
        """
        if deep_equal(self.get(key_path), value):
            return value

        stored = deep_clone(value)
        default = value_at(self._default_settings, key_path)
        if value is None or (default is not ABSENT and deep_equal(default, value)):
            stored = ABSENT
        if stored is ABSENT and self.is_default(key_path):
            return value
        self._write(key_path, stored)
        return value

    def toggle(self, key_path: str) -> bool:
        return self.set(key_path, not self.get(key_path))

    def restore_default(self, key_path: str) -> None:
        """Drop the user override at *key_path*."""
        if self.is_default(key_path):
            return
        self._write(key_path, ABSENT)

    def _write(self, key_path: str, stored: TreeValue) -> None:
        """Apply one user-tree write; rolled back if it cannot be saved."""
        snapshot = deep_clone(self._user_settings)
        set_value_at(self._user_settings, key_path, stored)
        try:
            self.update(source="set")
        except ConfigIOError:
            self._user_settings = snapshot
            raise

    def push_at_key_path(self, key_path: str, value: TreeValue) -> int:
        """Append *value* to the list at *key_path*. Returns the new length."""
        array = self._array_at(key_path)
        array.append(value)
        self.set(key_path, array)
        return len(array)

    def unshift_at_key_path(self, key_path: str, value: TreeValue) -> int:
        """Prepend *value* to the list at *key_path*. Returns the new length."""
        array = self._array_at(key_path)
        array.insert(0, value)
        self.set(key_path, array)
        return len(array)

    def remove_at_key_path(self, key_path: str, value: TreeValue) -> list:
        """Remove the first element equal to *value*. Returns the new list."""
        array = self._array_at(key_path)
        for index, item in enumerate(array):
            if deep_equal(item, value):
                del array[index]
                break
        self.set(key_path, array)
        return array

    def _array_at(self, key_path: str) -> list:
        current = self.get(key_path)
        if current is None:
            return []
        if not isinstance(current, list):
            raise TypeError(
                f"Value at {key_path!r} is {type(current).__name__}, not a list"
            )
        return current

    def set_defaults(self, key_path: str | None, defaults: dict) -> None:
        """Deep-merge *defaults* into the default tree at *key_path*.

        Existing defaults not named in *defaults* are kept. An empty
        *key_path* merges at the root.
        """
        node = self._default_settings
        for segment in split_key_path(key_path) if key_path else []:
            child = node.get(segment)
            if not isinstance(child, dict):
                child = {}
                node[segment] = child
            node = child
        merged = deep_merge(node, defaults)
        node.clear()
        node.update(merged)
        self.update(source="defaults")

    def load_user_settings(self, tree: dict) -> None:
        """Replace the user tree with a freshly loaded document.

        Clears ``has_errors`` and publishes without persisting, so loading
        never writes back to the file it just read.
        """
        self._user_settings = deep_clone(tree)
        self.has_errors = False
        self._event_bus.publish(SettingsUpdatedEvent(source="reload"))

    def update(self, source: str = "set") -> None:
        """Persist the user tree and notify subscribers.

        Suspended while the document on disk has errors, so the in-memory
        tree never overwrites a file the user is still fixing.
        """
        if self.has_errors:
            logger.debug("Skipping update; %s has errors", self._config_file_path)
            return
        self.save()
        self._event_bus.publish(SettingsUpdatedEvent(source=source))

    def save(self) -> None:
        self._persistence.write(self._config_file_path, self._user_settings)
