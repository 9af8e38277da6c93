"""ReloadCoordinator — loads the settings document and reloads it on change."""
from __future__ import annotations

import logging

from settingstore.core.errors import ConfigIOError, ParseError
from settingstore.core.events import ConfigLoadFailedEvent
from settingstore.core.settings_store import SettingsStore
from settingstore.ports.persistence import PersistencePort
from settingstore.ports.watch import WatchHandle, WatchPort

logger = logging.getLogger(__name__)


class ReloadCoordinator:
    """Owns the watch on the user config file.

    Writes made by the store itself also trigger a watch event; the reload
    that follows reads back identical content, so observers see no change
    and nothing is written again.
    """

    def __init__(
        self,
        store: SettingsStore,
        persistence: PersistencePort,
        watcher: WatchPort,
    ) -> None:
        self._store = store
        self._persistence = persistence
        self._watcher = watcher
        self._watch_handle: WatchHandle | None = None

    @property
    def is_watching(self) -> bool:
        return self._watch_handle is not None

    def load(self) -> None:
        """Load the user config, then start watching it."""
        self.load_user_config()
        self.observe_user_config()

    def load_user_config(self) -> None:
        """Read the document into the store's user tree.

        A parse failure marks the store as having errors and keeps the
        last good tree; it is logged and published, never raised.
        ConfigIOError propagates.
        """
        path = self._store.config_file_path
        if not path.exists():
            logger.info("Creating empty settings file at %s", path)
            self._persistence.write(path, {})

        try:
            tree = self._persistence.read(path)
        except ParseError as e:
            self._store.has_errors = True
            logger.warning("Failed to load %s: %s", path, e)
            self._store.event_bus.publish(ConfigLoadFailedEvent(path=path, message=str(e)))
            return

        self._store.load_user_settings(tree)
        logger.info("Loaded user settings from %s", path)

    def observe_user_config(self) -> None:
        """Start reloading on external changes. No-op if already watching."""
        if self._watch_handle is not None:
            return
        self._watch_handle = self._watcher.watch(
            self._store.config_file_path, self._on_file_event,
        )
        logger.debug("Watching %s", self._store.config_file_path)

    def unobserve_user_config(self) -> None:
        """Stop watching. Safe to call more than once."""
        handle = self._watch_handle
        # Cleared before closing so an event already queued sees no handle.
        self._watch_handle = None
        if handle is not None:
            handle.close()
            logger.debug("Stopped watching %s", self._store.config_file_path)

    def _on_file_event(self, kind: str) -> None:
        if kind != "change" or self._watch_handle is None:
            return
        try:
            self.load_user_config()
        except ConfigIOError:
            logger.warning(
                "Reload of %s failed", self._store.config_file_path, exc_info=True,
            )
