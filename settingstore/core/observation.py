"""Per-key-path change observation on top of the generic update signal."""
from __future__ import annotations

import logging
from typing import Callable

from settingstore.core.events import EventBus, SettingsUpdatedEvent
from settingstore.core.key_path import TreeValue, deep_clone, deep_equal, split_key_path
from settingstore.core.settings_store import SettingsStore

logger = logging.getLogger(__name__)

ObserveCallback = Callable[..., None]


class Observation:
    """A callback bound to one key path, with its own last-seen value."""

    def __init__(
        self,
        registry: ObservationRegistry,
        key_path: str,
        callback: ObserveCallback,
        previous: TreeValue,
    ) -> None:
        self._registry = registry
        self.key_path = key_path
        self.callback = callback
        self.previous = previous
        self.active = True

    def cancel(self) -> None:
        """Remove this callback. No further calls happen once this returns."""
        if not self.active:
            return
        self.active = False
        self._registry._discard(self)


class ObservationRegistry:
    """Maps key paths to observations and fires them when values change.

    Subscribes once to SettingsUpdatedEvent. On every update each live
    observation re-resolves its key path and compares against its own cached
    value; callbacks run only for observations whose value actually changed.
    """

    def __init__(self, store: SettingsStore, event_bus: EventBus) -> None:
        self._store = store
        self._observations: dict[str, list[Observation]] = {}
        self._subscription = event_bus.subscribe(SettingsUpdatedEvent, self._on_updated)

    def observe(
        self,
        key_path: str,
        callback: ObserveCallback,
        *,
        call_now: bool = True,
    ) -> Observation:
        """Call *callback* whenever the resolved value at *key_path* changes.

        The callback receives ``(new_value, previous=old_value)`` on change.
        With *call_now* (the default) it is also called once right away with
        just the current value.
        """
        split_key_path(key_path)
        current = self._store.get(key_path)
        observation = Observation(self, key_path, callback, deep_clone(current))
        self._observations.setdefault(key_path, []).append(observation)
        if call_now:
            callback(current)
        return observation

    def unobserve(self, key_path: str) -> None:
        """Remove every callback registered for exactly *key_path*."""
        for observation in self._observations.pop(key_path, []):
            observation.active = False

    def observation_count(self, key_path: str | None = None) -> int:
        if key_path is not None:
            return len(self._observations.get(key_path, []))
        return sum(len(obs) for obs in self._observations.values())

    def close(self) -> None:
        """Detach from the event bus and drop all observations."""
        self._subscription.cancel()
        for key_path in list(self._observations):
            self.unobserve(key_path)

    def _discard(self, observation: Observation) -> None:
        observations = self._observations.get(observation.key_path)
        if not observations or observation not in observations:
            return
        observations.remove(observation)
        if not observations:
            del self._observations[observation.key_path]

    def _on_updated(self, event: SettingsUpdatedEvent) -> None:
        snapshot = [obs for group in self._observations.values() for obs in group]
        for observation in snapshot:
            # A callback earlier in this loop may have cancelled it.
            if not observation.active:
                continue
            value = self._store.get(observation.key_path)
            if deep_equal(value, observation.previous):
                continue
            previous = observation.previous
            observation.previous = deep_clone(value)
            logger.debug("Observed change at %s (%s)", observation.key_path, event.source)
            try:
                observation.callback(value, previous=previous)
            except Exception:
                logger.exception("Observer for %s failed", observation.key_path)
