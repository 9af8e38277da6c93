from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest

from settingstore.core.events import EventBus
from settingstore.core.observation import ObservationRegistry
from settingstore.core.settings_store import SettingsStore
from settingstore.storage.json_document import JsonDocumentStore


class FakeHandle:
    def __init__(self) -> None:
        self.closed = 0

    def close(self) -> None:
        self.closed += 1


class FakeWatcher:
    """WatchPort that records watches and lets tests fire events by hand."""

    def __init__(self) -> None:
        self.watches: list[tuple[Path, Callable[[str], None], FakeHandle]] = []

    def watch(self, path: Path, on_event: Callable[[str], None]) -> FakeHandle:
        handle = FakeHandle()
        self.watches.append((path, on_event, handle))
        return handle

    def fire(self, kind: str = "change") -> None:
        for _, on_event, _ in self.watches:
            on_event(kind)


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    """Provide an isolated data directory for stores."""
    d = tmp_path / "data"
    d.mkdir()
    return d


@pytest.fixture
def config_path(data_dir: Path) -> Path:
    return data_dir / "config.json"


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def store(config_path: Path, event_bus: EventBus) -> SettingsStore:
    return SettingsStore(
        config_path,
        JsonDocumentStore(),
        event_bus,
        default_settings={"editor": {"fontSize": 12, "tabLength": 2}},
    )


@pytest.fixture
def registry(store: SettingsStore, event_bus: EventBus) -> ObservationRegistry:
    return ObservationRegistry(store, event_bus)


@pytest.fixture
def watcher() -> FakeWatcher:
    return FakeWatcher()
