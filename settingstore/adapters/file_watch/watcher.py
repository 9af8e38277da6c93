"""watchdog-backed WatchPort.

watchdog delivers events on its observer thread. They are handed to the
asyncio loop with ``call_soon_threadsafe`` so the settings core only ever
runs on the loop thread.
"""
from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import Callable

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

logger = logging.getLogger(__name__)

# watchdog event_type -> WatchPort kind
_KINDS = {
    "modified": "change",
    "created": "change",
    "moved": "change",
    "deleted": "delete",
}


def _event_kind(event: FileSystemEvent, target: str) -> str | None:
    """Map a directory event to a kind for *target*, or None if unrelated."""
    if event.is_directory:
        return None
    src = os.path.abspath(os.fsdecode(event.src_path))
    dest = getattr(event, "dest_path", "") or ""
    dest = os.path.abspath(os.fsdecode(dest)) if dest else ""
    if event.event_type == "moved":
        if dest == target:
            return "change"
        if src == target:
            return "delete"
        return None
    if src != target:
        return None
    return _KINDS.get(event.event_type)


class _FileEventHandler(FileSystemEventHandler):
    def __init__(self, handle: WatchdogHandle) -> None:
        super().__init__()
        self._handle = handle

    def on_any_event(self, event: FileSystemEvent) -> None:
        kind = _event_kind(event, self._handle.target)
        if kind is not None:
            self._handle.deliver_threadsafe(kind)


class WatchdogHandle:
    """One watched file. close() unschedules it from the observer."""

    def __init__(
        self,
        watcher: WatchdogWatcher,
        target: str,
        on_event: Callable[[str], None],
        loop: asyncio.AbstractEventLoop,
    ) -> None:
        self._watcher = watcher
        self.target = target
        self._on_event = on_event
        self._loop = loop
        self._watch = None
        self.closed = False

    def deliver_threadsafe(self, kind: str) -> None:
        if self.closed or self._loop.is_closed():
            return
        self._loop.call_soon_threadsafe(self._deliver, kind)

    def _deliver(self, kind: str) -> None:
        # Re-checked on the loop thread: close() may have run since queueing.
        if self.closed:
            return
        logger.debug("File event %s for %s", kind, self.target)
        self._on_event(kind)

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._watcher._unschedule(self)


class WatchdogWatcher:
    """WatchPort implementation over a single shared watchdog Observer."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop
        self._observer: Observer | None = None

    def watch(self, path: Path, on_event: Callable[[str], None]) -> WatchdogHandle:
        loop = self._loop or asyncio.get_running_loop()
        target = os.path.abspath(path)
        handle = WatchdogHandle(self, target, on_event, loop)
        if self._observer is None:
            self._observer = Observer()
            self._observer.daemon = True
            self._observer.start()
        handle._watch = self._observer.schedule(
            _FileEventHandler(handle), os.path.dirname(target), recursive=False,
        )
        logger.info("Watching %s", target)
        return handle

    def _unschedule(self, handle: WatchdogHandle) -> None:
        if self._observer is None or handle._watch is None:
            return
        try:
            self._observer.unschedule(handle._watch)
        except KeyError:
            logger.debug("Watch for %s already removed", handle.target)
        handle._watch = None

    def stop(self) -> None:
        """Stop the observer thread."""
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join(timeout=2.0)
        self._observer = None
        logger.debug("Watchdog observer stopped")
