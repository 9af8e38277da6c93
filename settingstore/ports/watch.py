from __future__ import annotations

from pathlib import Path
from typing import Callable, Protocol


class WatchHandle(Protocol):
    """An active file watch."""

    def close(self) -> None:
        """Stop delivering events. Safe to call more than once."""
        ...


class WatchPort(Protocol):
    """File-change notification interface.

    ``on_event`` receives an event kind: ``"change"`` when the file was
    written, created or moved into place, ``"delete"`` when it was removed.
    Callbacks are delivered on the asyncio loop thread.
    """

    def watch(self, path: Path, on_event: Callable[[str], None]) -> WatchHandle:
        """Start watching *path*."""
        ...
