from __future__ import annotations

from pathlib import Path
from typing import Protocol


class PersistencePort(Protocol):
    """Reads and writes the on-disk settings document.

    The settings core depends only on this interface. Implementations must
    round-trip nested mappings, lists, strings, numbers and booleans.
    """

    def read(self, path: Path) -> dict:
        """Return the document at *path*.

        Raises ParseError if the content is malformed, ConfigIOError if the
        file cannot be read.
        """
        ...

    def write(self, path: Path, tree: dict) -> None:
        """Persist *tree* to *path*. Raises ConfigIOError on failure."""
        ...
