from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from settingstore.core.errors import ConfigIOError, ParseError

logger = logging.getLogger(__name__)


class JsonDocumentStore:
    """Reads and writes a settings tree as a JSON document.

    Writes go to a temp file in the same directory and are moved into place,
    so a watcher never observes a half-written document.
    """

    def read(self, path: Path) -> dict:
        try:
            text = Path(path).read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigIOError(f"Cannot read {path}: {e}", path) from e

        if not text.strip():
            return {}
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ParseError(f"Invalid JSON in {path}: {e}", path) from e
        if not isinstance(data, dict):
            raise ParseError(
                f"Settings root must be an object, got {type(data).__name__}", path,
            )
        return data

    def write(self, path: Path, tree: dict) -> None:
        path = Path(path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=path.parent, prefix=f".{path.name}.", suffix=".tmp",
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(json.dumps(tree, indent=2, ensure_ascii=False) + "\n")
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise ConfigIOError(f"Cannot write {path}: {e}", path) from e
        logger.debug("Wrote settings to %s", path)
