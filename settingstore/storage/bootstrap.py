"""First-run config directory bootstrap.

Mirrors a template directory into the config directory. Files are copied
concurrently as asyncio tasks, bounded by a semaphore, into a staging
directory next to the destination; the staging directory is moved into place
only once every copy has succeeded. A failed bootstrap leaves no config
directory behind, so the next start tries again.
"""
from __future__ import annotations

import asyncio
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Callable

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENCY = 8


async def initialize_config_directory(
    template_dir: Path | None,
    config_dir: Path,
    *,
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    on_complete: Callable[[list[Path]], None] | None = None,
) -> list[Path]:
    """Create *config_dir* from *template_dir* if it does not exist yet.

    Returns the destination paths of the copied files. An existing config
    directory is left untouched and nothing is copied. If any copy fails the
    error is raised after all started copies have finished, and
    *config_dir* is not created.
    """
    if max_concurrency < 1:
        raise ValueError("max_concurrency must be at least 1")

    config_dir = Path(config_dir)
    if config_dir.exists():
        logger.debug("Config directory already exists: %s", config_dir)
        copied: list[Path] = []
        if on_complete is not None:
            on_complete(copied)
        return copied

    if template_dir is None or not Path(template_dir).is_dir():
        config_dir.mkdir(parents=True)
        logger.info("Created empty config directory %s", config_dir)
        copied = []
        if on_complete is not None:
            on_complete(copied)
        return copied

    template_dir = Path(template_dir)
    config_dir.parent.mkdir(parents=True, exist_ok=True)
    staging = Path(tempfile.mkdtemp(dir=config_dir.parent, prefix=f".{config_dir.name}."))
    try:
        relative = await _mirror(template_dir, staging, max_concurrency)
        os.replace(staging, config_dir)
    except BaseException:
        shutil.rmtree(staging, ignore_errors=True)
        raise

    copied = [config_dir / rel for rel in relative]
    logger.info(
        "Initialized %s from %s (%d files)", config_dir, template_dir, len(copied),
    )
    if on_complete is not None:
        on_complete(copied)
    return copied


async def _mirror(template_dir: Path, dest: Path, max_concurrency: int) -> list[Path]:
    """Copy the template tree into *dest*. Returns the copied relative paths."""
    semaphore = asyncio.Semaphore(max_concurrency)
    failed = asyncio.Event()

    async def copy_one(rel: Path) -> Path:
        async with semaphore:
            # Copies still waiting for a slot are skipped after a failure.
            if failed.is_set():
                return rel
            try:
                await asyncio.to_thread(_copy_file, template_dir / rel, dest / rel)
            except BaseException:
                failed.set()
                raise
        return rel

    # Directories first so every file copy has a parent to land in.
    sources = []
    for item in sorted(template_dir.rglob("*")):
        rel = item.relative_to(template_dir)
        if item.is_dir():
            (dest / rel).mkdir(parents=True, exist_ok=True)
        else:
            sources.append(rel)

    results = await asyncio.gather(
        *(copy_one(rel) for rel in sources), return_exceptions=True,
    )
    for result in results:
        if isinstance(result, BaseException):
            logger.warning("Bootstrap of %s failed: %s", template_dir, result)
            raise result
    return list(results)


def _copy_file(source: Path, target: Path) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    shutil.copy2(source, target)
