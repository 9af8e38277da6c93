from __future__ import annotations

import asyncio
from pathlib import Path
from unittest.mock import patch

import pytest

from settingstore.storage import bootstrap
from settingstore.storage.bootstrap import initialize_config_directory


def _make_template(base: Path) -> Path:
    """Create a template tree with a nested directory and a few files."""
    tpl = base / "template"
    (tpl / "packages" / "themes").mkdir(parents=True)
    (tpl / "config.json").write_text('{"core": {}}')
    (tpl / "keymap.json").write_text("{}")
    (tpl / "packages" / "README.md").write_text("packages")
    (tpl / "packages" / "themes" / "dark.json").write_text('{"name": "dark"}')
    return tpl


class TestInitializeConfigDirectory:
    async def test_copies_template_tree(self, tmp_path: Path):
        tpl = _make_template(tmp_path)
        dest = tmp_path / "config"

        copied = await initialize_config_directory(tpl, dest)

        assert sorted(p.relative_to(dest).as_posix() for p in copied) == [
            "config.json",
            "keymap.json",
            "packages/README.md",
            "packages/themes/dark.json",
        ]
        assert (dest / "packages" / "themes" / "dark.json").read_text() == '{"name": "dark"}'

    async def test_copies_empty_directories(self, tmp_path: Path):
        tpl = _make_template(tmp_path)
        (tpl / "snippets").mkdir()
        dest = tmp_path / "config"
        await initialize_config_directory(tpl, dest)
        assert (dest / "snippets").is_dir()

    async def test_existing_directory_untouched(self, tmp_path: Path):
        tpl = _make_template(tmp_path)
        dest = tmp_path / "config"
        dest.mkdir()
        (dest / "config.json").write_text('{"mine": true}')

        copied = await initialize_config_directory(tpl, dest)

        assert copied == []
        assert (dest / "config.json").read_text() == '{"mine": true}'
        assert not (dest / "keymap.json").exists()

    async def test_no_template_creates_empty_directory(self, tmp_path: Path):
        dest = tmp_path / "config"
        copied = await initialize_config_directory(None, dest)
        assert copied == []
        assert dest.is_dir()

    async def test_on_complete_called_after_all_copies(self, tmp_path: Path):
        tpl = _make_template(tmp_path)
        dest = tmp_path / "config"
        seen = []

        def on_complete(paths):
            seen.append(sorted(p.name for p in paths))
            assert all(p.exists() for p in paths)

        await initialize_config_directory(tpl, dest, on_complete=on_complete)
        assert seen == [["README.md", "config.json", "dark.json", "keymap.json"]]

    async def test_on_complete_called_when_nothing_to_do(self, tmp_path: Path):
        dest = tmp_path / "config"
        dest.mkdir()
        seen = []
        await initialize_config_directory(None, dest, on_complete=seen.append)
        assert seen == [[]]

    async def test_concurrency_is_bounded(self, tmp_path: Path):
        tpl = tmp_path / "template"
        tpl.mkdir()
        for i in range(10):
            (tpl / f"f{i}.json").write_text("{}")

        active = 0
        peak = 0
        real_to_thread = asyncio.to_thread

        async def tracking_to_thread(func, *args):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            try:
                return await real_to_thread(func, *args)
            finally:
                active -= 1

        with patch.object(bootstrap.asyncio, "to_thread", tracking_to_thread):
            copied = await initialize_config_directory(
                tpl, tmp_path / "config", max_concurrency=3,
            )

        assert len(copied) == 10
        assert peak == 3

    async def test_invalid_concurrency(self, tmp_path: Path):
        with pytest.raises(ValueError):
            await initialize_config_directory(None, tmp_path / "c", max_concurrency=0)

    async def test_failed_copy_leaves_no_config_directory(self, tmp_path: Path):
        tpl = _make_template(tmp_path)
        dest = tmp_path / "config"
        real_copy = bootstrap._copy_file
        completed = []

        def flaky_copy(source: Path, target: Path) -> None:
            if source.name == "keymap.json":
                raise OSError("disk full")
            real_copy(source, target)
            completed.append(source.name)

        with patch.object(bootstrap, "_copy_file", flaky_copy):
            with pytest.raises(OSError, match="disk full"):
                await initialize_config_directory(tpl, dest, max_concurrency=1)

        assert not dest.exists()
        # The staging directory is removed too.
        assert sorted(p.name for p in tmp_path.iterdir()) == ["template"]
        # Copies queued behind the failure never ran.
        assert "dark.json" not in completed

    async def test_retry_after_failed_copy(self, tmp_path: Path):
        tpl = _make_template(tmp_path)
        dest = tmp_path / "config"

        def broken_copy(source: Path, target: Path) -> None:
            raise OSError("disk full")

        with patch.object(bootstrap, "_copy_file", broken_copy):
            with pytest.raises(OSError):
                await initialize_config_directory(tpl, dest)

        copied = await initialize_config_directory(tpl, dest)

        assert len(copied) == 4
        assert (dest / "keymap.json").read_text() == "{}"
