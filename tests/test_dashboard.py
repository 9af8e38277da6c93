from __future__ import annotations

from pathlib import Path

import pytest
from aiohttp.test_utils import TestClient, TestServer

from settingstore.core.settings_store import SettingsStore
from settingstore.dashboard.server import build_app


@pytest.fixture
async def client(store: SettingsStore):
    app = build_app(store)
    async with TestClient(TestServer(app)) as c:
        yield c


class TestDashboard:
    async def test_get_all_settings(self, client: TestClient, store: SettingsStore):
        store.set("editor.fontSize", 16)
        resp = await client.get("/api/settings")
        assert resp.status == 200
        data = await resp.json()
        assert data == {
            "settings": {"editor": {"fontSize": 16, "tabLength": 2}},
            "has_errors": False,
        }

    async def test_get_key_path(self, client: TestClient):
        resp = await client.get("/api/settings/editor.fontSize")
        assert resp.status == 200
        assert await resp.json() == {
            "key_path": "editor.fontSize",
            "value": 12,
            "is_default": True,
        }

    async def test_get_invalid_key_path(self, client: TestClient):
        resp = await client.get("/api/settings/editor..fontSize")
        assert resp.status == 400

    async def test_put_sets_value(self, client: TestClient, store: SettingsStore):
        resp = await client.put("/api/settings/editor.fontSize", json={"value": 20})
        assert resp.status == 200
        assert (await resp.json())["is_default"] is False
        assert store.get("editor.fontSize") == 20

    async def test_put_requires_value_field(self, client: TestClient):
        resp = await client.put("/api/settings/editor.fontSize", json={"v": 20})
        assert resp.status == 400

    async def test_put_rejects_invalid_json(self, client: TestClient):
        resp = await client.put(
            "/api/settings/editor.fontSize",
            data="{oops",
            headers={"Content-Type": "application/json"},
        )
        assert resp.status == 400

    async def test_put_conflict_when_file_has_errors(self, client: TestClient, store: SettingsStore):
        store.has_errors = True
        resp = await client.put("/api/settings/editor.fontSize", json={"value": 20})
        assert resp.status == 409
        assert store.get("editor.fontSize") == 12

    async def test_delete_restores_default(self, client: TestClient, store: SettingsStore):
        store.set("editor.fontSize", 20)
        resp = await client.delete("/api/settings/editor.fontSize")
        assert resp.status == 200
        assert await resp.json() == {
            "key_path": "editor.fontSize",
            "value": 12,
            "is_default": True,
        }

    async def test_put_save_failure_is_500_and_rolled_back(
        self, client: TestClient, store: SettingsStore, config_path: Path,
    ):
        config_path.mkdir()  # a directory where the file should be
        resp = await client.put("/api/settings/editor.fontSize", json={"value": 20})
        assert resp.status == 500
        assert store.get("editor.fontSize") == 12

    async def test_defaults(self, client: TestClient, store: SettingsStore):
        store.set("editor.fontSize", 20)
        resp = await client.get("/api/defaults")
        assert await resp.json() == {"editor": {"fontSize": 12, "tabLength": 2}}

    async def test_user_overrides(self, client: TestClient, store: SettingsStore, config_path: Path):
        store.set("editor.fontSize", 20)
        resp = await client.get("/api/user")
        assert await resp.json() == {
            "path": str(config_path),
            "settings": {"editor": {"fontSize": 20}},
            "has_errors": False,
        }
