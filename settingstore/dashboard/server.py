from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

from aiohttp import web

from settingstore.core.errors import ConfigIOError

if TYPE_CHECKING:
    from settingstore.core.settings_store import SettingsStore

logger = logging.getLogger(__name__)


def build_app(store: SettingsStore) -> web.Application:
    app = web.Application()
    app["store"] = store

    app.router.add_get("/api/settings", _handle_settings)
    app.router.add_get("/api/settings/{key_path}", _handle_get)
    app.router.add_put("/api/settings/{key_path}", _handle_put)
    app.router.add_delete("/api/settings/{key_path}", _handle_delete)
    app.router.add_get("/api/defaults", _handle_defaults)
    app.router.add_get("/api/user", _handle_user)
    return app


def _key_path_or_400(request: web.Request) -> str:
    key_path = request.match_info["key_path"]
    if any(not s for s in key_path.split(".")):
        raise web.HTTPBadRequest(text=f"Invalid key path: {key_path}")
    return key_path


def _entry(store: SettingsStore, key_path: str) -> dict:
    return {
        "key_path": key_path,
        "value": store.get(key_path),
        "is_default": store.is_default(key_path),
    }


async def _handle_settings(request: web.Request) -> web.Response:
    store: SettingsStore = request.app["store"]
    return web.json_response({
        "settings": store.get_settings(),
        "has_errors": store.has_errors,
    })


async def _handle_get(request: web.Request) -> web.Response:
    store: SettingsStore = request.app["store"]
    key_path = _key_path_or_400(request)
    return web.json_response(_entry(store, key_path))


async def _handle_put(request: web.Request) -> web.Response:
    store: SettingsStore = request.app["store"]
    key_path = _key_path_or_400(request)
    try:
        body = await request.json()
    except json.JSONDecodeError:
        raise web.HTTPBadRequest(text="Body must be JSON")
    if not isinstance(body, dict) or "value" not in body:
        raise web.HTTPBadRequest(text='Body must be an object with a "value" field')
    if store.has_errors:
        raise web.HTTPConflict(
            text=f"{store.config_file_path} has errors; fix it before writing"
        )
    try:
        store.set(key_path, body["value"])
    except ConfigIOError as e:
        logger.warning("Failed to save %s: %s", key_path, e)
        raise web.HTTPInternalServerError(text=str(e))
    return web.json_response(_entry(store, key_path))


async def _handle_delete(request: web.Request) -> web.Response:
    store: SettingsStore = request.app["store"]
    key_path = _key_path_or_400(request)
    if store.has_errors:
        raise web.HTTPConflict(
            text=f"{store.config_file_path} has errors; fix it before writing"
        )
    try:
        store.restore_default(key_path)
    except ConfigIOError as e:
        logger.warning("Failed to save %s: %s", key_path, e)
        raise web.HTTPInternalServerError(text=str(e))
    return web.json_response(_entry(store, key_path))


async def _handle_defaults(request: web.Request) -> web.Response:
    store: SettingsStore = request.app["store"]
    return web.json_response(store.default_settings())


async def _handle_user(request: web.Request) -> web.Response:
    """The overrides as they are persisted, plus where they live."""
    store: SettingsStore = request.app["store"]
    return web.json_response({
        "path": str(store.config_file_path),
        "settings": store.user_settings(),
        "has_errors": store.has_errors,
    })


class DashboardServer:
    """Serves the settings inspection API for one store on the loopback interface."""

    def __init__(self, store: SettingsStore, port: int = 7777, host: str = "127.0.0.1") -> None:
        self._store = store
        self._app = build_app(store)
        self._host = host
        self._port = port
        self._runner: web.AppRunner | None = None

    @property
    def url(self) -> str:
        return f"http://{self._host}:{self._port}/api/settings"

    async def start(self) -> None:
        if self._runner is not None:
            return
        runner = web.AppRunner(self._app)
        await runner.setup()
        await web.TCPSite(runner, self._host, self._port).start()
        self._runner = runner
        logger.info("Serving %s at %s", self._store.config_file_path, self.url)

    async def stop(self) -> None:
        runner, self._runner = self._runner, None
        if runner is not None:
            await runner.cleanup()
            logger.info("Settings dashboard stopped")
