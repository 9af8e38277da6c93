from __future__ import annotations

import asyncio
import logging
import signal

from dotenv import load_dotenv

from settingstore.adapters.file_watch.watcher import WatchdogWatcher
from settingstore.core.config import CoreConfig
from settingstore.core.events import ConfigLoadFailedEvent, EventBus
from settingstore.core.observation import ObservationRegistry
from settingstore.core.reload import ReloadCoordinator
from settingstore.core.settings_store import SettingsStore
from settingstore.dashboard.server import DashboardServer
from settingstore.storage.bootstrap import initialize_config_directory
from settingstore.storage.json_document import JsonDocumentStore

logger = logging.getLogger("settingstore")

# Settings the daemon itself reads. Other subsystems add theirs with
# SettingsStore.set_defaults().
CORE_DEFAULTS = {
    "core": {
        "logLevel": "INFO",
        "disabledPackages": [],
    },
}


def setup_logging(log_file: str) -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler(log_file),
        ],
    )


def apply_log_level(level: object, previous: object = None) -> None:
    name = str(level).upper()
    if not isinstance(logging.getLevelName(name), int):
        logger.warning("Ignoring unknown log level %r", level)
        return
    logging.getLogger().setLevel(name)
    if previous is not None:
        logger.info("Log level changed from %s to %s", previous, name)


async def main() -> None:
    load_dotenv()
    config = CoreConfig.from_env()
    setup_logging(config.log_file)
    logger.info("settingstore starting...")

    # -- Bootstrap config directory on first run --
    await initialize_config_directory(
        config.template_dir,
        config.config_dir,
        max_concurrency=config.bootstrap_concurrency,
    )

    # -- Core wiring --
    event_bus = EventBus()
    persistence = JsonDocumentStore()
    store = SettingsStore(
        config.config_file_path, persistence, event_bus, default_settings=CORE_DEFAULTS,
    )
    observations = ObservationRegistry(store, event_bus)
    watcher = WatchdogWatcher(asyncio.get_running_loop())
    reloader = ReloadCoordinator(store, persistence, watcher)

    event_bus.subscribe(
        ConfigLoadFailedEvent,
        lambda e: logger.error("Settings file %s has errors: %s", e.path, e.message),
    )
    reloader.load()
    observations.observe("core.logLevel", apply_log_level)

    dashboard = DashboardServer(store, port=config.dashboard_port)

    # Handle shutdown signals
    stop_event = asyncio.Event()

    def handle_signal() -> None:
        logger.info("Shutdown signal received")
        stop_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, handle_signal)

    await dashboard.start()
    logger.info("settingstore is running. Press Ctrl+C to stop.")

    await stop_event.wait()

    logger.info("Shutting down...")
    reloader.unobserve_user_config()
    watcher.stop()
    observations.close()
    await dashboard.stop()
    logger.info("settingstore stopped.")


def run() -> None:
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
