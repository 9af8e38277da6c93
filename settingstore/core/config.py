"""Core configuration — daemon-level settings read from the environment."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path


@dataclass
class CoreConfig:
    config_dir: Path = field(default_factory=lambda: Path.home() / ".settingstore")
    config_file: str = "config.json"
    template_dir: Path | None = None
    dashboard_port: int = 7777
    bootstrap_concurrency: int = 8
    log_file: str = "/tmp/settingstore.log"

    @property
    def config_file_path(self) -> Path:
        return self.config_dir / self.config_file

    @classmethod
    def from_env(cls) -> CoreConfig:
        """Build a config from ``SETTINGSTORE_*`` environment variables."""
        config = cls()
        config_dir = os.environ.get("SETTINGSTORE_CONFIG_DIR", "")
        if config_dir:
            config.config_dir = Path(config_dir).expanduser().resolve()
        config.config_file = os.environ.get("SETTINGSTORE_CONFIG_FILE", config.config_file)
        template_dir = os.environ.get("SETTINGSTORE_TEMPLATE_DIR", "")
        if template_dir:
            config.template_dir = Path(template_dir).expanduser().resolve()
        config.dashboard_port = int(
            os.environ.get("SETTINGSTORE_DASHBOARD_PORT", str(config.dashboard_port))
        )
        config.bootstrap_concurrency = int(
            os.environ.get(
                "SETTINGSTORE_BOOTSTRAP_CONCURRENCY", str(config.bootstrap_concurrency)
            )
        )
        config.log_file = os.environ.get("SETTINGSTORE_LOG_FILE", config.log_file)
        return config
