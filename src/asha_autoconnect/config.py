"""Configuration loader for the ASHA auto-connect service.

Reads options from a JSON file (default /etc/asha-autoconnect/options.json,
overridable with ASHA_AUTOCONNECT_OPTIONS).  Every key is optional; a
missing or unreadable file falls back to defaults.
"""

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

OPTIONS_PATH = "/etc/asha-autoconnect/options.json"
OPTIONS_ENV = "ASHA_AUTOCONNECT_OPTIONS"
LOG_LEVEL_ENV = "ASHA_AUTOCONNECT_LOG_LEVEL"


@dataclass
class AppConfig:
    """Service configuration loaded from the options file."""

    log_level: str = "info"
    bt_adapter: str = "auto"
    short_backoff_seconds: float = 5
    long_backoff_seconds: float = 60
    restart_delay_seconds: float = 1
    call_timeout_seconds: float = 20

    @classmethod
    def load(cls, path: str | None = None) -> "AppConfig":
        """Load configuration from the options file and environment."""
        config = cls()
        opts_path = Path(path or os.environ.get(OPTIONS_ENV, OPTIONS_PATH))

        if not opts_path.exists():
            logger.warning("Options file not found at %s, using defaults", opts_path)
        else:
            try:
                data = json.loads(opts_path.read_text())
                config = cls(
                    log_level=data.get("log_level", "info"),
                    bt_adapter=data.get("bt_adapter", "auto"),
                    short_backoff_seconds=data.get("short_backoff_seconds", 5),
                    long_backoff_seconds=data.get("long_backoff_seconds", 60),
                    restart_delay_seconds=data.get("restart_delay_seconds", 1),
                    call_timeout_seconds=data.get("call_timeout_seconds", 20),
                )
            except (json.JSONDecodeError, AttributeError, OSError) as e:
                logger.error("Failed to parse options: %s, using defaults", e)

        env_level = os.environ.get(LOG_LEVEL_ENV)
        if env_level:
            config.log_level = env_level
        return config
