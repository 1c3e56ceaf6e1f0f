"""Chat relay configuration.

Loads settings from an optional YAML file (``chatrelay.settings.yaml``) and
lets the ``PORT`` environment variable override the listen port.
"""
from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

SETTINGS_FILE = Path("chatrelay.settings.yaml")
PORT_ENV_VAR  = "PORT"


def _read_settings(path: Path) -> Dict[str, Any]:
    """Parse the settings file; a missing or empty file means all defaults."""
    if not path.is_file():
        logger.warning("Settings file %s not found, using defaults", path)
        return {}
    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a mapping, got {type(data).__name__}")
    return data


# ---------------------------------------------------------------------------
# Settings models
# ---------------------------------------------------------------------------


class ServerSettings(BaseModel):
    host:       str = "0.0.0.0"
    port:       int = Field(default=3000, ge=1, le=65535)
    static_dir: str = "public"


class LoggingSettings(BaseModel):
    level: str = "info"


class AppConfig(BaseModel):
    server:  ServerSettings  = Field(default_factory=ServerSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


# ---------------------------------------------------------------------------
# Public loader
# ---------------------------------------------------------------------------


def load_config(settings_path: Optional[Path] = None) -> AppConfig:
    """Load settings from YAML, then apply environment overrides.

    Raises:
        pydantic.ValidationError: if any value is invalid, e.g. a
            non-numeric ``PORT``.
        ValueError: if the settings file is not a YAML mapping.
    """
    data = _read_settings(settings_path or SETTINGS_FILE)

    port = os.environ.get(PORT_ENV_VAR)
    if port:
        server = dict(data.get("server") or {})
        server["port"] = port
        data["server"] = server

    config = AppConfig(**data)
    logger.info(
        "Settings loaded (server=%s:%s, static_dir=%s)",
        config.server.host,
        config.server.port,
        config.server.static_dir,
    )
    return config


@lru_cache(maxsize=1)
def get_config() -> AppConfig:
    """Process-wide configuration, loaded on first use."""
    return load_config()
