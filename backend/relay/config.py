"""Room relay configuration.

Loads settings from a single YAML file (``relay.settings.yaml`` by default,
or the path in ``$RELAY_SETTINGS``) into pydantic models. The listening port
can be overridden with the ``PORT`` environment variable.

Example file::

    server:
      port: 3001
      allowed_origins: ["*"]
    logging:
      level: info
    buffer:
      capacity: 50
      retention_ms: 3600000
      sync_window_ms: 600000
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

SETTINGS_FILE = Path("relay.settings.yaml")
SETTINGS_ENV_VAR = "RELAY_SETTINGS"
PORT_ENV_VAR = "PORT"


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        logger.warning("Config file not found: %s", path)
        return {}
    with path.open(encoding="utf-8") as fh:
        return yaml.safe_load(fh) or {}


# ---------------------------------------------------------------------------
# Settings models
# ---------------------------------------------------------------------------


class ServerSettings(BaseModel):
    host:            str       = "0.0.0.0"
    port:            int       = 3001
    allowed_origins: List[str] = Field(default_factory=lambda: ["*"])


class LoggingSettings(BaseModel):
    level: str = "info"

    @field_validator("level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        if not isinstance(logging.getLevelName(value.upper()), int):
            raise ValueError(f"Unknown log level: {value}")
        return value.lower()


class BufferSettings(BaseModel):
    """Message buffer limits.

    Attributes:
        capacity: Max entries retained regardless of age.
        retention_ms: Max age before an entry is evicted on the next insert.
        sync_window_ms: Age threshold for the history pushed on connect.
    """
    capacity:       int = Field(default=50, ge=1)
    retention_ms:   int = Field(default=3_600_000, gt=0)
    sync_window_ms: int = Field(default=600_000, ge=0)


class AppSettings(BaseModel):
    server:  ServerSettings  = Field(default_factory=ServerSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    buffer:  BufferSettings  = Field(default_factory=BufferSettings)


# ---------------------------------------------------------------------------
# Public loader
# ---------------------------------------------------------------------------


def _apply_env_overrides(data: Dict[str, Any], environ: Mapping[str, str]) -> None:
    port = environ.get(PORT_ENV_VAR)
    if port:
        server = dict(data.get("server") or {})
        server["port"] = port
        data["server"] = server


def load_config(
    settings_path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> AppSettings:
    """Load the settings file and apply environment overrides.

    Args:
        settings_path: YAML file to read. Defaults to ``$RELAY_SETTINGS`` or
            ``relay.settings.yaml`` in the working directory.
        environ: Environment mapping (defaults to ``os.environ``).

    Returns:
        Validated AppSettings. Missing files fall back to defaults.
    """
    environ = os.environ if environ is None else environ
    if settings_path is None:
        settings_path = Path(environ.get(SETTINGS_ENV_VAR) or SETTINGS_FILE)

    data = _load_yaml(Path(settings_path))
    _apply_env_overrides(data, environ)

    settings = AppSettings(**data)
    logger.info(
        "Settings loaded (server=%s:%s, buffer.capacity=%d, buffer.retention_ms=%d)",
        settings.server.host,
        settings.server.port,
        settings.buffer.capacity,
        settings.buffer.retention_ms,
    )
    return settings


_config: Optional[AppSettings] = None


def get_config() -> AppSettings:
    """Return the process-wide settings, loading them on first use."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reset_config() -> None:
    """Forget cached settings so the next get_config() reloads them."""
    global _config
    _config = None
