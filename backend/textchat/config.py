"""textchat application configuration.

Loads settings from two YAML files:
  * textchat.settings.yaml  — non-secret configuration
  * textchat.secrets.yaml   — secrets (never committed)

The settings file path can be overridden with the ``TEXTCHAT_SETTINGS``
environment variable; the secrets file is looked up next to it.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

SETTINGS_FILE = Path("textchat.settings.yaml")
SECRETS_FILE  = Path("textchat.secrets.yaml")
SETTINGS_ENV_VAR = "TEXTCHAT_SETTINGS"

IN_MEMORY_DB = ":memory:"


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        logger.warning("Config file not found: %s", path)
        return {}
    with path.open(encoding="utf-8") as fh:
        return yaml.safe_load(fh) or {}


# ---------------------------------------------------------------------------
# Secrets models
# ---------------------------------------------------------------------------


class Secrets(BaseModel):
    """Nothing secret is needed yet; unknown keys in the secrets file are ignored."""


# ---------------------------------------------------------------------------
# Settings models
# ---------------------------------------------------------------------------


class ServerSettings(BaseModel):
    host:            str       = "0.0.0.0"
    port:            int       = 3000
    reload:          bool      = False
    allowed_origins: List[str] = Field(
        default_factory=lambda: [
            "http://localhost:3000",
            "https://textbytarun.vercel.app",
        ]
    )


class DatabaseSettings(BaseModel):
    """DuckDB file shared by the identity store and the message log."""
    path: str = "textchat.duckdb"


class AuthSettings(BaseModel):
    bcrypt_rounds: int = Field(default=10, ge=4, le=31)


class ChatSettings(BaseModel):
    history_limit:      int = Field(default=50, ge=1, le=500)
    max_message_length: int = Field(default=2000, ge=1)


class LoggingSettings(BaseModel):
    level: str = "info"

    @field_validator("level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        if value.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {value}")
        return value.lower()


class AppSettings(BaseModel):
    server:   ServerSettings   = Field(default_factory=ServerSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    auth:     AuthSettings     = Field(default_factory=AuthSettings)
    chat:     ChatSettings     = Field(default_factory=ChatSettings)
    logging:  LoggingSettings  = Field(default_factory=LoggingSettings)
    secrets:  Secrets          = Field(default_factory=Secrets)


# ---------------------------------------------------------------------------
# Public loader
# ---------------------------------------------------------------------------


def _resolve_db_path(raw: str, settings_path: Path) -> str:
    """Resolve a relative database path against the settings file directory."""
    if raw == IN_MEMORY_DB:
        return raw
    path = Path(raw)
    if path.is_absolute():
        return str(path)
    return str(settings_path.resolve().parent / path)


def load_config(settings_path: Optional[Path] = None) -> AppSettings:
    """Load and merge settings + secrets into a single *AppSettings* object."""
    if settings_path is None:
        settings_path = Path(os.environ.get(SETTINGS_ENV_VAR, SETTINGS_FILE))
    settings_path = Path(settings_path)
    secrets_path = settings_path.with_name(SECRETS_FILE.name)

    settings_data = _load_yaml(settings_path)
    secrets_data  = _load_yaml(secrets_path)

    # Merge: secrets live under the "secrets" key in AppSettings
    settings_data["secrets"] = secrets_data

    app_settings = AppSettings(**settings_data)
    app_settings.database.path = _resolve_db_path(
        app_settings.database.path, settings_path
    )
    logger.info(
        "Settings loaded (server=%s:%s, database=%s, history_limit=%d)",
        app_settings.server.host,
        app_settings.server.port,
        app_settings.database.path,
        app_settings.chat.history_limit,
    )
    return app_settings


_config: Optional[AppSettings] = None


def get_config() -> AppSettings:
    """Return the process-wide settings, loading them on first use."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def set_config(config: AppSettings) -> None:
    """Replace the process-wide settings (used by tests and embedding apps)."""
    global _config
    _config = config


def reset_config() -> None:
    """Forget cached settings so the next ``get_config()`` reloads them."""
    global _config
    _config = None
