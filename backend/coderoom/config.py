"""CodeRoom application configuration.

Loads settings from two YAML files:
  * coderoom.settings.yaml: non-secret configuration
  * coderoom.secrets.yaml: secrets (never committed)

Both files are optional; missing sections fall back to the defaults below.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Literal, Optional

import yaml
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

SETTINGS_FILE = Path("coderoom.settings.yaml")
SECRETS_FILE  = Path("coderoom.secrets.yaml")


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        logger.warning("Config file not found: %s", path)
        return {}
    with path.open(encoding="utf-8") as fh:
        return yaml.safe_load(fh) or {}


# ---------------------------------------------------------------------------
# Secrets models
# ---------------------------------------------------------------------------


class WorkersAISecrets(BaseModel):
    account_id: Optional[str] = None
    api_token:  Optional[str] = None


class Secrets(BaseModel):
    workers_ai: WorkersAISecrets = Field(default_factory=WorkersAISecrets)


# ---------------------------------------------------------------------------
# Settings models
# ---------------------------------------------------------------------------


class ServerSettings(BaseModel):
    host:  str  = "0.0.0.0"
    port:  int  = 8000
    debug: bool = False


class LoggingSettings(BaseModel):
    level: str = "info"


class RoomSettings(BaseModel):
    max_messages:          int = Field(default=30, ge=1)
    max_chars_per_message: int = Field(default=10000, ge=1)


class AISettings(BaseModel):
    """Model invocation settings and output bounds."""
    provider:          Literal["mock", "workers_ai"] = "mock"
    model:             str   = "@cf/meta/llama-3.3-70b-instruct-fp8-fast"
    base_url:          str   = "https://api.cloudflare.com/client/v4"
    max_tokens:        int   = 4096
    timeout_seconds:   float = 60.0
    max_context_chars: int   = 6000
    max_output_chars:  int   = 5000
    summary_max_chars: int   = 500


class RateLimitRule(BaseModel):
    max_requests: int = Field(..., ge=1)
    window_ms:    int = Field(..., ge=1)


class RateLimitSettings(BaseModel):
    message: RateLimitRule = Field(
        default_factory=lambda: RateLimitRule(max_requests=10, window_ms=60_000)
    )
    review:  RateLimitRule = Field(
        default_factory=lambda: RateLimitRule(max_requests=5, window_ms=60_000)
    )


class StorageSettings(BaseModel):
    backend: Literal["memory", "duckdb"] = "memory"
    path:    str = "rooms.duckdb"


class AppSettings(BaseModel):
    server:      ServerSettings    = Field(default_factory=ServerSettings)
    logging:     LoggingSettings   = Field(default_factory=LoggingSettings)
    rooms:       RoomSettings      = Field(default_factory=RoomSettings)
    ai:          AISettings        = Field(default_factory=AISettings)
    rate_limits: RateLimitSettings = Field(default_factory=RateLimitSettings)
    storage:     StorageSettings   = Field(default_factory=StorageSettings)
    secrets:     Secrets           = Field(default_factory=Secrets)


# ---------------------------------------------------------------------------
# Public loader
# ---------------------------------------------------------------------------


def _resolve_storage_path(settings: AppSettings, settings_path: Path) -> None:
    """Resolve a relative DuckDB path against the settings file directory."""
    storage_path = Path(settings.storage.path)
    if settings.storage.path == ":memory:" or storage_path.is_absolute():
        return
    settings.storage.path = str(settings_path.resolve().parent / storage_path)


def load_config(
    settings_path: Optional[Path] = None,
    secrets_path: Optional[Path] = None,
) -> AppSettings:
    """Load and merge settings + secrets into a single *AppSettings* object."""
    settings_path = Path(settings_path) if settings_path else SETTINGS_FILE
    if secrets_path is None:
        secrets_path = settings_path.parent / SECRETS_FILE.name
    settings_data = _load_yaml(settings_path)
    secrets_data  = _load_yaml(Path(secrets_path))

    # Merge: secrets live under the "secrets" key in AppSettings
    settings_data["secrets"] = secrets_data

    app_settings = AppSettings(**settings_data)
    _resolve_storage_path(app_settings, settings_path)
    logger.info(
        "Settings loaded (server=%s:%s, ai.provider=%s, storage.backend=%s)",
        app_settings.server.host,
        app_settings.server.port,
        app_settings.ai.provider,
        app_settings.storage.backend,
    )
    return app_settings


_config: Optional[AppSettings] = None


def get_config() -> AppSettings:
    """Return the process-wide settings, loading them on first use."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def set_config(config: Optional[AppSettings]) -> None:
    """Replace the process-wide settings (``None`` forces a reload)."""
    global _config
    _config = config
