"""Configuration management for the peering audit."""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import BaseModel, Field, SecretStr, ValidationError

_config_logger = logging.getLogger(__name__)


class LoggingSettings(BaseModel):
    level: str = Field(default="INFO", description="Python logging level name")
    file: str | None = Field(default=None, description="Optional log file path")


class AzureSettings(BaseModel):
    """Credential selection for the management API.

    - cli: reuse the login of the local ``az`` CLI
    - default: DefaultAzureCredential chain (env, managed identity, CLI, ...)
    - service-principal: client secret from AZURE_TENANT_ID/CLIENT_ID/CLIENT_SECRET
    """

    auth_mode: Literal["cli", "default", "service-principal"] = Field(default="default")
    tenant_id: str | None = Field(default=None)
    client_id: str | None = Field(default=None)
    client_secret: SecretStr | None = Field(default=None)
    management_scope: str = Field(default="https://management.azure.com/.default")


class ExecutionSettings(BaseModel):
    call_timeout_seconds: float = Field(default=60.0, gt=0, le=600)
    sdk_timeout_seconds: int = Field(default=30, ge=1, le=300)
    max_retries: int = Field(default=2, ge=0, le=10)
    max_concurrency: int = Field(default=4, ge=1, le=32)
    context_cache_max_entries: int = Field(default=256, ge=1, le=10_000)


class WalkSettings(BaseModel):
    locations: tuple[str, ...] = Field(default=())
    subscriptions: tuple[str, ...] = Field(default=())


class Settings(BaseModel):
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    azure: AzureSettings = Field(default_factory=AzureSettings)
    execution: ExecutionSettings = Field(default_factory=ExecutionSettings)
    walk: WalkSettings = Field(default_factory=WalkSettings)


ENV_KEYS = {
    "log_level": "LOG_LEVEL",
    "log_file": "LOG_FILE",
    "auth_mode": "AZURE_AUTH_MODE",
    "tenant_id": "AZURE_TENANT_ID",
    "client_id": "AZURE_CLIENT_ID",
    "client_secret": "AZURE_CLIENT_SECRET",
    "management_scope": "AZURE_MANAGEMENT_SCOPE",
    "call_timeout": "AUDIT_CALL_TIMEOUT_SECONDS",
    "sdk_timeout": "AUDIT_SDK_TIMEOUT_SECONDS",
    "max_retries": "AUDIT_MAX_RETRIES",
    "max_concurrency": "AUDIT_MAX_CONCURRENCY",
    "context_cache_max_entries": "AUDIT_CONTEXT_CACHE_MAX_ENTRIES",
    "locations": "AUDIT_LOCATIONS",
    "subscriptions": "AUDIT_SUBSCRIPTIONS",
}


def _split_csv(value: str | None) -> list[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def _project_root() -> Path:
    return Path(__file__).resolve().parents[2]


def _resolve_path(path: str) -> str:
    candidate = Path(path)
    if candidate.is_absolute():
        return str(candidate.resolve())
    return str((_project_root() / candidate).resolve())


def _env_int(key: str, default: int) -> int:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        _config_logger.warning(
            "Invalid integer value for %s: %r, using default %d", key, value, default
        )
        return default


def _env_float(key: str, default: float) -> float:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    try:
        return float(value)
    except ValueError:
        _config_logger.warning(
            "Invalid float value for %s: %r, using default %s", key, value, default
        )
        return default


def _env_optional(key: str) -> str | None:
    value = os.getenv(key)
    if value is None:
        return None
    return value.strip() or None


def load_settings() -> Settings:
    """Load configuration and cache the result."""

    return _load_settings_cached()


@lru_cache(maxsize=1)
def _load_settings_cached() -> Settings:
    load_dotenv(dotenv_path=_project_root() / ".env")
    log_file_env = _env_optional(ENV_KEYS["log_file"])

    settings_data: dict[str, object] = {
        "logging": {
            "level": os.getenv(ENV_KEYS["log_level"], LoggingSettings().level),
            "file": _resolve_path(log_file_env) if log_file_env else None,
        },
        "azure": {
            "auth_mode": os.getenv(ENV_KEYS["auth_mode"], AzureSettings().auth_mode),
            "tenant_id": _env_optional(ENV_KEYS["tenant_id"]),
            "client_id": _env_optional(ENV_KEYS["client_id"]),
            "client_secret": _env_optional(ENV_KEYS["client_secret"]),
            "management_scope": os.getenv(
                ENV_KEYS["management_scope"], AzureSettings().management_scope
            ),
        },
        "execution": {
            "call_timeout_seconds": _env_float(
                ENV_KEYS["call_timeout"],
                ExecutionSettings().call_timeout_seconds,
            ),
            "sdk_timeout_seconds": _env_int(
                ENV_KEYS["sdk_timeout"],
                ExecutionSettings().sdk_timeout_seconds,
            ),
            "max_retries": _env_int(
                ENV_KEYS["max_retries"],
                ExecutionSettings().max_retries,
            ),
            "max_concurrency": _env_int(
                ENV_KEYS["max_concurrency"],
                ExecutionSettings().max_concurrency,
            ),
            "context_cache_max_entries": _env_int(
                ENV_KEYS["context_cache_max_entries"],
                ExecutionSettings().context_cache_max_entries,
            ),
        },
        "walk": {
            "locations": tuple(
                item.lower() for item in _split_csv(os.getenv(ENV_KEYS["locations"]))
            ),
            "subscriptions": tuple(_split_csv(os.getenv(ENV_KEYS["subscriptions"]))),
        },
    }

    try:
        settings = Settings.model_validate(settings_data)
    except ValidationError as exc:
        raise RuntimeError(f"Invalid configuration: {exc}") from exc

    azure = settings.azure
    if azure.auth_mode == "service-principal" and not (
        azure.tenant_id and azure.client_id and azure.client_secret
    ):
        raise RuntimeError(
            "Invalid configuration: AZURE_TENANT_ID, AZURE_CLIENT_ID and "
            "AZURE_CLIENT_SECRET are required for AZURE_AUTH_MODE=service-principal"
        )

    return settings
