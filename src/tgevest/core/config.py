"""
Vesting vault configuration.

Settings are resolved in three layers: built-in defaults, an optional YAML
file, then ``TGEVEST_*`` environment variables.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Mapping

import yaml
from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, field_validator

from tgevest.core.constants import DEFAULT_UNLOCK_PERIOD
from tgevest.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

ENV_PREFIX = "TGEVEST_"

_ENV_FIELDS = (
    "network",
    "admin_address",
    "vault_address",
    "unlock_period",
    "log_level",
    "log_file",
    "environment",
)


class VestingSettings(BaseModel):
    network: str = "testnet"
    admin_address: str = ""
    vault_address: str = ""
    unlock_period: int = Field(default=DEFAULT_UNLOCK_PERIOD, gt=0)
    log_level: str = "INFO"
    log_file: str | None = None
    environment: str = "development"

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"unknown log level: {value}")
        return level

    @field_validator("admin_address", "vault_address")
    @classmethod
    def _normalize_address(cls, value: str) -> str:
        return value.strip().lower()


def _load_config_file(path: str | Path) -> dict[str, Any]:
    config_path = Path(path)
    if not config_path.exists():
        raise ConfigurationError(
            f"Config file not found: {config_path}",
            details={"path": str(config_path)},
        )
    with open(config_path, "r") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Config file must contain a mapping: {config_path}",
            details={"path": str(config_path)},
        )
    # Allow the settings to live under a top-level "vesting" section
    return dict(data.get("vesting", data))


def _env_overrides(env: Mapping[str, str]) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    for name in _ENV_FIELDS:
        value = env.get(ENV_PREFIX + name.upper(), "").strip()
        if value:
            overrides[name] = value
    return overrides


def load_settings(
    path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
) -> VestingSettings:
    """
    Load vault settings.

    Args:
        path: Optional YAML file with settings (top-level or under ``vesting:``)
        env: Environment mapping, defaults to ``os.environ``

    Returns:
        Validated settings

    Raises:
        ConfigurationError: If the file is missing or any value is invalid
    """
    raw: dict[str, Any] = {}
    if path is not None:
        raw.update(_load_config_file(path))
    raw.update(_env_overrides(os.environ if env is None else env))

    try:
        settings = VestingSettings(**raw)
    except PydanticValidationError as exc:
        raise ConfigurationError(
            f"Invalid vesting configuration: {exc.error_count()} error(s)",
            details={"errors": [err["loc"] for err in exc.errors()]},
        ) from exc

    logger.info(
        "Vesting settings loaded",
        extra={
            "event": "config.loaded",
            "network": settings.network,
            "unlock_period": settings.unlock_period,
            "source": str(path) if path else "env",
        },
    )
    return settings
