# src/llmsession/config/recovery_config.py
"""
Recovery Engine Configuration.

Pydantic configuration model for the session persistence and recovery
engine. A validated :class:`RecoveryConfig` instance is passed explicitly
to every component at construction; there is no process-wide "current
session directory".

Configuration Hierarchy:
    1. Default values (from the Pydantic model)
    2. TOML config file, ``[recovery]`` section
    3. Config dictionary
    4. Environment variables (LLMSESSION_RECOVERY__*)
    5. Runtime overrides

Example TOML::

    [recovery]
    session_dir = "~/.local/share/llmsession/sessions"
    backup_dir = "~/.local/share/llmsession/session-backups"
    max_backups = 5
    refresh_threshold_minutes = 15

    [logging]
    console_enabled = false
"""

from __future__ import annotations

import logging
import os
import tomllib
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..exceptions import ConfigError

logger = logging.getLogger(__name__)

ENV_PREFIX = "LLMSESSION_RECOVERY__"


class RecoveryConfig(BaseModel):
    """
    Settings for the session store, backups and credential refresh.

    Attributes:
        session_dir: Directory holding one primary record per session.
        backup_dir: Directory holding timestamped backup snapshots.
        max_backups: Backups retained per session; older ones are pruned.
        enable_auto_backup: Snapshot before every save. Repaired sessions
            are snapshotted regardless of this flag.
        enable_checksum_validation: Verify the stored integrity digest on
            load and log a warning on mismatch.
        refresh_threshold_minutes: Lookahead window for credential refresh.
        refresh_timeout_seconds: Upper bound on one refresh call.
        default_schema_version: Schema version stamped on records lacking one.
        file_extension: Extension of primary session records.
    """

    model_config = ConfigDict(validate_default=True, validate_assignment=True)

    session_dir: Path = Field(
        default=Path("~/.local/share/llmsession/sessions"),
        description="Directory for primary session records",
    )
    backup_dir: Path = Field(
        default=Path("~/.local/share/llmsession/session-backups"),
        description="Directory for session backup snapshots",
    )
    max_backups: int = Field(default=5, ge=1, description="Backups retained per session")
    enable_auto_backup: bool = Field(default=True, description="Snapshot before every save")
    enable_checksum_validation: bool = Field(
        default=True, description="Verify the advisory integrity digest on load"
    )
    refresh_threshold_minutes: float = Field(
        default=15.0, ge=0, description="Refresh credentials expiring within this window"
    )
    refresh_timeout_seconds: float = Field(
        default=30.0, gt=0, description="Timeout for one credential refresh call"
    )
    default_schema_version: str = Field(default="1.0.0", min_length=1)
    file_extension: str = Field(default=".jsonl", min_length=1)

    @field_validator("session_dir", "backup_dir", mode="after")
    @classmethod
    def expand_user(cls, v: Path) -> Path:
        return Path(os.path.expanduser(str(v)))

    @field_validator("file_extension")
    @classmethod
    def leading_dot(cls, v: str) -> str:
        return v if v.startswith(".") else f".{v}"

    @property
    def refresh_threshold(self) -> timedelta:
        return timedelta(minutes=self.refresh_threshold_minutes)


def load_recovery_config(
    config_path: Optional[Path] = None,
    config_dict: Optional[Dict[str, Any]] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> RecoveryConfig:
    """
    Load recovery configuration from TOML file or dictionary.

    Args:
        config_path: Optional path to TOML config file
        config_dict: Optional full config dictionary (``recovery`` section is used)
        overrides: Optional runtime overrides (flat recovery keys)

    Returns:
        RecoveryConfig instance

    Raises:
        ConfigError: If the file cannot be parsed or a value is invalid.

    Example:
        >>> config = load_recovery_config(overrides={"max_backups": 3})
        >>> config.max_backups
        3
    """
    merged_config: Dict[str, Any] = {}

    if config_path is not None:
        full_config = load_toml(config_path)
        merged_config = _deep_merge(merged_config, full_config.get("recovery", {}))
        logger.debug(f"Loaded recovery config from {config_path}")

    if config_dict is not None:
        merged_config = _deep_merge(merged_config, config_dict.get("recovery", {}))

    merged_config = _apply_env_overrides(merged_config)

    if overrides is not None:
        merged_config = _deep_merge(merged_config, overrides)

    try:
        return RecoveryConfig(**merged_config)
    except ValidationError as e:
        logger.error(f"Invalid recovery configuration: {e}")
        raise ConfigError(f"Invalid recovery configuration: {e}") from e


def load_toml(config_path: Path) -> Dict[str, Any]:
    """Read a whole TOML config file, wrapping failures in ConfigError."""
    try:
        with open(config_path, "rb") as f:
            return tomllib.load(f)
    except FileNotFoundError as e:
        raise ConfigError(f"Config file not found: {config_path}") from e
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise ConfigError(f"Failed to read config file {config_path}: {e}") from e


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """
    Deep merge two dictionaries, with override taking precedence.
    """
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _apply_env_overrides(config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Apply environment variable overrides.

    Examples:
        LLMSESSION_RECOVERY__MAX_BACKUPS=10
        LLMSESSION_RECOVERY__ENABLE_AUTO_BACKUP=false
    """
    result = config.copy()
    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        field_name = key[len(ENV_PREFIX):].lower()
        if not field_name:
            continue
        result[field_name] = _convert_env_value(value)
    return result


def _convert_env_value(value: str) -> Any:
    """
    Convert environment variable string to appropriate type.
    """
    if value.lower() in ("true", "false"):
        return value.lower() == "true"

    try:
        return int(value)
    except ValueError:
        pass

    try:
        return float(value)
    except ValueError:
        pass

    return value


__all__ = [
    "RecoveryConfig",
    "load_recovery_config",
    "load_toml",
]
