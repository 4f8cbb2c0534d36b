"""Configuration management for nocturne."""

import logging
import os
import tomllib

from datetime import timedelta
from pathlib import Path
from typing import Any

import tomli_w

from pydantic import BaseModel, Field, ValidationError, field_validator

from nocturne.constants import DEFAULT_FILLER_VALUES, DEFAULT_MERGE_GAP

logger = logging.getLogger(__name__)


class ImportSettings(BaseModel):
    """Reconciliation settings read from the ``[import]`` table."""

    merge_gap_minutes: float = Field(
        default=DEFAULT_MERGE_GAP.total_seconds() / 60,
        ge=0,
        description="Maximum gap between imports grouped into one meta-session",
    )
    filler: dict[str, float] = Field(
        default_factory=lambda: dict(DEFAULT_FILLER_VALUES),
        description="Filler value per signal name used when splicing",
    )

    @field_validator("filler", mode="before")
    @classmethod
    def layer_over_defaults(cls, value: Any) -> Any:
        """Configured filler values override the built-in ones."""
        if isinstance(value, dict):
            return {**DEFAULT_FILLER_VALUES, **value}
        return value

    @property
    def merge_gap(self) -> timedelta:
        return timedelta(minutes=self.merge_gap_minutes)


def get_config_path() -> Path:
    """
    Get the path to the configuration file.

    Returns:
        Path to ~/.nocturne/config.toml
    """
    return Path.home() / ".nocturne" / "config.toml"


def load_config() -> dict[str, Any]:
    """
    Load configuration from TOML file.

    Returns:
        Configuration dictionary. Returns empty dict if file doesn't exist
        or is corrupted.
    """
    config_path = get_config_path()

    if not config_path.exists():
        return {}

    try:
        with open(config_path, "rb") as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        logger.warning(f"Failed to load config from {config_path}: {e}")
        logger.warning("Treating config as empty. Fix or delete the file to resolve.")
        return {}


def save_config(config: dict[str, Any]) -> None:
    """
    Save configuration to TOML file using atomic write.

    Creates the parent directory if it doesn't exist and writes through a
    temp file + rename.

    Raises:
        PermissionError: If directory cannot be created or file cannot be written
    """
    config_path = get_config_path()

    config_dir = config_path.parent
    try:
        os.makedirs(config_dir, exist_ok=True)
    except PermissionError as e:
        raise PermissionError(
            f"Cannot create config directory {config_dir}: {e}"
        ) from e

    temp_path = config_path.with_suffix(".toml.tmp")

    try:
        with open(temp_path, "wb") as f:
            tomli_w.dump(config, f)

        os.replace(temp_path, config_path)

    except Exception:
        if temp_path.exists():
            temp_path.unlink()
        raise


def get_import_settings() -> ImportSettings:
    """
    Build import settings from the ``[import]`` table.

    Configured filler values are layered over the built-in defaults. An
    invalid table is logged and the defaults are used.
    """
    table = load_config().get("import", {})
    if not isinstance(table, dict):
        logger.warning("Ignoring [import] config: expected a table")
        return ImportSettings()

    try:
        return ImportSettings.model_validate(table)
    except ValidationError as e:
        logger.warning(f"Invalid [import] config, using defaults: {e}")
        return ImportSettings()


def get_default_profile() -> str | None:
    """
    Get the default profile username from config.

    Returns:
        Default profile username, or None if not set
    """
    config = load_config()
    default: str | None = config.get("profile", {}).get("default")
    return default


def set_default_profile(username: str) -> None:
    """Set the default profile username in config."""
    config = load_config()

    if "profile" not in config:
        config["profile"] = {}

    config["profile"]["default"] = username
    save_config(config)


def unset_default_profile() -> None:
    """
    Remove the default profile setting from config.

    Drops the profile section when it becomes empty, and deletes the config
    file when nothing is left.
    """
    config = load_config()

    if "profile" in config and "default" in config["profile"]:
        del config["profile"]["default"]

        if not config["profile"]:
            del config["profile"]

        if not config:
            config_path = get_config_path()
            if config_path.exists():
                config_path.unlink()
        else:
            save_config(config)
