"""
Persistent DOZE settings in ~/.doze/config.toml.

Sections:
    [preferences]   UserPreferences, durations stored as whole seconds
    [logging]       see doze.logging_config
"""

import logging
import os
import tomllib

from datetime import timedelta
from pathlib import Path
from typing import Any

import tomli_w

from pydantic import ValidationError

from doze.constants import DEFAULT_CONFIG_DIR
from doze.models.preferences import UserPreferences

logger = logging.getLogger(__name__)

PREFERENCES_SECTION = "preferences"


def get_config_path() -> Path:
    """Location of config.toml."""
    return DEFAULT_CONFIG_DIR / "config.toml"


def load_config() -> dict[str, Any]:
    """
    Read the whole config file.

    Returns:
        Parsed TOML tables; {} when the file is missing or unreadable
    """
    path = get_config_path()
    if not path.exists():
        return {}

    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        logger.warning(f"Failed to load config from {path}: {e}")
        logger.warning("Ignoring it until it is fixed or deleted.")
        return {}


def save_config(config: dict[str, Any]) -> None:
    """
    Replace the config file atomically.

    The TOML is written to a sibling temp file first and moved over the
    target, so readers never see a half-written file.

    Args:
        config: Complete set of tables to store

    Raises:
        PermissionError: If the config directory cannot be created
    """
    path = get_config_path()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except PermissionError as e:
        raise PermissionError(f"Cannot create config directory {path.parent}: {e}") from e

    staging = path.with_suffix(".toml.tmp")
    try:
        with open(staging, "wb") as f:
            tomli_w.dump(config, f)
        os.replace(staging, path)
    except BaseException:
        staging.unlink(missing_ok=True)
        raise


def preferences_to_toml(preferences: UserPreferences) -> dict[str, Any]:
    """Flatten preferences into TOML-friendly values (durations in seconds)."""
    values: dict[str, Any] = {}
    for key, value in preferences.model_dump().items():
        if isinstance(value, timedelta):
            value = int(value.total_seconds())
        values[key] = value
    return values


def load_preferences() -> UserPreferences:
    """
    Load user preferences from the config file.

    Returns:
        Stored preferences, or defaults if none are stored or they are invalid
    """
    stored = load_config().get(PREFERENCES_SECTION, {})
    if not isinstance(stored, dict):
        logger.warning(f"Ignoring malformed [{PREFERENCES_SECTION}] section")
        return UserPreferences()

    try:
        return UserPreferences.model_validate(stored)
    except ValidationError as e:
        logger.warning(f"Invalid preferences in {get_config_path()}: {e}")
        logger.warning("Using default preferences.")
        return UserPreferences()


def save_preferences(preferences: UserPreferences) -> None:
    """
    Persist preferences, keeping the other config sections.

    Args:
        preferences: Preferences to store
    """
    config = load_config()
    config[PREFERENCES_SECTION] = preferences_to_toml(preferences)
    save_config(config)


def set_preference(key: str, value: Any) -> UserPreferences:
    """
    Change one stored preference.

    Args:
        key: Preference field name
        value: New value (durations in seconds)

    Returns:
        The updated preferences

    Raises:
        ValueError: If the key is unknown or the value is invalid
    """
    if key not in UserPreferences.model_fields:
        raise ValueError(
            f"Unknown preference: {key!r}. "
            f"Available: {', '.join(UserPreferences.model_fields)}"
        )

    current = load_preferences()
    candidate = {**current.model_dump(), key: value}
    try:
        updated = UserPreferences.model_validate(candidate)
    except ValidationError as e:
        raise ValueError(f"Invalid value for {key}: {e}") from e

    save_preferences(updated)
    return updated


def reset_preferences() -> None:
    """
    Remove stored preferences so defaults apply.

    If config becomes empty, deletes the config file.
    """
    config = load_config()

    if PREFERENCES_SECTION not in config:
        return

    del config[PREFERENCES_SECTION]
    if not config:
        config_path = get_config_path()
        if config_path.exists():
            config_path.unlink()
    else:
        save_config(config)
