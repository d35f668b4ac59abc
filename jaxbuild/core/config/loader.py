"""
Settings loader — reads jaxbuild.yml into BuildSettings.

The settings file is optional: without one, every field keeps the
default that matches the JAX development container. With one, it is
read as YAML, validated against the Pydantic model, and returned.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml

from jaxbuild.core.models.settings import BuildSettings

logger = logging.getLogger(__name__)

# Default settings filename
SETTINGS_FILE = "jaxbuild.yml"


class ConfigError(Exception):
    """Raised when the settings file is unreadable or invalid."""


def find_settings_file(start_dir: Path | None = None) -> Path | None:
    """Search for jaxbuild.yml starting from the given directory, walking up.

    Args:
        start_dir: Directory to start searching from (default: cwd).

    Returns:
        Path to jaxbuild.yml, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / SETTINGS_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    return None


def load_settings(path: Path | None = None) -> BuildSettings:
    """Load and validate build settings.

    Args:
        path: Explicit path to a settings file. If None, searches upward
            and falls back to defaults when nothing is found.

    Returns:
        Validated BuildSettings.

    Raises:
        ConfigError: If an explicit file is missing, or any file is invalid.
    """
    if path is None:
        path = find_settings_file()
        if path is None:
            logger.debug("No %s found, using defaults", SETTINGS_FILE)
            return BuildSettings()

    if not path.is_file():
        raise ConfigError(f"Settings file not found: {path}")

    logger.debug("Loading settings from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return BuildSettings()

    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    # The YAML may wrap everything under a "jaxbuild" key or be flat
    settings_data = data.get("jaxbuild", data)
    if not isinstance(settings_data, dict):
        raise ConfigError(f"Expected a mapping under 'jaxbuild' in {path}")

    try:
        settings = BuildSettings.model_validate(settings_data)
    except Exception as e:
        raise ConfigError(f"Invalid settings in {path}: {e}") from e

    logger.info("Loaded settings from %s", path)
    return settings
