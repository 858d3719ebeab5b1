"""
Configuration loading with multi-layer merging.

Implements the configuration precedence chain:
    defaults < user config < workspace config (.norman.json) < env vars

The workspace config is found by walking upward from the working directory
unless an explicit location is given.
"""

import json
import os
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from norman.core.exceptions import ConfigError

from .models import NormanConfig

CONFIG_FILE_NAME = ".norman.json"


def get_xdg_config_home() -> Path:
    """
    Get XDG config home directory.

    Returns:
        Path to config directory (defaults to ~/.config)
    """
    if xdg_home := os.environ.get("XDG_CONFIG_HOME"):
        return Path(xdg_home)
    return Path.home() / ".config"


def get_user_config_path() -> Path:
    """Get path to ~/.config/norman/config.json (or XDG equivalent)."""
    return get_xdg_config_home() / "norman" / "config.json"


def find_config_path(start: Path | None = None, explicit: str | Path | None = None) -> Path:
    """
    Locate the workspace configuration file.

    Args:
        start: Directory to start the upward search from (defaults to cwd)
        explicit: A config file, or a directory containing .norman.json.
            Falls back to the NORMAN_CONFIG environment variable.

    Returns:
        Absolute path to the configuration file

    Raises:
        ConfigError: If no configuration file can be found
    """
    if explicit is None:
        explicit = os.environ.get("NORMAN_CONFIG") or None

    if explicit is not None:
        candidate = Path(explicit).expanduser()
        if not candidate.is_absolute():
            candidate = (start or Path.cwd()) / candidate
        if candidate.is_dir():
            candidate = candidate / CONFIG_FILE_NAME
        if not candidate.is_file():
            raise ConfigError(f"Config file not found: {candidate}")
        return candidate.resolve()

    current = (start or Path.cwd()).resolve()
    while True:
        candidate = current / CONFIG_FILE_NAME
        if candidate.is_file():
            return candidate
        if current == current.parent:
            break
        current = current.parent

    raise ConfigError(f"No {CONFIG_FILE_NAME} found in directory tree")


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """
    Deep merge two dictionaries.

    Values in `override` take precedence over values in `base`. Nested
    dicts are merged, not replaced; lists are replaced.

    Example:
        >>> deep_merge({"a": 1, "b": {"x": 1}}, {"b": {"y": 2}})
        {'a': 1, 'b': {'x': 1, 'y': 2}}
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def load_json_file(path: Path, *, required: bool = False) -> dict[str, Any] | None:
    """
    Load a JSON object from a file.

    A missing optional file yields None. An unreadable or malformed file is
    a configuration error, since silently ignoring it would change which
    modules are managed.

    Raises:
        ConfigError: If the file is required and missing, or cannot be parsed
    """
    if not path.exists():
        if required:
            raise ConfigError(f"Config file not found: {path}")
        return None

    try:
        with path.open(encoding="utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError) as e:
        raise ConfigError(f"Invalid config file {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Invalid config file {path}: expected a JSON object")
    return data


def apply_env_overrides(config_dict: dict[str, Any]) -> dict[str, Any]:
    """
    Apply environment variable overrides to configuration.

    Supported env vars:
        NORMAN_DEFAULT_BRANCH - overrides defaultBranch
        NORMAN_STATE_DIR - overrides stateDir
        NORMAN_CACHE_DIR - overrides cacheDir
        NORMAN_TEMP_DIR - overrides tempDir
    """
    result = config_dict.copy()

    env_map = {
        "NORMAN_DEFAULT_BRANCH": "defaultBranch",
        "NORMAN_STATE_DIR": "stateDir",
        "NORMAN_CACHE_DIR": "cacheDir",
        "NORMAN_TEMP_DIR": "tempDir",
    }
    for env_name, key in env_map.items():
        if value := os.environ.get(env_name):
            result[key] = value

    return result


def get_default_config() -> dict[str, Any]:
    """Get hardcoded default configuration."""
    return {
        "defaultBranch": "master",
        "defaultNpmInstall": True,
        "defaultBuildTriggers": [],
        "defaultIgnoreScope": False,
        "includeDev": True,
        "modules": [],
    }


def load_config(
    config_path: str | Path | None = None,
    cwd: Path | None = None,
) -> tuple[NormanConfig, Path]:
    """
    Load workspace configuration with multi-layer merging.

    Args:
        config_path: Explicit config file or directory (see find_config_path)
        cwd: Directory to start searching from (defaults to cwd)

    Returns:
        Tuple of (validated NormanConfig, directory containing the config file)

    Raises:
        ConfigError: If the config cannot be found, parsed or validated

    Example:
        >>> config, config_dir = load_config()
        >>> [m.name for m in config.modules]
    """
    path = find_config_path(cwd, config_path)

    merged = get_default_config()

    if user_config := load_json_file(get_user_config_path()):
        # Module lists are workspace-specific; user config only provides defaults
        user_config.pop("modules", None)
        merged = deep_merge(merged, user_config)

    workspace_config = load_json_file(path, required=True) or {}
    merged = deep_merge(merged, workspace_config)

    merged = apply_env_overrides(merged)

    try:
        config = NormanConfig.model_validate(merged)
    except ValidationError as e:
        raise ConfigError(f"Invalid config file {path}: {e}") from e

    return config, path.parent
