"""
Configuration management for norman.

Provides Pydantic models for workspace configuration and a loader that
merges defaults, user config, .norman.json and environment variables.
"""

from norman.core.config.loader import CONFIG_FILE_NAME, find_config_path, load_config
from norman.core.config.models import ModuleConfig, NormanConfig

__all__ = [
    "CONFIG_FILE_NAME",
    "ModuleConfig",
    "NormanConfig",
    "find_config_path",
    "load_config",
]
