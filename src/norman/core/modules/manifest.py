"""
Reading package.json manifests.

Manifests are read fresh on every call: they can change between two
traversals of the same run (e.g. after `npm version`).
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from norman.core.exceptions import ConfigError

MANIFEST_NAME = "package.json"

DEPENDENCY_FIELDS = ("dependencies", "devDependencies")


def read_manifest(module_dir: Path) -> dict[str, Any]:
    """
    Read and parse package.json in a module directory.

    Raises:
        ConfigError: If the manifest is missing, unparsable or not an object
    """
    path = module_dir / MANIFEST_NAME
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise ConfigError(f"No {MANIFEST_NAME} found in {module_dir}") from e
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Failed to read {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Expected contents of {path} to be an object")
    return data


def try_read_manifest(module_dir: Path) -> dict[str, Any] | None:
    """Read package.json, returning None if the module has no manifest."""
    if not (module_dir / MANIFEST_NAME).exists():
        return None
    return read_manifest(module_dir)


def dependency_names(manifest: dict[str, Any], include_dev: bool = False) -> list[str]:
    """
    List the dependency names declared by a manifest.

    Args:
        manifest: Parsed package.json
        include_dev: Also include devDependencies

    Returns:
        Unique names in declaration order
    """
    fields = DEPENDENCY_FIELDS if include_dev else DEPENDENCY_FIELDS[:1]
    names: list[str] = []
    for field in fields:
        deps = manifest.get(field) or {}
        if not isinstance(deps, dict):
            continue
        for name in deps:
            if name not in names:
                names.append(name)
    return names


def manifest_version(module_dir: Path) -> str:
    """
    Return the version declared in package.json.

    Raises:
        ConfigError: If the manifest has no string version
    """
    version = read_manifest(module_dir).get("version")
    if not isinstance(version, str) or not version:
        raise ConfigError(f"No version defined in {module_dir / MANIFEST_NAME}")
    return version


def has_script(module_dir: Path, script_name: str) -> bool:
    """Check whether package.json declares an npm script with this name."""
    manifest = try_read_manifest(module_dir)
    if manifest is None:
        return False
    scripts = manifest.get("scripts") or {}
    return isinstance(scripts, dict) and script_name in scripts


def first_missing_dependency(module_dir: Path, include_dev: bool = True) -> str | None:
    """Return the first declared dependency not installed in node_modules, if any."""
    manifest = try_read_manifest(module_dir)
    if manifest is None:
        return None
    for name in dependency_names(manifest, include_dev=include_dev):
        if not (module_dir / "node_modules" / name).exists():
            return name
    return None
