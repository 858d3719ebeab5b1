"""
Pytest configuration and shared fixtures.

Provides an isolated workspace (.norman.json, home .npmrc, state/cache/temp
directories) and factory fixtures for writing local modules into it.
"""

import json
import os
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from norman.core.context import ServiceContext, build_context

UPSTREAM_REGISTRY = "https://registry.example.test/"


def _write_module(
    root: Path,
    name: str,
    version: str = "1.0.0",
    dependencies: dict[str, str] | None = None,
    dev_dependencies: dict[str, str] | None = None,
    files: dict[str, str] | None = None,
    scripts: dict[str, str] | None = None,
    directory: str | None = None,
) -> Path:
    """Create a module directory with a package.json and extra files."""
    module_dir = root / (directory or name.replace("@", "").replace("/", "-"))
    module_dir.mkdir(parents=True, exist_ok=True)

    manifest: dict[str, Any] = {"name": name, "version": version}
    if dependencies:
        manifest["dependencies"] = dependencies
    if dev_dependencies:
        manifest["devDependencies"] = dev_dependencies
    if scripts:
        manifest["scripts"] = scripts
    (module_dir / "package.json").write_text(json.dumps(manifest, indent=2))

    for rel, content in (files or {}).items():
        path = module_dir / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
    return module_dir


def _set_mtime(path: Path, seconds: float) -> None:
    os.utime(path, (seconds, seconds))


@pytest.fixture
def upstream_registry() -> str:
    """Default registry URL written to the isolated home .npmrc."""
    return UPSTREAM_REGISTRY


@pytest.fixture
def write_module() -> Callable[..., Path]:
    """Factory writing a module directory: ``write_module(root, name, ...)``."""
    return _write_module


@pytest.fixture
def set_mtime() -> Callable[[Path, float], None]:
    """Set both atime and mtime of a path."""
    return _set_mtime


@pytest.fixture
def isolated_env(tmp_path, monkeypatch):
    """Point HOME, XDG config and norman directories into tmp_path."""
    home = tmp_path / "home"
    home.mkdir()
    (home / ".npmrc").write_text(f"registry={UPSTREAM_REGISTRY}\n")

    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    monkeypatch.setenv("NORMAN_STATE_DIR", str(tmp_path / "state"))
    monkeypatch.setenv("NORMAN_CACHE_DIR", str(tmp_path / "cache"))
    monkeypatch.setenv("NORMAN_TEMP_DIR", str(tmp_path / "pack"))
    monkeypatch.delenv("NORMAN_CONFIG", raising=False)
    monkeypatch.delenv("NORMAN_DEFAULT_BRANCH", raising=False)
    return home


@pytest.fixture
def workspace_dir(tmp_path, isolated_env):
    """An empty workspace directory with an empty module list."""
    workspace = tmp_path / "workspace"
    workspace.mkdir()
    (workspace / ".norman.json").write_text(json.dumps({"modules": []}))
    return workspace


@pytest.fixture
def write_config(workspace_dir) -> Callable[..., Path]:
    """Write .norman.json into the workspace."""

    def _write(modules: list[Any], **extra: Any) -> Path:
        path = workspace_dir / ".norman.json"
        path.write_text(json.dumps({"modules": modules, **extra}, indent=2))
        return path

    return _write


@pytest.fixture
def make_service(workspace_dir, isolated_env) -> Callable[[], ServiceContext]:
    """Build a service context for the workspace (call after writing modules)."""

    def _make() -> ServiceContext:
        return build_context(workspace_dir, home_dir=isolated_env)

    return _make


@pytest.fixture
def lib_and_app(workspace_dir, write_config):
    """
    Two modules: lib-a (index.js, .gitignore) and app depending on lib-a.

    Returns (lib_dir, app_dir).
    """
    lib_dir = _write_module(
        workspace_dir,
        "lib-a",
        files={"index.js": "module.exports = 1;\n", ".gitignore": "dist\n"},
    )
    app_dir = _write_module(workspace_dir, "app", dependencies={"lib-a": "^1.0.0"})
    write_config([{"name": "lib-a", "path": "lib-a"}, {"name": "app", "path": "app"}])
    return lib_dir, app_dir
