"""
Service context shared by every component of a command run.

Built once per CLI invocation from the loaded configuration; the registry
proxy address is filled in once the proxy has started.
"""

from __future__ import annotations

import tempfile
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from norman.core.config.loader import load_config
from norman.core.config.models import NormanConfig
from norman.core.exceptions import RegistryError
from norman.core.modules.graph import DependencyGraph
from norman.core.modules.models import LocalModule
from norman.core.modules.registry import ModuleRegistry
from norman.core.npmrc import NpmConfig, load_npm_config
from norman.core.packager import Packager
from norman.core.state.manager import StateManager
from norman.core.transforms import DEFAULT_TRANSFORMS, FileTransform

DEFAULT_STATE_DIR = "~/.norman-state"
CACHE_DIR_NAME = "norman-cache"
TEMP_DIR_NAME = "norman"


def _configured_dir(value: str | None, config_dir: Path, default: Path) -> Path:
    if not value:
        return default
    path = Path(value).expanduser()
    return path if path.is_absolute() else config_dir / path


@dataclass
class ServiceContext:
    """
    Everything a command needs: configuration, modules, npm settings and services.

    Attributes:
        config: Validated workspace configuration
        config_dir: Directory holding .norman.json
        modules: Registry of local modules
        npm_config: Registries and tokens from .npmrc files
        state_manager: Persisted module state snapshots
        packager: Tarball builder for local modules
        transforms: Content transforms applied when copying module files
        cache_dir: Cache for tarballs proxied from upstream registries
        registry_address: Base URL of the running registry proxy
    """

    config: NormanConfig
    config_dir: Path
    modules: ModuleRegistry
    npm_config: NpmConfig
    state_manager: StateManager
    packager: Packager
    transforms: Sequence[FileTransform] = field(default_factory=lambda: DEFAULT_TRANSFORMS)
    cache_dir: Path = field(default_factory=lambda: Path(tempfile.gettempdir()) / CACHE_DIR_NAME)
    registry_address: str | None = None

    @property
    def address(self) -> str:
        if self.registry_address is None:
            raise RegistryError("Cannot get npm server address: server not started yet")
        return self.registry_address

    def graph(self, dev_roots: Iterable[LocalModule] = ()) -> DependencyGraph:
        """Dependency graph where devDependencies of ``dev_roots`` count (if enabled)."""
        return DependencyGraph(self.modules, dev_roots if self.config.include_dev else ())


def build_context(
    config_path: str | Path | None = None,
    cwd: Path | None = None,
    home_dir: Path | None = None,
) -> ServiceContext:
    """
    Load configuration and wire up the services for a command.

    Raises:
        ConfigError: If the workspace or npm configuration is invalid
    """
    config, config_dir = load_config(config_path, cwd=cwd)
    modules = ModuleRegistry.from_config(config, config_dir)
    npm_config = load_npm_config(config_dir, home_dir=home_dir, fallback_registry=config.npm_registry)

    tmp = Path(tempfile.gettempdir())
    state_dir = _configured_dir(config.state_dir, config_dir, Path(DEFAULT_STATE_DIR).expanduser())
    cache_dir = _configured_dir(config.cache_dir, config_dir, tmp / CACHE_DIR_NAME)
    temp_dir = _configured_dir(config.temp_dir, config_dir, tmp / TEMP_DIR_NAME)

    state_manager = StateManager(state_dir)
    transforms = DEFAULT_TRANSFORMS
    return ServiceContext(
        config=config,
        config_dir=config_dir,
        modules=modules,
        npm_config=npm_config,
        state_manager=state_manager,
        packager=Packager(temp_dir, state_manager, transforms),
        transforms=transforms,
        cache_dir=cache_dir,
    )
