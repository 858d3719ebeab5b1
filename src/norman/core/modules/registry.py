"""
In-memory registry of local modules, keyed by npm name.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from pathlib import Path

from norman.core.config.models import NormanConfig
from norman.core.exceptions import ConfigError
from norman.core.modules.models import LocalModule


class ModuleRegistry:
    """
    Owns every LocalModule of a workspace.

    Module identity is unique: registering two modules with the same npm
    name is a configuration error.

    Example:
        >>> registry = ModuleRegistry.from_config(config, config_dir)
        >>> registry.get("@acme/lib-a").path
        PosixPath('/work/lib-a')
    """

    def __init__(self, modules: Iterable[LocalModule] = ()) -> None:
        self._modules: dict[str, LocalModule] = {}
        for module in modules:
            self.add(module)

    def add(self, module: LocalModule) -> None:
        key = module.name.name
        if key in self._modules:
            raise ConfigError(f"Module {key} is declared more than once")
        self._modules[key] = module

    def get(self, package_name: str) -> LocalModule | None:
        """Return the local module with this npm name, or None for registry packages."""
        return self._modules.get(package_name)

    def find_by_path(self, path: Path) -> LocalModule | None:
        """Return the module whose root directory is ``path``."""
        resolved = path.resolve()
        for module in self._modules.values():
            if module.path == resolved:
                return module
        return None

    def __contains__(self, package_name: object) -> bool:
        return package_name in self._modules

    def __iter__(self) -> Iterator[LocalModule]:
        return iter(self._modules.values())

    def __len__(self) -> int:
        return len(self._modules)

    @property
    def modules(self) -> list[LocalModule]:
        return list(self._modules.values())

    @classmethod
    def from_config(cls, config: NormanConfig, config_dir: Path) -> ModuleRegistry:
        return cls(LocalModule.from_config(raw, config, config_dir) for raw in config.modules)
