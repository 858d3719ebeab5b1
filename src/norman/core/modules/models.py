"""
Locally-managed module model.

A LocalModule is created once when the workspace configuration is loaded
and is immutable for the rest of the run.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from functools import cached_property
from pathlib import Path
from urllib.parse import urlparse

import pathspec

from norman.core.config.models import ModuleConfig, NormanConfig
from norman.core.exceptions import ConfigError
from norman.core.modules.manifest import try_read_manifest

LOCKFILE_NAME = "package-lock.json"

_SCP_LIKE_URL = re.compile(r"^(?:[\w.-]+@)?[\w.-]+:(?P<path>[^/].*)$")


@dataclass(frozen=True)
class ModuleName:
    """
    npm identity of a module.

    Example:
        >>> ModuleName.parse("@acme/lib-a")
        ModuleName(scope='acme', pkg='lib-a')
        >>> ModuleName.parse("@acme/lib-a").name
        '@acme/lib-a'
    """

    scope: str | None
    pkg: str

    @property
    def name(self) -> str:
        """Full package name as used in manifests and registry URLs."""
        if self.scope:
            return f"@{self.scope}/{self.pkg}"
        return self.pkg

    @classmethod
    def parse(cls, package_name: str) -> ModuleName:
        if "/" in package_name and package_name.index("/") > 0:
            scope, pkg = package_name.split("/", 1)
            return cls(scope=scope.lstrip("@"), pkg=pkg)
        return cls(scope=None, pkg=package_name)

    def __str__(self) -> str:
        return self.name


def repository_full_name(repository: str) -> str:
    """
    Derive ``owner/repo`` from a git repository URL.

    Handles https/ssh URLs and scp-like ``git@host:owner/repo.git`` forms.

    Raises:
        ConfigError: If the URL has no owner/repo path
    """
    if "://" in repository:
        repo_path = urlparse(repository).path
    elif match := _SCP_LIKE_URL.match(repository):
        repo_path = match.group("path")
    else:
        repo_path = repository

    parts = [p for p in repo_path.strip("/").split("/") if p]
    if len(parts) < 2:
        raise ConfigError(f"Cannot derive module name from repository URL: {repository}")

    repo = parts[-1]
    if repo.endswith(".git"):
        repo = repo[: -len(".git")]
    return f"{parts[-2]}/{repo}"


@dataclass(frozen=True)
class LocalModule:
    """
    A package under local development.

    Attributes:
        name: npm identity of the module
        path: Absolute module directory
        repository: Git URL used to fetch the module, if any
        branch: Branch to clone
        use_npm: Whether the module's dependencies are installed with npm
        build_commands: npm scripts or shell commands that build the module
        build_triggers: Globs selecting files whose change triggers a rebuild
        lockfile_enabled: Whether the module pins dependencies with a lockfile
        npm_ignore_path: Custom ignore file applied to the publish subset
    """

    name: ModuleName
    path: Path
    repository: str | None = None
    branch: str = "master"
    use_npm: bool = True
    build_commands: tuple[str, ...] = ()
    build_triggers: tuple[str, ...] = ()
    lockfile_enabled: bool = False
    npm_ignore_path: Path | None = field(default=None, compare=False)

    @property
    def lockfile_path(self) -> Path:
        return self.path / LOCKFILE_NAME

    @property
    def node_modules(self) -> Path:
        return self.path / "node_modules"

    def installed_path(self, dependency: LocalModule) -> Path:
        """Where ``dependency`` is installed inside this module."""
        return self.node_modules / dependency.name.name

    def has_lockfile(self) -> bool:
        return self.lockfile_enabled

    @cached_property
    def ignore_spec(self) -> pathspec.PathSpec | None:
        """Custom ignore rules with gitignore semantics, or None if not configured."""
        if self.npm_ignore_path is None:
            return None
        try:
            lines = self.npm_ignore_path.read_text(encoding="utf-8").splitlines()
        except OSError as e:
            raise ConfigError(f"Failed to read ignore file {self.npm_ignore_path}: {e}") from e
        return pathspec.GitIgnoreSpec.from_lines(lines)

    def relative(self, filepath: Path) -> Path:
        """Path of ``filepath`` relative to the module root."""
        return filepath.relative_to(self.path)

    def is_ignored_by_rules(self, filepath: Path, is_dir: bool = False) -> bool:
        """Check a file against the module's custom ignore rules."""
        spec = self.ignore_spec
        if spec is None:
            return False
        rel = filepath.relative_to(self.path) if filepath.is_absolute() else filepath
        rel_str = rel.as_posix()
        if not rel_str or rel_str == ".":
            return False
        if is_dir:
            rel_str += "/"
        return spec.match_file(rel_str)

    @classmethod
    def from_config(
        cls,
        raw: ModuleConfig,
        config: NormanConfig,
        config_dir: Path,
    ) -> LocalModule:
        """
        Resolve a module entry from the workspace config.

        Relative paths are resolved against the config directory. The module
        name comes from `name`, else from the repository URL, else from the
        module's package.json.

        Raises:
            ConfigError: If no name can be determined
        """
        ignore_scope = (
            raw.ignore_scope if raw.ignore_scope is not None else config.default_ignore_scope
        )

        name: ModuleName | None = None
        if raw.name:
            name = ModuleName.parse(raw.name)
        elif raw.repository:
            name = ModuleName.parse(repository_full_name(raw.repository))

        if raw.path:
            module_path = Path(raw.path).expanduser()
            if not module_path.is_absolute():
                module_path = config_dir / module_path
        elif name is not None:
            modules_dir = Path(config.modules_directory or ".").expanduser()
            if not modules_dir.is_absolute():
                modules_dir = config_dir / modules_dir
            module_path = modules_dir / (name.pkg if ignore_scope else name.name)
        else:
            raise ConfigError("Module should have either 'repository', 'name' or 'path' field")
        module_path = module_path.resolve()

        if name is None:
            manifest = try_read_manifest(module_path)
            package_name = manifest.get("name") if manifest else None
            if not isinstance(package_name, str) or not package_name:
                raise ConfigError(f"Module at {module_path} has no name defined")
            name = ModuleName.parse(package_name)

        build_triggers = (
            raw.build_triggers if raw.build_triggers is not None else config.default_build_triggers
        )
        lockfile_enabled = (
            raw.lockfile if raw.lockfile is not None else (module_path / LOCKFILE_NAME).exists()
        )
        ignore_hint = raw.npm_ignore if raw.npm_ignore is not None else config.default_npm_ignore

        return cls(
            name=name,
            path=module_path,
            repository=raw.repository,
            branch=raw.branch or config.default_branch,
            use_npm=raw.npm_install if raw.npm_install is not None else config.default_npm_install,
            build_commands=tuple(raw.build_commands),
            build_triggers=tuple(build_triggers),
            lockfile_enabled=lockfile_enabled,
            npm_ignore_path=resolve_ignore_path(ignore_hint, module_path, config, config_dir),
        )


def resolve_ignore_path(
    hint: str | bool | None,
    module_path: Path,
    config: NormanConfig,
    config_dir: Path,
) -> Path | None:
    """
    Resolve the custom ignore file for a module.

    A string is a path relative to the config directory. ``True`` selects the
    module's own .npmignore, falling back to the workspace default when the
    module has none.
    """
    if isinstance(hint, str):
        candidate = Path(hint).expanduser()
        return candidate if candidate.is_absolute() else (config_dir / candidate).resolve()
    if hint:
        own = module_path / ".npmignore"
        if own.exists():
            return own
        if isinstance(config.default_npm_ignore, str):
            return resolve_ignore_path(config.default_npm_ignore, module_path, config, config_dir)
    return None
