"""
package-lock.json (lockfileVersion 1) maintenance.

Two rewrites keep lockfiles of modules that depend on local modules usable
outside of norman:

- integrity fields of local modules are set to the hash of the freshly
  packed tarball before npm runs, so npm accepts the tarball the proxy serves;
- resolved URLs pointing at the proxy are mapped back to real registry URLs
  after npm has modified the lockfile.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

from norman.core.exceptions import LockfileError
from norman.core.modules.files import BACKUP_SUFFIX
from norman.core.modules.models import LOCKFILE_NAME
from norman.core.modules.registry import ModuleRegistry
from norman.core.npmrc import NpmConfig
from norman.core.registry.paths import resolve_registry_url

logger = logging.getLogger(__name__)

SUPPORTED_LOCKFILE_VERSION = 1

LockfileDependency = dict[str, Any]

# (dependency, name, path from the lockfile root such as "a/b")
DependencyWalker = Callable[[LockfileDependency, str, str], None]


class Lockfile:
    """
    A package-lock.json file.

    Every mutation re-reads the file, so changes npm made in the meantime
    are never lost.

    Example:
        >>> lockfile = Lockfile.for_dir(module.path)
        >>> lockfile.update_integrity({"@acme/lib-a": "sha512-..."})
        >>> lockfile.update_resolved(modules, npm_config)
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    @classmethod
    def for_dir(cls, directory: Path) -> Lockfile:
        return cls(directory / LOCKFILE_NAME)

    @property
    def backup_path(self) -> Path:
        return self.path.with_name(self.path.name + BACKUP_SUFFIX)

    def _invalid(self, text: str) -> LockfileError:
        return LockfileError(f'Lockfile "{self.path}" is invalid: {text}', path=str(self.path))

    def load(self) -> dict[str, Any]:
        """
        Read and validate the lockfile.

        Raises:
            LockfileError: If the file is unreadable or not a version 1 lockfile
        """
        try:
            content = json.loads(self.path.read_text(encoding="utf-8"))
        except OSError as e:
            raise LockfileError(f"Failed to read lockfile {self.path}: {e}", path=str(self.path)) from e
        except json.JSONDecodeError as e:
            raise self._invalid(f"not valid JSON ({e})") from e

        if not isinstance(content, dict):
            raise self._invalid("content not an object")
        if "lockfileVersion" in content and content["lockfileVersion"] != SUPPORTED_LOCKFILE_VERSION:
            raise self._invalid(
                f"unsupported version {content['lockfileVersion']}, "
                f"expected {SUPPORTED_LOCKFILE_VERSION}"
            )
        if "dependencies" in content and not isinstance(content["dependencies"], dict):
            raise self._invalid("dependencies is not an object")
        return content

    def iter_dependencies(
        self, content: dict[str, Any] | None = None
    ) -> Iterator[tuple[str, str, LockfileDependency]]:
        """Yield ``(name, path, dependency)`` for every entry, nested entries first."""
        if content is None:
            content = self.load()
        stack: list[tuple[str, dict[str, Any]]] = [("", content.get("dependencies") or {})]
        # parents are recorded before their nested entries, so the reversed list is post-order
        pending: list[tuple[str, str, LockfileDependency]] = []
        while stack:
            parent, deps = stack.pop()
            for name, dep in deps.items():
                if not isinstance(dep, dict):
                    continue
                dep_path = f"{parent}/{name}" if parent else name
                pending.append((name, dep_path, dep))
                nested = dep.get("dependencies")
                if isinstance(nested, dict):
                    stack.append((dep_path, nested))
        yield from reversed(pending)

    def mutate(self, walker: DependencyWalker) -> None:
        """
        Apply ``walker`` to every dependency entry and write the file back.

        Nothing is written when the walker changed nothing. Otherwise the
        previous content is kept in a backup file until the new content has
        been written.
        """
        content = self.load()
        before = json.dumps(content, sort_keys=True)
        for name, dep_path, dep in self.iter_dependencies(content):
            walker(dep, name, dep_path)
        if json.dumps(content, sort_keys=True) == before:
            logger.debug("%s unchanged", self.path)
            return

        original = self.path.read_bytes()
        self.backup_path.write_bytes(original)
        temp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            temp_path.write_text(
                json.dumps(content, indent=2, ensure_ascii=False) + "\n", encoding="utf-8"
            )
            temp_path.replace(self.path)
        except OSError:
            if temp_path.exists():
                temp_path.unlink()
            raise
        self.backup_path.unlink()

    def integrities(self, names: set[str] | None = None) -> dict[str, list[str]]:
        """Recorded integrity strings per package name, optionally limited to ``names``."""
        result: dict[str, list[str]] = {}
        for name, _, dep in self.iter_dependencies():
            if names is not None and name not in names:
                continue
            integrity = dep.get("integrity")
            if isinstance(integrity, str):
                result.setdefault(name, []).append(integrity)
        return result

    def update_integrity(self, integrities: dict[str, str]) -> None:
        """Overwrite the integrity of every entry whose name is in ``integrities``."""

        def walker(dep: LockfileDependency, name: str, dep_path: str) -> None:
            integrity = integrities.get(name)
            if integrity is not None and dep.get("integrity") != integrity:
                logger.debug("%s: integrity of %s set to %s", self.path, dep_path, integrity)
                dep["integrity"] = integrity

        self.mutate(walker)

    def update_resolved(self, modules: ModuleRegistry, npm_config: NpmConfig) -> None:
        """Rewrite ``resolved`` URLs pointing at the proxy back to registry URLs."""

        def walker(dep: LockfileDependency, name: str, dep_path: str) -> None:
            resolved = dep.get("resolved")
            if isinstance(resolved, str):
                dep["resolved"] = resolve_registry_url(
                    resolved, str(dep.get("version", "")), modules, npm_config
                )

        self.mutate(walker)
