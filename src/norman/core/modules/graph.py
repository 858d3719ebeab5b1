"""
Dependency graph over local modules.

The graph is derived, never stored: edges are recomputed from manifests on
disk on every query, since manifests can change between traversals.

An edge A -> B exists when A's manifest lists B's npm name and B is a known
local module. Packages that are not local modules come from the real
registry and are dropped.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import Enum

from norman.core.exceptions import DependencyCycleError
from norman.core.modules.manifest import dependency_names, try_read_manifest
from norman.core.modules.models import LocalModule
from norman.core.modules.registry import ModuleRegistry


class WalkerAction(Enum):
    """Value a visitor returns to continue or stop a traversal."""

    CONTINUE = "continue"
    STOP = "stop"


ModuleVisitor = Callable[[LocalModule], "WalkerAction | None"]


@dataclass
class _Frame:
    module: LocalModule
    deps: list[LocalModule]
    index: int = 0


class DependencyGraph:
    """
    Query object over the local dependency graph of a workspace.

    devDependencies count only for the modules named in ``dev_roots``
    (typically the modules a command was asked to operate on); all other
    modules contribute their runtime dependencies only.

    Example::

        graph = DependencyGraph(registry)
        graph.walk([app], lambda module: print(module.name))
        # prints every local dependency of app before app itself
    """

    def __init__(
        self,
        registry: ModuleRegistry,
        dev_roots: Iterable[LocalModule] = (),
    ) -> None:
        self._registry = registry
        self._dev_roots = {m.name.name for m in dev_roots}

    def direct_deps(self, module: LocalModule, include_dev: bool | None = None) -> list[LocalModule]:
        """
        Return the direct dependencies of a module that are local modules.

        Args:
            module: Module whose manifest is read
            include_dev: Include devDependencies; defaults to whether the
                module is one of the graph's dev roots
        """
        if include_dev is None:
            include_dev = module.name.name in self._dev_roots

        manifest = try_read_manifest(module.path)
        if manifest is None:
            return []

        result: list[LocalModule] = []
        for name in dependency_names(manifest, include_dev=include_dev):
            dep = self._registry.get(name)
            if dep is not None:
                result.append(dep)
        return result

    def walk(self, roots: Iterable[LocalModule], visitor: ModuleVisitor) -> None:
        """
        Visit modules depth-first, dependencies before dependants.

        Each module is visited at most once, even if reachable from several
        roots. The traversal uses an explicit stack carrying the ancestor
        path, so deep graphs do not exhaust the call stack.

        Args:
            roots: Modules to start from, in order
            visitor: Called once per module; returning WalkerAction.STOP ends
                the whole traversal

        Raises:
            DependencyCycleError: If a dependency is already an ancestor on
                the current path. Raised before the visitor runs for any
                module on the cycle.
        """
        visited: set[str] = set()

        for root in roots:
            if root.name.name in visited:
                continue

            stack = [_Frame(root, self.direct_deps(root))]
            ancestors = [root.name.name]

            while stack:
                frame = stack[-1]
                if frame.index < len(frame.deps):
                    dep = frame.deps[frame.index]
                    frame.index += 1
                    dep_name = dep.name.name
                    if dep_name in ancestors:
                        raise DependencyCycleError(dep_name, list(ancestors))
                    if dep_name in visited:
                        continue
                    stack.append(_Frame(dep, self.direct_deps(dep)))
                    ancestors.append(dep_name)
                    continue

                stack.pop()
                ancestors.pop()
                visited.add(frame.module.name.name)
                if visitor(frame.module) is WalkerAction.STOP:
                    return

    def ordered(self, roots: Iterable[LocalModule]) -> list[LocalModule]:
        """Return the walk order starting at ``roots``."""
        result: list[LocalModule] = []
        self.walk(roots, result.append)
        return result

    def transitive_deps(self, module: LocalModule) -> list[LocalModule]:
        """All local dependencies of a module, dependencies first, excluding the module."""
        return [m for m in self.ordered([module]) if m.name != module.name]

    def dependants(self, module: LocalModule) -> list[LocalModule]:
        """Modules that list ``module`` as a direct dependency."""
        return [
            candidate
            for candidate in self._registry
            if candidate.name != module.name
            and any(dep.name == module.name for dep in self.direct_deps(candidate))
        ]

    def tree(self, modules: Iterable[LocalModule]) -> list[tuple[LocalModule, list[LocalModule]]]:
        """Pairs of (module, direct local dependencies) for display."""
        return [(module, self.direct_deps(module)) for module in modules]
