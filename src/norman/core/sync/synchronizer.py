"""
Synchronization of local modules with their local dependencies.

For each module of a plan, in dependency order:

1. bring installed copies of local dependencies up to date, either by a
   full npm install (lockfile modules, or when the installed copy drifted)
   or by quick-syncing files into node_modules;
2. rebuild the module if its build subset changed;
3. pack it when a lockfile module depends on it, recording the tarball
   integrity for the dependants that run later.
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Iterable, Mapping
from pathlib import Path

from norman.core.build import build_if_changed
from norman.core.context import ServiceContext
from norman.core.lockfile import Lockfile
from norman.core.modules.graph import DependencyGraph
from norman.core.modules.manifest import dependency_names, first_missing_dependency, try_read_manifest
from norman.core.modules.models import LocalModule
from norman.core.npm import NpmRunner
from norman.core.quick_sync import quick_sync
from norman.core.sync.models import SyncPlan, SyncResult, SyncStep

logger = logging.getLogger(__name__)


def _declared_deps(module_dir: Path) -> list[str]:
    manifest = try_read_manifest(module_dir)
    if manifest is None:
        return []
    return sorted(dependency_names(manifest, include_dev=True))


def _remove_installed(path: Path) -> None:
    if path.is_symlink() or path.is_file():
        path.unlink()
    elif path.exists():
        shutil.rmtree(path)


class Synchronizer:
    """
    Plans and runs synchronization of local modules.

    The registry proxy must be running (its address set on the context)
    before a plan that may install is run.

    Example:
        >>> synchronizer = Synchronizer(ctx)
        >>> plan = synchronizer.build_plan([app])
        >>> results = synchronizer.run(plan)
    """

    def __init__(self, ctx: ServiceContext, npm: NpmRunner | None = None) -> None:
        self.ctx = ctx
        self.npm = npm or NpmRunner(ctx)

    def build_plan(self, roots: Iterable[LocalModule]) -> SyncPlan:
        """
        Order the roots and their local dependency closure.

        Every transitive dependency of a module with a lockfile is marked
        for packaging, so the lockfile can be checked against a real tarball.

        Raises:
            DependencyCycleError: If the local dependency graph has a cycle
        """
        roots = list(roots)
        graph = self.ctx.graph(dev_roots=roots)
        ordered = graph.ordered(roots)

        to_package: set[str] = set()
        for module in ordered:
            if module.has_lockfile():
                to_package.update(dep.name.name for dep in graph.transitive_deps(module))

        return SyncPlan(
            steps=[SyncStep(module, should_package=module.name.name in to_package) for module in ordered],
            graph=graph,
        )

    def run(self, plan: SyncPlan, build: bool = True) -> dict[str, SyncResult]:
        """Run every step in plan order; returns results keyed by module name."""
        results: dict[str, SyncResult] = {}
        for step in plan.steps:
            results[step.module.name.name] = self.sync(
                step.module,
                should_build=build,
                should_package=step.should_package,
                prior_results=results,
                graph=plan.graph,
            )
        return results

    def sync(
        self,
        module: LocalModule,
        should_build: bool,
        should_package: bool,
        prior_results: Mapping[str, SyncResult],
        graph: DependencyGraph | None = None,
    ) -> SyncResult:
        """
        Synchronize one module.

        ``graph`` decides which local modules count as its dependencies; it
        should be the graph of the plan the module belongs to.

        Raises:
            ProcessError: If npm or a build command fails
            PackagingError: If packing the module fails
        """
        logger.debug("Syncing %s", module.name)
        if module.has_lockfile():
            result = self.sync_locked(module, prior_results)
        else:
            result = self.sync_live(module, graph)

        if should_build:
            result.built = build_if_changed(self.ctx, module)

        if should_package:
            result.actual_integrity = self.ctx.packager.integrity(module)

        return result

    def broken_dependencies(
        self,
        module: LocalModule,
        prior_results: Mapping[str, SyncResult],
    ) -> list[str]:
        """
        Local dependencies whose lockfile integrity differs from the tarball packed in this run.
        """
        if not module.lockfile_path.exists():
            return []
        local_names = {m.name.name for m in self.ctx.modules}
        recorded = Lockfile(module.lockfile_path).integrities(local_names)

        broken = []
        for name, integrities in recorded.items():
            prior = prior_results.get(name)
            if prior is None or prior.actual_integrity is None:
                continue
            if any(integrity != prior.actual_integrity for integrity in integrities):
                broken.append(name)
        return broken

    def sync_locked(self, module: LocalModule, prior_results: Mapping[str, SyncResult]) -> SyncResult:
        """Install through npm when a local dependency's tarball no longer matches the lockfile."""
        result = SyncResult()
        if not module.use_npm:
            logger.debug("%s is not managed by npm, skipping install", module.name)
            return result

        broken = self.broken_dependencies(module, prior_results)
        for name in broken:
            logger.info("%s: integrity of %s changed, reinstalling", module.name, name)
            _remove_installed(module.node_modules / name)

        needs_install = bool(broken) or not module.node_modules.is_dir()
        if not needs_install:
            missing = first_missing_dependency(module.path)
            if missing is not None:
                logger.info('Reinstalling dependencies because module "%s" is not installed', missing)
                needs_install = True

        if needs_install:
            integrities = {
                name: r.actual_integrity for name, r in prior_results.items() if r.actual_integrity
            }
            self.npm.install(module, integrities=integrities)
            result.installed = True
        return result

    def sync_live(self, module: LocalModule, graph: DependencyGraph | None = None) -> SyncResult:
        """
        Quick-sync direct local dependencies into the module.

        Falls back to a full install when node_modules is missing, or when an
        installed copy is missing or declares other dependencies than its source.
        Without a plan graph the module is treated as the only root.
        """
        result = SyncResult()
        if graph is None:
            graph = self.ctx.graph(dev_roots=[module])
        deps = graph.direct_deps(module)

        if module.use_npm and not module.node_modules.is_dir() and _declared_deps(module.path):
            logger.info("Installing dependencies of %s: node_modules is missing", module.name)
            self.npm.install(module)
            result.installed = True
            return result

        needs_install = False
        for dep in deps:
            installed = module.installed_path(dep)
            if module.use_npm and not installed.is_symlink():
                if not installed.exists():
                    logger.info('Reinstalling dependencies because module "%s" is not installed', dep.name)
                    needs_install = True
                    break
                if _declared_deps(installed) != _declared_deps(dep.path):
                    logger.info(
                        'Reinstalling dependencies because dependencies of module "%s" have changed',
                        dep.name,
                    )
                    _remove_installed(installed)
                    needs_install = True
                    break

            report = quick_sync(dep, module, self.ctx.transforms)
            result.files_copied += report.copied
            result.files_removed += report.removed

        if module.use_npm and not needs_install:
            missing = first_missing_dependency(module.path)
            if missing is not None:
                logger.info('Reinstalling dependencies because module "%s" is not installed', missing)
                needs_install = True

        if needs_install:
            self.npm.install(module)
            result.installed = True
        return result
