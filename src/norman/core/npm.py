"""
Running npm inside a local module against the registry proxy, or against
the real registry for commands the proxy cannot serve.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping, Sequence

from norman.core.context import ServiceContext
from norman.core.lockfile import Lockfile
from norman.core.modules.models import LocalModule
from norman.core.process import get_npm_executable, run_command

logger = logging.getLogger(__name__)


class NpmRunner:
    """
    Runs npm commands in a module with registry settings pointing at the proxy.

    When the module has a lockfile, integrity fields of local modules are
    refreshed before npm runs, and resolved URLs are mapped back to real
    registry URLs if npm modified the lockfile.

    Example:
        >>> runner = NpmRunner(ctx)
        >>> runner.install(module)
        >>> runner.run(module, ["ls", "--depth=0"])
    """

    def __init__(self, ctx: ServiceContext) -> None:
        self.ctx = ctx

    def build_env(self, module: LocalModule) -> dict[str, str]:
        """Environment for npm: every configured registry is redirected to the proxy."""
        address = self.ctx.address
        env = dict(os.environ)
        for scope in self.ctx.npm_config.scoped_registries():
            env[f"npm_config_{scope}:registry"] = address
        env["npm_config_registry"] = address
        env["npm_config_package-lock"] = "true" if module.has_lockfile() else "false"
        return env

    def local_integrities(
        self,
        lockfile: Lockfile,
        known: Mapping[str, str] | None = None,
    ) -> dict[str, str]:
        """
        Integrity strings for every local module recorded in a lockfile.

        Modules present in ``known`` are taken from it; others are packed.
        """
        known = known or {}
        result: dict[str, str] = {}
        for name in lockfile.integrities({m.name.name for m in self.ctx.modules}):
            if name in known:
                result[name] = known[name]
                continue
            module = self.ctx.modules.get(name)
            if module is not None:
                result[name] = self.ctx.packager.integrity(module)
        return result

    def run(
        self,
        module: LocalModule,
        args: str | Sequence[str],
        *,
        integrities: Mapping[str, str] | None = None,
        capture: bool = False,
    ) -> str:
        """
        Run ``npm <args>`` in the module directory.

        Args:
            module: Module to run npm in
            args: npm arguments
            integrities: Already known tarball integrities of local modules
            capture: Capture and return stdout

        Raises:
            ProcessError: If npm exits with a non-zero status
            LockfileError: If the module's lockfile is invalid
        """
        if isinstance(args, str):
            args = [args]

        modified_before: int | None = None
        if module.lockfile_path.exists():
            lockfile = Lockfile(module.lockfile_path)
            lockfile.update_integrity(self.local_integrities(lockfile, integrities))
            modified_before = module.lockfile_path.stat().st_mtime_ns

        output = run_command(
            get_npm_executable(),
            list(args),
            cwd=module.path,
            env=self.build_env(module),
            capture=capture,
        )

        if module.lockfile_path.exists():
            if module.lockfile_path.stat().st_mtime_ns != modified_before:
                logger.debug("%s: lockfile changed, restoring registry URLs", module.name)
                Lockfile(module.lockfile_path).update_resolved(self.ctx.modules, self.ctx.npm_config)

        return output

    def run_upstream(
        self,
        module: LocalModule,
        args: str | Sequence[str],
        *,
        capture: bool = False,
    ) -> str:
        """
        Run ``npm <args>`` against the module's real registry.

        The proxy is bypassed and the lockfile is left alone, so npm sees the
        registry settings of the user's own npm configuration.

        Raises:
            ProcessError: If npm exits with a non-zero status
        """
        if isinstance(args, str):
            args = [args]
        return run_command(
            get_npm_executable(), list(args), cwd=module.path, capture=capture, silent=capture
        )

    def install(self, module: LocalModule, integrities: Mapping[str, str] | None = None) -> None:
        """Run ``npm install`` followed by ``npm prune``."""
        self.run(module, "install", integrities=integrities)
        self.run(module, "prune", integrities=integrities)
