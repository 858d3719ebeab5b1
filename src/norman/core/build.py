"""
Building modules and installing their dependencies on first use.
"""

from __future__ import annotations

import logging

from norman.core.context import ServiceContext
from norman.core.modules.manifest import dependency_names, has_script, try_read_manifest
from norman.core.modules.models import LocalModule
from norman.core.modules.subsets import BUILD_SUBSET
from norman.core.npm import NpmRunner
from norman.core.process import get_npm_executable, run_command

logger = logging.getLogger(__name__)


def build_module(module: LocalModule) -> None:
    """
    Run the module's build commands in order.

    A command naming an npm script of the module runs as ``npm run <cmd>``;
    anything else runs as a shell command in the module directory.

    Raises:
        ProcessError: If a build command fails
    """
    for command in module.build_commands:
        if has_script(module.path, command):
            run_command(get_npm_executable(), ["run", command], cwd=module.path)
        else:
            run_command(command, cwd=module.path)


def build_if_changed(ctx: ServiceContext, module: LocalModule) -> bool:
    """
    Build the module if its build subset changed since the last build.

    Returns:
        True if the module was built
    """
    if not ctx.state_manager.has_changed(module, BUILD_SUBSET):
        logger.debug("%s: build is up to date", module.name)
        return False

    if module.build_commands:
        logger.info("Building %s", module.name)
        build_module(module)
    ctx.state_manager.save_actual(module, BUILD_SUBSET)
    return True


def is_uninitialized(module: LocalModule) -> bool:
    """True if the module declares dependencies but none is installed."""
    if not module.use_npm:
        return False
    manifest = try_read_manifest(module.path)
    if manifest is None or not dependency_names(manifest, include_dev=True):
        return False
    return not module.node_modules.is_dir() or not any(module.node_modules.iterdir())


def install_if_uninitialized(ctx: ServiceContext, module: LocalModule) -> bool:
    """
    Install dependencies of a freshly cloned module, then build it if needed.

    Returns:
        True if dependencies were installed
    """
    if not is_uninitialized(module):
        return False

    logger.info("Installing dependencies of %s", module.name)
    NpmRunner(ctx).install(module)
    build_if_changed(ctx, module)
    return True
