"""
Cloning modules that are not yet present on disk.
"""

from __future__ import annotations

import logging

from norman.core.context import ServiceContext
from norman.core.modules.models import LocalModule
from norman.core.process import run_command

logger = logging.getLogger(__name__)


def fetch_module(module: LocalModule) -> bool:
    """
    Clone a module's repository unless the module directory already exists.

    Returns:
        True if the module was cloned

    Raises:
        ProcessError: If git fails
    """
    if module.path.exists():
        logger.debug("%s already present at %s", module.name, module.path)
        return False
    if not module.repository:
        logger.warning("Module %s is missing at %s and has no repository to clone", module.name, module.path)
        return False

    module.path.parent.mkdir(parents=True, exist_ok=True)
    run_command("git", ["clone", module.repository, "-b", module.branch, str(module.path)])
    return True


def fetch_all(ctx: ServiceContext) -> list[LocalModule]:
    """Clone every missing module; returns the modules that were cloned."""
    return [module for module in ctx.modules if fetch_module(module)]
