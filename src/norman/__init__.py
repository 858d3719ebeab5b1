"""
Norman - local development registry for interdependent npm packages.

Lets you work on several packages at once: a local registry proxy serves
locally-built packages to npm, and a synchronizer keeps dependants up to
date with fast in-place copies or full installs.
"""

__version__ = "0.9.0"

from norman.core.config.models import ModuleConfig, NormanConfig
from norman.core.modules.models import LocalModule, ModuleName

__all__ = ["LocalModule", "ModuleConfig", "ModuleName", "NormanConfig", "__version__"]
