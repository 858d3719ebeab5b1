"""
Local npm registry proxy.

Serves packuments and tarballs of local modules and passes everything else
through to the upstream registries configured in .npmrc.
"""

from norman.core.registry.app import create_app
from norman.core.registry.server import RegistryServer

__all__ = ["RegistryServer", "create_app"]
