"""
Local modules: identity, manifests, file walking, subsets and the dependency graph.
"""

from norman.core.modules.graph import DependencyGraph, WalkerAction
from norman.core.modules.models import LocalModule, ModuleName
from norman.core.modules.registry import ModuleRegistry
from norman.core.modules.subsets import BUILD_SUBSET, PUBLISH_SUBSET, FileSubset

__all__ = [
    "BUILD_SUBSET",
    "PUBLISH_SUBSET",
    "DependencyGraph",
    "FileSubset",
    "LocalModule",
    "ModuleName",
    "ModuleRegistry",
    "WalkerAction",
]
