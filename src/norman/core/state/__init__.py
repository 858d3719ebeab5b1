"""
Persisted per-module state used for change detection.
"""

from norman.core.state.manager import StateManager
from norman.core.state.models import ModuleState

__all__ = ["ModuleState", "StateManager"]
