"""
Synchronizing local modules into their dependants.
"""

from norman.core.sync.models import SyncPlan, SyncResult, SyncStep, SyncSummary
from norman.core.sync.synchronizer import Synchronizer

__all__ = ["SyncPlan", "SyncResult", "SyncStep", "SyncSummary", "Synchronizer"]
