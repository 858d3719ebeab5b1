"""
Data models for synchronization runs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from norman.core.modules.models import LocalModule

if TYPE_CHECKING:
    from norman.core.modules.graph import DependencyGraph


@dataclass(frozen=True)
class SyncStep:
    """One module of a sync plan."""

    module: LocalModule
    should_package: bool = False


@dataclass
class SyncPlan:
    """
    Ordered steps of one synchronization run.

    Steps are in dependency order: every module comes after all of its
    local dependencies. ``graph`` is the graph the order was computed on;
    running the plan resolves dependencies through it so that only planned
    modules are synced into each other.
    """

    steps: list[SyncStep] = field(default_factory=list)
    graph: DependencyGraph | None = None

    @property
    def modules(self) -> list[LocalModule]:
        return [step.module for step in self.steps]

    def __len__(self) -> int:
        return len(self.steps)


class SyncResult(BaseModel):
    """Outcome of syncing one module."""

    actual_integrity: str | None = Field(
        default=None,
        description="Integrity of the freshly packed tarball, when the module was packaged",
    )
    installed: bool = Field(default=False, description="Whether npm install ran")
    built: bool = Field(default=False, description="Whether build commands ran")
    files_copied: int = Field(default=0, ge=0)
    files_removed: int = Field(default=0, ge=0)


class SyncSummary(BaseModel):
    """Totals over a synchronization run, for reporting."""

    modules: int = 0
    installed: int = 0
    built: int = 0
    packaged: int = 0
    files_copied: int = 0
    files_removed: int = 0

    @classmethod
    def from_results(cls, results: dict[str, SyncResult]) -> SyncSummary:
        values = list(results.values())
        return cls(
            modules=len(values),
            installed=sum(1 for r in values if r.installed),
            built=sum(1 for r in values if r.built),
            packaged=sum(1 for r in values if r.actual_integrity),
            files_copied=sum(r.files_copied for r in values),
            files_removed=sum(r.files_removed for r in values),
        )
