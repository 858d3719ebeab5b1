"""
Data models for persisted module state.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class ModuleState(BaseModel):
    """
    Snapshot of file modification times of one module subset.

    Example:
        >>> state = ModuleState(module="@acme/lib-a", timestamp=1700000000000,
        ...                     files={"/work/lib-a/index.js": 1699999999000})
        >>> state.model_dump_json()
    """

    module: str = Field(description="npm name of the module")
    timestamp: int = Field(description="When the snapshot was taken, in epoch milliseconds")
    files: dict[str, int] = Field(
        default_factory=dict,
        description="Absolute file path -> modification time in epoch milliseconds",
    )
