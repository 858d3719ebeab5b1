"""
Change detection for module subsets.

Snapshots of file modification times are stored per module in
``<state dir>/state-<sha256 of module path>.json``, one record per subset
tag. Comparison is by modification time only: a ``touch`` without edits
counts as a change, and edits within the filesystem's timestamp resolution
can go unnoticed.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import shutil
import stat
import time
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from norman.core.modules.files import walk_module_files
from norman.core.modules.models import LocalModule
from norman.core.modules.subsets import FileSubset
from norman.core.state.models import ModuleState

logger = logging.getLogger(__name__)

_STATE_FILE = TypeAdapter(dict[str, ModuleState])


def mtime_ms(st: os.stat_result) -> int:
    """Modification time of a stat result in epoch milliseconds."""
    return st.st_mtime_ns // 1_000_000


class StateManager:
    """
    Computes, persists and compares module state snapshots.

    Example:
        >>> manager = StateManager(Path("~/.norman-state").expanduser())
        >>> if manager.has_changed(module, BUILD_SUBSET):
        ...     build(module)
        ...     manager.save(module, BUILD_SUBSET.name,
        ...                  manager.actual_state(module, BUILD_SUBSET))
    """

    def __init__(self, state_dir: Path) -> None:
        self.state_dir = state_dir

    def state_file_path(self, module: LocalModule) -> Path:
        digest = hashlib.sha256(str(module.path).encode("utf-8")).hexdigest()
        return self.state_dir / f"state-{digest}.json"

    def actual_state(self, module: LocalModule, subset: FileSubset) -> ModuleState:
        """Walk the module and snapshot every regular file the subset accepts."""
        files: dict[str, int] = {}
        for path, st in walk_module_files(module.path):
            if not stat.S_ISREG(st.st_mode):
                continue
            if subset.includes(module, path):
                files[str(path)] = mtime_ms(st)

        return ModuleState(
            module=module.name.name,
            timestamp=int(time.time() * 1000),
            files=files,
        )

    def _load_file(self, module: LocalModule) -> dict[str, ModuleState]:
        path = self.state_file_path(module)
        if not path.exists():
            return {}
        try:
            return _STATE_FILE.validate_json(path.read_bytes())
        except (OSError, ValidationError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable state file %s: %s", path, e)
            return {}

    def saved_state(self, module: LocalModule, tag: str) -> ModuleState | None:
        """Load the last snapshot stored under ``tag``, or None on first run."""
        state = self._load_file(module).get(tag)
        if state is not None and state.module != module.name.name:
            return None
        return state

    def save(self, module: LocalModule, tag: str, state: ModuleState) -> None:
        """Persist a snapshot, replacing any previous record for ``tag``."""
        records = self._load_file(module)
        records[tag] = state

        path = self.state_file_path(module)
        path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = path.with_suffix(".tmp")
        try:
            temp_path.write_bytes(_STATE_FILE.dump_json(records, indent=2))
            temp_path.replace(path)
        except OSError:
            if temp_path.exists():
                temp_path.unlink()
            raise

    def has_changed(self, module: LocalModule, subset: FileSubset, tag: str | None = None) -> bool:
        """
        Check whether a subset changed since the snapshot saved under ``tag``.

        True when no snapshot exists, when the number of files differs, or
        when a saved file is missing or has a newer modification time now.
        """
        tag = tag or subset.name
        saved = self.saved_state(module, tag)
        if saved is None:
            logger.debug("No saved %s state for %s", tag, module.name)
            return True

        actual = self.actual_state(module, subset).files
        saved_files = {
            path: mtime for path, mtime in saved.files.items() if subset.includes(module, Path(path))
        }

        if len(saved_files) != len(actual):
            logger.info("%s: %s subset changed, file count differs", module.name, tag)
            return True

        for path, saved_mtime in saved_files.items():
            actual_mtime = actual.get(path)
            if actual_mtime is None or actual_mtime > saved_mtime:
                logger.info("%s: %s subset changed, detected change: %s", module.name, tag, path)
                return True

        return False

    def save_actual(self, module: LocalModule, subset: FileSubset, tag: str | None = None) -> ModuleState:
        """Snapshot the subset now and persist it."""
        state = self.actual_state(module, subset)
        self.save(module, tag or subset.name, state)
        return state

    def clean(self) -> None:
        """Remove every stored state file."""
        shutil.rmtree(self.state_dir, ignore_errors=True)
