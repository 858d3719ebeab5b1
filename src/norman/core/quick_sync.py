"""
Quick synchronization of module files without npm.

Copies the publish subset of a source module into a dependant's
``node_modules/<name>`` directory, skipping files whose copy is already at
least as new as the source, and then prunes files that the source no longer
publishes.
"""

from __future__ import annotations

import logging
import os
import shutil
import stat
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from norman.core.modules.files import is_incidental, walk_directory, walk_module_files
from norman.core.modules.models import LocalModule
from norman.core.modules.subsets import PUBLISH_SUBSET
from norman.core.state.manager import mtime_ms
from norman.core.transforms import FileTransform, copy_file

logger = logging.getLogger(__name__)

_EXEC_BITS = stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH


@dataclass
class QuickSyncReport:
    """Outcome of one quick sync."""

    copied: int = 0
    removed: int = 0
    skipped: bool = False

    @property
    def is_noop(self) -> bool:
        return self.copied == 0 and self.removed == 0


def _has_exec_permission(st: os.stat_result | None) -> bool:
    return st is not None and bool(st.st_mode & _EXEC_BITS)


def _sync_file(
    module: LocalModule,
    source: Path,
    source_stat: os.stat_result,
    target: Path,
    transforms: Sequence[FileTransform],
) -> bool:
    try:
        target_stat: os.stat_result | None = target.lstat()
    except FileNotFoundError:
        target_stat = None
    except OSError as e:
        logger.error("Error while copying to %s: %s", target, e)
        return False

    if target_stat is not None:
        if stat.S_ISDIR(target_stat.st_mode):
            shutil.rmtree(target)
        elif mtime_ms(source_stat) <= mtime_ms(target_stat):
            return False
        else:
            target.unlink()

    target.parent.mkdir(parents=True, exist_ok=True)
    executable = _has_exec_permission(source_stat) or _has_exec_permission(target_stat)
    try:
        copy_file(transforms, module, source, target, executable=executable)
    except FileNotFoundError:
        # Source moved away between walk and read; a later sync will catch up
        logger.debug("Skipping %s: file vanished during sync", source)
        return False
    return True


def _sync_directory(target: Path) -> bool:
    try:
        target_stat = target.lstat()
    except FileNotFoundError:
        target_stat = None

    if target_stat is not None:
        if stat.S_ISDIR(target_stat.st_mode):
            return False
        target.unlink()

    target.mkdir(parents=True, exist_ok=True)
    return True


def quick_sync_copy(
    module: LocalModule,
    target_dir: Path,
    transforms: Sequence[FileTransform],
) -> int:
    """
    Copy the publish subset of ``module`` into ``target_dir``.

    Returns:
        Number of files copied and directories created
    """
    copied = 0
    for source, source_stat in walk_module_files(module.path):
        if not PUBLISH_SUBSET.includes(module, source):
            continue

        target = target_dir / module.relative(source)
        if stat.S_ISDIR(source_stat.st_mode):
            changed = _sync_directory(target)
        else:
            changed = _sync_file(module, source, source_stat, target, transforms)

        if changed:
            copied += 1
    return copied


def quick_sync_remove(module: LocalModule, target_dir: Path) -> int:
    """
    Remove entries of ``target_dir`` the source module no longer publishes.

    The removal set is computed before anything is deleted. Nested
    ``node_modules`` inside the target belong to npm and are left alone.

    Returns:
        Number of entries removed
    """
    to_remove: list[tuple[Path, bool]] = []
    pruned_dirs: list[Path] = []

    for entry, entry_stat in walk_directory(target_dir):
        rel = entry.relative_to(target_dir)
        if is_incidental(rel) or any(d in entry.parents for d in pruned_dirs):
            continue

        source = module.path / rel
        if not os.path.lexists(source) or not PUBLISH_SUBSET.includes(module, source):
            is_dir = stat.S_ISDIR(entry_stat.st_mode)
            to_remove.append((entry, is_dir))
            if is_dir:
                pruned_dirs.append(entry)

    # Files first, then directories from the deepest up
    to_remove.sort(key=lambda item: (item[1], -len(item[0].parts)))
    for path, is_dir in to_remove:
        try:
            if is_dir:
                shutil.rmtree(path)
            else:
                path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning('Failed to remove "%s": %s', path, e)

    return len(to_remove)


def quick_sync(
    source: LocalModule,
    target: LocalModule,
    transforms: Sequence[FileTransform],
) -> QuickSyncReport:
    """
    Synchronize files of ``source`` into ``target``'s installed copy of it.

    A symlinked install location means the developer linked the dependency
    manually; it is left untouched.
    """
    sync_target = target.installed_path(source)
    if sync_target.is_symlink():
        logger.warning('Skipping sync into "%s" because it is a linked dependency', sync_target)
        return QuickSyncReport(skipped=True)

    report = QuickSyncReport(
        copied=quick_sync_copy(source, sync_target, transforms),
        removed=quick_sync_remove(source, sync_target),
    )

    if not report.is_noop:
        logger.info(
            "%s -> %s: copied %d, removed %d",
            source.name,
            target.name,
            report.copied,
            report.removed,
        )
    return report
