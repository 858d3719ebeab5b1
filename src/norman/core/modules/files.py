"""
Filesystem walking over module trees.

Module walks skip incidental directories (installed dependencies, VCS and
IDE metadata) and never descend into them. Entries that vanish or cannot
be stat'ed while walking (broken links, concurrent edits) are skipped.
"""

from __future__ import annotations

import os
import stat
from collections.abc import Iterator
from pathlib import Path, PurePath

INCIDENTAL_NAMES = frozenset({"node_modules", ".git", ".hg", ".svn", ".idea", ".vscode"})

# Backup copies of files norman rewrites in place (see lockfile.py)
BACKUP_SUFFIX = ".norman-bak"


def is_incidental(path: PurePath) -> bool:
    """True if any component of the path is an incidental directory or a norman backup."""
    if path.name.endswith(BACKUP_SUFFIX):
        return True
    return any(part in INCIDENTAL_NAMES for part in path.parts)


def _list_dir(directory: Path) -> list[str]:
    try:
        return sorted(os.listdir(directory))
    except OSError:
        return []


def walk_module_files(root: Path) -> Iterator[tuple[Path, os.stat_result]]:
    """
    Walk a module tree, yielding (path, stat) for files and directories.

    Directories are yielded before their contents. The root itself is not
    yielded. Symlinks are followed when stat'ing.
    """
    stack: list[Path] = [root]
    while stack:
        directory = stack.pop()
        children: list[Path] = []
        for name in _list_dir(directory):
            if name in INCIDENTAL_NAMES or name.endswith(BACKUP_SUFFIX):
                continue
            path = directory / name
            try:
                st = path.stat()
            except OSError:
                continue
            yield path, st
            if stat.S_ISDIR(st.st_mode):
                children.append(path)
        # Reverse so that siblings are visited in sorted order
        stack.extend(reversed(children))


def walk_directory(root: Path) -> Iterator[tuple[Path, os.stat_result]]:
    """
    Walk every entry under root without exclusions, yielding (path, lstat).

    Symlinked directories are yielded but not descended into.
    """
    stack: list[Path] = [root]
    while stack:
        directory = stack.pop()
        children: list[Path] = []
        for name in _list_dir(directory):
            path = directory / name
            try:
                st = path.lstat()
            except OSError:
                continue
            yield path, st
            if stat.S_ISDIR(st.st_mode):
                children.append(path)
        stack.extend(reversed(children))
