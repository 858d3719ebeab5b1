"""
Named file subsets of a module.

A subset is a tagged predicate over (module, absolute file path). The tag
doubles as the key under which the State Manager stores snapshots.

- ``build``: files matching the module's build-trigger globs, or every file
  when no triggers are configured.
- ``publish``: files that end up in the published package.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

import pathspec

from norman.core.modules.files import is_incidental
from norman.core.modules.models import LocalModule

SubsetPredicate = Callable[[LocalModule, Path], bool]

_NEVER_PUBLISHED = frozenset({".gitignore", ".npmignore"})


@dataclass(frozen=True)
class FileSubset:
    """A predicate selecting module files, tagged with a name."""

    name: str
    predicate: SubsetPredicate

    def includes(self, module: LocalModule, filepath: Path) -> bool:
        return self.predicate(module, filepath)


@lru_cache(maxsize=256)
def trigger_spec(patterns: tuple[str, ...]) -> pathspec.PathSpec:
    """
    Compile build-trigger globs, matched against module-relative paths with
    gitignore wildcard rules.

    ``*`` never crosses ``/``. A pattern without a slash matches at any depth.
    """
    return pathspec.PathSpec.from_lines("gitwildmatch", patterns)


def is_build_trigger(module: LocalModule, filepath: Path) -> bool:
    if not module.build_triggers:
        return True

    rel = module.relative(filepath).as_posix()
    return trigger_spec(module.build_triggers).match_file(rel)


def is_published(module: LocalModule, filepath: Path) -> bool:
    rel = module.relative(filepath)
    if rel.as_posix() in _NEVER_PUBLISHED:
        return False
    if is_incidental(rel):
        return False
    if module.ignore_spec is not None and module.is_ignored_by_rules(filepath, filepath.is_dir()):
        return False
    return True


BUILD_SUBSET = FileSubset("build", is_build_trigger)
PUBLISH_SUBSET = FileSubset("publish", is_published)
