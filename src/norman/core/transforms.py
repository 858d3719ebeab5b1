"""
Content transforms applied when module files are copied.

A transform chain is an ordered list of (match, transform) pairs. When a
file is copied, the first transform whose matcher accepts the source path
rewrites the file content; files no transform matches are copied as-is.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path

from norman.core.modules.models import LocalModule

logger = logging.getLogger(__name__)

FileMatcher = Callable[[LocalModule, Path], bool]
ContentTransform = Callable[[LocalModule, Path, bytes], bytes]


@dataclass(frozen=True)
class FileTransform:
    """One entry of a transform chain."""

    name: str
    match: FileMatcher
    transform: ContentTransform


def _is_source_map(module: LocalModule, source: Path) -> bool:
    return source.name.endswith(".js.map")


def _rewrite_source_root(module: LocalModule, source: Path, content: bytes) -> bytes:
    """Point sourceRoot at the original directory so debuggers resolve sources after the move."""
    try:
        data = json.loads(content.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        logger.debug("Not rewriting malformed source map %s", source)
        return content
    if not isinstance(data, dict):
        return content
    data["sourceRoot"] = str(source.parent)
    return json.dumps(data).encode("utf-8")


SOURCE_MAP_TRANSFORM = FileTransform("source-map", _is_source_map, _rewrite_source_root)

DEFAULT_TRANSFORMS: tuple[FileTransform, ...] = (SOURCE_MAP_TRANSFORM,)


def apply_transforms(
    transforms: Sequence[FileTransform],
    module: LocalModule,
    source: Path,
    content: bytes,
) -> bytes:
    for entry in transforms:
        if entry.match(module, source):
            return entry.transform(module, source, content)
    return content


def copy_file(
    transforms: Sequence[FileTransform],
    module: LocalModule,
    source: Path,
    target: Path,
    executable: bool = False,
) -> None:
    """
    Copy a module file through the transform chain.

    The content is read into memory and written anew rather than using a
    filesystem copy primitive, since those misbehave on some shared-folder
    mounts. Permissions are 0o666 (minus umask), plus user-exec when
    ``executable`` is set.

    Raises:
        FileNotFoundError: If the source vanished before it could be read
    """
    content = apply_transforms(transforms, module, source, source.read_bytes())

    mode = 0o666 | (0o100 if executable else 0)
    fd = os.open(target, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
    with os.fdopen(fd, "wb") as f:
        f.write(content)
