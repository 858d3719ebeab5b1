"""
Packing local modules into tarballs.

The publish subset of a module is copied (through the transform chain) into
a temp directory named after the module and a hash of its publish state,
and ``npm pack`` runs inside it. A directory that already holds the tarball
for the current manifest version is reused as-is.
"""

from __future__ import annotations

import base64
import hashlib
import json
import logging
import re
import shutil
import threading
from collections.abc import Sequence
from pathlib import Path

from norman.core.exceptions import PackagingError, ProcessError
from norman.core.modules.manifest import manifest_version
from norman.core.modules.models import LocalModule, ModuleName
from norman.core.modules.subsets import PUBLISH_SUBSET
from norman.core.process import get_npm_executable, run_command
from norman.core.quick_sync import quick_sync_copy
from norman.core.state.manager import StateManager
from norman.core.transforms import FileTransform

logger = logging.getLogger(__name__)

PACK_DIR_PREFIX = "norman-pack-"

_STATE_HASH = re.compile(r"[0-9a-f]{16}")


def tarball_name(name: ModuleName, version: str) -> str:
    """File name ``npm pack`` gives a package: ``scope-pkg-1.0.0.tgz`` or ``pkg-1.0.0.tgz``."""
    if name.scope:
        return f"{name.scope}-{name.pkg}-{version}.tgz"
    return f"{name.pkg}-{version}.tgz"


def compute_integrity(data: bytes) -> str:
    """Subresource Integrity string (sha512) as recorded in npm lockfiles."""
    digest = hashlib.sha512(data).digest()
    return "sha512-" + base64.b64encode(digest).decode("ascii")


def file_integrity(path: Path) -> str:
    return compute_integrity(path.read_bytes())


def _safe_dir_name(name: ModuleName) -> str:
    return f"{name.scope}-{name.pkg}" if name.scope else name.pkg


class Packager:
    """
    Produces and caches tarballs of local modules.

    Concurrent requests to pack the same module are serialized; different
    modules pack in parallel.

    Example:
        >>> packager = Packager(Path("/tmp/norman"), state_manager, DEFAULT_TRANSFORMS)
        >>> tarball = packager.pack(module)
        >>> packager.integrity(module)
        'sha512-...'
    """

    def __init__(
        self,
        temp_dir: Path,
        state_manager: StateManager,
        transforms: Sequence[FileTransform],
    ) -> None:
        self.temp_dir = temp_dir
        self.state_manager = state_manager
        self.transforms = tuple(transforms)
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, module: LocalModule) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(module.name.name, threading.Lock())

    def state_hash(self, module: LocalModule) -> str:
        state = self.state_manager.actual_state(module, PUBLISH_SUBSET)
        payload = json.dumps(state.files, sort_keys=True).encode("utf-8")
        return hashlib.sha256(payload).hexdigest()[:16]

    def pack_dir(self, module: LocalModule) -> Path:
        """Deterministic temp directory for the module's current publish state."""
        return self.temp_dir / f"{PACK_DIR_PREFIX}{_safe_dir_name(module.name)}-{self.state_hash(module)}"

    def pack(self, module: LocalModule) -> Path:
        """
        Return the path to an up-to-date tarball of the module.

        Raises:
            ConfigError: If package.json is missing, unparsable or has no version
            PackagingError: If npm pack fails or produces no tarball
        """
        with self._lock_for(module):
            version = manifest_version(module.path)
            pack_dir = self.pack_dir(module)
            tarball = pack_dir / tarball_name(module.name, version)

            if tarball.is_file():
                logger.debug("Reusing packed tarball %s", tarball)
                return tarball

            self._remove_stale_dirs(module, keep=pack_dir)
            shutil.rmtree(pack_dir, ignore_errors=True)
            pack_dir.mkdir(parents=True)

            quick_sync_copy(module, pack_dir, self.transforms)

            try:
                run_command(
                    get_npm_executable(),
                    ["pack"],
                    cwd=pack_dir,
                    capture=True,
                    silent=True,
                )
            except ProcessError as e:
                raise PackagingError(
                    f"Failed to pack module {module.name}: {e}\n{e.output}",
                    module=module.name.name,
                ) from e

            if not tarball.is_file():
                raise PackagingError(
                    f"npm pack did not produce {tarball.name} for module {module.name}; "
                    "is the package name in package.json correct?",
                    module=module.name.name,
                )

            logger.info("Packed %s@%s", module.name, version)
            return tarball

    def integrity(self, module: LocalModule) -> str:
        """Pack (or reuse) the module's tarball and return its integrity string."""
        return file_integrity(self.pack(module))

    def _remove_stale_dirs(self, module: LocalModule, keep: Path) -> None:
        if not self.temp_dir.is_dir():
            return
        prefix = f"{PACK_DIR_PREFIX}{_safe_dir_name(module.name)}-"
        for entry in self.temp_dir.iterdir():
            suffix = entry.name[len(prefix):]
            if (
                entry != keep
                and entry.name.startswith(prefix)
                and _STATE_HASH.fullmatch(suffix)
                and entry.is_dir()
            ):
                shutil.rmtree(entry, ignore_errors=True)

    def clean(self) -> None:
        """Remove every packing temp directory."""
        shutil.rmtree(self.temp_dir, ignore_errors=True)
