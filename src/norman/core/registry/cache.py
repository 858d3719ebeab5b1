"""
On-disk cache of tarballs proxied from upstream registries.

Entries are keyed by an HMAC of the upstream URL. The cache is append-only;
concurrent writers of the same key write identical content, and each write
lands through a rename so readers never observe a partial file.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import os
import shutil
import tempfile
from pathlib import Path

logger = logging.getLogger(__name__)

_CACHE_KEY = b"norman"


def cache_key(url: str) -> str:
    return hmac.new(_CACHE_KEY, url.encode("utf-8"), hashlib.sha256).hexdigest()


class TarballCache:
    def __init__(self, cache_dir: Path) -> None:
        self.cache_dir = cache_dir

    def path_for(self, url: str) -> Path:
        return self.cache_dir / cache_key(url)

    def get(self, url: str) -> Path | None:
        """Cached file for ``url``, or None on a miss."""
        path = self.path_for(url)
        return path if path.is_file() else None

    def put(self, url: str, data: bytes) -> Path:
        path = self.path_for(url)
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        fd, temp_name = tempfile.mkstemp(dir=self.cache_dir, prefix=".partial-")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(temp_name, path)
        except OSError:
            if os.path.exists(temp_name):
                os.unlink(temp_name)
            raise
        logger.debug("Cached %s as %s", url, path.name)
        return path

    def clean(self) -> None:
        """Remove every cached tarball."""
        shutil.rmtree(self.cache_dir, ignore_errors=True)
