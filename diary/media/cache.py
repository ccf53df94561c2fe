"""Filesystem-backed store for encoded derivatives.

The cache directory is a flat namespace: one file per derivative key and
no index. A file existing on disk is what makes a key a hit, so nothing
can drift out of sync across restarts. Entries are never evicted.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

from .errors import StorageError

logger = logging.getLogger(__name__)


class DerivativeCache:
    """Read and write derivative bytes by key."""

    def __init__(self, cache_dir: Path):
        self.cache_dir = Path(cache_dir)
        self.cache_dir.mkdir(parents=True, exist_ok=True)

    def path_for(self, key: str) -> Path:
        if not key or "/" in key or "\\" in key or key in (".", ".."):
            raise StorageError(f"Invalid derivative key: {key!r}")
        return self.cache_dir / key

    def get(self, key: str) -> bytes | None:
        try:
            return self.path_for(key).read_bytes()
        except FileNotFoundError:
            return None

    def put(self, key: str, data: bytes) -> Path:
        """Store ``data`` under ``key``, replacing any existing entry.

        Bytes land in a temp file next to the target and are moved into
        place with ``os.replace``, so readers only ever see a complete file
        even when two requests write the same key at once.
        """
        dest = self.path_for(key)
        tmp_name = None
        try:
            fd, tmp_name = tempfile.mkstemp(prefix=".tmp-", suffix=dest.suffix, dir=self.cache_dir)
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, dest)
        except OSError as e:
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)
            raise StorageError(f"Failed to write derivative {key}: {e}") from e
        logger.debug(f"Cached derivative {key} ({len(data)} bytes)")
        return dest
