"""File-backed key/value blob store used as the durable substrate."""

from __future__ import annotations

import os
from pathlib import Path
import re
import tempfile

from loguru import logger

from core.services.interfaces import IBlobStore

_SAFE_KEY = re.compile(r"^[A-Za-z0-9_.-]+$")


class FileBlobStore(IBlobStore):
    """Store each key as one file under `root`, replaced atomically on write."""

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def _path_for(self, key: str) -> Path:
        if not _SAFE_KEY.match(key):
            raise ValueError(f"Invalid blob key: {key!r}")
        return self._root / f"{key}.bin"

    def get(self, key: str) -> bytes | None:
        path = self._path_for(key)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None

    def put(self, key: str, data: bytes) -> None:
        path = self._path_for(key)
        self._root.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{key}.", suffix=".tmp", dir=str(self._root))
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
        except OSError:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise
        logger.debug("Blob {} written ({} bytes)", key, len(data))
