"""Local filesystem implementation of the file access provider."""

from __future__ import annotations

from collections.abc import Iterator
import os
from pathlib import Path

from loguru import logger

from core.errors import PermissionDeniedError
from core.models import ScanEntry
from core.services.interfaces import IFileAccess

IMAGE_EXTENSIONS: frozenset[str] = frozenset({".jpg", ".jpeg", ".png", ".gif", ".webp", ".bmp"})


def is_image_file(name: str) -> bool:
    """True if `name` has one of the supported image extensions."""
    return Path(name).suffix.lower() in IMAGE_EXTENSIONS


class LocalFileAccess(IFileAccess):
    """Enumerate, read and write files on a local (or mounted) filesystem."""

    def is_supported(self) -> bool:
        return hasattr(os, "scandir")

    def list_entries(self, folder: Path) -> Iterator[ScanEntry]:
        """Yield image files directly inside `folder` (not recursive).

        Raises:
            PermissionDeniedError: If the folder itself cannot be listed.
            FileNotFoundError: If `folder` does not exist or is not a directory.
        """
        folder = Path(folder)
        if not folder.is_dir():
            raise FileNotFoundError(f"Folder not found: {folder}")
        try:
            it = os.scandir(folder)
        except PermissionError as ex:
            raise PermissionDeniedError(f"Permission denied for folder {folder}") from ex

        with it:
            for entry in it:
                if not is_image_file(entry.name):
                    continue
                try:
                    # undecodable bytes come back surrogate-escaped and cannot be stored
                    entry.name.encode("utf-8")
                except UnicodeEncodeError as ex:
                    logger.warning("Skipping entry with undecodable name {!r}: {}", entry.name, ex)
                    continue
                try:
                    if not entry.is_file():
                        continue
                    st = entry.stat()
                    if not os.access(entry.path, os.R_OK):
                        raise PermissionError("not readable")
                except OSError as ex:
                    logger.warning("Skipping unreadable entry {}: {}", entry.path, ex)
                    continue
                yield ScanEntry(
                    name=entry.name,
                    size_bytes=int(st.st_size),
                    last_modified=int(st.st_mtime_ns // 1_000_000),
                    handle=entry.path,
                )

    def read_bytes(self, handle: str) -> bytes:
        return Path(handle).read_bytes()

    def write_bytes(self, folder: Path, name: str, content: bytes) -> None:
        target = Path(folder) / Path(name).name
        target.write_bytes(content)
