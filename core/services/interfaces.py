"""Core service interfaces and shared data structures.

This module defines the collaborator interfaces the core depends on (file
access and durable blob storage) and the simple dataclasses that report
operation outcomes across the infrastructure and UI layers.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path

from core.models import ScanEntry


@dataclass
class ExportResult:
    """Outcome of a bulk export.

    Attributes:
        success_count: Number of files copied.
        failure_count: Number of files that failed to copy.
        messages: One human-readable message per failure.
        destination: Folder the files were copied into.
    """

    success_count: int = 0
    failure_count: int = 0
    messages: list[str] = field(default_factory=list)
    destination: Path | None = None


@dataclass(frozen=True)
class CloseUp:
    """Item shown in the close-up view and its neighbours in navigation order.

    Attributes:
        identity: Identity of the focused item.
        index: Absolute index of the focused item.
        previous: Identity of the preceding item, if any.
        following: Identity of the following item, if any.
    """

    identity: str
    index: int
    previous: str | None
    following: str | None


class IFileAccess:
    """Interface for the file access provider."""

    def is_supported(self) -> bool:
        """Return True when folder operations are available on this platform."""
        raise NotImplementedError

    def list_entries(self, folder: Path) -> Iterator[ScanEntry]:
        """Yield image entries of `folder`, skipping entries that cannot be read."""
        raise NotImplementedError

    def read_bytes(self, handle: str) -> bytes:
        """Return the raw content behind `handle`."""
        raise NotImplementedError

    def write_bytes(self, folder: Path, name: str, content: bytes) -> None:
        """Create or overwrite `name` inside `folder` with `content`."""
        raise NotImplementedError


class IBlobStore:
    """Interface for the durable key/value substrate of the session store."""

    def get(self, key: str) -> bytes | None:
        """Return the blob stored under `key`, or None."""
        raise NotImplementedError

    def put(self, key: str, data: bytes) -> None:
        """Durably store `data` under `key`, replacing any previous value."""
        raise NotImplementedError
