"""Core domain models for scanned images and browsing sessions."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class GridMode(str, Enum):
    """Supported grid layouts, stored by their value in the session table."""

    GRID_5X5 = "5x5"
    GRID_6X4 = "6x4"

    @property
    def cols(self) -> int:
        return 5 if self is GridMode.GRID_5X5 else 6

    @property
    def rows(self) -> int:
        return 5 if self is GridMode.GRID_5X5 else 4

    @property
    def page_size(self) -> int:
        return self.cols * self.rows

    @property
    def label(self) -> str:
        return f"{self.cols}×{self.rows} Grid"

    def toggled(self) -> GridMode:
        """Return the other layout."""
        return GridMode.GRID_6X4 if self is GridMode.GRID_5X5 else GridMode.GRID_5X5

    @classmethod
    def parse(cls, value: str | None) -> GridMode:
        """Parse a stored value, falling back to 5x5 for unknown input."""
        try:
            return cls(value)
        except ValueError:
            return cls.GRID_5X5


@dataclass(frozen=True)
class ScanEntry:
    """A single file reported by the file access provider."""

    name: str
    size_bytes: int
    last_modified: int  # epoch milliseconds
    handle: str

    @property
    def relative_path(self) -> str:
        """Path relative to the scanned folder (scans are not recursive)."""
        return self.name


@dataclass
class ImageItem:
    """One catalogued image and its selection/thumbnail state."""

    identity: str
    relative_path: str
    display_name: str
    size_bytes: int
    last_modified: int
    handle: str
    selected: bool = False
    thumbnail_data: bytes | None = None


@dataclass
class SessionRecord:
    """Durable record of one folder's browsing progress."""

    session_id: int
    folder_name: str
    folder_key: str | None
    created_at: datetime
    last_accessed_at: datetime
    grid_mode: GridMode = GridMode.GRID_5X5
    current_page: int = 0
    focused_index: int = 0


@dataclass
class StoredItem:
    """An item row as persisted in the session store."""

    item_id: int
    session_id: int
    relative_path: str
    display_name: str
    size_bytes: int
    last_modified: int
    selected: bool
    thumbnail_data: bytes | None = None
