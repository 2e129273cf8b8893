"""Lightweight view model wrapper around `ImageItem` for one grid cell."""

from __future__ import annotations

from dataclasses import dataclass

from core.models import ImageItem
from infrastructure.image_service import DisplayHandle


class _Pending:
    """Marker for a thumbnail that has not been produced yet."""

    def __repr__(self) -> str:
        return "PENDING"


PENDING = _Pending()


def format_size(size_bytes: int) -> str:
    """Human-readable file size (e.g. "1.4 MB")."""
    size = float(max(0, size_bytes))
    for unit in ("B", "KB", "MB", "GB"):
        if size < 1024 or unit == "GB":
            return f"{int(size)} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} GB"


@dataclass
class ItemVM:
    """Expose convenient properties for the grid tile bindings."""

    record: ImageItem
    index: int
    focused: bool
    thumbnail: DisplayHandle | _Pending

    @property
    def identity(self) -> str:
        return self.record.identity

    @property
    def file_name(self) -> str:
        return self.record.display_name

    @property
    def size_label(self) -> str:
        return format_size(self.record.size_bytes)

    @property
    def is_selected(self) -> bool:
        return bool(self.record.selected)

    @property
    def is_pending(self) -> bool:
        return self.thumbnail is PENDING
