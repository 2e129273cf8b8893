"""Item identity and reconciliation of fresh scans against stored state.

A rescan is merged with the rows persisted for the same session by relative
path: selection and thumbnails carry over, new files start unselected, and
rows whose files vanished are reported but left in the store.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
import hashlib

from core.models import ImageItem, ScanEntry, StoredItem


def derive_identity(relative_path: str, last_modified: int) -> str:
    """Compute a stable identity from the relative path and modification time."""
    sig = f"{relative_path}|{int(last_modified)}".encode("utf-8", errors="surrogatepass")
    return hashlib.sha1(sig).hexdigest()


def _sort_key(entry: ScanEntry) -> tuple[str, str]:
    return (entry.name.casefold(), entry.relative_path)


def sort_entries(entries: Iterable[ScanEntry]) -> list[ScanEntry]:
    """Return entries in display order (case-insensitive name, then path)."""
    return sorted(entries, key=_sort_key)


@dataclass
class ReconcileResult:
    """Merged items plus the differences against the stored rows.

    Attributes:
        items: Items in display order, ready for viewing.
        new_entries: Scanned entries with no stored row yet.
        missing_paths: Stored relative paths that were not found by the scan.
    """

    items: list[ImageItem] = field(default_factory=list)
    new_entries: list[ScanEntry] = field(default_factory=list)
    missing_paths: list[str] = field(default_factory=list)


def reconcile(
    entries: Iterable[ScanEntry], stored: Iterable[StoredItem] | None = None
) -> ReconcileResult:
    """Merge a fresh scan with previously stored rows of the same session.

    Args:
        entries: Entries reported by the scan (any order).
        stored: Rows persisted for the matching session, or None for a new one.
    """
    saved: dict[str, StoredItem] = {}
    for row in stored or []:
        # UNIQUE(session_id, relative_path) makes duplicates impossible; first wins
        saved.setdefault(row.relative_path, row)

    result = ReconcileResult()
    seen: set[str] = set()
    for entry in sort_entries(entries):
        path = entry.relative_path
        if path in seen:
            continue
        seen.add(path)
        row = saved.get(path)
        if row is None:
            result.new_entries.append(entry)
        result.items.append(
            ImageItem(
                identity=derive_identity(path, entry.last_modified),
                relative_path=path,
                display_name=entry.name,
                size_bytes=int(entry.size_bytes),
                last_modified=int(entry.last_modified),
                handle=entry.handle,
                selected=bool(row.selected) if row else False,
                thumbnail_data=row.thumbnail_data if row else None,
            )
        )
    result.missing_paths = sorted(p for p in saved if p not in seen)
    return result
