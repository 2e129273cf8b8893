"""Tests for item identity and scan reconciliation."""

from core.models import ScanEntry, StoredItem
from core.services.reconcile_service import derive_identity, reconcile, sort_entries


def _entry(name, mtime=1_000, size=10):
    return ScanEntry(name=name, size_bytes=size, last_modified=mtime, handle=f"/photos/{name}")


def _stored(path, selected=False, thumb=None, item_id=1):
    return StoredItem(
        item_id=item_id,
        session_id=1,
        relative_path=path,
        display_name=path,
        size_bytes=10,
        last_modified=1_000,
        selected=selected,
        thumbnail_data=thumb,
    )


def test_identity_is_deterministic_and_tracks_mtime():
    assert derive_identity("a.jpg", 1_000) == derive_identity("a.jpg", 1_000)
    assert derive_identity("a.jpg", 1_000) != derive_identity("a.jpg", 1_001)
    assert derive_identity("a.jpg", 1_000) != derive_identity("b.jpg", 1_000)


def test_entries_sorted_case_insensitively():
    names = [e.name for e in sort_entries([_entry("b.jpg"), _entry("C.png"), _entry("A.jpg")])]
    assert names == ["A.jpg", "b.jpg", "C.png"]


def test_new_session_items_start_unselected():
    result = reconcile([_entry("b.jpg"), _entry("a.jpg")])

    assert [it.relative_path for it in result.items] == ["a.jpg", "b.jpg"]
    assert not any(it.selected for it in result.items)
    assert [e.name for e in result.new_entries] == ["a.jpg", "b.jpg"]
    assert result.missing_paths == []


def test_stored_state_carries_over_by_path():
    stored = [
        _stored("a.jpg", selected=True, thumb=b"jpeg-a", item_id=1),
        _stored("gone.jpg", selected=True, item_id=2),
    ]
    result = reconcile([_entry("a.jpg"), _entry("new.jpg")], stored)

    by_path = {it.relative_path: it for it in result.items}
    assert by_path["a.jpg"].selected is True
    assert by_path["a.jpg"].thumbnail_data == b"jpeg-a"
    assert by_path["new.jpg"].selected is False
    assert by_path["new.jpg"].thumbnail_data is None
    assert [e.name for e in result.new_entries] == ["new.jpg"]
    assert result.missing_paths == ["gone.jpg"]


def test_modified_file_keeps_selection_under_new_identity():
    before = reconcile([_entry("a.jpg", mtime=1_000)]).items[0]
    result = reconcile([_entry("a.jpg", mtime=2_000)], [_stored("a.jpg", selected=True)])

    item = result.items[0]
    assert item.selected is True
    assert item.identity != before.identity
    assert item.last_modified == 2_000


def test_duplicate_paths_in_scan_are_merged():
    result = reconcile([_entry("a.jpg"), _entry("a.jpg", mtime=5)])
    assert len(result.items) == 1


def test_empty_scan_reports_all_stored_as_missing():
    result = reconcile([], [_stored("x.jpg", item_id=1), _stored("y.jpg", item_id=2)])
    assert result.items == []
    assert result.missing_paths == ["x.jpg", "y.jpg"]
