"""Tests for bulk export of selected images."""

import pytest

from core.errors import NothingSelectedError, PermissionDeniedError
from core.services.reconcile_service import reconcile
from infrastructure.export_service import ExportService
from infrastructure.file_access import LocalFileAccess


@pytest.fixture
def items(tmp_path, make_image):
    src = tmp_path / "src"
    for name in ("a.jpg", "b.jpg", "c.jpg", "d.jpg"):
        make_image(src, name)
    return reconcile(LocalFileAccess().list_entries(src)).items


def test_nothing_selected_fails_before_asking_for_destination(items):
    asked = []
    with pytest.raises(NothingSelectedError):
        ExportService(LocalFileAccess()).export_selected(items, lambda: asked.append(1))
    assert asked == []


def test_declined_destination_is_permission_denied(items):
    items[0].selected = True
    with pytest.raises(PermissionDeniedError):
        ExportService(LocalFileAccess()).export_selected(items, lambda: None)


def test_copies_selected_and_reports_failures(items, tmp_path):
    for it in items[:3]:
        it.selected = True
    # b.jpg disappears after the scan
    (tmp_path / "src" / "b.jpg").unlink()
    dest = tmp_path / "dest"
    dest.mkdir()
    progress = []

    result = ExportService(LocalFileAccess()).export_selected(
        items, lambda: dest, lambda done, total: progress.append((done, total))
    )

    assert (result.success_count, result.failure_count) == (2, 1)
    assert len(result.messages) == 1 and "b.jpg" in result.messages[0]
    assert result.destination == dest
    assert sorted(p.name for p in dest.iterdir()) == ["a.jpg", "c.jpg"]
    assert (dest / "a.jpg").read_bytes() == (tmp_path / "src" / "a.jpg").read_bytes()
    assert progress == [(1, 3), (2, 3), (3, 3)]


def test_existing_file_in_destination_is_overwritten(items, tmp_path):
    items[0].selected = True
    dest = tmp_path / "dest"
    dest.mkdir()
    (dest / "a.jpg").write_bytes(b"old")

    result = ExportService(LocalFileAccess()).export_selected(items, lambda: dest)
    assert result.success_count == 1
    assert (dest / "a.jpg").read_bytes() != b"old"
