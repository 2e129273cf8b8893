"""End-to-end view-model scenarios over a real folder and store."""

import os
import random
import sys

import pytest

from app.viewmodels.browser_vm import (
    EVENT_FULL_RESOLUTION_FAILED,
    EVENT_NAVIGATION,
    EVENT_RESET,
    EVENT_SELECTION,
    BrowserVM,
)
from core.errors import NothingSelectedError, StoreUninitializedError
from core.models import GridMode
from core.services.navigation import Direction
from infrastructure.file_access import LocalFileAccess
from infrastructure.image_cache import TieredImageCache
from infrastructure.session_store import SessionStore


def _make_vm(blob_store):
    store = SessionStore(blob_store, debounce_ms=20)
    store.init()
    files = LocalFileAccess()
    # adjacent pages stay out of the way unless a test waits for them
    cache = TieredImageCache(files, adjacent_delays_ms=(10_000, 10_000))
    return BrowserVM(store, files, cache)


@pytest.fixture
def open_vm(qapp, blob_store):
    """Factory for view-models over the shared blob store; all are closed at teardown."""
    created = []

    def _open(folder=None):
        vm = _make_vm(blob_store)
        created.append(vm)
        if folder is not None:
            vm.open_folder(folder)
        return vm

    yield _open
    for vm in created:
        vm.close()


def _selected_indices(vm):
    return [i for i, it in enumerate(vm.items) if it.selected]


def test_first_open_creates_session(open_vm, photo_folder):
    vm = open_vm(photo_folder)

    assert vm.item_count == 70
    assert vm.page_count == 3
    assert vm.grid_mode is GridMode.GRID_5X5
    assert (vm.current_page, vm.focused_index) == (0, 0)
    assert vm.session.folder_name == "Holiday"
    assert [it.display_name for it in vm.items[:2]] == ["img_000.jpg", "img_001.jpg"]
    assert len(vm.page_items()) == 25


def test_selection_survives_reload(open_vm, photo_folder):
    vm = open_vm(photo_folder)
    vm.toggle_selection()
    vm.focus_item(5)
    vm.toggle_selection()
    vm.close()

    reloaded = open_vm(photo_folder)
    assert _selected_indices(reloaded) == [0, 5]
    assert reloaded.focused_index == 5
    assert reloaded.selected_count == 2


def test_toggle_selection_twice_restores_state(open_vm, photo_folder):
    vm = open_vm(photo_folder)
    assert vm.toggle_selection() is True
    assert vm.toggle_selection() is False
    assert vm.selected_count == 0


def test_grid_toggle_repaginates_and_persists(open_vm, photo_folder):
    vm = open_vm(photo_folder)
    vm.goto_page(1)
    assert vm.toggle_grid_mode() is GridMode.GRID_6X4

    assert vm.page_count == 3
    assert (vm.current_page, vm.focused_index) == (0, 0)
    sizes = []
    for page in range(3):
        vm.goto_page(page)
        sizes.append(len(vm.page_items()))
    assert sizes == [24, 24, 22]
    vm.close()

    reloaded = open_vm(photo_folder)
    assert reloaded.grid_mode is GridMode.GRID_6X4
    assert reloaded.current_page == 2


def test_position_survives_reload(open_vm, photo_folder):
    vm = open_vm(photo_folder)
    vm.focus_item(24)
    vm.move(Direction.RIGHT)
    vm.move(Direction.DOWN)
    assert (vm.current_page, vm.focused_index) == (1, 30)
    vm.close()

    reloaded = open_vm(photo_folder)
    assert (reloaded.current_page, reloaded.focused_index) == (1, 30)


def test_listeners_are_told_about_changes(open_vm, photo_folder):
    vm = open_vm()
    events = []
    vm.add_listener(lambda event, payload: events.append(event))

    vm.open_folder(photo_folder)
    vm.move(Direction.LEFT)  # no-op at index 0
    vm.move(Direction.RIGHT)
    vm.toggle_selection()

    assert events == [EVENT_RESET, EVENT_NAVIGATION, EVENT_SELECTION]


def test_new_and_missing_files_are_reconciled(open_vm, photo_folder, make_image):
    vm = open_vm(photo_folder)
    vm.focus_item(3)
    vm.toggle_selection()
    vm.close()

    make_image(photo_folder, "zzz_new.jpg")
    (photo_folder / "img_069.jpg").unlink()
    reloaded = open_vm(photo_folder)

    assert reloaded.item_count == 70
    assert reloaded.items[-1].display_name == "zzz_new.jpg"
    assert reloaded.items[-1].selected is False
    assert _selected_indices(reloaded) == [3]
    assert reloaded.missing_paths == ["img_069.jpg"]
    stored = reloaded._store.get_session_items(reloaded.session.session_id)
    assert len(stored) == 71

    assert reloaded.forget_missing_files() == 1
    assert len(reloaded._store.get_session_items(reloaded.session.session_id)) == 70


def test_thumbnails_are_generated_and_persisted(open_vm, photo_folder):
    vm = open_vm(photo_folder)
    assert all(item.is_pending for item in vm.page_items())

    vm._cache.drain()
    assert not any(item.is_pending for item in vm.page_items())
    vm.close()

    reloaded = open_vm(photo_folder)
    assert all(it.thumbnail_data for it in reloaded.items[:25])
    assert not any(item.is_pending for item in reloaded.page_items())


def test_select_matching(open_vm, photo_folder):
    vm = open_vm(photo_folder)
    assert vm.select_matching(r"^img_00\d\.jpg$", True) == 10
    assert vm.select_matching(r"^img_00\d\.jpg$", True) == 0
    assert vm.select_matching(r"img_00[05]", False) == 2
    assert vm.selected_count == 8


def test_close_up_prefetches_neighbours(open_vm, photo_folder):
    vm = open_vm(photo_folder)
    close_up = vm.request_close_up()
    assert close_up.index == 0
    assert close_up.previous is None
    assert close_up.following == vm.items[1].identity

    vm._cache.drain()
    assert vm.full_resolution(vm.items[0].identity) is not None
    assert vm.full_resolution(vm.items[1].identity) is not None


def test_close_up_stepping_moves_the_grid_cursor(open_vm, photo_folder):
    vm = open_vm(photo_folder)
    vm.focus_item(24)
    close_up = vm.step_close_up(1)

    assert close_up.index == 25
    assert (vm.current_page, vm.focused_index) == (1, 25)


def test_full_resolution_released_when_paging_away(open_vm, photo_folder):
    vm = open_vm(photo_folder)
    vm.request_close_up()
    vm._cache.drain()
    first = vm.items[0].identity
    assert vm.full_resolution(first) is not None

    vm.goto_page(2)
    assert vm.full_resolution(first) is None


def test_export_without_selection_fails_fast(open_vm, photo_folder):
    vm = open_vm(photo_folder)
    with pytest.raises(NothingSelectedError):
        vm.export_selected(lambda: pytest.fail("destination must not be requested"))


def test_uninitialized_store_is_reported(qapp, blob_store, photo_folder):
    store = SessionStore(blob_store)
    files = LocalFileAccess()
    cache = TieredImageCache(files)
    vm = BrowserVM(store, files, cache)
    with pytest.raises(StoreUninitializedError):
        vm.open_folder(photo_folder)
    cache.close()


def test_opening_another_folder_resets_cache(open_vm, photo_folder, tmp_path, make_image):
    other = tmp_path / "Other"
    make_image(other, "x.jpg")
    vm = open_vm(photo_folder)
    vm._cache.drain()
    assert vm._cache.has_thumbnail(vm.items[0].identity)
    old_identity = vm.items[0].identity

    vm.open_folder(other)
    assert vm.item_count == 1
    assert not vm._cache.has_thumbnail(old_identity)
    assert vm.session.folder_name == "Other"


@pytest.mark.skipif(
    sys.platform != "linux", reason="needs a filesystem that accepts raw byte names"
)
def test_undecodable_file_name_does_not_break_opening(open_vm, tmp_path, make_image):
    folder = tmp_path / "Mixed"
    good = make_image(folder, "good.jpg")
    with open(os.fsencode(folder) + b"/caf\xe9.jpg", "wb") as f:
        f.write(good.read_bytes())

    vm = open_vm(folder)
    assert [it.display_name for it in vm.items] == ["good.jpg"]
    assert len(vm._store.get_session_items(vm.session.session_id)) == 1


def test_select_matching_takes_one_snapshot(open_vm, photo_folder, monkeypatch):
    vm = open_vm(photo_folder)
    store = vm._store
    syncs = []
    real_sync = store.request_sync
    monkeypatch.setattr(store, "request_sync", lambda: (syncs.append(1), real_sync()))

    assert vm.select_matching(r"img_", True) == 70
    assert len(syncs) == 1
    stored = store.get_selected_items(vm.session.session_id)
    assert len(stored) == 70


def test_full_resolution_stays_within_three_pages(open_vm, photo_folder):
    vm = open_vm(photo_folder)
    cache = vm._cache
    rng = random.Random(7)
    directions = list(Direction)

    for _ in range(120):
        roll = rng.random()
        if roll < 0.6:
            vm.move(rng.choice(directions))
        elif roll < 0.8:
            vm.goto_page(rng.randrange(vm.page_count))
        elif roll < 0.85:
            vm.toggle_grid_mode()
        else:
            vm.request_close_up()
            cache.drain()

        window = vm._nav.window()
        pages = {vm._page_of(ident) for ident in cache.full_resolution_identities()}
        assert pages <= window
        assert len(window) <= 3


def test_full_resolution_failure_is_reported(open_vm, photo_folder):
    vm = open_vm(photo_folder)
    failures = []

    def on_event(event, payload):
        if event == EVENT_FULL_RESOLUTION_FAILED:
            failures.append(payload)

    vm.add_listener(on_event)
    (photo_folder / vm.items[0].relative_path).unlink()

    vm.request_close_up()
    vm._cache.drain()

    assert [identity for identity, _message in failures] == [vm.items[0].identity]
    assert vm.full_resolution(vm.items[0].identity) is None
    assert vm.full_resolution(vm.items[1].identity) is not None
