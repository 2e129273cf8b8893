"""ViewModel tying folder scans, the session store, the image cache and navigation."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

from loguru import logger

from app.viewmodels.item_vm import PENDING, ItemVM
from core.errors import CapabilityUnsupportedError
from core.models import GridMode, ImageItem, SessionRecord
from core.services.interfaces import CloseUp, ExportResult, IFileAccess
from core.services.navigation import Direction, GridNavigator, Transition
from core.services.reconcile_service import reconcile
from core.services.selection_service import RegexSelectionService
from infrastructure.export_service import ExportService
from infrastructure.image_cache import TieredImageCache
from infrastructure.image_service import DisplayHandle, check_capabilities
from infrastructure.session_store import SessionStore

EVENT_RESET = "reset"
EVENT_NAVIGATION = "navigation"
EVENT_SELECTION = "selection"
EVENT_THUMBNAIL = "thumbnail"
EVENT_THUMBNAIL_FAILED = "thumbnail_failed"
EVENT_FULL_RESOLUTION = "full_resolution"
EVENT_FULL_RESOLUTION_FAILED = "full_resolution_failed"

Listener = Callable[[str, object], None]


class BrowserVM:
    """Main application view-model.

    Owns the in-memory item list of the open folder and mirrors every
    selection and cursor change into the session store.
    """

    def __init__(
        self,
        store: SessionStore,
        file_access: IFileAccess,
        cache: TieredImageCache,
        exporter: ExportService | None = None,
        selector: RegexSelectionService | None = None,
        default_mode: GridMode = GridMode.GRID_5X5,
    ) -> None:
        """Create a BrowserVM.

        Args:
            store: Initialized session store.
            file_access: Provider used for scanning and export.
            cache: Thumbnail/full-resolution cache.
            exporter: Export service (defaults to `ExportService(file_access)`).
            selector: Regex selection service.
            default_mode: Grid mode for folders opened for the first time.
        """
        self._store = store
        self._files = file_access
        self._cache = cache
        self._exporter = exporter or ExportService(file_access)
        self._selector = selector or RegexSelectionService()
        self._default_mode = default_mode

        self.items: list[ImageItem] = []
        self.session: SessionRecord | None = None
        self.folder: Path | None = None
        self.missing_paths: list[str] = []
        self._index: dict[str, int] = {}
        self._nav = GridNavigator(0, default_mode)
        self._listeners: list[Listener] = []

        cache.thumbnailReady.connect(self._on_thumbnail_ready)
        cache.thumbnailFailed.connect(self._on_thumbnail_failed)
        cache.fullResolutionReady.connect(self._on_full_resolution_ready)
        cache.fullResolutionFailed.connect(self._on_full_resolution_failed)

    # Listeners
    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self, event: str, payload: object = None) -> None:
        for listener in list(self._listeners):
            listener(event, payload)

    # Read-only state
    @property
    def grid_mode(self) -> GridMode:
        return self._nav.grid_mode

    @property
    def current_page(self) -> int:
        return self._nav.current_page

    @property
    def focused_index(self) -> int:
        return self._nav.focused_index

    @property
    def page_count(self) -> int:
        return self._nav.page_count

    @property
    def item_count(self) -> int:
        return len(self.items)

    @property
    def selected_count(self) -> int:
        return sum(1 for it in self.items if it.selected)

    def selected_items(self) -> list[ImageItem]:
        return [it for it in self.items if it.selected]

    def page_items(self) -> list[ItemVM]:
        """Items of the current page in display order."""
        return [self.item_vm(i) for i in range(self._nav.page_start, self._nav.page_end)]

    def item_vm(self, index: int) -> ItemVM:
        item = self.items[index]
        handle = self._cache.thumbnail(item.identity)
        return ItemVM(
            record=item,
            index=index,
            focused=index == self._nav.focused_index,
            thumbnail=handle if handle is not None else PENDING,
        )

    def thumbnail(self, identity: str) -> DisplayHandle | None:
        return self._cache.thumbnail(identity)

    def full_resolution(self, identity: str) -> DisplayHandle | None:
        return self._cache.full_resolution(identity)

    # Startup
    def ensure_supported(self) -> None:
        """Raise `CapabilityUnsupportedError` if folder operations cannot work here."""
        if not self._files.is_supported():
            raise CapabilityUnsupportedError("Folder access is not supported on this platform")
        check_capabilities()

    def last_session(self) -> SessionRecord | None:
        """The most recently accessed session, offered for resuming."""
        sessions = self._store.list_sessions()
        return sessions[0] if sessions else None

    # Folder
    def open_folder(self, folder: str | Path) -> SessionRecord:
        """Scan `folder` and restore (or create) its session.

        Raises:
            PermissionDeniedError: If the folder cannot be listed.
            FileNotFoundError: If the folder does not exist.
        """
        path = Path(folder).resolve()
        entries = list(self._files.list_entries(path))
        if self.folder is not None and self.folder != path:
            self._cache.reset()
        folder_name = path.name or str(path)
        folder_key = str(path)

        session = self._store.find_session(folder_name, folder_key)
        if session is not None:
            result = reconcile(entries, self._store.get_session_items(session.session_id))
            if result.new_entries:
                new_paths = {e.relative_path for e in result.new_entries}
                self._store.insert_items(
                    session.session_id, [it for it in result.items if it.relative_path in new_paths]
                )
            logger.info(
                "Restored session {} for {}: {} items ({} new, {} missing)",
                session.session_id,
                folder_name,
                len(result.items),
                len(result.new_entries),
                len(result.missing_paths),
            )
        else:
            result = reconcile(entries)
            session = self._store.create_session(folder_name, self._default_mode, folder_key)
            self._store.insert_items(session.session_id, result.items)
            logger.info(
                "New session {} for {}: {} items",
                session.session_id,
                folder_name,
                len(result.items),
            )

        self.folder = path
        self.session = session
        self.items = result.items
        self.missing_paths = result.missing_paths
        self._index = {it.identity: i for i, it in enumerate(self.items)}
        self._nav = GridNavigator(
            len(self.items), session.grid_mode, session.current_page, session.focused_index
        )
        self._persist_position()
        self._cache.seed_thumbnails(self.items)
        self._after_page_change()
        self._notify(EVENT_RESET)
        return session

    def forget_missing_files(self) -> int:
        """Delete stored rows for files that were not found by the last scan."""
        if self.session is None or not self.missing_paths:
            return 0
        removed = self._store.prune_items(
            self.session.session_id, [it.relative_path for it in self.items]
        )
        self.missing_paths = []
        return removed

    # Navigation
    def move(self, direction: Direction) -> Transition:
        return self._commit(self._nav.move(direction))

    def goto_page(self, page: int) -> Transition:
        return self._commit(self._nav.goto_page(page))

    def focus_item(self, index: int) -> Transition:
        """Move the cursor to `index`; the page follows."""
        return self._commit(self._nav.focus(index))

    def toggle_grid_mode(self) -> GridMode:
        """Switch between 5x5 and 6x4; the cursor returns to the first item."""
        self._commit(self._nav.set_grid_mode(self._nav.grid_mode.toggled()), force=True)
        return self._nav.grid_mode

    def _commit(self, transition: Transition, force: bool = False) -> Transition:
        if not transition.changed and not force:
            return transition
        self._persist_position()
        if transition.page_changed or force:
            self._after_page_change()
        self._notify(EVENT_NAVIGATION, transition)
        return transition

    def _persist_position(self) -> None:
        if self.session is None:
            return
        self.session.grid_mode = self._nav.grid_mode
        self.session.current_page = self._nav.current_page
        self.session.focused_index = self._nav.focused_index
        self._store.update_session(
            self.session.session_id,
            self._nav.grid_mode,
            self._nav.current_page,
            self._nav.focused_index,
        )

    def _page_slice(self, page: int) -> list[ImageItem]:
        if page < 0 or page >= self._nav.page_count:
            return []
        size = self._nav.page_size
        return self.items[page * size : (page + 1) * size]

    def _page_of(self, identity: str) -> int | None:
        index = self._index.get(identity)
        return None if index is None else self._nav.page_of(index)

    def _after_page_change(self) -> None:
        # eviction first so full-resolution handles stay within the window
        self._cache.set_active_window(self._nav.window(), self._page_of)
        page = self._nav.current_page
        self._cache.schedule_thumbnails(
            self._page_slice(page), self._page_slice(page - 1), self._page_slice(page + 1)
        )

    # Selection
    def toggle_selection(self) -> bool | None:
        """Toggle the focused item. Returns its new state, or None when empty."""
        if not self.items:
            return None
        index = self._nav.focused_index
        item = self.items[index]
        self._set_selected(item, not item.selected)
        self._notify(EVENT_SELECTION, [index])
        return item.selected

    def select_matching(self, regex: str, select: bool, field: str = "File Name") -> int:
        """Select or unselect every item whose field matches `regex`."""
        changes = self._selector.plan(self.items, regex, select, field)
        if not changes:
            return 0
        for index in changes:
            self.items[index].selected = select
        if self.session is not None:
            self._store.update_items_selection(
                self.session.session_id, [self.items[i].relative_path for i in changes], select
            )
        self._notify(EVENT_SELECTION, changes)
        return len(changes)

    def _set_selected(self, item: ImageItem, selected: bool) -> None:
        item.selected = selected
        if self.session is not None:
            self._store.update_item_selection(self.session.session_id, item.relative_path, selected)

    # Close-up
    def request_close_up(self) -> CloseUp | None:
        """Open the focused item close up and prefetch its neighbours."""
        if not self.items:
            return None
        index = self._nav.focused_index
        item = self.items[index]
        previous = self.items[index - 1] if index > 0 else None
        following = self.items[index + 1] if index + 1 < len(self.items) else None
        self._cache.request_full_resolution(item, (previous, following))
        return CloseUp(
            identity=item.identity,
            index=index,
            previous=previous.identity if previous else None,
            following=following.identity if following else None,
        )

    def step_close_up(self, delta: int) -> CloseUp | None:
        """Move the close-up view by `delta` items; the grid cursor follows."""
        if not self.items:
            return None
        self._commit(self._nav.focus(self._nav.focused_index + delta))
        return self.request_close_up()

    # Export
    def export_selected(
        self,
        choose_destination: Callable[[], Path | None],
        on_progress: Callable[[int, int], None] | None = None,
    ) -> ExportResult:
        return self._exporter.export_selected(self.items, choose_destination, on_progress)

    # Cache callbacks (UI thread)
    def _on_thumbnail_ready(self, identity: str, data: object) -> None:
        index = self._index.get(identity)
        if index is None or not isinstance(data, bytes):
            return
        item = self.items[index]
        item.thumbnail_data = data
        if self.session is not None and self._store.is_initialized:
            self._store.update_item_thumbnail(self.session.session_id, item.relative_path, data)
        self._notify(EVENT_THUMBNAIL, index)

    def _on_thumbnail_failed(self, identity: str, message: str) -> None:
        index = self._index.get(identity)
        if index is not None:
            self._notify(EVENT_THUMBNAIL_FAILED, (index, message))

    def _on_full_resolution_ready(self, identity: str) -> None:
        if identity in self._index:
            self._notify(EVENT_FULL_RESOLUTION, identity)

    def _on_full_resolution_failed(self, identity: str, message: str) -> None:
        if identity in self._index:
            self._notify(EVENT_FULL_RESOLUTION_FAILED, (identity, message))

    # Lifecycle
    def close(self) -> None:
        """Release every display handle and flush the session store."""
        self._cache.close()
        if self._store.is_initialized:
            self._store.close()
