"""Two-tier image cache: persisted thumbnails and transient full-resolution views.

Work runs on bounded worker pools and results come back to the owning (UI)
thread through queued signals, so each result is applied in one step between
other state changes. Results are merged by item identity, which makes the
final state independent of completion order. A result that arrives after the
user moved on is still applied as a prefetch.
"""

from __future__ import annotations

from collections.abc import Callable, Collection, Iterable, Sequence

from PySide6.QtCore import QCoreApplication, QObject, QTimer, Signal
from loguru import logger

from core.models import ImageItem
from infrastructure.image_service import (
    TIER_FULL,
    TIER_THUMBNAIL,
    DisplayHandle,
    HandleRegistry,
    ImageService,
    LRUCache,
)
from infrastructure.image_tasks import ImageTaskRunner

DEFAULT_CONCURRENCY = 4
DEFAULT_MEM_CACHE = 512
DEFAULT_ADJACENT_DELAYS_MS: tuple[int, int] = (500, 1000)


class TieredImageCache(QObject):
    """Thumbnail and full-resolution cache keyed by item identity."""

    thumbnailReady = Signal(str, object)  # identity, JPEG bytes
    thumbnailFailed = Signal(str, str)  # identity, message
    fullResolutionReady = Signal(str)  # identity
    fullResolutionFailed = Signal(str, str)  # identity, message

    # Worker -> UI thread
    _thumbnailDone = Signal(str, object, str)
    _fullResolutionDone = Signal(str, object, str)

    def __init__(
        self,
        file_access: object,
        service: ImageService | None = None,
        *,
        concurrency: int = DEFAULT_CONCURRENCY,
        mem_capacity: int = DEFAULT_MEM_CACHE,
        adjacent_delays_ms: Sequence[int] = DEFAULT_ADJACENT_DELAYS_MS,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._registry = HandleRegistry()
        self._service = service or ImageService()
        self._runner = ImageTaskRunner(
            service=self._service,
            file_access=file_access,
            receiver=self,
            concurrency=concurrency,
        )
        delays = list(adjacent_delays_ms) + list(DEFAULT_ADJACENT_DELAYS_MS)
        self._adjacent_delays = (max(0, int(delays[0])), max(0, int(delays[1])))

        self._thumb_sources: dict[str, bytes] = {}
        self._thumb_handles = LRUCache(mem_capacity, on_evict=lambda h: h.invalidate())
        self._thumbs_in_flight: set[str] = set()

        self._full: dict[str, DisplayHandle] = {}
        self._full_in_flight: set[str] = set()

        self._adjacent_timers: list[QTimer] = []
        self._closed = False

        self._thumbnailDone.connect(self._on_thumbnail_done)
        self._fullResolutionDone.connect(self._on_full_resolution_done)

    # Introspection
    @property
    def registry(self) -> HandleRegistry:
        return self._registry

    @property
    def concurrency(self) -> int:
        return self._runner.concurrency

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def scheduled_adjacent_count(self) -> int:
        return sum(1 for t in self._adjacent_timers if t.isActive())

    def full_resolution_identities(self) -> set[str]:
        return set(self._full)

    # Thumbnails
    def seed_thumbnails(self, items: Iterable[ImageItem]) -> int:
        """Register thumbnails restored from the session store."""
        count = 0
        for item in items:
            if item.thumbnail_data:
                self._thumb_sources[item.identity] = item.thumbnail_data
                count += 1
        return count

    def has_thumbnail(self, identity: str) -> bool:
        return identity in self._thumb_sources

    def thumbnail(self, identity: str) -> DisplayHandle | None:
        """Return a display handle for the thumbnail, or None while pending."""
        if self._closed:
            return None
        handle = self._thumb_handles.get(identity)
        if handle is not None and handle.is_valid:
            return handle
        data = self._thumb_sources.get(identity)
        if data is None:
            return None
        handle = DisplayHandle(identity, TIER_THUMBNAIL, data, self._registry)
        self._thumb_handles.put(identity, handle)
        return handle

    def request_thumbnails(self, items: Iterable[ImageItem]) -> int:
        """Generate thumbnails for items that have none. Returns the number submitted."""
        if self._closed:
            return 0
        submitted = 0
        for item in items:
            ident = item.identity
            if ident in self._thumb_sources or ident in self._thumbs_in_flight:
                continue
            self._thumbs_in_flight.add(ident)
            self._runner.request_thumbnail(item)
            submitted += 1
        return submitted

    def schedule_thumbnails(
        self,
        current: Sequence[ImageItem],
        previous: Sequence[ImageItem] = (),
        following: Sequence[ImageItem] = (),
    ) -> int:
        """Generate the visible page now and adjacent pages after a short delay.

        Adjacent work from an earlier schedule that has not started yet is
        cancelled. Returns the number of thumbnails submitted immediately.
        """
        self._cancel_adjacent()
        submitted = self.request_thumbnails(current)
        if self._closed:
            return submitted
        prev_delay, next_delay = self._adjacent_delays
        for batch, delay in ((previous, prev_delay), (following, next_delay)):
            pending = [it for it in batch if it.identity not in self._thumb_sources]
            if not pending:
                continue
            timer = QTimer(self)
            timer.setSingleShot(True)
            timer.setInterval(delay)
            timer.timeout.connect(lambda items=pending: self.request_thumbnails(items))
            timer.start()
            self._adjacent_timers.append(timer)
        logger.debug(
            "Thumbnails scheduled: {} now, {} adjacent timers",
            submitted,
            len(self._adjacent_timers),
        )
        return submitted

    def _cancel_adjacent(self) -> None:
        for timer in self._adjacent_timers:
            timer.stop()
            timer.deleteLater()
        self._adjacent_timers.clear()

    def _on_thumbnail_done(self, identity: str, data: object, error: str) -> None:
        self._thumbs_in_flight.discard(identity)
        if self._closed:
            return
        if not isinstance(data, bytes) or not data:
            self.thumbnailFailed.emit(identity, error or "empty thumbnail")
            return
        self._thumb_sources[identity] = data
        if identity in self._thumb_handles:
            self._thumb_handles.put(
                identity, DisplayHandle(identity, TIER_THUMBNAIL, data, self._registry)
            )
        self.thumbnailReady.emit(identity, data)

    # Full resolution
    def full_resolution(self, identity: str) -> DisplayHandle | None:
        handle = self._full.get(identity)
        return handle if handle is not None and handle.is_valid else None

    def request_full_resolution(
        self, item: ImageItem, neighbors: Iterable[ImageItem | None] = ()
    ) -> int:
        """Load `item` at full resolution and prefetch its neighbours.

        Returns the number of loads submitted; already loaded or in-flight
        items are skipped.
        """
        if self._closed:
            return 0
        submitted = 0
        for it in (item, *neighbors):
            if it is None:
                continue
            ident = it.identity
            if ident in self._full or ident in self._full_in_flight:
                continue
            self._full_in_flight.add(ident)
            self._runner.request_full_resolution(it)
            submitted += 1
        return submitted

    def set_active_window(
        self, pages: Collection[int], page_of: Callable[[str], int | None]
    ) -> int:
        """Release every full-resolution handle whose page is outside `pages`.

        Args:
            pages: Pages to keep (previous, current and next page).
            page_of: Maps an identity to its page under the current layout;
                None for items no longer listed.

        Returns:
            Number of handles released.
        """
        keep = frozenset(pages)
        released = 0
        for ident in list(self._full):
            page = page_of(ident)
            if page is None or page not in keep:
                self._full.pop(ident).invalidate()
                released += 1
        if released:
            logger.debug(
                "Released {} full-resolution handles outside pages {}", released, sorted(keep)
            )
        return released

    def _on_full_resolution_done(self, identity: str, data: object, error: str) -> None:
        self._full_in_flight.discard(identity)
        if self._closed:
            return
        if not isinstance(data, bytes):
            self.fullResolutionFailed.emit(identity, error or "no data")
            return
        old = self._full.get(identity)
        if old is not None:
            old.invalidate()
        self._full[identity] = DisplayHandle(identity, TIER_FULL, data, self._registry)
        self.fullResolutionReady.emit(identity)

    # Lifecycle
    def drain(self, timeout_ms: int = -1) -> bool:
        """Wait for running loads and apply their results on this thread."""
        done = self._runner.wait(timeout_ms)
        QCoreApplication.sendPostedEvents(self)
        QCoreApplication.processEvents()
        return done

    def reset(self) -> None:
        """Forget everything cached for the previous folder and release its handles."""
        self._cancel_adjacent()
        self._runner.clear()
        self._thumbs_in_flight.clear()
        self._full_in_flight.clear()
        self._thumb_sources.clear()
        self._thumb_handles.clear()
        for handle in self._full.values():
            handle.invalidate()
        self._full.clear()

    def close(self) -> None:
        """Stop all work and invalidate every display handle of both tiers."""
        if self._closed:
            return
        self._closed = True
        self._cancel_adjacent()
        self._runner.clear()
        self._runner.wait()
        # results queued by finished workers are dropped while closed
        QCoreApplication.sendPostedEvents(self)
        self._thumbs_in_flight.clear()
        self._full_in_flight.clear()
        self._thumb_handles.clear()
        for handle in self._full.values():
            handle.invalidate()
        self._full.clear()
        released = self._registry.invalidate_all()
        logger.info("Image cache closed ({} stray handles released)", released)
