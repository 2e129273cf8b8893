from __future__ import annotations

from typing import Any

from PIL import Image
from PySide6.QtCore import QObject, QRunnable, QThreadPool
from loguru import logger

from core.models import ImageItem


class _ImageTask(QRunnable):
    """QRunnable for background image loading.

    Emits `receiver.<signal_name>(identity, data, error)` upon completion.
    `data` is None and `error` non-empty when the load failed. The receiver
    lives on the UI thread, so the emission is queued there.
    """

    def __init__(
        self,
        *,
        item: ImageItem,
        is_thumbnail: bool,
        service: Any,
        file_access: Any,
        receiver: QObject,
        signal_name: str,
    ) -> None:
        super().__init__()
        self._identity = item.identity
        self._handle = item.handle
        self._name = item.display_name
        self._is_thumbnail = is_thumbnail
        self._service = service
        self._files = file_access
        self._receiver = receiver
        self._signal_name = signal_name

    def run(self) -> None:  # type: ignore[override]
        data: bytes | None = None
        error = ""
        try:
            raw = self._files.read_bytes(self._handle)
            data = self._service.create_thumbnail(raw) if self._is_thumbnail else raw
        except (OSError, ValueError, Image.DecompressionBombError) as ex:
            kind = "Thumbnail" if self._is_thumbnail else "Full-resolution load"
            logger.warning("{} failed for {}: {}", kind, self._name, ex)
            error = str(ex) or type(ex).__name__
        getattr(self._receiver, self._signal_name).emit(self._identity, data, error)


class ImageTaskRunner:
    """Dispatches image load tasks to two bounded thread pools.

    Thumbnails run on a pool capped at `concurrency` workers; full-resolution
    loads get their own small pool so a close-up is never queued behind a page
    of thumbnail work.
    """

    def __init__(
        self,
        *,
        service: Any,
        file_access: Any,
        receiver: QObject,
        concurrency: int = 4,
        full_concurrency: int = 2,
    ) -> None:
        self._service = service
        self._files = file_access
        self._receiver = receiver
        # pools are owned by the receiver and torn down with it
        self._thumb_pool = QThreadPool(receiver)
        self._thumb_pool.setMaxThreadCount(max(1, int(concurrency)))
        self._full_pool = QThreadPool(receiver)
        self._full_pool.setMaxThreadCount(max(1, int(full_concurrency)))

    @property
    def concurrency(self) -> int:
        return self._thumb_pool.maxThreadCount()

    def request_thumbnail(self, item: ImageItem) -> None:
        self._thumb_pool.start(
            _ImageTask(
                item=item,
                is_thumbnail=True,
                service=self._service,
                file_access=self._files,
                receiver=self._receiver,
                signal_name="_thumbnailDone",
            )
        )

    def request_full_resolution(self, item: ImageItem) -> None:
        self._full_pool.start(
            _ImageTask(
                item=item,
                is_thumbnail=False,
                service=self._service,
                file_access=self._files,
                receiver=self._receiver,
                signal_name="_fullResolutionDone",
            )
        )

    def clear(self) -> None:
        """Drop queued tasks that have not started yet."""
        self._thumb_pool.clear()
        self._full_pool.clear()

    def wait(self, timeout_ms: int = -1) -> bool:
        """Wait for running tasks. Returns False on timeout."""
        done_thumbs = self._thumb_pool.waitForDone(timeout_ms)
        done_full = self._full_pool.waitForDone(timeout_ms)
        return done_thumbs and done_full
