"""Bulk export of selected images into a destination folder.

Files are copied one by one; a failure on one file is recorded and the loop
continues with the next, so the caller always receives a complete summary.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from pathlib import Path

from loguru import logger

from core.errors import NothingSelectedError, PermissionDeniedError
from core.models import ImageItem
from core.services.interfaces import ExportResult, IFileAccess


class ExportService:
    """Copies selected items through the file access provider."""

    def __init__(self, file_access: IFileAccess) -> None:
        self._files = file_access

    def export_selected(
        self,
        items: Iterable[ImageItem],
        choose_destination: Callable[[], Path | None],
        on_progress: Callable[[int, int], None] | None = None,
    ) -> ExportResult:
        """Copy every selected item into a destination chosen by the user.

        Args:
            items: Items in display order; only selected ones are copied.
            choose_destination: Asks the user for a folder; None means declined.
            on_progress: Called with (done, total) after each item.

        Raises:
            NothingSelectedError: If no item is selected (before asking for a folder).
            PermissionDeniedError: If no destination was granted.
        """
        selected = [it for it in items if it.selected]
        if not selected:
            raise NothingSelectedError("No images selected")

        destination = choose_destination()
        if destination is None:
            raise PermissionDeniedError("No destination folder was granted")
        destination = Path(destination)

        result = ExportResult(destination=destination)
        total = len(selected)
        logger.info("Exporting {} images to {}", total, destination)
        for done, item in enumerate(selected, start=1):
            try:
                content = self._files.read_bytes(item.handle)
                self._files.write_bytes(destination, item.display_name, content)
                result.success_count += 1
            except OSError as ex:
                result.failure_count += 1
                message = f"Failed to copy {item.display_name}: {ex.strerror or ex}"
                result.messages.append(message)
                logger.error(message)
            if on_progress is not None:
                on_progress(done, total)

        logger.info(
            "Export finished: {} copied, {} failed", result.success_count, result.failure_count
        )
        return result
