from __future__ import annotations

from pathlib import Path
import sys

from PySide6.QtCore import QTimer
from PySide6.QtWidgets import QApplication, QMessageBox
from loguru import logger

from app.viewmodels.browser_vm import BrowserVM
from app.views.main_window import MainWindow
from core.errors import CapabilityUnsupportedError
from core.models import GridMode
from infrastructure.blob_store import FileBlobStore
from infrastructure.export_service import ExportService
from infrastructure.file_access import LocalFileAccess
from infrastructure.image_cache import (
    DEFAULT_ADJACENT_DELAYS_MS,
    DEFAULT_CONCURRENCY,
    DEFAULT_MEM_CACHE,
    TieredImageCache,
)
from infrastructure.image_service import ImageService
from infrastructure.logging import get_log_directory, init_logging
from infrastructure.session_store import DEFAULT_DEBOUNCE_MS, SessionStore
from infrastructure.settings import JsonSettings, get_data_directory

BASE_DIR = Path(__file__).parent


def _adjacent_delays(settings: JsonSettings) -> tuple[int, int]:
    # Expect [previous_page_ms, next_page_ms]
    raw = settings.get("thumbnails.adjacent_delays_ms", list(DEFAULT_ADJACENT_DELAYS_MS))
    if isinstance(raw, list) and len(raw) == 2:
        try:
            return int(raw[0]), int(raw[1])
        except (ValueError, TypeError):
            pass
    logger.warning("Invalid thumbnails.adjacent_delays_ms {!r}, using defaults", raw)
    return DEFAULT_ADJACENT_DELAYS_MS


def main() -> int:
    settings = JsonSettings(BASE_DIR / "settings.json")
    log_dir = settings.get_path("logging.dir", Path(get_log_directory()))
    init_logging(str(log_dir), level=str(settings.get("logging.level", "INFO")))

    app = QApplication(sys.argv)

    store_dir = settings.get_path("persistence.store_dir", get_data_directory() / "store")
    store = SessionStore(
        FileBlobStore(store_dir),
        debounce_ms=settings.get_int("persistence.debounce_ms", DEFAULT_DEBOUNCE_MS),
        parent=app,
    )
    store.init()

    files = LocalFileAccess()
    cache = TieredImageCache(
        files,
        ImageService(settings),
        concurrency=settings.get_int("thumbnails.concurrency", DEFAULT_CONCURRENCY),
        mem_capacity=settings.get_int("thumbnails.mem_cache", DEFAULT_MEM_CACHE),
        adjacent_delays_ms=_adjacent_delays(settings),
        parent=app,
    )
    vm = BrowserVM(
        store,
        files,
        cache,
        exporter=ExportService(files),
        default_mode=GridMode.parse(settings.get("grid.default_mode")),
    )

    try:
        vm.ensure_supported()
    except CapabilityUnsupportedError as ex:
        logger.error("Unsupported environment: {}", ex)
        QMessageBox.critical(None, "Photo Picker", f"This system is not supported:\n{ex}")
        vm.close()
        return 1

    win = MainWindow(vm=vm, settings=settings)
    win.statusBar().showMessage("Ready", 2000)
    win.show()
    QTimer.singleShot(0, win.offer_resume)
    logger.info("Photo Picker started (store: {})", store_dir)

    return app.exec()


if __name__ == "__main__":
    raise SystemExit(main())
