import os

# Qt must run headless; set before any Qt module is imported
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from collections.abc import Callable
import gc
from pathlib import Path
import time

from PIL import Image
from PySide6.QtCore import QCoreApplication, QEvent
from loguru import logger
import pytest

from infrastructure.blob_store import FileBlobStore
from infrastructure.session_store import SessionStore


@pytest.fixture(scope="session")
def qapp():
    """One Qt application for the whole run; timers and queued signals need it."""
    app = QCoreApplication.instance() or QCoreApplication([])
    yield app
    gc.collect()
    QCoreApplication.sendPostedEvents(None, QEvent.Type.DeferredDelete)


@pytest.fixture(autouse=True)
def _release_qt_objects(request):
    """Collect Qt wrappers left by a test while the application is still alive."""
    yield
    if "qapp" in request.fixturenames:
        gc.collect()
        QCoreApplication.sendPostedEvents(None, QEvent.Type.DeferredDelete)


def pump(predicate: Callable[[], bool], timeout_ms: int = 3000) -> bool:
    """Process Qt events until `predicate()` is true or the timeout expires."""
    deadline = time.monotonic() + timeout_ms / 1000.0
    while time.monotonic() < deadline:
        QCoreApplication.processEvents()
        if predicate():
            return True
        time.sleep(0.005)
    QCoreApplication.processEvents()
    return predicate()


@pytest.fixture
def wait_until(qapp) -> Callable[..., bool]:
    return pump


@pytest.fixture
def log_messages():
    """Collect loguru messages emitted during the test."""
    messages: list[str] = []
    handler_id = logger.add(lambda m: messages.append(m.record["message"]), level="DEBUG")
    yield messages
    logger.remove(handler_id)


@pytest.fixture
def make_image() -> Callable[..., Path]:
    """Factory writing a small solid-colour image; the format follows the suffix."""

    def _make(
        folder: Path,
        name: str,
        size: tuple[int, int] = (32, 24),
        color=(200, 30, 30),
        mode: str = "RGB",
    ) -> Path:
        folder.mkdir(parents=True, exist_ok=True)
        path = folder / name
        Image.new(mode, size, color).save(path)
        return path

    return _make


@pytest.fixture
def photo_folder(tmp_path, make_image) -> Path:
    """Folder with 70 tiny JPEGs named img_000.jpg .. img_069.jpg."""
    folder = tmp_path / "Holiday"
    for i in range(70):
        make_image(folder, f"img_{i:03d}.jpg", size=(16, 12), color=(i * 3, 100, 200 - i))
    return folder


@pytest.fixture
def blob_store(tmp_path) -> FileBlobStore:
    return FileBlobStore(tmp_path / "store")


@pytest.fixture
def store(qapp, blob_store):
    s = SessionStore(blob_store, debounce_ms=50)
    s.init()
    yield s
    if s.is_initialized:
        s.close()
