"""Close-up dialog showing one image at full resolution."""

from __future__ import annotations

from PySide6.QtCore import Qt
from PySide6.QtGui import QGuiApplication, QKeyEvent, QPixmap
from PySide6.QtWidgets import QDialog, QLabel, QVBoxLayout, QWidget

from app.viewmodels.browser_vm import (
    EVENT_FULL_RESOLUTION,
    EVENT_FULL_RESOLUTION_FAILED,
    BrowserVM,
)
from app.views.constants import FAILED_TEXT, LIGHTBOX_SIZE_RATIO, PENDING_TEXT
from core.services.interfaces import CloseUp


class Lightbox(QDialog):
    """Modal close-up view; Left/Right step through items, Esc closes.

    The thumbnail is shown while the full-resolution bytes load and is
    replaced as soon as they arrive.
    """

    def __init__(self, vm: BrowserVM, close_up: CloseUp, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self._vm = vm
        self._current = close_up
        self._pixmap = QPixmap()
        self._failed = False

        root = QVBoxLayout(self)
        root.setContentsMargins(0, 0, 0, 0)
        self._image = QLabel(PENDING_TEXT)
        self._image.setAlignment(Qt.AlignCenter)
        self._image.setStyleSheet("background-color: black; color: white;")
        root.addWidget(self._image, 1)
        self._caption = QLabel()
        self._caption.setAlignment(Qt.AlignCenter)
        root.addWidget(self._caption)

        screen = QGuiApplication.primaryScreen()
        if screen is not None:
            geo = screen.availableGeometry()
            self.resize(
                int(geo.width() * LIGHTBOX_SIZE_RATIO), int(geo.height() * LIGHTBOX_SIZE_RATIO)
            )

        vm.add_listener(self._on_vm_event)
        self._show_current()

    @property
    def current(self) -> CloseUp:
        return self._current

    def step(self, delta: int) -> None:
        close_up = self._vm.step_close_up(delta)
        if close_up is not None and close_up.identity != self._current.identity:
            self._current = close_up
            self._failed = False
            self._show_current()

    def _show_current(self) -> None:
        item = self._vm.items[self._current.index]
        self.setWindowTitle(item.display_name)
        self._caption.setText(
            f"{self._current.index + 1} / {self._vm.item_count}"
            + ("   [selected]" if item.selected else "")
        )
        handle = self._vm.full_resolution(self._current.identity)
        if handle is None:
            # thumbnail stands in until the full image arrives
            handle = self._vm.thumbnail(self._current.identity)
        self._pixmap = QPixmap.fromImage(handle.to_qimage()) if handle is not None else QPixmap()
        self._fit()

    def _fit(self) -> None:
        if self._pixmap.isNull():
            self._image.setPixmap(QPixmap())
            self._image.setText(FAILED_TEXT if self._failed else PENDING_TEXT)
            return
        self._image.setPixmap(
            self._pixmap.scaled(self._image.size(), Qt.KeepAspectRatio, Qt.SmoothTransformation)
        )

    def _on_vm_event(self, event: str, payload: object) -> None:
        if event == EVENT_FULL_RESOLUTION and payload == self._current.identity:
            self._show_current()
        elif event == EVENT_FULL_RESOLUTION_FAILED and isinstance(payload, tuple):
            identity, _message = payload
            if identity == self._current.identity:
                self._failed = True
                self._show_current()

    # Events
    def keyPressEvent(self, event: QKeyEvent) -> None:  # type: ignore[override]
        if event.key() == Qt.Key_Left:
            self.step(-1)
        elif event.key() == Qt.Key_Right:
            self.step(1)
        elif event.key() == Qt.Key_Space:
            self.accept()
        else:
            super().keyPressEvent(event)

    def resizeEvent(self, event) -> None:  # type: ignore[override]
        super().resizeEvent(event)
        self._fit()

    def done(self, result: int) -> None:  # type: ignore[override]
        self._vm.remove_listener(self._on_vm_event)
        super().done(result)
