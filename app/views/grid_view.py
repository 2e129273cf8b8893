"""Page grid: one tile per item of the current page."""

from __future__ import annotations

from PySide6.QtCore import QSize, Qt, Signal
from PySide6.QtGui import QKeyEvent, QPixmap
from PySide6.QtWidgets import QFrame, QGridLayout, QLabel, QVBoxLayout, QWidget

from app.viewmodels.item_vm import ItemVM
from app.views.constants import (
    FAILED_TEXT,
    FAILED_TEXT_COLOR,
    FOCUS_BORDER_COLOR,
    GRID_MARGIN_PX,
    GRID_SPACING_PX,
    PENDING_TEXT,
    PLAIN_BORDER_COLOR,
    SELECTED_BORDER_COLOR,
    TILE_BACKGROUND,
    TILE_MIN_PX,
)
from core.services.navigation import Direction

_KEY_DIRECTIONS = {
    Qt.Key_Up: Direction.UP,
    Qt.Key_Down: Direction.DOWN,
    Qt.Key_Left: Direction.LEFT,
    Qt.Key_Right: Direction.RIGHT,
}


class _Tile(QFrame):
    clicked = Signal(int)
    doubleClicked = Signal(int)

    def __init__(self, vm: ItemVM, side: int, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self.index = vm.index
        self._side = side
        self.setObjectName("tile")
        v = QVBoxLayout(self)
        v.setContentsMargins(3, 3, 3, 3)
        v.setSpacing(2)
        self._image = QLabel(PENDING_TEXT)
        self._image.setAlignment(Qt.AlignCenter)
        self._image.setFixedSize(side, side)
        v.addWidget(self._image)
        self._caption = QLabel()
        self._caption.setAlignment(Qt.AlignHCenter | Qt.AlignTop)
        self._caption.setWordWrap(False)
        v.addWidget(self._caption)
        self.apply(vm)

    def apply(self, vm: ItemVM) -> None:
        mark = "[x] " if vm.is_selected else ""
        metrics = self._caption.fontMetrics()
        name = metrics.elidedText(vm.file_name, Qt.ElideMiddle, self._side)
        self._caption.setText(f"{mark}{name}\n{vm.size_label}")
        if vm.is_pending:
            self._image.setPixmap(QPixmap())
            self._image.setText(PENDING_TEXT)
        else:
            pm = QPixmap.fromImage(vm.thumbnail.to_qimage())
            if pm.isNull():
                self.show_failed()
            else:
                self._image.setPixmap(
                    pm.scaled(self._side, self._side, Qt.KeepAspectRatio, Qt.SmoothTransformation)
                )
        if vm.focused:
            border = f"3px solid {FOCUS_BORDER_COLOR}"
        elif vm.is_selected:
            border = f"3px solid {SELECTED_BORDER_COLOR}"
        else:
            border = f"1px solid {PLAIN_BORDER_COLOR}"
        self.setStyleSheet(
            f"QFrame#tile {{ background-color: {TILE_BACKGROUND}; border: {border}; }}"
        )

    def show_failed(self) -> None:
        self._image.setPixmap(QPixmap())
        self._image.setText(FAILED_TEXT)
        self._image.setStyleSheet(f"color: {FAILED_TEXT_COLOR};")

    def mousePressEvent(self, event) -> None:  # type: ignore[override]
        if event.button() == Qt.LeftButton:
            self.clicked.emit(self.index)
        super().mousePressEvent(event)

    def mouseDoubleClickEvent(self, event) -> None:  # type: ignore[override]
        self.doubleClicked.emit(self.index)
        super().mouseDoubleClickEvent(event)


class GridView(QWidget):
    """Renders one page of items and turns key presses into commands."""

    navigateRequested = Signal(object)  # Direction
    toggleRequested = Signal()
    closeUpRequested = Signal()
    tileClicked = Signal(int)  # absolute item index
    tileActivated = Signal(int)

    def __init__(self, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self.setFocusPolicy(Qt.StrongFocus)
        self._layout = QGridLayout(self)
        self._layout.setSpacing(GRID_SPACING_PX)
        m = GRID_MARGIN_PX
        self._layout.setContentsMargins(m, m, m, m)
        self._tiles: dict[int, _Tile] = {}
        self._items: list[ItemVM] = []
        self._cols = 5
        self._rows = 5
        self._empty = QLabel("Select a folder to start browsing.")
        self._empty.setAlignment(Qt.AlignCenter)
        self._layout.addWidget(self._empty, 0, 0)

    def sizeHint(self) -> QSize:  # type: ignore[override]
        return QSize(6 * 180, 5 * 200)

    # Rendering
    def show_page(self, items: list[ItemVM], cols: int, rows: int) -> None:
        """Rebuild every tile for `items` laid out row-major in `cols` columns."""
        self._items = list(items)
        self._cols = max(1, cols)
        self._rows = max(1, rows)
        self._rebuild()

    def update_item(self, vm: ItemVM) -> None:
        """Refresh one tile in place, if it is on the shown page."""
        tile = self._tiles.get(vm.index)
        if tile is not None:
            tile.apply(vm)

    def mark_failed(self, index: int) -> None:
        tile = self._tiles.get(index)
        if tile is not None:
            tile.show_failed()

    def _rebuild(self) -> None:
        self._clear()
        if not self._items:
            self._empty.setVisible(True)
            self._layout.addWidget(self._empty, 0, 0)
            return
        self._empty.setVisible(False)
        side = self._tile_side()
        for pos, vm in enumerate(self._items):
            r, c = divmod(pos, self._cols)
            tile = _Tile(vm, side, self)
            tile.clicked.connect(self.tileClicked)
            tile.doubleClicked.connect(self.tileActivated)
            self._layout.addWidget(tile, r, c, Qt.AlignTop | Qt.AlignLeft)
            self._tiles[vm.index] = tile

    def _clear(self) -> None:
        for tile in self._tiles.values():
            self._layout.removeWidget(tile)
            tile.deleteLater()
        self._tiles.clear()
        self._layout.removeWidget(self._empty)

    def _tile_side(self) -> int:
        caption = 2 * self.fontMetrics().height() + 12
        free_w = self.width() - 2 * GRID_MARGIN_PX - (self._cols - 1) * GRID_SPACING_PX
        free_h = self.height() - 2 * GRID_MARGIN_PX - (self._rows - 1) * GRID_SPACING_PX
        side = min(free_w // self._cols, free_h // self._rows - caption) - 6
        return max(TILE_MIN_PX, side)

    # Events
    def resizeEvent(self, event) -> None:  # type: ignore[override]
        super().resizeEvent(event)
        if self._items:
            self._rebuild()

    def keyPressEvent(self, event: QKeyEvent) -> None:  # type: ignore[override]
        key = event.key()
        if key in _KEY_DIRECTIONS:
            self.navigateRequested.emit(_KEY_DIRECTIONS[key])
        elif key == Qt.Key_Space:
            self.closeUpRequested.emit()
        elif key in (Qt.Key_Return, Qt.Key_Enter):
            self.toggleRequested.emit()
        else:
            super().keyPressEvent(event)
