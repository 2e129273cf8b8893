"""MenuController: Builds the menu bar and toolbar and wires their actions."""

from __future__ import annotations

from collections.abc import Callable

from PySide6.QtGui import QAction, QKeySequence
from PySide6.QtWidgets import QMainWindow, QMenuBar, QToolBar

# (name, text, shortcut) per menu; None marks a separator
_MENUS: dict[str, list[tuple[str, str, str] | None]] = {
    "File": [
        ("open_folder", "Select Folder…", "Ctrl+O"),
        ("export", "Export Selected…", "Ctrl+E"),
        None,
        ("forget_missing", "Forget Missing Files", ""),
        None,
        ("exit", "Exit", "Ctrl+Q"),
    ],
    "View": [
        ("toggle_grid", "Toggle Grid (5x5 / 6x4)", "Ctrl+G"),
        ("prev_page", "Previous Page", "PgUp"),
        ("next_page", "Next Page", "PgDown"),
    ],
    "Select": [
        ("select_by", "Select by Regex…", "Ctrl+F"),
    ],
    "Log": [
        ("open_latest_log", "Open Latest Log", ""),
        None,
        ("open_log_directory", "Open Log Directory", ""),
    ],
}

_TOOLBAR = ("open_folder", "toggle_grid", "prev_page", "next_page", "select_by", "export")


class MenuController:
    """Manages main window menu and toolbar creation and action connections."""

    def __init__(self, main_window: QMainWindow) -> None:
        self.window = main_window
        self.actions: dict[str, QAction] = {}
        self.toolbar: QToolBar | None = None

    def setup_menus(self) -> dict[str, QAction]:
        """Create the menu bar and toolbar.

        Returns:
            Dictionary mapping action names to QAction instances
        """
        menubar = QMenuBar(self.window)
        for title, entries in _MENUS.items():
            menu = menubar.addMenu(title)
            for entry in entries:
                if entry is None:
                    menu.addSeparator()
                    continue
                name, text, shortcut = entry
                action = menu.addAction(text)
                if shortcut:
                    action.setShortcut(QKeySequence(shortcut))
                self.actions[name] = action
        self.window.setMenuBar(menubar)

        self.toolbar = QToolBar("Main", self.window)
        self.toolbar.setMovable(False)
        for name in _TOOLBAR:
            self.toolbar.addAction(self.actions[name])
        self.window.addToolBar(self.toolbar)
        return self.actions

    def connect_actions(self, handlers: dict[str, Callable]) -> None:
        """Connect actions to handler callables; `exit` defaults to closing the window."""
        for name, action in self.actions.items():
            handler = handlers.get(name)
            if handler is not None:
                action.triggered.connect(handler)
            elif name == "exit":
                action.triggered.connect(self.window.close)

    def set_grid_label(self, text: str) -> None:
        action = self.actions.get("toggle_grid")
        if action is not None:
            action.setText(text)

    def enable_action(self, name: str, enabled: bool = True) -> None:
        action = self.actions.get(name)
        if action:
            action.setEnabled(enabled)
