"""Main window: toolbar, page grid, status bar and the dialogs around them.

All state lives in `BrowserVM`; the window forwards user commands to it and
re-renders from view-model events.
"""

from __future__ import annotations

from pathlib import Path
import re
from typing import Any

from PySide6.QtWidgets import QFileDialog, QLabel, QMainWindow, QMessageBox
from loguru import logger

from app.viewmodels.browser_vm import (
    EVENT_NAVIGATION,
    EVENT_RESET,
    EVENT_SELECTION,
    EVENT_THUMBNAIL,
    EVENT_THUMBNAIL_FAILED,
    BrowserVM,
)
from app.views.components.menu_controller import MenuController
from app.views.constants import STATUS_TIMEOUT_MS
from app.views.dialogs.select_dialog import SelectDialog
from app.views.grid_view import GridView
from app.views.lightbox import Lightbox
from core.errors import NothingSelectedError, PermissionDeniedError
from core.services.navigation import Direction, Transition
from core.services.selection_service import FIELDS
from infrastructure.logging import open_latest_log, open_log_directory


class MainWindow(QMainWindow):
    """Top-level browser window."""

    def __init__(self, vm: BrowserVM, settings: Any | None = None) -> None:
        """Initialize MainWindow.

        Args:
            vm: View-model holding folder, cursor and selection state
            settings: Settings instance (optional; used for the initial window size)
        """
        super().__init__()
        self._vm = vm
        self._settings = settings
        self._lightbox: Lightbox | None = None

        self.setWindowTitle("Photo Picker")
        self.grid = GridView(self)
        self.setCentralWidget(self.grid)

        self.menu_controller = MenuController(self)
        self.menu_controller.setup_menus()
        self.menu_controller.connect_actions(
            {
                "open_folder": self.on_select_folder,
                "export": self.on_export_selected,
                "forget_missing": self.on_forget_missing,
                "toggle_grid": self.on_toggle_grid,
                "prev_page": lambda: self._goto_relative_page(-1),
                "next_page": lambda: self._goto_relative_page(1),
                "select_by": self.on_open_select_dialog,
                "open_latest_log": self.on_open_latest_log,
                "open_log_directory": self.on_open_log_directory,
            }
        )

        self._page_label = QLabel()
        self._selection_label = QLabel()
        self.statusBar().addPermanentWidget(self._selection_label)
        self.statusBar().addPermanentWidget(self._page_label)

        self.grid.navigateRequested.connect(self._on_navigate)
        self.grid.toggleRequested.connect(self.on_toggle_selection)
        self.grid.closeUpRequested.connect(self.on_open_close_up)
        self.grid.tileClicked.connect(self._on_tile_clicked)
        self.grid.tileActivated.connect(self._on_tile_activated)

        vm.add_listener(self._on_vm_event)
        self._sync_actions()
        self._update_status()

        width = 1280
        height = 900
        if settings is not None:
            width = settings.get_int("window.width", width)
            height = settings.get_int("window.height", height)
        self.resize(width, height)

    # Startup
    def offer_resume(self) -> None:
        """Ask whether to reopen the last session, otherwise prompt for a folder."""
        last = self._vm.last_session()
        if last is not None and last.folder_key and Path(last.folder_key).is_dir():
            reply = QMessageBox.question(
                self,
                "Resume Session",
                f"Continue where you left off in '{last.folder_name}'?\n\n"
                f"Last opened {last.last_accessed_at:%Y-%m-%d %H:%M}",
                QMessageBox.Yes | QMessageBox.No,
                QMessageBox.Yes,
            )
            if reply == QMessageBox.Yes:
                self.open_folder(last.folder_key)
                return
        self.statusBar().showMessage("Select a folder to start", STATUS_TIMEOUT_MS)

    # Folder
    def on_select_folder(self) -> None:
        start = str(self._vm.folder or Path.home())
        folder = QFileDialog.getExistingDirectory(self, "Select Folder", start)
        if folder:
            self.open_folder(folder)

    def open_folder(self, folder: str | Path) -> bool:
        try:
            session = self._vm.open_folder(folder)
        except (PermissionDeniedError, FileNotFoundError) as ex:
            logger.warning("Cannot open folder {}: {}", folder, ex)
            QMessageBox.warning(self, "Cannot Open Folder", str(ex))
            return False
        self.setWindowTitle(f"Photo Picker - {session.folder_name}")
        missing = len(self._vm.missing_paths)
        if missing:
            self.statusBar().showMessage(
                f"{missing} previously seen files are missing", STATUS_TIMEOUT_MS
            )
        return True

    def on_forget_missing(self) -> None:
        missing = len(self._vm.missing_paths)
        if not missing:
            QMessageBox.information(self, "Forget Missing Files", "No files are missing.")
            return
        reply = QMessageBox.question(
            self,
            "Forget Missing Files",
            f"Forget {missing} files that are no longer in the folder?",
            QMessageBox.Yes | QMessageBox.No,
            QMessageBox.No,
        )
        if reply == QMessageBox.Yes:
            removed = self._vm.forget_missing_files()
            self.statusBar().showMessage(f"Forgot {removed} files", STATUS_TIMEOUT_MS)

    # Navigation
    def _on_navigate(self, direction: Direction) -> None:
        self._vm.move(direction)

    def _goto_relative_page(self, delta: int) -> None:
        self._vm.goto_page(self._vm.current_page + delta)

    def on_toggle_grid(self) -> None:
        self._vm.toggle_grid_mode()
        self._render_page()
        self._update_status()

    def _on_tile_clicked(self, index: int) -> None:
        self._vm.focus_item(index)
        self.grid.setFocus()

    def _on_tile_activated(self, index: int) -> None:
        self._vm.focus_item(index)
        self.on_open_close_up()

    # Selection
    def on_toggle_selection(self) -> None:
        self._vm.toggle_selection()

    def on_open_select_dialog(self) -> None:
        focused: dict[str, str] = {}
        if self._vm.items:
            item = self._vm.items[self._vm.focused_index]
            focused = {label: str(getattr(item, attr)) for label, attr in FIELDS.items()}
        dlg = SelectDialog(list(FIELDS), self, focused_values=focused)
        dlg.selectRequested.connect(lambda f, p: self._apply_select_regex(dlg, f, p, True))
        dlg.unselectRequested.connect(lambda f, p: self._apply_select_regex(dlg, f, p, False))
        dlg.exec()

    def _apply_select_regex(
        self, dlg: SelectDialog, field: str, pattern: str, select: bool
    ) -> None:
        try:
            changed = self._vm.select_matching(pattern, select, field)
        except re.error as ex:
            dlg.show_result(f"Invalid pattern: {ex}")
            return
        verb = "Selected" if select else "Unselected"
        dlg.show_result(f"{verb} {changed} images")

    # Close-up
    def on_open_close_up(self) -> None:
        close_up = self._vm.request_close_up()
        if close_up is None:
            return
        self._lightbox = Lightbox(self._vm, close_up, self)
        self._lightbox.exec()
        self._lightbox = None
        self.grid.setFocus()

    # Export
    def on_export_selected(self) -> None:
        try:
            result = self._vm.export_selected(self._choose_export_folder, self._on_export_progress)
        except NothingSelectedError:
            QMessageBox.information(self, "Export", "Select at least one image to export.")
            return
        except PermissionDeniedError as ex:
            self.statusBar().showMessage(str(ex), STATUS_TIMEOUT_MS)
            return

        summary = f"Copied {result.success_count} images to:\n{result.destination}"
        if result.failure_count:
            details = "\n".join(result.messages[:10])
            if len(result.messages) > 10:
                details += f"\n… and {len(result.messages) - 10} more"
            QMessageBox.warning(
                self,
                "Export Finished With Errors",
                f"{summary}\n\n{result.failure_count} failed:\n{details}",
            )
        else:
            QMessageBox.information(self, "Export Finished", summary)

    def _choose_export_folder(self) -> Path | None:
        folder = QFileDialog.getExistingDirectory(self, "Export Selected To", str(Path.home()))
        return Path(folder) if folder else None

    def _on_export_progress(self, done: int, total: int) -> None:
        self.statusBar().showMessage(f"Exporting {done}/{total}…")

    # Logs
    def on_open_latest_log(self) -> None:
        if not open_latest_log():
            QMessageBox.information(self, "Log", "No log file found.")

    def on_open_log_directory(self) -> None:
        if not open_log_directory():
            QMessageBox.information(self, "Log", "Could not open the log directory.")

    # View-model events
    def _on_vm_event(self, event: str, payload: object) -> None:
        if event == EVENT_RESET:
            self._render_page()
        elif event == EVENT_NAVIGATION and isinstance(payload, Transition):
            if payload.page_changed:
                self._render_page()
            else:
                self._refresh_indices((payload.before.focused_index, payload.after.focused_index))
        elif event == EVENT_SELECTION and isinstance(payload, list):
            self._refresh_indices(payload)
        elif event == EVENT_THUMBNAIL and isinstance(payload, int):
            self._refresh_indices((payload,))
        elif event == EVENT_THUMBNAIL_FAILED and isinstance(payload, tuple):
            self.grid.mark_failed(payload[0])
        self._update_status()

    def _render_page(self) -> None:
        mode = self._vm.grid_mode
        self.grid.show_page(self._vm.page_items(), mode.cols, mode.rows)
        self._sync_actions()

    def _refresh_indices(self, indices) -> None:
        count = self._vm.item_count
        for index in set(indices):
            if 0 <= index < count:
                self.grid.update_item(self._vm.item_vm(index))

    def _sync_actions(self) -> None:
        has_items = self._vm.item_count > 0
        self.menu_controller.set_grid_label(self._vm.grid_mode.label)
        self.menu_controller.enable_action("prev_page", self._vm.current_page > 0)
        self.menu_controller.enable_action(
            "next_page", self._vm.current_page + 1 < self._vm.page_count
        )
        self.menu_controller.enable_action("select_by", has_items)
        self.menu_controller.enable_action("export", has_items)
        self.menu_controller.enable_action("forget_missing", self._vm.session is not None)

    def _update_status(self) -> None:
        if self._vm.item_count == 0:
            self._page_label.setText("No images")
        else:
            self._page_label.setText(
                f"Page {self._vm.current_page + 1} / {self._vm.page_count}"
                f"  |  Image {self._vm.focused_index + 1} / {self._vm.item_count}"
            )
        self._selection_label.setText(f"{self._vm.selected_count} selected")

    # Close
    def closeEvent(self, event) -> None:
        """Flush the session store and release every image handle before closing."""
        self._vm.remove_listener(self._on_vm_event)
        self._vm.close()
        logger.info("Main window closed")
        event.accept()
