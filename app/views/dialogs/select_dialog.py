from __future__ import annotations

import re

from PySide6.QtCore import Signal
from PySide6.QtWidgets import (
    QComboBox,
    QDialog,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QPushButton,
    QVBoxLayout,
)


class SelectDialog(QDialog):
    selectRequested = Signal(str, str)  # field, regex
    unselectRequested = Signal(str, str)  # field, regex

    def __init__(
        self,
        fields: list[str],
        parent=None,
        focused_values: dict[str, str] | None = None,
    ) -> None:
        super().__init__(parent)
        self.setWindowTitle("Select by Regex")
        self._fields = list(fields)
        self._focused_values = dict(focused_values or {})

        root = QVBoxLayout(self)

        row = QHBoxLayout()
        row.addWidget(QLabel("Field"))
        self.combo = QComboBox()
        self.combo.addItems(self._fields)
        row.addWidget(self.combo)
        root.addLayout(row)

        row2 = QHBoxLayout()
        row2.addWidget(QLabel("Regex"))
        self.regex = QLineEdit()
        self.regex.setPlaceholderText("e.g. ^IMG_\\d+\\.jpe?g$")
        row2.addWidget(self.regex)
        root.addLayout(row2)

        tips = QLabel(
            "Select or unselect every image whose field matches the pattern.\n"
            "- Exact match: ^text$\n"
            "- Any text: .*\n"
            "- Digits: \\d+"
        )
        tips.setWordWrap(True)
        root.addWidget(tips)

        self.result_label = QLabel("")
        root.addWidget(self.result_label)

        btns = QHBoxLayout()
        self.btn_select = QPushButton("Select")
        self.btn_unselect = QPushButton("Unselect")
        self.btn_close = QPushButton("Close")
        btns.addWidget(self.btn_select)
        btns.addWidget(self.btn_unselect)
        btns.addStretch(1)
        btns.addWidget(self.btn_close)
        root.addLayout(btns)

        self.btn_close.clicked.connect(self.accept)
        self.btn_select.clicked.connect(
            lambda: self.selectRequested.emit(self.combo.currentText(), self.regex.text())
        )
        self.btn_unselect.clicked.connect(
            lambda: self.unselectRequested.emit(self.combo.currentText(), self.regex.text())
        )
        self.combo.currentTextChanged.connect(self._apply_exact_regex)
        self._apply_exact_regex(self.combo.currentText())

    def show_result(self, text: str) -> None:
        self.result_label.setText(text)

    def _apply_exact_regex(self, field: str) -> None:
        # Prefill with an exact match of the focused item's value
        value = self._focused_values.get(field, "")
        if value:
            self.regex.setText(f"^{re.escape(value)}$")
        else:
            self.regex.clear()
