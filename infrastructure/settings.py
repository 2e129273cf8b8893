"""Settings access helpers for JSON-based configuration."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

APP_DIR_NAME = "PhotoPicker"


def get_data_directory() -> Path:
    """Per-user directory holding the session store, logs and exports metadata."""
    if os.name == "nt":
        base = os.path.expandvars("%LOCALAPPDATA%")
        if base and "%" not in base:
            return Path(base) / APP_DIR_NAME
        return Path.home() / "AppData" / "Local" / APP_DIR_NAME
    xdg = os.environ.get("XDG_DATA_HOME")
    base_path = Path(xdg) if xdg else Path.home() / ".local" / "share"
    return base_path / APP_DIR_NAME


class JsonSettings:
    """Lightweight JSON settings reader with dotted-key access."""

    def __init__(self, settings_path: str | Path) -> None:
        self._path = Path(settings_path)
        if not self._path.exists():
            raise FileNotFoundError(f"settings.json not found: {self._path}")
        with self._path.open("r", encoding="utf-8") as f:
            self._data = json.load(f)

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str, default: Any | None = None) -> Any:
        """Return value for dotted `key`, or `default` if not present."""
        parts = key.split(".")
        node: Any = self._data
        for part in parts:
            if isinstance(node, dict) and part in node:
                node = node[part]
            else:
                return default
        return node

    def get_int(self, key: str, default: int) -> int:
        """Return `key` as an int, falling back to `default` on bad values."""
        try:
            return int(self.get(key, default))
        except (ValueError, TypeError):
            return default

    def get_path(self, key: str, default: Path) -> Path:
        """Return `key` as a path with environment variables and `~` expanded."""
        raw = self.get(key)
        if isinstance(raw, str) and raw.strip():
            return Path(os.path.expanduser(os.path.expandvars(raw)))
        return default
