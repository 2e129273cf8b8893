"""Operation-level errors shared by the infrastructure and UI layers.

Per-item failures (an unreadable file during a scan, a thumbnail that cannot
be decoded, a single copy that fails during export) are logged and aggregated
instead of raised; only failures that abort a whole operation live here.
"""

from __future__ import annotations


class PhotoPickerError(Exception):
    """Base class for errors surfaced to the user."""


class CapabilityUnsupportedError(PhotoPickerError):
    """The platform lacks a capability required for folder operations."""


class PermissionDeniedError(PhotoPickerError):
    """Access to a folder was denied or the user declined to grant it."""


class StoreUninitializedError(PhotoPickerError):
    """The session store was used before `init()` (or after `close()`)."""

    def __init__(self, operation: str = "") -> None:
        detail = f" (operation: {operation})" if operation else ""
        super().__init__(f"Session store not initialized. Call init() first{detail}.")
        self.operation = operation


class NothingSelectedError(PhotoPickerError):
    """An export was requested with no selected images."""
