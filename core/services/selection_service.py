"""Regex-based bulk selection decoupled from any UI toolkit.

The service only decides which items change; applying the change (and
persisting it) is left to the caller so every toggle goes through the same
path as a single keyboard toggle.
"""

from __future__ import annotations

from collections.abc import Sequence
import re

from core.models import ImageItem

FIELDS: dict[str, str] = {
    "File Name": "display_name",
    "Relative Path": "relative_path",
}


class RegexSelectionService:
    """Compute selection changes for items whose field matches a pattern."""

    def plan(
        self, items: Sequence[ImageItem], regex: str, select: bool, field: str = "File Name"
    ) -> list[int]:
        """Return indices of items that match `regex` and need their flag flipped.

        Args:
            items: Items in display order.
            regex: Regular expression searched in the field text.
            select: Target selection state.
            field: Display name of the field to inspect (see `FIELDS`).

        Raises:
            re.error: If `regex` is not a valid pattern.
            KeyError: If `field` is unknown.
        """
        rx = re.compile(regex)
        attr = FIELDS[field]
        changes: list[int] = []
        for index, item in enumerate(items):
            text = str(getattr(item, attr, "") or "")
            if text and rx.search(text) and item.selected != select:
                changes.append(index)
        return changes
