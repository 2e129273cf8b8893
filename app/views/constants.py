"""
UI/view constants centralized for reuse across view modules.

Only sizes, colours and texts shared by more than one widget live here.
"""

from __future__ import annotations

# Grid tiles
TILE_MIN_PX: int = 96
GRID_SPACING_PX: int = 6
GRID_MARGIN_PX: int = 8

# Tile decoration (stylesheet colours)
FOCUS_BORDER_COLOR: str = "#1e88e5"
SELECTED_BORDER_COLOR: str = "#43a047"
PLAIN_BORDER_COLOR: str = "#3a3a3a"
TILE_BACKGROUND: str = "#202020"
FAILED_TEXT_COLOR: str = "#e57373"

PENDING_TEXT: str = "Loading…"
FAILED_TEXT: str = "(unreadable)"

# Status bar
STATUS_TIMEOUT_MS: int = 3000

# Lightbox
LIGHTBOX_SIZE_RATIO: float = 0.85
