"""Keyboard cursor over a paginated 2-D grid.

The grid is one continuous row-major sequence split into pages of
`cols * rows` items. The navigator keeps a single absolute cursor and the
page it lives on, and computes the next position for each directional
command without touching any UI or storage.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from core.models import GridMode


class Direction(Enum):
    UP = "up"
    DOWN = "down"
    LEFT = "left"
    RIGHT = "right"


@dataclass(frozen=True)
class NavState:
    focused_index: int
    current_page: int


@dataclass(frozen=True)
class Transition:
    """Result of a navigation command."""

    before: NavState
    after: NavState

    @property
    def changed(self) -> bool:
        return self.before != self.after

    @property
    def page_changed(self) -> bool:
        return self.before.current_page != self.after.current_page


def page_count(item_count: int, page_size: int) -> int:
    """Number of pages needed for `item_count` items (0 when empty)."""
    if item_count <= 0:
        return 0
    return (item_count + page_size - 1) // page_size


class GridNavigator:
    """Cursor state machine for the paginated grid.

    The focused item always lies on the current page. When restored state is
    inconsistent (e.g. the folder shrank since it was saved) the cursor is
    clamped first and the page follows the cursor.
    """

    def __init__(
        self,
        item_count: int,
        grid_mode: GridMode = GridMode.GRID_5X5,
        current_page: int = 0,
        focused_index: int = 0,
    ) -> None:
        self._count = max(0, int(item_count))
        self._mode = grid_mode
        self._page = 0
        self._focus = 0
        self._restore(current_page, focused_index)

    # Properties
    @property
    def item_count(self) -> int:
        return self._count

    @property
    def grid_mode(self) -> GridMode:
        return self._mode

    @property
    def focused_index(self) -> int:
        return self._focus

    @property
    def current_page(self) -> int:
        return self._page

    @property
    def state(self) -> NavState:
        return NavState(self._focus, self._page)

    @property
    def page_size(self) -> int:
        return self._mode.page_size

    @property
    def page_count(self) -> int:
        return page_count(self._count, self.page_size)

    @property
    def page_start(self) -> int:
        return self._page * self.page_size

    @property
    def page_end(self) -> int:
        """Exclusive end index of the current page."""
        return min(self.page_start + self.page_size, self._count)

    def page_of(self, index: int) -> int:
        return index // self.page_size

    def window(self) -> set[int]:
        """Pages kept warm around the current page (previous, current, next)."""
        return {p for p in (self._page - 1, self._page, self._page + 1) if 0 <= p < self.page_count}

    # Commands
    def move(self, direction: Direction) -> Transition:
        """Apply a directional command; a no-op when no valid target exists."""
        before = self.state
        if self._count == 0:
            return Transition(before, before)

        cols, rows, size = self._mode.cols, self._mode.rows, self.page_size
        index_in_page = self._focus - self.page_start
        row, col = divmod(index_in_page, cols)
        focus, page = self._focus, self._page

        if direction is Direction.UP:
            if row > 0:
                focus -= cols
            elif page > 0:
                page -= 1
                last_row_start = page * size + (rows - 1) * cols
                focus = min(last_row_start + col, self._count - 1)
        elif direction is Direction.DOWN:
            if row < rows - 1:
                # only the last page can be short, so there is no page below
                if focus + cols < self.page_end:
                    focus += cols
            elif page < self.page_count - 1:
                page += 1
                focus = min(page * size + col, self._count - 1)
        elif direction is Direction.LEFT:
            if focus > 0:
                focus -= 1
                if focus < self.page_start:
                    page -= 1
        elif direction is Direction.RIGHT:
            if focus + 1 < self._count:
                focus += 1
                if focus >= self.page_start + size:
                    page += 1

        self._focus, self._page = focus, page
        return Transition(before, self.state)

    def set_grid_mode(self, mode: GridMode) -> Transition:
        """Switch layout; the cursor returns to the first item of page 0."""
        before = self.state
        self._mode = mode
        self._page = 0
        self._focus = 0
        return Transition(before, self.state)

    def goto_page(self, page: int) -> Transition:
        """Jump to `page` (clamped) and focus its first item."""
        before = self.state
        if self._count == 0:
            return Transition(before, before)
        self._page = min(max(0, int(page)), self.page_count - 1)
        self._focus = self.page_start
        return Transition(before, self.state)

    def focus(self, index: int) -> Transition:
        """Move the cursor to `index` (clamped); the page follows."""
        before = self.state
        if self._count == 0:
            return Transition(before, before)
        self._focus = min(max(0, int(index)), self._count - 1)
        self._page = self.page_of(self._focus)
        return Transition(before, self.state)

    def set_item_count(self, item_count: int) -> Transition:
        """Update the number of items and re-clamp the cursor."""
        before = self.state
        self._count = max(0, int(item_count))
        self._restore(self._page, self._focus)
        return Transition(before, self.state)

    def _restore(self, current_page: int, focused_index: int) -> None:
        if self._count == 0:
            self._page = 0
            self._focus = 0
            return
        page = min(max(0, int(current_page)), self.page_count - 1)
        focus = min(max(0, int(focused_index)), self._count - 1)
        if self.page_of(focus) != page:
            page = self.page_of(focus)
        self._page = page
        self._focus = focus
