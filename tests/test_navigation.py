"""Tests for the paginated grid cursor."""

import random

import pytest

from core.models import GridMode
from core.services.navigation import Direction, GridNavigator, page_count

UP, DOWN, LEFT, RIGHT = Direction.UP, Direction.DOWN, Direction.LEFT, Direction.RIGHT


def _at(count, focus, mode=GridMode.GRID_5X5):
    nav = GridNavigator(count, mode)
    nav.focus(focus)
    return nav


def _page_sizes(nav):
    sizes = []
    for page in range(nav.page_count):
        nav.goto_page(page)
        sizes.append(nav.page_end - nav.page_start)
    return sizes


@pytest.mark.parametrize(
    "count, size, expected", [(0, 25, 0), (1, 25, 1), (25, 25, 1), (26, 25, 2), (70, 24, 3)]
)
def test_page_count(count, size, expected):
    assert page_count(count, size) == expected


def test_pages_of_seventy_items_in_both_modes():
    assert _page_sizes(GridNavigator(70, GridMode.GRID_5X5)) == [25, 25, 20]
    assert _page_sizes(GridNavigator(70, GridMode.GRID_6X4)) == [24, 24, 22]


def test_right_from_last_item_of_page_advances_page():
    nav = _at(70, 24)
    t = nav.move(RIGHT)
    assert (nav.focused_index, nav.current_page) == (25, 1)
    assert t.page_changed


def test_left_from_first_item_of_page_goes_back():
    nav = _at(70, 25)
    nav.move(LEFT)
    assert (nav.focused_index, nav.current_page) == (24, 0)


@pytest.mark.parametrize("direction", [UP, LEFT])
def test_top_left_of_first_page_is_a_no_op(direction):
    nav = _at(70, 0)
    t = nav.move(direction)
    assert not t.changed
    assert (nav.focused_index, nav.current_page) == (0, 0)


def test_right_on_last_item_is_a_no_op():
    nav = _at(70, 69)
    assert not nav.move(RIGHT).changed
    assert (nav.focused_index, nav.current_page) == (69, 2)


def test_up_from_top_row_lands_on_same_column_of_previous_page():
    nav = _at(70, 27)  # page 1, row 0, col 2
    nav.move(UP)
    assert (nav.focused_index, nav.current_page) == (22, 0)


def test_down_from_bottom_row_lands_on_same_column_of_next_page():
    nav = _at(70, 22)  # page 0, row 4, col 2
    nav.move(DOWN)
    assert (nav.focused_index, nav.current_page) == (27, 1)


def test_down_into_short_last_page_is_clamped():
    nav = _at(27, 23)  # page 1 holds only items 25 and 26
    nav.move(DOWN)
    assert (nav.focused_index, nav.current_page) == (26, 1)


def test_down_within_page_moves_one_row():
    nav = _at(70, 7)
    nav.move(DOWN)
    assert nav.focused_index == 12


def test_down_without_item_below_on_last_page_is_a_no_op():
    nav = _at(70, 65)  # page 2 ends at 69; row below would start at 70
    assert not nav.move(DOWN).changed
    nav = _at(68, 64)  # item 69 does not exist
    assert not nav.move(DOWN).changed


def test_down_on_bottom_row_of_last_page_is_a_no_op():
    nav = _at(50, 47)  # page 1 is full, no page 2
    assert not nav.move(DOWN).changed


def test_six_by_four_navigation():
    nav = _at(70, 23, GridMode.GRID_6X4)
    nav.move(RIGHT)
    assert (nav.focused_index, nav.current_page) == (24, 1)

    nav = _at(70, 18, GridMode.GRID_6X4)  # row 3, col 0
    nav.move(DOWN)
    assert (nav.focused_index, nav.current_page) == (24, 1)

    nav = _at(70, 25, GridMode.GRID_6X4)  # page 1, row 0, col 1
    nav.move(UP)
    assert (nav.focused_index, nav.current_page) == (19, 0)


def test_grid_mode_switch_resets_cursor():
    nav = _at(70, 40)
    t = nav.set_grid_mode(GridMode.GRID_6X4)
    assert nav.grid_mode is GridMode.GRID_6X4
    assert (nav.focused_index, nav.current_page) == (0, 0)
    assert t.page_changed


def test_goto_page_is_clamped_and_focuses_first_item():
    nav = GridNavigator(70)
    nav.goto_page(9)
    assert (nav.focused_index, nav.current_page) == (50, 2)
    nav.goto_page(-3)
    assert (nav.focused_index, nav.current_page) == (0, 0)


def test_inconsistent_restored_state_is_repaired():
    nav = GridNavigator(10, GridMode.GRID_5X5, current_page=3, focused_index=50)
    assert (nav.focused_index, nav.current_page) == (9, 0)

    nav = GridNavigator(70, GridMode.GRID_5X5, current_page=0, focused_index=30)
    assert (nav.focused_index, nav.current_page) == (30, 1)


def test_shrinking_item_count_reclamps():
    nav = _at(70, 69)
    nav.set_item_count(20)
    assert (nav.focused_index, nav.current_page) == (19, 0)


def test_empty_grid_ignores_commands():
    nav = GridNavigator(0)
    assert nav.page_count == 0
    for direction in Direction:
        assert not nav.move(direction).changed
    assert not nav.goto_page(1).changed
    assert nav.window() == set()


def test_window_covers_neighbour_pages():
    nav = GridNavigator(70)
    assert nav.window() == {0, 1}
    nav.goto_page(1)
    assert nav.window() == {0, 1, 2}
    nav.goto_page(2)
    assert nav.window() == {1, 2}


@pytest.mark.parametrize("mode", list(GridMode))
@pytest.mark.parametrize("count", [1, 7, 24, 25, 70, 101])
def test_focus_always_on_current_page(mode, count):
    rng = random.Random(count)
    nav = GridNavigator(count, mode)
    for _ in range(400):
        nav.move(rng.choice(list(Direction)))
        assert 0 <= nav.focused_index < count
        assert nav.page_of(nav.focused_index) == nav.current_page
        assert nav.page_start <= nav.focused_index < nav.page_end
