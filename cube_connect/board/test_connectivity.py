"""
Tests for the connectivity engine
"""

from cube_connect.board.cell import Cell
from cube_connect.board.connectivity import (
    components_of,
    disconnected_set_if_removed,
    is_connected,
    touches_any,
    would_stay_connected,
)


def cells(*pairs):
    return [Cell(r, c) for r, c in pairs]


def test_cell_keys():
    """Cells round-trip through their canonical key and hash by value"""
    cell = Cell(3, 14)
    assert cell.key() == "3,14"
    assert Cell.from_key("3,14") == cell
    assert len({Cell(1, 2), Cell(1, 2)}) == 1
    assert Cell(0, 0).in_bounds(20)
    assert not Cell(20, 0).in_bounds(20)
    assert not Cell(-1, 5).in_bounds(20)


def test_components_of_single_group():
    board = cells((0, 0), (0, 1), (1, 1), (2, 1))
    components = components_of(board)
    assert len(components) == 1
    assert components[0] == set(board)


def test_components_ignore_diagonals():
    """Only orthogonal steps connect cells"""
    components = components_of(cells((0, 0), (1, 1)))
    assert len(components) == 2


def test_components_in_discovery_order():
    board = cells((5, 5), (0, 0), (0, 1), (5, 6))
    components = components_of(board)
    assert components == [{Cell(5, 5), Cell(5, 6)}, {Cell(0, 0), Cell(0, 1)}]


def test_components_of_empty():
    assert components_of([]) == []
    assert is_connected([])


def test_would_stay_connected_middle_of_line():
    board = cells((0, 0), (0, 1), (0, 2))
    assert not would_stay_connected(board, Cell(0, 1))
    assert would_stay_connected(board, Cell(0, 0))
    assert would_stay_connected(board, Cell(0, 2))


def test_would_stay_connected_trivial():
    """Two cells or fewer can never be split"""
    assert would_stay_connected(cells((0, 0), (0, 1)), Cell(0, 0))
    assert would_stay_connected(cells((0, 0)), Cell(0, 0))


def test_cycle_survives_removal():
    square = cells((0, 0), (0, 1), (1, 0), (1, 1))
    for cell in square:
        assert would_stay_connected(square, cell)


def test_disconnected_set_returns_smaller_side():
    # A long arm to the right and a short arm to the left of (0, 2)
    board = cells((0, 0), (0, 1), (0, 2), (0, 3), (0, 4), (0, 5))
    stranded = disconnected_set_if_removed(board, Cell(0, 2))
    assert stranded == {Cell(0, 0), Cell(0, 1)}


def test_disconnected_set_tie_keeps_first_component():
    board = cells((0, 0), (0, 1), (0, 2))
    stranded = disconnected_set_if_removed(board, Cell(0, 1))
    assert stranded == {Cell(0, 2)}


def test_disconnected_set_empty_when_connected():
    board = cells((0, 0), (0, 1), (0, 2))
    assert disconnected_set_if_removed(board, Cell(0, 2)) == set()


def test_touches_any():
    occupied = {Cell(5, 5): 0}
    assert touches_any(Cell(5, 6), occupied)
    assert touches_any(Cell(4, 5), occupied)
    assert not touches_any(Cell(6, 6), occupied)
    assert not touches_any(Cell(7, 7), cells((5, 5)))
