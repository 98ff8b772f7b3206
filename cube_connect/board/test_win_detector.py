"""
Tests for line detection
"""

from cube_connect.board.cell import Cell
from cube_connect.board.win_detector import check_win


def board_of(owner, *pairs):
    return {Cell(r, c): owner for r, c in pairs}


def test_horizontal_line_of_four():
    board = board_of(0, (0, 0), (0, 1), (0, 2), (0, 3))
    won, line = check_win(Cell(0, 3), 0, board, 4)
    assert won
    assert line == [Cell(0, 0), Cell(0, 1), Cell(0, 2), Cell(0, 3)]


def test_line_through_middle_cell():
    board = board_of(1, (2, 0), (2, 1), (2, 2), (2, 3))
    won, line = check_win(Cell(2, 1), 1, board, 4)
    assert won
    assert line == [Cell(2, 0), Cell(2, 1), Cell(2, 2), Cell(2, 3)]


def test_vertical_line():
    board = board_of(0, (1, 4), (2, 4), (3, 4), (4, 4), (5, 4))
    won, line = check_win(Cell(5, 4), 0, board, 5)
    assert won
    assert line[0] == Cell(1, 4)
    assert line[-1] == Cell(5, 4)


def test_both_diagonals():
    down_right = board_of(0, (0, 0), (1, 1), (2, 2), (3, 3))
    won, line = check_win(Cell(1, 1), 0, down_right, 4)
    assert won
    assert line == [Cell(0, 0), Cell(1, 1), Cell(2, 2), Cell(3, 3)]

    down_left = board_of(0, (0, 3), (1, 2), (2, 1), (3, 0))
    won, line = check_win(Cell(0, 3), 0, down_left, 4)
    assert won
    assert line == [Cell(0, 3), Cell(1, 2), Cell(2, 1), Cell(3, 0)]


def test_other_owner_breaks_line():
    board = board_of(0, (0, 0), (0, 1), (0, 3))
    board[Cell(0, 2)] = 1
    won, line = check_win(Cell(0, 3), 0, board, 4)
    assert not won
    assert line == []


def test_short_line_is_not_a_win():
    board = board_of(0, (0, 0), (0, 1), (0, 2))
    assert check_win(Cell(0, 2), 0, board, 4) == (False, [])


def test_horizontal_wins_ties():
    """When two axes win at once, the first axis in scan order is reported"""
    board = board_of(0, (3, 0), (3, 1), (3, 2), (3, 3), (0, 3), (1, 3), (2, 3))
    won, line = check_win(Cell(3, 3), 0, board, 4)
    assert won
    assert line == [Cell(3, 0), Cell(3, 1), Cell(3, 2), Cell(3, 3)]


def test_scan_is_capped_per_side():
    # Seven in a row; each side of the centre is scanned at most K-1 steps
    board = board_of(0, *[(0, c) for c in range(7)])
    won, line = check_win(Cell(0, 3), 0, board, 4)
    assert won
    assert line == [Cell(0, c) for c in range(7)]
    won, line = check_win(Cell(0, 0), 0, board, 4)
    assert line == [Cell(0, 0), Cell(0, 1), Cell(0, 2), Cell(0, 3)]
