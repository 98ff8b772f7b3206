from typing import Dict, List, Tuple

from cube_connect.board.cell import Cell


# Scan order decides ties between simultaneous lines: right, down, down-right, down-left
DIRECTIONS: List[Tuple[int, int]] = [
    (0, 1),
    (1, 0),
    (1, 1),
    (1, -1),
]


def check_win(cell: Cell, owner: int, occupied: Dict[Cell, int], win_length: int) -> Tuple[bool, List[Cell]]:
    """
    Check whether `owner` has an unbroken line of `win_length` through `cell`.

    Each side of `cell` is scanned at most win_length - 1 steps.
    Returns (won, line) where line runs backward -> forward along the first
    winning axis, or (False, []) if no axis reaches the target length.
    """
    for dr, dc in DIRECTIONS:
        line = [cell]

        for i in range(1, win_length):
            step = cell.offset(dr * i, dc * i)
            if occupied.get(step) == owner:
                line.append(step)
            else:
                break

        for i in range(1, win_length):
            step = cell.offset(-dr * i, -dc * i)
            if occupied.get(step) == owner:
                line.insert(0, step)
            else:
                break

        if len(line) >= win_length:
            return True, line

    return False, []
