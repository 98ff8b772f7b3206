from typing import List, Optional

from cube_connect.config import Config


class Cell:
    row: int
    col: int

    def __init__(self, row: int, col: int):
        self.row = row
        self.col = col

    def __eq__(self, other):
        return isinstance(other, Cell) and self.row == other.row and self.col == other.col

    def key(self) -> str:
        """Canonical key used in snapshots, e.g. '3,4'."""
        return f"{self.row},{self.col}"

    @staticmethod
    def from_key(key: str) -> "Cell":
        """Create a cell from its canonical key (e.g., '3,4')."""
        row, col = key.split(",")
        return Cell(int(row), int(col))

    def offset(self, dr: int, dc: int) -> "Cell":
        """Return the cell shifted by (dr, dc). May lie off the board."""
        return Cell(self.row + dr, self.col + dc)

    def neighbors(self) -> List["Cell"]:
        """The four orthogonally adjacent cells (up, down, left, right)."""
        return [
            self.offset(-1, 0),
            self.offset(1, 0),
            self.offset(0, -1),
            self.offset(0, 1),
        ]

    def in_bounds(self, size: Optional[int] = None) -> bool:
        size = Config.GRID_SIZE if size is None else size
        return 0 <= self.row < size and 0 <= self.col < size

    def __str__(self):
        return self.key()

    def __hash__(self):
        """Allow Cell to be used as dict key"""
        return hash((self.row, self.col))

    def __repr__(self):
        return f"Cell({self.row}, {self.col})"
