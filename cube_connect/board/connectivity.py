"""
Connectivity engine.

Every occupied cell is traversable regardless of owner, so these helpers
answer questions about the board as a whole rather than one player's pieces.
"""

from collections import deque
from typing import Iterable, List, Set

from cube_connect.board.cell import Cell


def components_of(cells: Iterable[Cell]) -> List[Set[Cell]]:
    """
    Partition cells into 4-directionally connected groups.

    Components are returned in the order their first cell appears in `cells`.
    """
    ordered = list(dict.fromkeys(cells))
    remaining = set(ordered)
    components: List[Set[Cell]] = []

    for start in ordered:
        if start not in remaining:
            continue
        remaining.discard(start)
        component = {start}
        queue = deque([start])

        while queue:
            current = queue.popleft()
            for neighbor in current.neighbors():
                if neighbor in remaining:
                    remaining.discard(neighbor)
                    component.add(neighbor)
                    queue.append(neighbor)

        components.append(component)

    return components


def is_connected(cells: Iterable[Cell]) -> bool:
    """True if the cells form at most one component."""
    return len(components_of(cells)) <= 1


def would_stay_connected(cells: Iterable[Cell], removed: Cell) -> bool:
    """True if the cells still form one group after `removed` is lifted."""
    rest = [c for c in cells if c != removed]
    if len(rest) <= 1:
        return True
    return len(components_of(rest)) == 1


def disconnected_set_if_removed(cells: Iterable[Cell], removed: Cell) -> Set[Cell]:
    """
    Cells that would be cut off from the main group if `removed` were lifted.

    Returns every cell outside the largest remaining component (the first
    discovered one wins a size tie), or an empty set if nothing splits.
    """
    rest = [c for c in cells if c != removed]
    components = components_of(rest)
    if len(components) <= 1:
        return set()

    largest = components[0]
    for component in components[1:]:
        if len(component) > len(largest):
            largest = component

    return {c for c in rest if c not in largest}


def touches_any(cell: Cell, occupied: Iterable[Cell]) -> bool:
    """True if any 4-neighbour of `cell` is in `occupied`."""
    occupied = occupied if isinstance(occupied, (set, frozenset, dict)) else set(occupied)
    return any(neighbor in occupied for neighbor in cell.neighbors())
