from __future__ import annotations
from datetime import datetime
from typing import Any, Dict, List, Optional

from cube_connect.board.cell import Cell
from cube_connect.enums import GamePhase, IntentType, PLAYER_COLORS
from cube_connect.seat import Seat


class PlayerInfo:
    """A seat's participation in a started game."""

    def __init__(self, id: int, name: str, cubes_left: int):
        self.id = id
        self.name = name
        self.color = PLAYER_COLORS[id % len(PLAYER_COLORS)]
        self.cubes_left = cubes_left

    def __repr__(self) -> str:
        return f"<PlayerInfo {self.id} {self.name} cubes={self.cubes_left}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "color": self.color,
            "cubes_left": self.cubes_left,
        }


class Intent:
    """One requested action: place, select, move or pass."""

    def __init__(self, type: IntentType, cell: Optional[Cell] = None):
        self.type = type
        self.cell = cell

    @staticmethod
    def place(row: int, col: int) -> "Intent":
        return Intent(IntentType.PLACE, Cell(row, col))

    @staticmethod
    def select(row: int, col: int) -> "Intent":
        return Intent(IntentType.SELECT, Cell(row, col))

    @staticmethod
    def move(row: int, col: int) -> "Intent":
        return Intent(IntentType.MOVE, Cell(row, col))

    @staticmethod
    def pass_turn() -> "Intent":
        return Intent(IntentType.PASS)

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> Optional["Intent"]:
        """
        Build an intent from a wire message like {"type": "place", "row": 3, "col": 4}.
        Returns None if the message is malformed.
        """
        if not isinstance(data, dict):
            return None

        try:
            intent_type = IntentType(data.get("type"))
        except (TypeError, ValueError):
            return None

        if intent_type == IntentType.PASS:
            return Intent(intent_type)

        row, col = data.get("row"), data.get("col")
        if isinstance(row, bool) or isinstance(col, bool):
            return None
        if not isinstance(row, int) or not isinstance(col, int):
            return None
        return Intent(intent_type, Cell(row, col))

    def __repr__(self) -> str:
        return f"Intent({self.type.value}, {self.cell!r})"


class GameState:
    def __init__(self, seats: List[Seat], cubes_per_player: int, win_condition: int):
        # Board: cell -> owner slot
        self.board: Dict[Cell, int] = {}

        # Players, indexed by seat slot
        self.players: List[PlayerInfo] = [
            PlayerInfo(seat.slot, seat.name, cubes_per_player) for seat in seats
        ]

        # Turn tracking
        self.current_player: int = 0
        self.move_count: int = 0

        # Movement phase selection
        self.selected_cube: Optional[Cell] = None

        # Game end tracking
        self.win_condition: int = win_condition
        self.winner: Optional[int] = None
        self.winning_line: List[Cell] = []

        # Timestamps
        self.created_at: datetime = datetime.now()
        self.last_update: datetime = datetime.now()

    # --- Helper Methods ---
    def get_current_player(self) -> PlayerInfo:
        """Get the player whose turn it is"""
        return self.players[self.current_player]

    def is_players_turn(self, slot: int) -> bool:
        return self.current_player == slot

    def phase_for(self, slot: int) -> GamePhase:
        if self.players[slot].cubes_left > 0:
            return GamePhase.PLACEMENT
        return GamePhase.MOVEMENT

    @property
    def is_over(self) -> bool:
        return self.winner is not None

    def advance_turn(self) -> None:
        """Rotate to the next seat"""
        self.current_player = (self.current_player + 1) % len(self.players)

    def occupied_cells(self) -> List[Cell]:
        return list(self.board.keys())

    # --- Serialization ---
    def to_dict(self) -> dict:
        """
        Full authoritative snapshot for broadcast to every seat in the room.
        """
        winner = self.players[self.winner].to_dict() if self.winner is not None else None
        phase = None
        if 0 <= self.current_player < len(self.players):
            phase = self.phase_for(self.current_player).value

        return {
            "board": {cell.key(): owner for cell, owner in self.board.items()},
            "current_player": self.current_player,
            "players": [p.to_dict() for p in self.players],
            "winner": winner,
            "winning_line": [cell.key() for cell in self.winning_line],
            "selected_cube": self.selected_cube.key() if self.selected_cube else None,
            "win_condition": self.win_condition,
            "phase": phase,
            "move_count": self.move_count,
            "last_update": self.last_update.isoformat(),
        }
