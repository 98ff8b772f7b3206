"""
MoveValidator - Applies one intent to an authoritative GameState
- Phase detection (placement vs. movement)
- Legality checks (occupancy, adjacency, connectivity)
- Win detection and turn rotation

Every check runs before the first write, so a rejected intent leaves the
state exactly as it was. The one exception is a destination that would break
connectivity: the rejection also drops the current selection.
"""

import logging
from datetime import datetime
from typing import Optional, Tuple

from cube_connect.board.cell import Cell
from cube_connect.board.connectivity import (
    disconnected_set_if_removed,
    is_connected,
    touches_any,
    would_stay_connected,
)
from cube_connect.board.win_detector import check_win
from cube_connect.config import Config
from cube_connect.enums import GamePhase, IntentType, RejectReason
from cube_connect.errors import GameIntegrityError
from cube_connect.services.game_state import GameState, Intent

logger = logging.getLogger(__name__)


class MoveValidator:
    def __init__(self, grid_size: int = None):
        self.grid_size = grid_size if grid_size is not None else Config.GRID_SIZE

    # ============================================================================
    # ENTRY POINT
    # ============================================================================

    def apply(self, state: GameState, slot: Optional[int], intent: Intent) -> Tuple[bool, str]:
        """
        Apply `intent` from the seat at `slot` to `state`.

        `slot` is None only for a pass issued by the boundary layer itself
        (turn-timer expiry).
        Returns (success, message); on failure the message is a RejectReason.
        Raises GameIntegrityError if `state` is already inconsistent.
        """
        self.check_integrity(state)

        if state.is_over:
            return False, RejectReason.GAME_OVER

        if intent.type == IntentType.PASS:
            return self._apply_pass(state, slot)

        if slot is None or not state.is_players_turn(slot):
            return False, RejectReason.NOT_YOUR_TURN

        if intent.cell is None:
            return False, RejectReason.INVALID_INTENT
        if not intent.cell.in_bounds(self.grid_size):
            return False, RejectReason.OUT_OF_BOUNDS

        if state.phase_for(slot) == GamePhase.PLACEMENT:
            if intent.type != IntentType.PLACE:
                return False, RejectReason.WRONG_PHASE
            return self._apply_placement(state, slot, intent.cell)

        if intent.type == IntentType.SELECT:
            return self._apply_select(state, slot, intent.cell)
        if intent.type == IntentType.MOVE:
            return self._apply_move(state, slot, intent.cell)
        return False, RejectReason.WRONG_PHASE

    # ============================================================================
    # INTEGRITY
    # ============================================================================

    def check_integrity(self, state: GameState) -> None:
        """Refuse to work on a state that already breaks an invariant."""
        if not state.players:
            raise GameIntegrityError("Game has no players")

        if not 0 <= state.current_player < len(state.players):
            raise GameIntegrityError(
                f"Active turn index {state.current_player} out of range for {len(state.players)} players"
            )

        for player in state.players:
            if player.cubes_left < 0:
                raise GameIntegrityError(f"Player {player.id} has negative cube count {player.cubes_left}")

        for cell, owner in state.board.items():
            if not cell.in_bounds(self.grid_size):
                raise GameIntegrityError(f"Occupied cell {cell} is off the board")
            if not 0 <= owner < len(state.players):
                raise GameIntegrityError(f"Cell {cell} owned by unknown player {owner}")

        if state.selected_cube is not None and state.board.get(state.selected_cube) != state.current_player:
            raise GameIntegrityError(
                f"Selected cube {state.selected_cube} is not owned by player {state.current_player}"
            )

    # --- Pass ---
    def _apply_pass(self, state: GameState, slot: Optional[int]) -> Tuple[bool, str]:
        if slot is not None and not state.is_players_turn(slot):
            return False, RejectReason.NOT_YOUR_TURN

        skipped = state.current_player
        state.selected_cube = None
        state.advance_turn()
        state.last_update = datetime.now()
        logger.debug(f"Player {skipped} passed, turn -> {state.current_player}")
        return True, "Turn passed"

    # --- Placement phase ---
    def _apply_placement(self, state: GameState, slot: int, cell: Cell) -> Tuple[bool, str]:
        if cell in state.board:
            return False, RejectReason.OCCUPIED

        # The first cube of the game may go anywhere
        if state.board and not touches_any(cell, state.board):
            return False, RejectReason.NOT_ADJACENT

        state.board[cell] = slot
        state.players[slot].cubes_left -= 1
        state.selected_cube = None
        self._finish_turn(state, slot, cell)
        return True, "Cube placed"

    # --- Movement phase ---
    def _apply_select(self, state: GameState, slot: int, cell: Cell) -> Tuple[bool, str]:
        owner = state.board.get(cell)
        if owner is None:
            return False, RejectReason.NO_PIECE_SELECTED
        if owner != slot:
            return False, RejectReason.NOT_YOUR_PIECE

        # Connectivity is judged against the destination, not the lifted board
        state.selected_cube = cell
        state.last_update = datetime.now()
        return True, "Cube selected"

    def _apply_move(self, state: GameState, slot: int, dest: Cell) -> Tuple[bool, str]:
        origin = state.selected_cube
        if origin is None:
            return False, RejectReason.NO_PIECE_SELECTED

        if dest in state.board:
            return False, RejectReason.OCCUPIED

        lifted = [c for c in state.board if c != origin]
        if not is_connected(lifted + [dest]):
            if not would_stay_connected(state.board, origin):
                stranded = disconnected_set_if_removed(state.board, origin)
                logger.debug(
                    f"Rejected move {origin} -> {dest}: would strand {sorted(c.key() for c in stranded)}"
                )
                state.selected_cube = None
                return False, RejectReason.WOULD_DISCONNECT
            return False, RejectReason.NOT_ADJACENT

        del state.board[origin]
        state.board[dest] = slot
        state.selected_cube = None
        self._finish_turn(state, slot, dest)
        return True, "Cube moved"

    # --- Shared ---
    def _finish_turn(self, state: GameState, slot: int, cell: Cell) -> None:
        """Check for a win, then either freeze the game or rotate the turn."""
        state.move_count += 1
        state.last_update = datetime.now()

        won, line = check_win(cell, slot, state.board, state.win_condition)
        if won:
            state.winner = slot
            state.winning_line = line
            logger.info(f"Player {slot} wins with {[c.key() for c in line]}")
            return

        state.winning_line = []
        state.advance_turn()
