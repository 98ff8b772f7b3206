from enum import Enum


# Seat colours by slot
PLAYER_COLORS = [
    "#3b82f6",  # Blue
    "#ef4444",  # Red
    "#22c55e",  # Green
    "#f59e0b",  # Amber
    "#8b5cf6",  # Purple
    "#ec4899",  # Pink
]


class IntentType(Enum):
    PLACE = "place"
    SELECT = "select"
    MOVE = "move"
    PASS = "pass"


class GamePhase(Enum):
    PLACEMENT = "placement"
    MOVEMENT = "movement"


class RejectReason(str, Enum):
    """Rejection reasons. The value is the message shown to the requester."""
    # Move legality
    OCCUPIED = "Square already occupied"
    NOT_ADJACENT = "Must touch an existing cube (horizontally or vertically)"
    NOT_YOUR_TURN = "Not your turn"
    NOT_YOUR_PIECE = "That's not your cube!"
    WOULD_DISCONNECT = "Cannot move this cube - would break connectivity!"
    NO_PIECE_SELECTED = "Select one of your cubes to move first"
    WRONG_PHASE = "That action is not allowed in the current phase"
    OUT_OF_BOUNDS = "Square is off the board"
    GAME_OVER = "Game is already over"
    INVALID_INTENT = "Invalid move request"

    # Room lifecycle
    ROOM_NOT_FOUND = "Room not found"
    ROOM_FULL = "Room is full"
    ALREADY_STARTED = "Game already started"
    NOT_STARTED = "Game not started"
    NOT_ENOUGH_PLAYERS = "Not enough players to start"
    NOT_IN_ROOM = "You are not in this game"
    SEAT_NOT_FOUND = "Player not found"
    NO_DISCONNECT_RECORD = "No disconnected player found for this slot"
    SLOT_REMOVED = "Player slot was removed due to timeout"
    NOT_HOST = "Only the host can start the game"
    IN_ANOTHER_ROOM = "Leave your current room first"
    ROOM_CORRUPTED = "Room is in an invalid state"

    def __str__(self):
        return self.value
