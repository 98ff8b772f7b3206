"""
RoomManager - Owns every live room and its lifecycle
- Room creation with collision-free codes
- Lobby seating (join, leave with slot compaction, ready flags)
- Game start and intent submission (delegates to MoveValidator)
- Disconnect grace windows, empty-lobby expiry and the periodic sweep

Every mutating entry point is a coroutine that holds the lock of the room it
touches. Rooms never share a lock, so different rooms proceed in parallel.
"""

import asyncio
import logging
import random
from datetime import datetime
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from cube_connect.config import Config
from cube_connect.enums import RejectReason
from cube_connect.errors import GameIntegrityError
from cube_connect.seat import Seat
from cube_connect.services.deferred import DeferredTask
from cube_connect.services.disconnect_supervisor import DisconnectionSupervisor, DisconnectRecord
from cube_connect.services.game_state import GameState, Intent
from cube_connect.services.move_validator import MoveValidator

logger = logging.getLogger(__name__)

ROOM_CODE_ALPHABET = "0123456789ABCDEF"
ROOM_CODE_LENGTH = 6

RosterListener = Callable[[str, Optional["Room"]], Awaitable[None]]


class Room:
    def __init__(self, code: str, win_condition: int, max_players: int, cubes_per_player: int):
        self.code = code
        self.win_condition = win_condition
        self.max_players = max_players
        self.cubes_per_player = cubes_per_player
        self.seats: List[Seat] = []
        self.game_state: Optional[GameState] = None
        self.started = False
        self.created_at: datetime = datetime.now()

        # Armed while a lobby sits empty
        self.deletion_timer: Optional[DeferredTask] = None
        # Set once an integrity violation froze the room
        self.integrity_error: Optional[str] = None

    # --- Seat lookup ---
    def get_seat(self, slot: int) -> Optional[Seat]:
        for seat in self.seats:
            if seat.slot == slot:
                return seat
        return None

    def seat_for_connection(self, connection_id: str) -> Optional[Seat]:
        for seat in self.seats:
            if seat.connection_id == connection_id:
                return seat
        return None

    def connection_ids(self) -> List[str]:
        """Connections currently attached to a seat (for broadcasts)."""
        return [seat.connection_id for seat in self.seats if seat.connection_id]

    @property
    def is_full(self) -> bool:
        return len(self.seats) >= self.max_players

    @property
    def host(self) -> Optional[Seat]:
        return self.get_seat(0)

    # --- Seat removal ---
    # Lobby and in-game removal have different postconditions, so they are
    # separate operations.
    def remove_and_compact(self, seat: Seat) -> None:
        """Lobby only: remove a seat and renumber the rest 0..n-1 in order."""
        self.seats = [s for s in self.seats if s is not seat]
        for idx, remaining in enumerate(self.seats):
            remaining.slot = idx

    def drop_seat(self, slot: int) -> Optional[Seat]:
        """In game: remove a seat permanently, leaving other slots untouched."""
        seat = self.get_seat(slot)
        if seat:
            self.seats = [s for s in self.seats if s is not seat]
        return seat

    def age_seconds(self, now: Optional[datetime] = None) -> float:
        now = now or datetime.now()
        return (now - self.created_at).total_seconds()

    def __repr__(self) -> str:
        return f"<Room {self.code} {len(self.seats)}/{self.max_players} {'started' if self.started else 'lobby'}>"

    def to_dict(self) -> dict:
        return {
            "room_code": self.code,
            "max_players": self.max_players,
            "cubes_per_player": self.cubes_per_player,
            "win_condition": self.win_condition,
            "players": [seat.to_dict() for seat in self.seats],
            "started": self.started,
            "created_at": self.created_at.isoformat(),
        }


class RoomManager:
    """Manages all live rooms (the authoritative in-memory store)"""

    def __init__(self, config=Config, on_seat_expired: Optional[RosterListener] = None):
        self.config = config
        self.rooms: Dict[str, Room] = {}
        self._connection_rooms: Dict[str, str] = {}  # connection_id -> room code
        self._locks: Dict[str, asyncio.Lock] = {}
        self.validator = MoveValidator(grid_size=config.GRID_SIZE)
        self.supervisor = DisconnectionSupervisor(config.DISCONNECT_GRACE_SEC)
        self._on_seat_expired = on_seat_expired
        self._cleanup_task: Optional[asyncio.Task] = None

    def _lock_for(self, code: str) -> Optional[asyncio.Lock]:
        """Get the room's lock, or None if no such room exists (or it was deleted)."""
        return self._locks.get(code)

    # ============================================================================
    # ROOM CREATION
    # ============================================================================

    def generate_room_code(self) -> str:
        while True:
            code = ''.join(random.choices(ROOM_CODE_ALPHABET, k=ROOM_CODE_LENGTH))
            if code not in self.rooms:
                return code

    def create_room(self, win_condition: Optional[int] = None, max_players: Optional[int] = None,
                    cubes_per_player: Optional[int] = None) -> Room:
        """
        Create an empty lobby. Out-of-range settings are clamped.
        Returns the new Room; its code is what players share.
        """
        cfg = self.config
        win_condition = cfg.DEFAULT_WIN_LENGTH if win_condition is None else win_condition
        max_players = cfg.DEFAULT_CAPACITY if max_players is None else max_players
        cubes_per_player = cfg.DEFAULT_CUBES if cubes_per_player is None else cubes_per_player

        room = Room(
            code=self.generate_room_code(),
            win_condition=min(max(win_condition, cfg.MIN_WIN_LENGTH), cfg.MAX_WIN_LENGTH),
            max_players=min(max(max_players, cfg.MIN_PLAYERS), cfg.MAX_PLAYERS),
            cubes_per_player=max(cubes_per_player, 1),
        )
        self.rooms[room.code] = room
        self._locks[room.code] = asyncio.Lock()
        logger.info(f"Created room {room.code} (win={room.win_condition}, maxPlayers={room.max_players}, "
                    f"cubes={room.cubes_per_player})")
        return room

    # ============================================================================
    # ROOM RETRIEVAL
    # ============================================================================

    def get_room(self, code: str) -> Optional[Room]:
        return self.rooms.get(code)

    def get_room_by_connection(self, connection_id: str) -> Optional[Room]:
        code = self._connection_rooms.get(connection_id)
        return self.rooms.get(code) if code else None

    # ============================================================================
    # LOBBY
    # ============================================================================

    def _seated_elsewhere(self, connection_id: str, code: str) -> bool:
        """A connection holds at most one seat; it must leave before sitting elsewhere."""
        other = self._connection_rooms.get(connection_id)
        return other is not None and other != code and other in self.rooms

    async def join_seat(self, code: str, connection_id: str,
                        name: Optional[str] = None) -> Tuple[bool, str, Optional[int]]:
        """
        Take a seat in a lobby.
        Returns (success, message, slot). Joining twice returns the existing slot.
        """
        lock = self._lock_for(code)
        if lock is None:
            return False, RejectReason.ROOM_NOT_FOUND, None
        async with lock:
            room = self.rooms.get(code)
            if not room:
                logger.warning(f"Attempt to join non-existent room: {code}")
                return False, RejectReason.ROOM_NOT_FOUND, None

            if room.started:
                logger.warning(f"Attempt to join started game: {code}")
                return False, RejectReason.ALREADY_STARTED, None

            existing = room.seat_for_connection(connection_id)
            if existing:
                return True, "Already seated", existing.slot

            if self._seated_elsewhere(connection_id, code):
                logger.warning(f"Connection {connection_id} tried to join {code} while seated in another room")
                return False, RejectReason.IN_ANOTHER_ROOM, None

            if room.is_full:
                logger.warning(f"Attempt to join full room: {code}")
                return False, RejectReason.ROOM_FULL, None

            # A join always beats a pending empty-room deletion
            self._cancel_deletion(room)

            slot = len(room.seats)
            room.seats.append(Seat(slot, name or f"Player {slot + 1}", connection_id))
            self._connection_rooms[connection_id] = code

            logger.info(f"Player joined room {code} as slot {slot}")
            return True, "Joined room", slot

    async def set_ready(self, code: str, slot: int, ready: bool) -> Tuple[bool, str]:
        """Toggle a lobby seat's ready flag. Advisory only."""
        lock = self._lock_for(code)
        if lock is None:
            return False, RejectReason.ROOM_NOT_FOUND
        async with lock:
            room = self.rooms.get(code)
            if not room:
                return False, RejectReason.ROOM_NOT_FOUND
            if room.started:
                return False, RejectReason.ALREADY_STARTED

            seat = room.get_seat(slot)
            if not seat:
                return False, RejectReason.SEAT_NOT_FOUND

            seat.ready = ready
            logger.debug(f"Player {slot} set {'ready' if ready else 'not ready'} in room {code}")
            return True, "Ready" if ready else "Not ready"

    async def start_room(self, code: str,
                         requested_by: Optional[str] = None) -> Tuple[bool, str, Optional[GameState]]:
        """
        Start the game once. There is no way back to the lobby.
        When `requested_by` is given it must be the host's connection.
        """
        lock = self._lock_for(code)
        if lock is None:
            return False, RejectReason.ROOM_NOT_FOUND, None
        async with lock:
            room = self.rooms.get(code)
            if not room:
                logger.warning(f"Attempt to start non-existent room: {code}")
                return False, RejectReason.ROOM_NOT_FOUND, None

            if room.started:
                return False, RejectReason.ALREADY_STARTED, None

            if requested_by is not None:
                host = room.host
                if not host or host.connection_id != requested_by:
                    return False, RejectReason.NOT_HOST, None

            if len(room.seats) < self.config.MIN_PLAYERS:
                return False, RejectReason.NOT_ENOUGH_PLAYERS, None

            self._cancel_deletion(room)
            room.game_state = GameState(room.seats, room.cubes_per_player, room.win_condition)
            room.started = True

            logger.info(f"Game started in room {code} with {len(room.seats)} players")
            return True, "Game started", room.game_state

    # ============================================================================
    # GAME ACTIONS (Delegate to MoveValidator)
    # ============================================================================

    async def submit_intent(self, code: str, connection_id: Optional[str],
                            intent: Intent) -> Tuple[bool, str, Optional[GameState]]:
        """
        Apply one intent to a room's game.
        `connection_id` None means the boundary itself is passing the turn.
        Returns (success, message, new_state); rejections carry no state.
        """
        lock = self._lock_for(code)
        if lock is None:
            return False, RejectReason.ROOM_NOT_FOUND, None
        async with lock:
            room = self.rooms.get(code)
            if not room:
                return False, RejectReason.ROOM_NOT_FOUND, None

            if room.integrity_error:
                return False, RejectReason.ROOM_CORRUPTED, None

            if not room.started or room.game_state is None:
                logger.warning(f"Move attempt in non-started game: {code}")
                return False, RejectReason.NOT_STARTED, None

            slot = None
            if connection_id is not None:
                seat = room.seat_for_connection(connection_id)
                if not seat:
                    logger.warning(f"Move from unregistered connection in room {code}")
                    return False, RejectReason.NOT_IN_ROOM, None
                slot = seat.slot

            try:
                success, message = self.validator.apply(room.game_state, slot, intent)
            except GameIntegrityError as e:
                e.room_code = code
                room.integrity_error = str(e)
                logger.error(f"Integrity violation, room frozen: {e}")
                return False, RejectReason.ROOM_CORRUPTED, None

            if not success:
                logger.debug(f"Rejected {intent!r} from slot {slot} in {code}: {message}")
                return False, message, None

            self._skip_removed_seats(room)

            logger.debug(f"{message} in {code}: {intent!r} by slot {slot}")
            return True, message, room.game_state

    # ============================================================================
    # LEAVING, DISCONNECTS AND RECONNECTION
    # ============================================================================

    async def leave_seat(self, connection_id: str) -> Optional[dict]:
        """
        Detach a connection from its seat (explicit leave or dropped socket).

        Lobby: the seat is removed and slots are compacted; an emptied lobby
        is scheduled for deletion. Started game: the seat is held open for the
        disconnect grace window.
        Returns None if the connection held no seat.
        """
        code = self._connection_rooms.get(connection_id)
        if not code:
            return None

        lock = self._lock_for(code)
        if lock is None:
            return None
        async with lock:
            room = self.rooms.get(code)
            seat = room.seat_for_connection(connection_id) if room else None
            if self._connection_rooms.get(connection_id) == code:
                del self._connection_rooms[connection_id]
            if not room or not seat:
                return None

            if not room.started:
                room.remove_and_compact(seat)
                logger.info(f"Player left room {code} (pre-start)")

                result = {"room": room, "seats_remaining": len(room.seats), "grace_period": False,
                          "deletion_scheduled": False}
                if not room.seats:
                    self._arm_deletion(room)
                    result["deletion_scheduled"] = True
                return result

            # In game: keep the slot, open a grace window
            seat.connection_id = None
            self.supervisor.track(code, seat.slot, seat.name, self._expire_seat)
            return {"room": room, "seats_remaining": len(room.seats), "grace_period": True,
                    "grace_seconds": self.supervisor.grace_seconds, "slot": seat.slot}

    async def reconnect_seat(self, code: str, connection_id: str,
                             slot: int) -> Tuple[bool, str, Optional[Room]]:
        """Reclaim a seat that is inside its disconnect grace window."""
        lock = self._lock_for(code)
        if lock is None:
            return False, RejectReason.ROOM_NOT_FOUND, None
        async with lock:
            room = self.rooms.get(code)
            if not room:
                logger.warning(f"Reconnect attempt to non-existent room: {code}")
                return False, RejectReason.ROOM_NOT_FOUND, None

            if self._seated_elsewhere(connection_id, code):
                return False, RejectReason.IN_ANOTHER_ROOM, None

            if self.supervisor.get(code, slot) is None:
                logger.warning(f"No disconnected data for slot {slot} in room {code}")
                return False, RejectReason.NO_DISCONNECT_RECORD, None

            self.supervisor.resolve(code, slot)
            seat = room.get_seat(slot)
            if not seat:
                return False, RejectReason.SLOT_REMOVED, None

            seat.connection_id = connection_id
            self._connection_rooms[connection_id] = code

            logger.info(f"Player reconnected to room {code} at slot {slot}")
            return True, "Reconnected", room

    async def _expire_seat(self, record: DisconnectRecord) -> None:
        """Grace window ran out: remove the seat for good."""
        code = record.room_code
        lock = self._lock_for(code)
        if lock is None:
            return
        async with lock:
            if not self.supervisor.expire(record):
                return

            room = self.rooms.get(code)
            if not room:
                return

            room.drop_seat(record.slot)
            logger.info(f"Removed disconnected player {record.slot} from room {code}")
            self._skip_removed_seats(room)

            if not room.seats:
                self._delete_room(code)
                logger.info(f"Deleted room {code} after removing last player")
                room = None

        if self._on_seat_expired:
            await self._on_seat_expired(code, room)

    def _skip_removed_seats(self, room: Room) -> None:
        """Pass the turn past slots whose seat was removed after grace expiry."""
        state = room.game_state
        if state is None or room.integrity_error or not room.seats:
            return
        for _ in range(len(state.players)):
            if state.is_over or room.get_seat(state.current_player):
                return
            logger.info(f"Skipping removed slot {state.current_player} in room {room.code}")
            self.validator.apply(state, None, Intent.pass_turn())

    # ============================================================================
    # ROOM DELETION
    # ============================================================================

    def _arm_deletion(self, room: Room) -> None:
        """(Re)arm the empty-lobby deletion timer."""
        self._cancel_deletion(room)
        code = room.code
        timer = DeferredTask(self.config.EMPTY_ROOM_TTL_SEC, lambda: self._delete_if_still_empty(code, timer),
                             name=f"delete:{code}")
        room.deletion_timer = timer
        logger.info(f"Room {code} is empty, deletion in {self.config.EMPTY_ROOM_TTL_SEC}s")

    def _cancel_deletion(self, room: Room) -> None:
        if room.deletion_timer:
            room.deletion_timer.cancel()
            room.deletion_timer = None
            logger.info(f"Cancelled scheduled deletion for room {room.code}")

    async def _delete_if_still_empty(self, code: str, timer: DeferredTask) -> None:
        lock = self._lock_for(code)
        if lock is None:
            return
        async with lock:
            room = self.rooms.get(code)
            # A join that got the lock first cancelled or replaced this timer
            if not room or timer.cancelled or room.deletion_timer is not timer:
                return
            room.deletion_timer = None
            if not room.started and not room.seats:
                self._delete_room(code)
                logger.info(f"Deleted empty room {code} after grace period")

    def _delete_room(self, code: str) -> Optional[Room]:
        """Drop a room and all of its bookkeeping. Caller holds the room lock."""
        room = self.rooms.pop(code, None)
        if room is None:
            return None
        if room.deletion_timer:
            room.deletion_timer.cancel()
            room.deletion_timer = None
        self.supervisor.discard_room(code)
        for connection_id in [c for c, rc in self._connection_rooms.items() if rc == code]:
            del self._connection_rooms[connection_id]
        self._locks.pop(code, None)
        return room

    # ============================================================================
    # CLEANUP
    # ============================================================================

    async def sweep_stale_lobbies(self, max_age: Optional[float] = None,
                                  now: Optional[datetime] = None) -> int:
        """
        Purge lobbies that never started and are older than `max_age` seconds.
        Returns the number of rooms removed.
        """
        max_age = self.config.MAX_LOBBY_AGE_SEC if max_age is None else max_age
        now = now or datetime.now()
        removed = 0

        for code in list(self.rooms):
            lock = self._lock_for(code)
            if lock is None:
                continue
            async with lock:
                room = self.rooms.get(code)
                if room and not room.started and room.age_seconds(now) > max_age:
                    self._delete_room(code)
                    removed += 1
                    logger.info(f"Cleaned up old room {code}")

        return removed

    def start_cleanup_task(self, interval: Optional[float] = None) -> None:
        """Start a background task that sweeps stale lobbies periodically."""
        interval = self.config.CLEANUP_INTERVAL_SEC if interval is None else interval

        async def sweep_forever():
            while True:
                await asyncio.sleep(interval)
                removed = await self.sweep_stale_lobbies()
                logger.debug(f"Cleaned up {removed} old rooms. Active rooms: {len(self.rooms)}")

        self._cleanup_task = asyncio.create_task(sweep_forever())
        logger.info("Room cleanup task started")

    def stop_cleanup_task(self) -> None:
        if self._cleanup_task:
            self._cleanup_task.cancel()
            self._cleanup_task = None
            logger.info("Room cleanup task stopped")

    def shutdown(self) -> None:
        """Cancel every timer. Rooms are in memory only and are lost."""
        self.stop_cleanup_task()
        self.supervisor.shutdown()
        for room in self.rooms.values():
            if room.deletion_timer:
                room.deletion_timer.cancel()
                room.deletion_timer = None

    # ============================================================================
    # STATISTICS & INFO
    # ============================================================================

    def get_stats(self) -> dict:
        started = sum(1 for room in self.rooms.values() if room.started)
        return {
            "total_rooms": len(self.rooms),
            "active_games": started,
            "lobbies": len(self.rooms) - started,
            "connected_players": len(self._connection_rooms),
            "disconnected_players": len(self.supervisor),
        }

    def __repr__(self):
        stats = self.get_stats()
        return f"<RoomManager: {stats['total_rooms']} rooms, {stats['active_games']} in game>"
