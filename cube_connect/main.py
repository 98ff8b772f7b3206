from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional
import json
import logging

from fastapi import FastAPI, WebSocket, WebSocketDisconnect

from cube_connect.config import Config
from cube_connect.enums import RejectReason
from cube_connect.services.game_state import Intent
from cube_connect.services.room_manager import Room, RoomManager

logger = logging.getLogger(__name__)


# ============================================================================
# LOGGING SETUP
# ============================================================================

def setup_logging(config=Config) -> Path:
    """Log to a timestamped file under LOG_DIR and to the console."""
    log_dir = Path(config.LOG_DIR)
    log_dir.mkdir(exist_ok=True)
    log_filename = log_dir / f"server_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"

    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
        format='%(asctime)s [%(levelname)s] %(message)s',
        handlers=[
            logging.FileHandler(log_filename),
            logging.StreamHandler()
        ]
    )
    return log_filename


# ============================================================================
# CONNECTION MANAGER
# ============================================================================

class ConnectionManager:
    def __init__(self):
        self.active_connections: Dict[str, WebSocket] = {}

    async def connect(self, websocket: WebSocket, client_id: str):
        await websocket.accept()
        self.active_connections[client_id] = websocket
        logger.info(f"Client connected: {client_id} | Total connections: {len(self.active_connections)}")

    def disconnect(self, client_id: str):
        if client_id in self.active_connections:
            del self.active_connections[client_id]
        logger.info(f"Client disconnected: {client_id} | Total connections: {len(self.active_connections)}")

    async def send_personal_message(self, message: dict, client_id: str):
        websocket = self.active_connections.get(client_id)
        if websocket is None:
            logger.debug(f"Cannot send to {client_id}: not in active connections")
            return
        try:
            await websocket.send_json(message)
            logger.debug(f"Sent to {client_id}: {message['type']}")
        except Exception as e:
            logger.error(f"Error sending to {client_id}: {e}", exc_info=True)

    async def broadcast_to_room(self, message: dict, room: Room, exclude: Optional[str] = None):
        """Send a message to every connected seat in a room"""
        for connection_id in room.connection_ids():
            if connection_id != exclude:
                await self.send_personal_message(message, connection_id)
        logger.debug(f"Broadcast to room {room.code}: {message['type']}")


manager = ConnectionManager()


async def notify_seat_expired(room_code: str, room: Optional[Room]):
    """Grace window ran out for a seat: tell whoever is still in the room"""
    if room is None:
        return
    await manager.broadcast_to_room({
        "type": "player_left",
        "players": [seat.to_dict() for seat in room.seats]
    }, room)
    if room.game_state:
        await manager.broadcast_to_room({
            "type": "game_state_update",
            "game_state": room.game_state.to_dict()
        }, room)


room_manager = RoomManager(Config, on_seat_expired=notify_seat_expired)


async def leave_current_room(client_id: str):
    """Detach a client from whatever seat it holds and tell the others"""
    result = await room_manager.leave_seat(client_id)
    if not result:
        return None

    room = result["room"]
    logger.info(f"Player {client_id} left room {room.code}")
    await manager.broadcast_to_room({
        "type": "player_left",
        "players": [seat.to_dict() for seat in room.seats]
    }, room, exclude=client_id)
    return result


def int_or_none(value) -> Optional[int]:
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def room_joined_message(room: Room, slot: int) -> dict:
    return {
        "type": "room_joined",
        "room_code": room.code,
        "player_slot": slot,
        "players": [seat.to_dict() for seat in room.seats],
        "max_players": room.max_players,
        "cubes_per_player": room.cubes_per_player,
        "win_condition": room.win_condition
    }


def game_started_message(room: Room, slot: int) -> dict:
    return {
        "type": "game_started",
        "room_code": room.code,
        "player_slot": slot,
        "game_state": room.game_state.to_dict(),
        "max_players": room.max_players,
        "cubes_per_player": room.cubes_per_player
    }


# ============================================================================
# FASTAPI APP SETUP
# ============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    room_manager.start_cleanup_task()
    logger.info("Room cleanup enabled")
    yield
    room_manager.shutdown()
    logger.info("Server shutting down - cleaned up background tasks")


app = FastAPI(lifespan=lifespan)


# ============================================================================
# HTTP ENDPOINTS
# ============================================================================

@app.get("/health")
async def health():
    return {
        "status": "ok",
        "active_rooms": len(room_manager.rooms),
        "timestamp": datetime.now().isoformat()
    }


@app.get("/status")
async def status():
    """Get server status"""
    stats = room_manager.get_stats()
    return {
        "connections": len(manager.active_connections),
        **stats
    }


# ============================================================================
# WEBSOCKET ENDPOINT
# ============================================================================

@app.websocket("/ws/{client_id}")
async def websocket_endpoint(websocket: WebSocket, client_id: str):
    await manager.connect(websocket, client_id)

    try:
        while True:
            data = await websocket.receive_text()
            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                await manager.send_personal_message({
                    "type": "error",
                    "message": "Malformed message"
                }, client_id)
                continue

            if not isinstance(message, dict):
                await manager.send_personal_message({
                    "type": "error",
                    "message": "Malformed message"
                }, client_id)
                continue

            message_type = message.get("type")
            room_code = str(message.get("room_code") or "").upper()
            logger.debug(f"Message from {client_id}: {message_type}")

            if message_type == "create_room":
                await leave_current_room(client_id)
                room = room_manager.create_room(
                    int_or_none(message.get("win_condition")),
                    int_or_none(message.get("player_count")),
                    int_or_none(message.get("cubes_per_player"))
                )
                success, msg, slot = await room_manager.join_seat(room.code, client_id, message.get("player_name"))
                if not success:
                    await manager.send_personal_message({"type": "error", "message": msg}, client_id)
                    continue

                await manager.send_personal_message({
                    "type": "room_created",
                    "room_code": room.code,
                    "max_players": room.max_players,
                    "cubes_per_player": room.cubes_per_player
                }, client_id)
                await manager.send_personal_message(room_joined_message(room, slot), client_id)

            elif message_type == "join_room":
                current = room_manager.get_room_by_connection(client_id)
                if current and current.code != room_code:
                    await leave_current_room(client_id)

                success, msg, slot = await room_manager.join_seat(room_code, client_id, message.get("player_name"))
                if not success:
                    logger.warning(f"Failed to join room {room_code}: {msg}")
                    await manager.send_personal_message({"type": "error", "message": msg}, client_id)
                    continue

                room = room_manager.get_room(room_code)
                await manager.send_personal_message(room_joined_message(room, slot), client_id)
                await manager.broadcast_to_room({
                    "type": "player_joined",
                    "players": [seat.to_dict() for seat in room.seats]
                }, room, exclude=client_id)

            elif message_type == "leave_room":
                await leave_current_room(client_id)

            elif message_type == "reconnect":
                slot = message.get("player_slot")
                if not isinstance(slot, int):
                    await manager.send_personal_message({
                        "type": "error",
                        "message": RejectReason.NO_DISCONNECT_RECORD
                    }, client_id)
                    continue

                current = room_manager.get_room_by_connection(client_id)
                if current and current.code != room_code:
                    await leave_current_room(client_id)

                success, msg, room = await room_manager.reconnect_seat(room_code, client_id, slot)
                if not success:
                    logger.warning(f"Failed to reconnect to room {room_code}: {msg}")
                    await manager.send_personal_message({"type": "error", "message": msg}, client_id)
                    continue

                await manager.send_personal_message(room_joined_message(room, slot), client_id)
                await manager.broadcast_to_room({
                    "type": "player_reconnected",
                    "player_slot": slot,
                    "players": [seat.to_dict() for seat in room.seats]
                }, room)
                if room.game_state:
                    await manager.send_personal_message(game_started_message(room, slot), client_id)

            elif message_type == "start_game":
                success, msg, game_state = await room_manager.start_room(room_code, requested_by=client_id)
                if not success:
                    logger.warning(f"Failed to start game in {room_code}: {msg}")
                    await manager.send_personal_message({"type": "error", "message": msg}, client_id)
                    continue

                room = room_manager.get_room(room_code)
                # Each player gets its own slot for session persistence
                for seat in room.seats:
                    await manager.send_personal_message(game_started_message(room, seat.slot), seat.connection_id)

            elif message_type in ("set_ready", "set_not_ready"):
                room = room_manager.get_room(room_code)
                seat = room.seat_for_connection(client_id) if room else None
                if not seat:
                    await manager.send_personal_message({
                        "type": "error",
                        "message": RejectReason.NOT_IN_ROOM
                    }, client_id)
                    continue

                ready = message_type == "set_ready"
                success, msg = await room_manager.set_ready(room_code, seat.slot, ready)
                if not success:
                    await manager.send_personal_message({"type": "error", "message": msg}, client_id)
                    continue

                await manager.broadcast_to_room({
                    "type": "player_ready" if ready else "player_not_ready",
                    "player_slot": seat.slot
                }, room)

            elif message_type == "make_move":
                intent = Intent.from_dict(message.get("intent"))
                if intent is None:
                    await manager.send_personal_message({
                        "type": "invalid_move",
                        "message": RejectReason.INVALID_INTENT
                    }, client_id)
                    continue

                success, msg, game_state = await room_manager.submit_intent(room_code, client_id, intent)
                if not success:
                    # Rejections go to the requester only
                    await manager.send_personal_message({"type": "invalid_move", "message": msg}, client_id)
                    continue

                room = room_manager.get_room(room_code)
                await manager.broadcast_to_room({
                    "type": "game_state_update",
                    "game_state": game_state.to_dict()
                }, room)
                if game_state.winner is not None:
                    logger.info(f"Game won in {room_code}: {game_state.players[game_state.winner].name}")

            elif message_type == "cursor_move":
                room = room_manager.get_room(room_code)
                seat = room.seat_for_connection(client_id) if room else None
                if not seat or message.get("row") is None or message.get("col") is None:
                    continue
                await manager.broadcast_to_room({
                    "type": "player_cursor_move",
                    "player_id": seat.slot,
                    "row": message.get("row"),
                    "col": message.get("col")
                }, room, exclude=client_id)

            elif message_type == "send_emote":
                room = room_manager.get_room(room_code)
                seat = room.seat_for_connection(client_id) if room else None
                if not seat or not message.get("emote"):
                    continue
                await manager.broadcast_to_room({
                    "type": "player_emote",
                    "player_id": seat.slot,
                    "emote": message.get("emote"),
                    "timestamp": datetime.now().isoformat()
                }, room)

            elif message_type == "toggle_timer":
                room = room_manager.get_room(room_code)
                seat = room.seat_for_connection(client_id) if room else None
                if not seat:
                    continue
                await manager.broadcast_to_room({
                    "type": "timer_toggled",
                    "player_id": seat.slot,
                    "enabled": bool(message.get("enabled"))
                }, room)

            elif message_type == "ping":
                await manager.send_personal_message({"type": "pong"}, client_id)

            else:
                logger.warning(f"Unknown message type from {client_id}: {message_type}")

    except WebSocketDisconnect:
        logger.info(f"Client disconnected normally: {client_id}")
    except Exception as e:
        logger.error(f"Error with client {client_id}: {e}", exc_info=True)
    finally:
        manager.disconnect(client_id)
        await leave_current_room(client_id)


def main():
    import uvicorn
    log_filename = setup_logging(Config)
    logger.info(f"Log file: {log_filename}")
    logger.info(f"Starting server on http://{Config.HOST}:{Config.PORT}")
    uvicorn.run(app, host=Config.HOST, port=Config.PORT)


if __name__ == "__main__":
    main()
