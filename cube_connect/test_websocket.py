"""
WebSocket tests for Cube Connect
Drives the FastAPI app in-process through the message protocol
"""

import logging

import pytest
from fastapi.testclient import TestClient

from cube_connect.enums import RejectReason
from cube_connect.main import app, room_manager

logger = logging.getLogger(__name__)


# ============================================================================
# TEST CLIENT
# ============================================================================

class PlayerClient:
    def __init__(self, client, client_id: str, name: str):
        self.client_id = client_id
        self.name = name
        self.ws = client.websocket_connect(f"/ws/{client_id}")
        self.messages = []

    def __enter__(self):
        self.ws.__enter__()
        return self

    def __exit__(self, *exc):
        return self.ws.__exit__(*exc)

    def send(self, message: dict):
        self.ws.send_json(message)
        logger.info(f"{self.name} sent: {message['type']}")

    def receive(self) -> dict:
        data = self.ws.receive_json()
        self.messages.append(data)
        logger.info(f"{self.name} received: {data['type']}")
        return data


@pytest.fixture()
def client():
    with TestClient(app) as test_client:
        yield test_client


def create_and_join(host: "PlayerClient", guest: "PlayerClient") -> str:
    host.send({"type": "create_room", "player_name": host.name, "player_count": 2})
    created = host.receive()
    assert created["type"] == "room_created"
    joined = host.receive()
    assert joined["type"] == "room_joined" and joined["player_slot"] == 0

    room_code = created["room_code"]
    guest.send({"type": "join_room", "room_code": room_code.lower(), "player_name": guest.name})
    joined = guest.receive()
    assert joined["type"] == "room_joined" and joined["player_slot"] == 1

    update = host.receive()
    assert update["type"] == "player_joined"
    assert [p["name"] for p in update["players"]] == [host.name, guest.name]
    return room_code


# ============================================================================
# HTTP
# ============================================================================

def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_status(client):
    data = client.get("/status").json()
    for key in ("connections", "total_rooms", "active_games", "lobbies"):
        assert key in data


# ============================================================================
# GAME FLOW
# ============================================================================

def test_create_join_start_and_move(client):
    with PlayerClient(client, "ws_alice", "Alice") as alice, PlayerClient(client, "ws_bob", "Bob") as bob:
        room_code = create_and_join(alice, bob)

        alice.send({"type": "start_game", "room_code": room_code})
        for player, slot in ((alice, 0), (bob, 1)):
            started = player.receive()
            assert started["type"] == "game_started"
            assert started["player_slot"] == slot
            assert started["game_state"]["current_player"] == 0
            assert started["game_state"]["phase"] == "placement"

        # Out-of-turn move is rejected to the sender only
        bob.send({"type": "make_move", "room_code": room_code,
                  "intent": {"type": "place", "row": 4, "col": 4}})
        rejected = bob.receive()
        assert rejected["type"] == "invalid_move"
        assert rejected["message"] == RejectReason.NOT_YOUR_TURN.value

        alice.send({"type": "make_move", "room_code": room_code,
                    "intent": {"type": "place", "row": 4, "col": 4}})
        for player in (alice, bob):
            update = player.receive()
            assert update["type"] == "game_state_update"
            assert update["game_state"]["board"] == {"4,4": 0}
            assert update["game_state"]["current_player"] == 1

        assert all(m["type"] != "game_state_update" for m in alice.messages[:-1])


def test_only_host_can_start(client):
    with PlayerClient(client, "ws_carol", "Carol") as carol, PlayerClient(client, "ws_dan", "Dan") as dan:
        room_code = create_and_join(carol, dan)
        dan.send({"type": "start_game", "room_code": room_code})
        error = dan.receive()
        assert error["type"] == "error"
        assert error["message"] == RejectReason.NOT_HOST.value
        assert not room_manager.get_room(room_code).started


def test_malformed_intent(client):
    with PlayerClient(client, "ws_erin", "Erin") as erin:
        erin.send({"type": "make_move", "room_code": "ABCDEF", "intent": {"type": "jump"}})
        rejected = erin.receive()
        assert rejected["type"] == "invalid_move"
        assert rejected["message"] == RejectReason.INVALID_INTENT.value
        erin.send({"type": "make_move", "room_code": "ABCDEF", "intent": "place"})
        rejected = erin.receive()
        assert rejected["type"] == "invalid_move"
        assert rejected["message"] == RejectReason.INVALID_INTENT.value


def test_malformed_messages_keep_the_seat(client):
    with PlayerClient(client, "ws_jo", "Jo") as jo, PlayerClient(client, "ws_kim", "Kim") as kim:
        room_code = create_and_join(jo, kim)
        jo.send({"type": "start_game", "room_code": room_code})
        jo.receive()
        kim.receive()

        kim.send({"type": "make_move", "room_code": room_code, "intent": "place"})
        assert kim.receive()["type"] == "invalid_move"
        kim.ws.send_text('["make_move"]')
        assert kim.receive() == {"type": "error", "message": "Malformed message"}
        kim.ws.send_text("not json")
        assert kim.receive()["type"] == "error"

        room = room_manager.get_room(room_code)
        assert room.get_seat(1).connected

        # The host hears nothing until the next real move
        jo.send({"type": "make_move", "room_code": room_code,
                 "intent": {"type": "place", "row": 2, "col": 2}})
        assert jo.receive()["type"] == "game_state_update"
        assert kim.receive()["type"] == "game_state_update"


def test_join_unknown_room(client):
    with PlayerClient(client, "ws_fay", "Fay") as fay:
        fay.send({"type": "join_room", "room_code": "NOSUCH"})
        error = fay.receive()
        assert error["type"] == "error"
        assert error["message"] == RejectReason.ROOM_NOT_FOUND.value


def test_ping(client):
    with PlayerClient(client, "ws_gus", "Gus") as gus:
        gus.send({"type": "ping"})
        assert gus.receive()["type"] == "pong"


def test_leaving_lobby_notifies_others(client):
    with PlayerClient(client, "ws_hal", "Hal") as hal, PlayerClient(client, "ws_ivy", "Ivy") as ivy:
        room_code = create_and_join(hal, ivy)
        ivy.send({"type": "leave_room"})
        left = hal.receive()
        assert left["type"] == "player_left"
        assert [p["name"] for p in left["players"]] == ["Hal"]
        assert len(room_manager.get_room(room_code).seats) == 1
