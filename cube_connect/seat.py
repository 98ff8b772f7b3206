from __future__ import annotations
from typing import Optional

from cube_connect.enums import PLAYER_COLORS


class Seat:
    def __init__(self, slot: int, name: str, connection_id: Optional[str]):
        self.slot = slot
        self.name = name
        # None while the seat is held open by a disconnect grace window
        self.connection_id = connection_id
        self.ready = False

    @property
    def is_host(self) -> bool:
        return self.slot == 0

    @property
    def connected(self) -> bool:
        return self.connection_id is not None

    @property
    def color(self) -> str:
        return PLAYER_COLORS[self.slot % len(PLAYER_COLORS)]

    def __repr__(self) -> str:
        return f"<Seat {self.slot} {self.name} ({'connected' if self.connected else 'away'})>"

    def to_dict(self) -> dict:
        """
        Returns a dictionary snapshot of the seat for roster broadcasts.
        """
        return {
            "slot": self.slot,
            "name": self.name,
            "color": self.color,
            "ready": self.ready,
            "connected": self.connected,
            "is_host": self.is_host,
        }
