"""
cube_connect.errors
===================

Integrity violations: the game state handed to the move validator breaks one
of its own invariants. These are never the player's fault and are never
repaired silently; the room that raised one is frozen.
"""

from __future__ import annotations
from typing import Optional


class CubeConnectError(Exception):
    """Base exception for the package."""
    pass


class GameIntegrityError(CubeConnectError):
    """Raised when a GameState violates an invariant before a mutation."""

    def __init__(self, detail: str, room_code: Optional[str] = None):
        self.detail = detail
        self.room_code = room_code
        super().__init__(detail)

    def __str__(self) -> str:
        if self.room_code:
            return f"[{self.room_code}] {self.detail}"
        return self.detail
