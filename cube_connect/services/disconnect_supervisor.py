# cube_connect/services/disconnect_supervisor.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Awaitable, Callable, Dict, List, Optional

from cube_connect.services.deferred import DeferredTask

logger = logging.getLogger(__name__)


# ---------- Disconnect tracking ----------

class DisconnectRecord:
    """A seat in a started room whose transport dropped, held open for a grace window."""

    def __init__(self, room_code: str, slot: int, name: str) -> None:
        self.room_code = room_code
        self.slot = slot
        self.name = name
        self.disconnect_time: datetime = datetime.now()
        self.timer: Optional[DeferredTask] = None

    def seconds_away(self, now: Optional[datetime] = None) -> float:
        now = now or datetime.now()
        return (now - self.disconnect_time).total_seconds()

    def to_dict(self) -> dict:
        return {
            "slot": self.slot,
            "name": self.name,
            "disconnect_time": self.disconnect_time.isoformat(),
        }

    def __repr__(self) -> str:
        return f"<DisconnectRecord {self.room_code}:{self.slot} {self.name}>"


class DisconnectionSupervisor:
    """
    Owns the DisconnectRecords of every room and their grace timers.

    It only does bookkeeping. The expiry callback handed to track() decides
    what happens to the room, and must run under that room's lock.
    """

    def __init__(self, grace_seconds: float) -> None:
        self.grace_seconds = grace_seconds
        self._records: Dict[str, Dict[int, DisconnectRecord]] = {}

    def track(
        self,
        room_code: str,
        slot: int,
        name: str,
        on_expire: Callable[[DisconnectRecord], Awaitable[None]],
    ) -> DisconnectRecord:
        """Open a grace window for a seat. Replaces any record already held for it."""
        self.resolve(room_code, slot)

        record = DisconnectRecord(room_code, slot, name)
        record.timer = DeferredTask(
            self.grace_seconds,
            lambda: on_expire(record),
            name=f"grace:{room_code}:{slot}",
        )
        self._records.setdefault(room_code, {})[slot] = record
        logger.info(f"Player {slot} disconnected from {room_code}, grace period {self.grace_seconds}s started")
        return record

    def get(self, room_code: str, slot: int) -> Optional[DisconnectRecord]:
        return self._records.get(room_code, {}).get(slot)

    def records_for(self, room_code: str) -> List[DisconnectRecord]:
        return list(self._records.get(room_code, {}).values())

    def resolve(self, room_code: str, slot: int) -> Optional[DisconnectRecord]:
        """Clear a record and cancel its timer (the seat came back)."""
        record = self._pop(room_code, slot)
        if record and record.timer:
            record.timer.cancel()
        return record

    def expire(self, record: DisconnectRecord) -> bool:
        """
        Drop a record whose timer fired.

        Returns False if the record was cancelled or replaced in the meantime,
        in which case the caller must not remove the seat.
        """
        if record.timer is None or record.timer.cancelled:
            return False
        if self.get(record.room_code, record.slot) is not record:
            return False
        self._pop(record.room_code, record.slot)
        return True

    def discard_room(self, room_code: str) -> int:
        """Forget every record of a room, cancelling their timers."""
        records = self._records.pop(room_code, {})
        for record in records.values():
            if record.timer:
                record.timer.cancel()
        return len(records)

    def shutdown(self) -> None:
        for room_code in list(self._records):
            self.discard_room(room_code)

    def _pop(self, room_code: str, slot: int) -> Optional[DisconnectRecord]:
        room_records = self._records.get(room_code)
        if not room_records:
            return None
        record = room_records.pop(slot, None)
        if not room_records:
            del self._records[room_code]
        return record

    def __len__(self) -> int:
        return sum(len(r) for r in self._records.values())
