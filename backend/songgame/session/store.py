"""Room storage behind an injectable interface."""

from __future__ import annotations

import time
from abc import ABC, abstractmethod

import structlog

from songgame.logic.models import DEFAULT_ROUND_DURATION, Room

logger = structlog.get_logger()


class RoomStore(ABC):
    """
    Holds canonical room state keyed by room code.

    Process-local by default; the interface is what the room manager
    depends on, so tests and alternative backends can swap it.
    """

    @abstractmethod
    def create(self, code: str, *, round_duration: int = DEFAULT_ROUND_DURATION) -> Room:
        """Create a lobby room under `code`, replacing any existing room with that code."""
        ...

    @abstractmethod
    def get(self, code: str) -> Room | None: ...

    @abstractmethod
    def save(self, room: Room) -> None:
        """Persist an accepted mutation and refresh the room's idle clock."""
        ...

    @abstractmethod
    def delete(self, code: str) -> Room | None: ...

    @abstractmethod
    def list_expired(self, ttl_seconds: float, now: float | None = None) -> list[Room]:
        """Rooms idle for longer than `ttl_seconds` (monotonic clock)."""
        ...

    @abstractmethod
    def count(self) -> int: ...

    def __contains__(self, code: str) -> bool:
        return self.get(code) is not None


class InMemoryRoomStore(RoomStore):
    def __init__(self) -> None:
        self._rooms: dict[str, Room] = {}

    def create(self, code: str, *, round_duration: int = DEFAULT_ROUND_DURATION) -> Room:
        if code in self._rooms:
            logger.warning("room code reused, replacing existing room", room_id=code)
        room = Room(code=code, round_duration=round_duration)
        self._rooms[code] = room
        logger.info("room created", room_id=code)
        return room

    def get(self, code: str) -> Room | None:
        return self._rooms.get(code)

    def save(self, room: Room) -> None:
        room.touch()
        self._rooms[room.code] = room

    def delete(self, code: str) -> Room | None:
        return self._rooms.pop(code, None)

    def list_expired(self, ttl_seconds: float, now: float | None = None) -> list[Room]:
        now = time.monotonic() if now is None else now
        return [room for room in self._rooms.values() if room.idle_seconds(now) > ttl_seconds]

    def count(self) -> int:
        return len(self._rooms)
