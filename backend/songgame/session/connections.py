"""Connection registry per room for message broadcasting."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from songgame.messaging.protocol import ConnectionProtocol

logger = structlog.get_logger()


class RoomConnectionManager:
    """Track which room (and device) each connection is subscribed to."""

    def __init__(self) -> None:
        self._connections: dict[str, dict[str, ConnectionProtocol]] = {}  # room_id -> {conn_id -> conn}
        self._connection_rooms: dict[str, str] = {}  # conn_id -> room_id (reverse index)
        self._connection_devices: dict[str, str] = {}  # conn_id -> device_id asserted at join

    def add(self, room_id: str, connection: ConnectionProtocol, device_id: str) -> None:
        """Subscribe a connection to a room. Callers remove any previous subscription first."""
        if room_id not in self._connections:
            self._connections[room_id] = {}
        self._connections[room_id][connection.connection_id] = connection
        self._connection_rooms[connection.connection_id] = room_id
        self._connection_devices[connection.connection_id] = device_id

    def remove(self, connection_id: str) -> tuple[str, str] | None:
        """Unsubscribe a connection. Returns (room_id, device_id) it was registered with, or None."""
        room_id = self._connection_rooms.pop(connection_id, None)
        device_id = self._connection_devices.pop(connection_id, None)
        if room_id is None or device_id is None:
            return None
        if room_id in self._connections:
            self._connections[room_id].pop(connection_id, None)
            if not self._connections[room_id]:
                del self._connections[room_id]
        return room_id, device_id

    def room_of(self, connection_id: str) -> str | None:
        return self._connection_rooms.get(connection_id)

    def device_of(self, connection_id: str) -> str | None:
        return self._connection_devices.get(connection_id)

    def has_device(self, room_id: str, device_id: str) -> bool:
        """Whether any live connection in the room was registered by `device_id`."""
        return any(self._connection_devices.get(conn_id) == device_id for conn_id in self._connections.get(room_id, {}))

    def connection_count(self, room_id: str) -> int:
        return len(self._connections.get(room_id, {}))

    async def broadcast(self, room_id: str, message: dict[str, Any]) -> None:
        """Send a message to every connection in a room, originator included."""
        for conn_id, connection in list(self._connections.get(room_id, {}).items()):
            try:
                await connection.send_message(message)
            except (ConnectionError, RuntimeError) as e:
                logger.debug("broadcast send failed", room_id=room_id, connection_id=conn_id, error=str(e))

    async def send_to(self, connection: ConnectionProtocol, message: dict[str, Any]) -> bool:
        """Send a message to one connection. Returns True on success."""
        try:
            await connection.send_message(message)
        except (ConnectionError, RuntimeError):
            return False
        return True

    def drop_room(self, room_id: str) -> list[str]:
        """Unsubscribe every connection from a room without closing them."""
        connections = self._connections.pop(room_id, {})
        for conn_id in connections:
            self._connection_rooms.pop(conn_id, None)
            self._connection_devices.pop(conn_id, None)
        return list(connections)
