"""Client side of the WebSocket connection."""

from __future__ import annotations

from abc import ABC, abstractmethod

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed, InvalidHandshake


class ClientTransport(ABC):
    """
    One client connection to the game server.

    Every method raises ConnectionError once the connection is unusable,
    so the sync client only has one failure type to handle.
    """

    @abstractmethod
    async def connect(self) -> None: ...

    @abstractmethod
    async def send_text(self, data: str) -> None: ...

    @abstractmethod
    async def receive_text(self) -> str: ...

    @abstractmethod
    async def close(self) -> None: ...


class WebSocketTransport(ClientTransport):
    def __init__(self, url: str, *, open_timeout: float = 10.0) -> None:
        self._url = url
        self._open_timeout = open_timeout
        self._connection: ClientConnection | None = None

    async def connect(self) -> None:
        try:
            self._connection = await connect(self._url, open_timeout=self._open_timeout)
        except (OSError, TimeoutError, InvalidHandshake) as e:
            raise ConnectionError(f"Could not connect to {self._url}: {e}") from e

    async def send_text(self, data: str) -> None:
        if self._connection is None:
            raise ConnectionError("Not connected")
        try:
            await self._connection.send(data)
        except ConnectionClosed as e:
            raise ConnectionError("Connection closed") from e

    async def receive_text(self) -> str:
        if self._connection is None:
            raise ConnectionError("Not connected")
        try:
            message = await self._connection.recv()
        except ConnectionClosed as e:
            raise ConnectionError("Connection closed") from e
        return message if isinstance(message, str) else message.decode("utf-8", errors="replace")

    async def close(self) -> None:
        if self._connection is not None:
            await self._connection.close()
            self._connection = None
