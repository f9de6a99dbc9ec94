from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING
from uuid import uuid4

import structlog
from starlette.websockets import WebSocket, WebSocketDisconnect

from songgame.messaging.protocol import ConnectionProtocol
from songgame.messaging.types import ErrorCode, ErrorMessage
from songgame.server.rate_limit import TokenBucket

logger = structlog.get_logger()

if TYPE_CHECKING:
    from songgame.messaging.router import MessageRouter

# A party of phones rarely sends more than a couple of messages per second;
# bursts come from reconnects (join + add-player) and fast typists submitting.
_RATE_LIMIT_RATE = 10.0
_RATE_LIMIT_BURST = 20

# Disconnect after this many consecutive malformed messages
_MAX_MALFORMED_MESSAGES = 5


class WebSocketConnection(ConnectionProtocol):
    def __init__(self, websocket: WebSocket, connection_id: str | None = None) -> None:
        self._websocket = websocket
        self._connection_id = connection_id or str(uuid4())

    @property
    def connection_id(self) -> str:
        return self._connection_id

    async def send_text(self, data: str) -> None:
        try:
            await self._websocket.send_text(data)
        except WebSocketDisconnect:
            raise ConnectionError("WebSocket already disconnected") from None

    async def receive_text(self) -> str:
        message = await self._websocket.receive()
        if message["type"] == "websocket.disconnect":
            raise ConnectionError("WebSocket disconnected")
        text = message.get("text")
        if text is not None:
            return text
        # Binary frames are not part of the protocol; let the parser reject them.
        return (message.get("bytes") or b"").decode("utf-8", errors="replace")

    async def close(self, code: int = 1000, reason: str = "") -> None:
        with contextlib.suppress(WebSocketDisconnect, RuntimeError):
            await self._websocket.close(code=code, reason=reason)


async def websocket_endpoint(websocket: WebSocket, router: MessageRouter) -> None:
    await websocket.accept()

    connection = WebSocketConnection(websocket)
    structlog.contextvars.bind_contextvars(connection_id=connection.connection_id)
    logger.info("websocket connected")

    bucket = TokenBucket(rate=_RATE_LIMIT_RATE, burst=_RATE_LIMIT_BURST)
    malformed = 0

    try:
        while True:
            raw = await connection.receive_text()

            if not bucket.consume():
                await connection.send_message(
                    ErrorMessage(code=ErrorCode.RATE_LIMITED, message="Too many messages").to_wire(),
                )
                continue

            if await router.handle_message(connection, raw):
                malformed = 0
                continue

            malformed += 1
            if malformed >= _MAX_MALFORMED_MESSAGES:
                logger.info("too many malformed messages, disconnecting", strikes=malformed)
                await connection.close(code=4004, reason="too_many_malformed_messages")
                return
    except (WebSocketDisconnect, RuntimeError, ConnectionError):  # fmt: skip
        pass
    finally:
        logger.info("websocket disconnected")
        await router.handle_disconnect(connection)
        structlog.contextvars.clear_contextvars()
