"""
Reconnecting room sync client.

Sends user intents to the server and folds every server frame into a
`RoomView`. Push (`room-state` over the WebSocket) is the primary channel;
`fetch_state` is an explicit HTTP resync for when the socket is down.

On a dropped connection the client retries with exponential backoff
(1s, 2s, 4s, ...) up to `max_reconnect_attempts`, then settles in the
FAILED state and emits `connection-error`. After a successful reconnect it
rejoins its room and re-adds its player, which the server resolves back to
the same roster entry by device id.
"""

from __future__ import annotations

import asyncio
import json
import uuid
from collections.abc import Awaitable, Callable
from enum import StrEnum
from typing import TYPE_CHECKING, Any

import httpx
import structlog
from pydantic import ValidationError

from songgame.client.view import RoomView
from songgame.logic.enums import Phase
from songgame.logic.models import RoomState
from songgame.logic.rounds import RoomUpdate
from songgame.messaging.types import (
    AddPlayerMessage,
    ErrorMessage,
    JoinRoomMessage,
    PlayerSubmissionMessage,
    RemovePlayerMessage,
    RoomStateMessage,
    RoundSkipMessage,
    RoundTimeoutMessage,
    SubmissionResultMessage,
    UpdateRoomMessage,
    parse_server_message,
)

if TYPE_CHECKING:
    from songgame.client.transport import ClientTransport

logger = structlog.get_logger()

DEFAULT_MAX_RECONNECT_ATTEMPTS = 5
DEFAULT_RECONNECT_BASE_DELAY = 1.0

Listener = Callable[[Any], None]


def generate_device_id() -> str:
    """New self-asserted device identifier; callers persist it and reuse it across sessions."""
    return str(uuid.uuid4())


def reconnect_delay(attempt: int, base_delay: float = DEFAULT_RECONNECT_BASE_DELAY) -> float:
    """Backoff before reconnect attempt `attempt` (1-based)."""
    return base_delay * 2 ** (attempt - 1)


class ConnectionState(StrEnum):
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    FAILED = "failed"


class SyncClient:
    def __init__(
        self,
        transport_factory: Callable[[], ClientTransport],
        device_id: str | None = None,
        *,
        http_base_url: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        max_reconnect_attempts: int = DEFAULT_MAX_RECONNECT_ATTEMPTS,
        reconnect_base_delay: float = DEFAULT_RECONNECT_BASE_DELAY,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._transport_factory = transport_factory
        self.device_id = device_id or generate_device_id()
        self.view = RoomView(self.device_id)
        self._http_base_url = http_base_url.rstrip("/") if http_base_url else None
        self._http_client = http_client
        self._max_reconnect_attempts = max_reconnect_attempts
        self._reconnect_base_delay = reconnect_base_delay
        self._sleep = sleep

        self._transport: ClientTransport | None = None
        self._state = ConnectionState.DISCONNECTED
        self._listeners: dict[str, list[Listener]] = {}
        self._run_task: asyncio.Task[None] | None = None
        self._closing = False
        self._room_id: str | None = None
        self._player_name: str | None = None

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def room_id(self) -> str | None:
        return self._room_id

    # --- Events ---

    def on(self, event: str, callback: Listener) -> None:
        """Subscribe to "room-state", "error", "submission-result", "connection-state" or "connection-error"."""
        self._listeners.setdefault(event, []).append(callback)

    def off(self, event: str, callback: Listener) -> None:
        listeners = self._listeners.get(event, [])
        if callback in listeners:
            listeners.remove(callback)

    def _emit(self, event: str, data: Any) -> None:  # noqa: ANN401
        for callback in list(self._listeners.get(event, [])):
            try:
                callback(data)
            except Exception:
                logger.exception("sync listener failed", event=event)

    def _set_state(self, state: ConnectionState) -> None:
        if state != self._state:
            self._state = state
            self._emit("connection-state", state)

    # --- Connection lifecycle ---

    async def connect(self) -> None:
        """Open the first connection. Raises ConnectionError if it fails."""
        self._closing = False
        await self._open()
        self._run_task = asyncio.create_task(self._run())

    async def close(self) -> None:
        self._closing = True
        if self._run_task is not None:
            self._run_task.cancel()
            await asyncio.gather(self._run_task, return_exceptions=True)
            self._run_task = None
        if self._transport is not None:
            await self._transport.close()
            self._transport = None
        self._set_state(ConnectionState.DISCONNECTED)

    async def wait_closed(self) -> None:
        """Wait until the client gives up reconnecting or is closed."""
        if self._run_task is not None:
            await asyncio.gather(self._run_task, return_exceptions=True)

    async def _open(self) -> None:
        transport = self._transport_factory()
        await transport.connect()
        self._transport = transport
        self._set_state(ConnectionState.CONNECTED)

    async def _run(self) -> None:
        while True:
            await self._read_until_closed()
            if self._closing or not await self._reconnect():
                return

    async def _read_until_closed(self) -> None:
        transport = self._transport
        if transport is None:
            return
        while True:
            try:
                raw = await transport.receive_text()
            except ConnectionError:
                logger.info("connection lost", room_id=self._room_id)
                self._transport = None
                return
            self._handle_frame(raw)

    async def _reconnect(self) -> bool:
        self._set_state(ConnectionState.RECONNECTING)
        for attempt in range(1, self._max_reconnect_attempts + 1):
            delay = reconnect_delay(attempt, self._reconnect_base_delay)
            logger.info("reconnecting", attempt=attempt, max_attempts=self._max_reconnect_attempts, delay=delay)
            await self._sleep(delay)
            try:
                await self._open()
            except ConnectionError as e:
                logger.warning("reconnect attempt failed", attempt=attempt, error=str(e))
                continue
            await self._rejoin()
            return True

        logger.error("max reconnection attempts reached", attempts=self._max_reconnect_attempts)
        self._set_state(ConnectionState.FAILED)
        self._emit("connection-error", {"message": "Failed to reconnect"})
        return False

    async def _rejoin(self) -> None:
        if self._room_id is None:
            return
        await self._send(JoinRoomMessage(room_id=self._room_id, device_id=self.device_id).to_wire())
        if self._player_name is not None:
            await self._send(AddPlayerMessage(player_name=self._player_name, device_id=self.device_id).to_wire())

    # --- Inbound ---

    def _handle_frame(self, raw: str) -> None:
        try:
            message = parse_server_message(json.loads(raw))
        except (ValueError, ValidationError) as e:
            logger.warning("unparseable server frame", error=str(e))
            return

        if isinstance(message, RoomStateMessage):
            self.view.apply(message.state)
            self._emit("room-state", message.state)
        elif isinstance(message, SubmissionResultMessage):
            self.view.apply_submission_result(message)
            self._emit("submission-result", message)
        elif isinstance(message, ErrorMessage):
            self._emit("error", message)

    # --- Outbound intents ---

    async def _send(self, message: dict[str, Any]) -> bool:
        if self._transport is None:
            logger.warning("not connected, message not sent", type=message.get("type"))
            return False
        try:
            await self._transport.send_text(json.dumps(message))
        except ConnectionError:
            logger.warning("send failed, message dropped", type=message.get("type"))
            return False
        return True

    async def join_room(self, room_id: str) -> bool:
        room_id = room_id.strip().upper()
        if room_id != self._room_id:
            self.view.clear()
        self._room_id = room_id
        return await self._send(JoinRoomMessage(room_id=room_id, device_id=self.device_id).to_wire())

    async def add_player(self, name: str) -> bool:
        self._player_name = name
        return await self._send(AddPlayerMessage(player_name=name, device_id=self.device_id).to_wire())

    async def remove_player(self) -> bool:
        self._player_name = None
        return await self._send(RemovePlayerMessage(device_id=self.device_id).to_wire())

    async def update_room(self, updates: RoomUpdate) -> bool:
        return await self._send(UpdateRoomMessage(updates=updates, device_id=self.device_id).to_wire())

    async def start_game(self, round_duration: int | None = None) -> bool:
        return await self.update_room(RoomUpdate(phase=Phase.PLAYING, round_duration=round_duration))

    async def return_to_lobby(self) -> bool:
        return await self.update_room(RoomUpdate(phase=Phase.LOBBY))

    async def set_round_duration(self, seconds: int) -> bool:
        return await self.update_room(RoomUpdate(round_duration=seconds))

    async def reshuffle(self) -> bool:
        return await self.update_room(RoomUpdate(reshuffle=True))

    async def submit(self, player_id: str) -> bool:
        """Submit the player's current draft for the current round."""
        word = self.view.current_word
        if word is None or self.view.state is None:
            return False
        draft = self.view.begin_submission(player_id)
        if draft is None:
            return False
        message = PlayerSubmissionMessage(
            player_id=player_id,
            word=word,
            song=draft.song.strip(),
            artist=draft.artist.strip(),
            device_id=self.device_id,
            round=self.view.state.current_round,
        )
        return await self._send(message.to_wire())

    async def report_timeout(self) -> bool:
        """Game master only: close the current round as timed out."""
        return await self._send_round_outcome(RoundTimeoutMessage)

    async def skip(self) -> bool:
        """Game master only: skip the current round."""
        return await self._send_round_outcome(RoundSkipMessage)

    async def _send_round_outcome(self, message_cls: type[RoundTimeoutMessage | RoundSkipMessage]) -> bool:
        word = self.view.current_word
        if word is None or self.view.state is None or not self.view.is_game_master:
            return False
        self.view.mark_round_complete()
        message = message_cls(word=word, device_id=self.device_id, round=self.view.state.current_round)
        return await self._send(message.to_wire())

    # --- HTTP resync ---

    async def fetch_state(self) -> RoomState | None:
        """Poll the current room state over HTTP and apply it to the view.

        Returns None, clearing the view, when the room no longer exists.
        """
        if self._http_base_url is None or self._room_id is None:
            return None
        url = f"{self._http_base_url}/rooms/{self._room_id}"
        if self._http_client is not None:
            response = await self._http_client.get(url)
        else:
            async with httpx.AsyncClient() as client:
                response = await client.get(url)

        if response.status_code == httpx.codes.NOT_FOUND:
            self.view.clear()
            return None
        response.raise_for_status()
        state = RoomState.model_validate(response.json())
        self.view.apply(state)
        self._emit("room-state", state)
        return state
