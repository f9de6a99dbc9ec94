from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from songgame.logic.enums import Phase
from songgame.logic.exceptions import InvalidRoomCodeError, RoomUpdateError
from songgame.lyrics.verifier import VerifyReason, VerifyResult
from songgame.messaging.types import (
    AddPlayerMessage,
    ErrorCode,
    ErrorMessage,
    JoinRoomMessage,
    PlayerSubmissionMessage,
    RemovePlayerMessage,
    RoundSkipMessage,
    RoundTimeoutMessage,
    SubmissionResultMessage,
    UpdateRoomMessage,
    parse_client_message,
)

if TYPE_CHECKING:
    from songgame.lyrics.verifier import LyricsVerifier
    from songgame.messaging.protocol import ConnectionProtocol
    from songgame.messaging.types import ClientMessage
    from songgame.session.manager import RoomManager

logger = logging.getLogger(__name__)


class MessageRouter:
    """
    Routes incoming messages to the room manager.

    This class contains pure business logic and can be tested
    without real WebSocket connections.
    """

    def __init__(
        self,
        room_manager: RoomManager,
        verifier: LyricsVerifier | None = None,
        *,
        verify_submissions: bool = True,
    ) -> None:
        self._room_manager = room_manager
        self._verifier = verifier
        self._verify_submissions = verify_submissions and verifier is not None

    async def handle_message(self, connection: ConnectionProtocol, raw_message: str) -> bool:
        """Handle one text frame. Returns False if the frame was malformed."""
        try:
            message = parse_client_message(raw_message)
        except (ValueError, TypeError) as e:
            logger.warning("invalid message from %s: %s", connection.connection_id, e)
            await self._send_error(connection, ErrorCode.INVALID_MESSAGE, f"Invalid message format: {e}")
            return False

        try:
            await self._dispatch(connection, message)
        except Exception:
            logger.exception("error handling %s from %s", message.type, connection.connection_id)
            await self._send_error(connection, ErrorCode.INTERNAL_ERROR, "Internal server error")
        return True

    async def handle_disconnect(self, connection: ConnectionProtocol) -> None:
        await self._room_manager.handle_disconnect(connection)

    async def _dispatch(self, connection: ConnectionProtocol, message: ClientMessage) -> None:
        if isinstance(message, JoinRoomMessage):
            await self._handle_join_room(connection, message)
            return

        room_id = self._room_manager.room_of(connection)
        if room_id is None:
            await self._send_error(connection, ErrorCode.NOT_IN_ROOM, "Join a room first")
            return

        if isinstance(message, AddPlayerMessage):
            await self._room_manager.add_player(room_id, message.device_id, message.player_name)
        elif isinstance(message, RemovePlayerMessage):
            await self._room_manager.remove_player(room_id, message.device_id)
        elif isinstance(message, UpdateRoomMessage):
            await self._handle_update_room(connection, room_id, message)
        elif isinstance(message, PlayerSubmissionMessage):
            await self._handle_submission(connection, room_id, message)
        elif isinstance(message, RoundTimeoutMessage):
            await self._room_manager.record_timeout(
                room_id,
                message.device_id,
                message.word,
                expected_round=message.round,
            )
        elif isinstance(message, RoundSkipMessage):
            await self._room_manager.record_skip(
                room_id,
                message.device_id,
                message.word,
                expected_round=message.round,
            )

    async def _handle_join_room(self, connection: ConnectionProtocol, message: JoinRoomMessage) -> None:
        try:
            await self._room_manager.join_room(connection, message.room_id, message.device_id)
        except InvalidRoomCodeError as e:
            await self._send_error(connection, ErrorCode.INVALID_ROOM_CODE, str(e))

    async def _handle_update_room(
        self,
        connection: ConnectionProtocol,
        room_id: str,
        message: UpdateRoomMessage,
    ) -> None:
        try:
            await self._room_manager.apply_game_master_update(room_id, message.device_id, message.updates)
        except RoomUpdateError as e:
            logger.info("room update rejected for %s: %s", connection.connection_id, e)
            await self._send_error(connection, ErrorCode.UPDATE_REJECTED, str(e))

    async def _handle_submission(
        self,
        connection: ConnectionProtocol,
        room_id: str,
        message: PlayerSubmissionMessage,
    ) -> None:
        """Verify a submission against the lyrics, then try to commit it.

        The round index is captured before the lookup; the commit is a no-op
        if the round moved on while the lookup was in flight.
        """
        room = self._room_manager.get_room(room_id)
        if room is None or room.phase != Phase.PLAYING:
            return
        player = room.player_by_device(message.device_id)
        if player is None or player.id != message.player_id:
            return
        current_word = room.current_word
        if current_word is None or message.word.strip().lower() != current_word.lower():
            return
        expected_round = message.round if message.round is not None else room.current_round
        if expected_round != room.current_round:
            return

        if self._verify_submissions and self._verifier is not None:
            result = await self._verifier.verify(message.song, message.artist, message.word)
        elif message.song.strip() and message.artist.strip():
            result = VerifyResult(matched=True)
        else:
            result = VerifyResult(matched=False, reason=VerifyReason.MISSING_INPUT)

        await self._room_manager.connections.send_to(
            connection,
            SubmissionResultMessage(player_id=message.player_id, matched=result.matched, reason=result.reason).to_wire(),
        )
        if not result.matched:
            return

        await self._room_manager.record_submission_success(
            room_id,
            message.device_id,
            message.player_id,
            message.word,
            message.song,
            message.artist,
            expected_round=expected_round,
        )

    async def _send_error(self, connection: ConnectionProtocol, code: ErrorCode, message: str) -> None:
        await self._room_manager.connections.send_to(connection, ErrorMessage(code=code, message=message).to_wire())
