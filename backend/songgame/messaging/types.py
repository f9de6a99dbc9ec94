"""Typed wire messages for the room WebSocket protocol.

Frames are JSON objects with a hyphenated `type` and camelCase fields.
"""

from __future__ import annotations

import json
from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator
from pydantic.alias_generators import to_camel

from songgame.logic.models import RoomState  # noqa: TC001
from songgame.logic.rounds import RoomUpdate  # noqa: TC001
from songgame.lyrics.verifier import VerifyReason  # noqa: TC001

MAX_WS_MESSAGE_SIZE = 4096
MAX_PLAYER_NAME_LENGTH = 30

# ASCII control character boundaries for input validation
_SPACE_ORD = 0x20
_DEL_ORD = 0x7F


def _has_control_chars(value: str) -> bool:
    return any(ord(c) < _SPACE_ORD or ord(c) == _DEL_ORD for c in value)


class ClientMessageType(StrEnum):
    JOIN_ROOM = "join-room"
    ADD_PLAYER = "add-player"
    REMOVE_PLAYER = "remove-player"
    UPDATE_ROOM = "update-room"
    PLAYER_SUBMISSION = "player-submission"
    ROUND_TIMEOUT = "round-timeout"
    ROUND_SKIP = "round-skip"


class ServerMessageType(StrEnum):
    ROOM_STATE = "room-state"
    ERROR = "error"
    SUBMISSION_RESULT = "submission-result"


class ErrorCode(StrEnum):
    INVALID_MESSAGE = "invalid_message"
    INVALID_ROOM_CODE = "invalid_room_code"
    NOT_IN_ROOM = "not_in_room"
    UPDATE_REJECTED = "update_rejected"
    RATE_LIMITED = "rate_limited"
    INTERNAL_ERROR = "internal_error"


class _WireMessage(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


_DEVICE_ID_FIELD = Field(min_length=1, max_length=100)


class _DeviceMessage(_WireMessage):
    device_id: str = _DEVICE_ID_FIELD

    @field_validator("device_id")
    @classmethod
    def _validate_device_id(cls, v: str) -> str:
        if _has_control_chars(v):
            raise ValueError("deviceId must not contain control characters")
        return v


class JoinRoomMessage(_DeviceMessage):
    type: Literal[ClientMessageType.JOIN_ROOM] = ClientMessageType.JOIN_ROOM
    room_id: str = Field(min_length=1, max_length=16)


class AddPlayerMessage(_DeviceMessage):
    type: Literal[ClientMessageType.ADD_PLAYER] = ClientMessageType.ADD_PLAYER
    player_name: str

    @field_validator("player_name")
    @classmethod
    def _validate_player_name(cls, v: str) -> str:
        name = v.strip()
        if not name or len(name) > MAX_PLAYER_NAME_LENGTH:
            raise ValueError(f"playerName must be 1-{MAX_PLAYER_NAME_LENGTH} characters")
        if _has_control_chars(name):
            raise ValueError("playerName must not contain control characters")
        return name


class RemovePlayerMessage(_DeviceMessage):
    type: Literal[ClientMessageType.REMOVE_PLAYER] = ClientMessageType.REMOVE_PLAYER


class UpdateRoomMessage(_DeviceMessage):
    type: Literal[ClientMessageType.UPDATE_ROOM] = ClientMessageType.UPDATE_ROOM
    updates: RoomUpdate


class PlayerSubmissionMessage(_DeviceMessage):
    type: Literal[ClientMessageType.PLAYER_SUBMISSION] = ClientMessageType.PLAYER_SUBMISSION
    player_id: str = Field(min_length=1, max_length=100)
    word: str = Field(min_length=1, max_length=100)
    song: str = Field(max_length=200)
    artist: str = Field(max_length=200)
    round: int | None = Field(default=None, ge=0)


class RoundTimeoutMessage(_DeviceMessage):
    type: Literal[ClientMessageType.ROUND_TIMEOUT] = ClientMessageType.ROUND_TIMEOUT
    word: str = Field(min_length=1, max_length=100)
    round: int | None = Field(default=None, ge=0)


class RoundSkipMessage(_DeviceMessage):
    type: Literal[ClientMessageType.ROUND_SKIP] = ClientMessageType.ROUND_SKIP
    word: str = Field(min_length=1, max_length=100)
    round: int | None = Field(default=None, ge=0)


ClientMessage = Annotated[
    JoinRoomMessage
    | AddPlayerMessage
    | RemovePlayerMessage
    | UpdateRoomMessage
    | PlayerSubmissionMessage
    | RoundTimeoutMessage
    | RoundSkipMessage,
    Field(discriminator="type"),
]

_client_message_adapter: TypeAdapter[ClientMessage] = TypeAdapter(ClientMessage)


def parse_client_message(raw: str) -> ClientMessage:
    """Parse and validate a raw JSON string into a typed client message.

    Raises ValueError (including pydantic's ValidationError) for oversize,
    undecodable or invalid frames.
    """
    byte_len = len(raw.encode("utf-8"))
    if byte_len > MAX_WS_MESSAGE_SIZE:
        raise ValueError(f"Message too large ({byte_len} bytes, max {MAX_WS_MESSAGE_SIZE})")
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError("Message must be a JSON object")
    return _client_message_adapter.validate_python(data)


class RoomStateMessage(_WireMessage):
    type: Literal[ServerMessageType.ROOM_STATE] = ServerMessageType.ROOM_STATE
    state: RoomState


class ErrorMessage(_WireMessage):
    type: Literal[ServerMessageType.ERROR] = ServerMessageType.ERROR
    code: ErrorCode
    message: str


class SubmissionResultMessage(_WireMessage):
    """Verification verdict, sent only to the submitting connection."""

    type: Literal[ServerMessageType.SUBMISSION_RESULT] = ServerMessageType.SUBMISSION_RESULT
    player_id: str
    matched: bool
    reason: VerifyReason | None = None


ServerMessage = Annotated[
    RoomStateMessage | ErrorMessage | SubmissionResultMessage,
    Field(discriminator="type"),
]

_server_message_adapter: TypeAdapter[ServerMessage] = TypeAdapter(ServerMessage)


def parse_server_message(data: dict[str, Any]) -> ServerMessage:
    """Parse a decoded server frame into a typed message (used by clients)."""
    return _server_message_adapter.validate_python(data)
