"""Room data model: the mutable server-side room and its immutable wire snapshot."""

from __future__ import annotations

import re
import secrets
import time
from dataclasses import dataclass, field

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from songgame.logic.enums import Phase, RoundOutcomeKind
from songgame.logic.exceptions import InvalidRoomCodeError

ROOM_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
ROOM_CODE_LENGTH = 6
# Accepts any upper-case alphanumeric code so hand-typed codes still work;
# only generated codes are restricted to the unambiguous alphabet.
_ROOM_CODE_PATTERN = re.compile(r"^[A-Z0-9]{6}$")

MIN_ROUND_DURATION = 10
MAX_ROUND_DURATION = 60
DEFAULT_ROUND_DURATION = 20


def generate_room_code() -> str:
    return "".join(secrets.choice(ROOM_CODE_ALPHABET) for _ in range(ROOM_CODE_LENGTH))


def normalize_room_code(code: str) -> str:
    """Upper-case and validate a client supplied room code."""
    normalized = code.strip().upper()
    if not _ROOM_CODE_PATTERN.match(normalized):
        raise InvalidRoomCodeError(f"Invalid room code {code!r}")
    return normalized


def _now_ms() -> int:
    return int(time.time() * 1000)


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class RoomPlayerInfo(_WireModel):
    """Roster entry as seen by clients."""

    id: str
    name: str
    device_id: str


class RoundOutcome(_WireModel):
    """Immutable record of how one round ended."""

    word: str
    outcome: RoundOutcomeKind
    winner_id: str | None = None
    song: str | None = None
    artist: str | None = None

    @model_validator(mode="after")
    def _check_outcome_fields(self) -> RoundOutcome:
        details = (self.winner_id, self.song, self.artist)
        if self.outcome == RoundOutcomeKind.SUCCESS:
            if any(value is None for value in details):
                raise ValueError("success outcome requires winner_id, song and artist")
        elif any(value is not None for value in details):
            raise ValueError(f"{self.outcome} outcome must not carry winner details")
        return self

    @classmethod
    def success(cls, word: str, winner_id: str, song: str, artist: str) -> RoundOutcome:
        return cls(word=word, outcome=RoundOutcomeKind.SUCCESS, winner_id=winner_id, song=song, artist=artist)

    @classmethod
    def timeout(cls, word: str) -> RoundOutcome:
        return cls(word=word, outcome=RoundOutcomeKind.TIMEOUT)

    @classmethod
    def skipped(cls, word: str) -> RoundOutcome:
        return cls(word=word, outcome=RoundOutcomeKind.SKIPPED)


class RoomState(_WireModel):
    """Full room snapshot broadcast to every connection in the room."""

    room_id: str
    players: list[RoomPlayerInfo] = Field(default_factory=list)
    phase: Phase = Phase.LOBBY
    round_duration: int = DEFAULT_ROUND_DURATION
    round_words: list[str] = Field(default_factory=list)
    current_round: int = 0
    players_with_scores: dict[str, int] = Field(default_factory=dict)
    history: list[RoundOutcome] = Field(default_factory=list)
    game_master_id: str | None = None
    reshuffle_used: bool = False
    last_updated: int = 0

    @property
    def current_word(self) -> str | None:
        if 0 <= self.current_round < len(self.round_words):
            return self.round_words[self.current_round]
        return None

    def player_for_device(self, device_id: str) -> RoomPlayerInfo | None:
        return next((p for p in self.players if p.device_id == device_id), None)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


@dataclass
class RoomPlayer:
    """Player on a room roster, keyed by the device that created it."""

    id: str
    name: str
    device_id: str

    def to_info(self) -> RoomPlayerInfo:
        return RoomPlayerInfo(id=self.id, name=self.name, device_id=self.device_id)


def new_player_id() -> str:
    return f"p_{secrets.token_urlsafe(8)}"


@dataclass
class Room:
    """Authoritative room state owned by the room store.

    `touched_at` is a monotonic clock reading used for idle eviction;
    `last_updated_ms` is the wall-clock value clients see as `lastUpdated`.
    """

    code: str
    round_duration: int = DEFAULT_ROUND_DURATION
    phase: Phase = Phase.LOBBY
    players: list[RoomPlayer] = field(default_factory=list)
    round_words: list[str] = field(default_factory=list)
    current_round: int = 0
    scores: dict[str, int] = field(default_factory=dict)
    history: list[RoundOutcome] = field(default_factory=list)
    game_master_id: str | None = None
    reshuffled_round: int | None = None
    touched_at: float = field(default_factory=time.monotonic)
    last_updated_ms: int = field(default_factory=_now_ms)

    @property
    def is_empty(self) -> bool:
        return not self.players

    @property
    def current_word(self) -> str | None:
        if self.phase == Phase.PLAYING and 0 <= self.current_round < len(self.round_words):
            return self.round_words[self.current_round]
        return None

    @property
    def reshuffle_used(self) -> bool:
        return self.reshuffled_round is not None and self.reshuffled_round == self.current_round

    def player_by_device(self, device_id: str) -> RoomPlayer | None:
        return next((p for p in self.players if p.device_id == device_id), None)

    def player_by_id(self, player_id: str) -> RoomPlayer | None:
        return next((p for p in self.players if p.id == player_id), None)

    def is_game_master(self, device_id: str) -> bool:
        player = self.player_by_device(device_id)
        return player is not None and player.id == self.game_master_id

    def touch(self) -> None:
        self.touched_at = time.monotonic()
        self.last_updated_ms = _now_ms()

    def idle_seconds(self, now: float | None = None) -> float:
        return (time.monotonic() if now is None else now) - self.touched_at

    def snapshot(self) -> RoomState:
        return RoomState(
            room_id=self.code,
            players=[p.to_info() for p in self.players],
            phase=self.phase,
            round_duration=self.round_duration,
            round_words=list(self.round_words),
            current_round=self.current_round,
            players_with_scores=dict(self.scores),
            history=list(self.history),
            game_master_id=self.game_master_id,
            reshuffle_used=self.reshuffle_used,
            last_updated=self.last_updated_ms,
        )
