"""
Round state machine for a room.

Pure functions over `Room`: no I/O, no awaits. Callers (the room manager)
run each function to completion between messages, which is what makes the
check-then-set in `record_outcome` safe against racing outcomes.

Phases move lobby -> playing -> leaderboard. The game master may replay
from the leaderboard or return to the lobby from either later phase.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from songgame.logic.enums import Phase, RoundOutcomeKind
from songgame.logic.exceptions import RoomUpdateError
from songgame.logic.models import MAX_ROUND_DURATION, MIN_ROUND_DURATION
from songgame.logic.words import ROUNDS_PER_GAME, WORD_POOL, pick_replacement, pick_words

if TYPE_CHECKING:
    import random
    from collections.abc import Sequence

    from songgame.logic.models import Room, RoundOutcome

_MAX_WORD_LENGTH = 40


class RoomUpdate(BaseModel):
    """Partial room patch a game master may send with `update-room`."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    phase: Phase | None = None
    round_duration: int | None = Field(default=None, ge=MIN_ROUND_DURATION, le=MAX_ROUND_DURATION)
    round_words: list[str] | None = None
    reshuffle: bool = False

    @field_validator("round_words")
    @classmethod
    def _validate_round_words(cls, v: list[str] | None) -> list[str] | None:
        if v is None:
            return v
        words = [w.strip() for w in v]
        if any(not w or len(w) > _MAX_WORD_LENGTH for w in words):
            raise ValueError(f"round words must be 1-{_MAX_WORD_LENGTH} characters")
        if len(words) != ROUNDS_PER_GAME:
            raise ValueError(f"exactly {ROUNDS_PER_GAME} round words are required")
        if len({w.lower() for w in words}) != len(words):
            raise ValueError("round words must be unique")
        return words

    @property
    def is_empty(self) -> bool:
        return self.phase is None and self.round_duration is None and self.round_words is None and not self.reshuffle


def _check_can_start(room: Room) -> None:
    if room.phase == Phase.PLAYING:
        raise RoomUpdateError("A game is already in progress")
    if room.is_empty:
        raise RoomUpdateError("Cannot start a game without players")


def start_game(
    room: Room,
    words: Sequence[str] | None = None,
    *,
    pool: Sequence[str] = WORD_POOL,
    rng: random.Random | None = None,
) -> None:
    """Seed a fresh game from the lobby, or replay from the leaderboard."""
    _check_can_start(room)
    room.round_words = list(words) if words is not None else pick_words(ROUNDS_PER_GAME, pool, rng)
    room.current_round = 0
    room.scores = {p.id: 0 for p in room.players}
    room.history = []
    room.reshuffled_round = None
    room.phase = Phase.PLAYING


def return_to_lobby(room: Room) -> None:
    """Go back to the lobby keeping the roster; words, scores and history are cleared."""
    if room.phase == Phase.LOBBY:
        raise RoomUpdateError("Room is already in the lobby")
    room.phase = Phase.LOBBY
    room.round_words = []
    room.current_round = 0
    room.scores = {}
    room.history = []
    room.reshuffled_round = None


def set_round_duration(room: Room, seconds: int) -> None:
    if room.phase == Phase.PLAYING:
        raise RoomUpdateError("Round duration cannot be changed during a game")
    if not MIN_ROUND_DURATION <= seconds <= MAX_ROUND_DURATION:
        raise RoomUpdateError(f"Round duration must be {MIN_ROUND_DURATION}-{MAX_ROUND_DURATION} seconds")
    room.round_duration = seconds


def reshuffle_current_word(
    room: Room,
    *,
    pool: Sequence[str] = WORD_POOL,
    rng: random.Random | None = None,
) -> bool:
    """Swap the current round's word for an unused pool word.

    Allowed once per round. Returns False, leaving the allowance unspent,
    when no eligible word is left in the pool.
    """
    if room.phase != Phase.PLAYING or room.current_word is None:
        raise RoomUpdateError("Reshuffle is only available during a round")
    if room.reshuffle_used:
        raise RoomUpdateError("Reshuffle already used this round")

    used = [outcome.word for outcome in room.history] + room.round_words
    replacement = pick_replacement(used, pool, rng)
    if replacement is None:
        return False
    room.round_words[room.current_round] = replacement
    room.reshuffled_round = room.current_round
    return True


def record_outcome(room: Room, outcome: RoundOutcome, expected_round: int | None = None) -> bool:
    """Commit the outcome of the current round if it is still open.

    The first accepted outcome for a round index wins. Anything referring to
    a round that already advanced (by index or by word) is a no-op and
    returns False.
    """
    if room.phase != Phase.PLAYING:
        return False
    if expected_round is not None and expected_round != room.current_round:
        return False
    current_word = room.current_word
    if current_word is None or outcome.word.strip().lower() != current_word.lower():
        return False

    if outcome.outcome == RoundOutcomeKind.SUCCESS:
        if outcome.winner_id is None or room.player_by_id(outcome.winner_id) is None:
            return False
        room.scores[outcome.winner_id] = room.scores.get(outcome.winner_id, 0) + 1

    room.history.append(outcome.model_copy(update={"word": current_word}))
    room.current_round += 1
    if room.current_round >= len(room.round_words):
        room.phase = Phase.LEADERBOARD
    return True


def apply_update(
    room: Room,
    update: RoomUpdate,
    *,
    pool: Sequence[str] = WORD_POOL,
    rng: random.Random | None = None,
) -> bool:
    """Apply a game master patch. Returns True when room state changed.

    Duration is applied before a phase change so a single start patch can
    carry both. Raises RoomUpdateError when the patch is not valid for the
    room's current phase.
    """
    if update.round_words is not None and update.phase != Phase.PLAYING:
        raise RoomUpdateError("Custom round words can only be sent when starting a game")
    if update.phase == Phase.LEADERBOARD:
        raise RoomUpdateError("The leaderboard is reached by finishing every round")
    # Validate the phase change up front so a rejected patch leaves the room untouched.
    if update.phase == Phase.PLAYING:
        _check_can_start(room)
    elif update.phase == Phase.LOBBY and room.phase == Phase.LOBBY:
        raise RoomUpdateError("Room is already in the lobby")
    if update.round_duration is not None and room.phase == Phase.PLAYING:
        raise RoomUpdateError("Round duration cannot be changed during a game")
    if update.reshuffle and update.phase is not None:
        raise RoomUpdateError("Reshuffle cannot be combined with a phase change")
    if update.reshuffle and room.phase != Phase.PLAYING:
        raise RoomUpdateError("Reshuffle is only available during a round")

    changed = False
    if update.round_duration is not None and update.round_duration != room.round_duration:
        set_round_duration(room, update.round_duration)
        changed = True

    if update.phase == Phase.PLAYING:
        start_game(room, update.round_words, pool=pool, rng=rng)
        changed = True
    elif update.phase == Phase.LOBBY:
        return_to_lobby(room)
        changed = True

    if update.reshuffle:
        changed = reshuffle_current_word(room, pool=pool, rng=rng) or changed

    return changed
