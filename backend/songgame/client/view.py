"""
Client-side room view.

The server's `room-state` is the only source of shared state: every
broadcast replaces the local copy wholesale. Alongside it the client keeps
round-scoped scratch state (typed song/artist, submission status, whether
this device already finished the round). That scratch state is never sent
back as room state and is thrown away whenever the round changes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

from songgame.logic.enums import Phase
from songgame.lyrics.verifier import VerifyReason

if TYPE_CHECKING:
    from songgame.logic.models import RoomPlayerInfo, RoomState
    from songgame.messaging.types import SubmissionResultMessage

RoundKey = tuple[Phase, int, int, tuple[str, ...]]

_REASON_MESSAGES = {
    VerifyReason.MISSING_INPUT: "Please provide both the song and artist.",
    VerifyReason.LYRICS_NOT_FOUND: "Lyrics for that song were not found. Try another pick.",
    VerifyReason.WORD_NOT_FOUND: 'Lyrics found but "{word}" was not detected.',
}


class SubmissionStatus(StrEnum):
    IDLE = "idle"
    VALIDATING = "validating"
    SUCCESS = "success"
    ERROR = "error"


@dataclass
class SubmissionDraft:
    song: str = ""
    artist: str = ""
    status: SubmissionStatus = SubmissionStatus.IDLE
    message: str | None = None


@dataclass
class RoundLocalState:
    key: RoundKey
    drafts: dict[str, SubmissionDraft] = field(default_factory=dict)
    round_complete: bool = False

    def draft_for(self, player_id: str) -> SubmissionDraft:
        return self.drafts.setdefault(player_id, SubmissionDraft())


def round_key(state: RoomState) -> RoundKey:
    """Identity of a round instance; local state resets whenever this changes."""
    return (state.phase, state.current_round, state.round_duration, tuple(p.id for p in state.players))


class RoomView:
    """Latest room snapshot plus this device's round-scoped scratch state."""

    def __init__(self, device_id: str) -> None:
        self.device_id = device_id
        self.state: RoomState | None = None
        self.local: RoundLocalState | None = None

    def apply(self, state: RoomState) -> bool:
        """Replace the shared state. Returns True if the round changed and local state was reset."""
        self.state = state
        key = round_key(state)
        if self.local is not None and self.local.key == key:
            return False
        self.local = RoundLocalState(key=key)
        return True

    def clear(self) -> None:
        """Forget the room, e.g. after it was evicted server-side; renders as an empty lobby."""
        self.state = None
        self.local = None

    @property
    def phase(self) -> Phase:
        return self.state.phase if self.state is not None else Phase.LOBBY

    @property
    def me(self) -> RoomPlayerInfo | None:
        if self.state is None:
            return None
        return self.state.player_for_device(self.device_id)

    @property
    def is_game_master(self) -> bool:
        me = self.me
        return me is not None and self.state is not None and me.id == self.state.game_master_id

    @property
    def current_word(self) -> str | None:
        if self.state is None or self.state.phase != Phase.PLAYING:
            return None
        return self.state.current_word

    def update_draft(self, player_id: str, *, song: str | None = None, artist: str | None = None) -> None:
        if self.local is None:
            return
        draft = self.local.draft_for(player_id)
        if song is not None:
            draft.song = song
        if artist is not None:
            draft.artist = artist

    def begin_submission(self, player_id: str) -> SubmissionDraft | None:
        """Mark a draft as being validated. Returns None if it cannot be submitted now."""
        if self.local is None or self.local.round_complete or self.current_word is None:
            return None
        draft = self.local.draft_for(player_id)
        if draft.status == SubmissionStatus.VALIDATING:
            return None
        if not draft.song.strip() or not draft.artist.strip():
            draft.status = SubmissionStatus.ERROR
            draft.message = _REASON_MESSAGES[VerifyReason.MISSING_INPUT]
            return None
        draft.status = SubmissionStatus.VALIDATING
        draft.message = "Checking lyrics..."
        return draft

    def apply_submission_result(self, result: SubmissionResultMessage) -> None:
        if self.local is None:
            return
        draft = self.local.draft_for(result.player_id)
        if result.matched:
            draft.status = SubmissionStatus.SUCCESS
            draft.message = "Word found!"
            self.local.round_complete = True
            return
        draft.status = SubmissionStatus.ERROR
        template = _REASON_MESSAGES.get(result.reason) if result.reason is not None else None
        draft.message = template.format(word=self.current_word or "") if template else "No luck this time."

    def mark_round_complete(self) -> None:
        if self.local is not None:
            self.local.round_complete = True
