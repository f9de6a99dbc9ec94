import pytest
from pydantic import ValidationError

from songgame.logic.enums import Phase, RoundOutcomeKind
from songgame.logic.exceptions import InvalidRoomCodeError
from songgame.logic.models import (
    ROOM_CODE_ALPHABET,
    ROOM_CODE_LENGTH,
    Room,
    RoomPlayer,
    RoomState,
    RoundOutcome,
    generate_room_code,
    normalize_room_code,
)


class TestRoomCodes:
    def test_generated_code_uses_unambiguous_alphabet(self):
        for _ in range(50):
            code = generate_room_code()
            assert len(code) == ROOM_CODE_LENGTH
            assert all(c in ROOM_CODE_ALPHABET for c in code)

    def test_alphabet_excludes_lookalikes(self):
        for c in "01IO":
            assert c not in ROOM_CODE_ALPHABET

    def test_normalize_uppercases_and_strips(self):
        assert normalize_room_code("  abc123 ") == "ABC123"

    @pytest.mark.parametrize("code", ["", "ABC12", "ABC1234", "ABC-12", "ÄBC123"])
    def test_normalize_rejects_malformed_codes(self, code):
        with pytest.raises(InvalidRoomCodeError):
            normalize_room_code(code)


class TestRoundOutcome:
    def test_success_carries_winner_details(self):
        outcome = RoundOutcome.success("love", winner_id="p1", song="Song", artist="Artist")
        assert outcome.outcome == RoundOutcomeKind.SUCCESS
        assert outcome.winner_id == "p1"

    def test_success_without_winner_rejected(self):
        with pytest.raises(ValidationError, match="success outcome requires"):
            RoundOutcome(word="love", outcome=RoundOutcomeKind.SUCCESS, song="s", artist="a")

    def test_timeout_with_winner_rejected(self):
        with pytest.raises(ValidationError, match="must not carry winner details"):
            RoundOutcome(word="love", outcome=RoundOutcomeKind.TIMEOUT, winner_id="p1")

    def test_outcome_is_immutable(self):
        outcome = RoundOutcome.skipped("love")
        with pytest.raises(ValidationError):
            outcome.word = "hate"


class TestRoomSnapshot:
    def test_wire_format_uses_camel_case(self):
        room = Room(code="ABC123")
        room.players.append(RoomPlayer(id="p1", name="Alice", device_id="dev-a"))
        room.game_master_id = "p1"

        wire = room.snapshot().to_wire()

        assert wire["roomId"] == "ABC123"
        assert wire["players"] == [{"id": "p1", "name": "Alice", "deviceId": "dev-a"}]
        assert wire["phase"] == "lobby"
        assert wire["roundDuration"] == 20
        assert wire["currentRound"] == 0
        assert wire["playersWithScores"] == {}
        assert wire["gameMasterId"] == "p1"
        assert wire["reshuffleUsed"] is False
        assert isinstance(wire["lastUpdated"], int)

    def test_snapshot_is_detached_from_room(self):
        room = Room(code="ABC123", round_words=["love"])
        state = room.snapshot()
        room.round_words.append("fire")
        assert state.round_words == ["love"]

    def test_state_round_trips_from_wire(self):
        room = Room(code="ABC123", phase=Phase.PLAYING, round_words=["love", "fire"], current_round=1)
        room.history.append(RoundOutcome.timeout("love"))

        parsed = RoomState.model_validate(room.snapshot().to_wire())

        assert parsed.phase == Phase.PLAYING
        assert parsed.current_word == "fire"
        assert parsed.history[0].outcome == RoundOutcomeKind.TIMEOUT

    def test_current_word_none_outside_playing(self):
        room = Room(code="ABC123", round_words=["love"])
        assert room.current_word is None

    def test_touch_refreshes_idle_clock(self):
        room = Room(code="ABC123")
        room.touched_at -= 100
        before = room.last_updated_ms
        room.touch()
        assert room.idle_seconds() < 1
        assert room.last_updated_ms >= before
