import random

import pytest
from pydantic import ValidationError

from songgame.logic.enums import Phase, RoundOutcomeKind
from songgame.logic.exceptions import RoomUpdateError
from songgame.logic.models import Room, RoomPlayer, RoundOutcome
from songgame.logic.rounds import (
    RoomUpdate,
    apply_update,
    record_outcome,
    reshuffle_current_word,
    return_to_lobby,
    start_game,
)
from songgame.logic.words import ROUNDS_PER_GAME, WORD_POOL

WORDS = ["love", "night", "fire", "rain", "dance", "baby", "dream", "home", "money", "summer"]


def _room(*names: str) -> Room:
    room = Room(code="ABC123")
    for i, name in enumerate(names):
        room.players.append(RoomPlayer(id=f"p{i}", name=name, device_id=f"dev-{i}"))
    if room.players:
        room.game_master_id = room.players[0].id
    return room


def _playing_room() -> Room:
    room = _room("Alice", "Bob")
    start_game(room, WORDS)
    return room


class TestStartGame:
    def test_seeds_ten_unique_pool_words(self):
        room = _room("Alice")
        start_game(room, rng=random.Random(3))

        assert room.phase == Phase.PLAYING
        assert len(room.round_words) == ROUNDS_PER_GAME
        assert len(set(room.round_words)) == ROUNDS_PER_GAME
        assert set(room.round_words) <= set(WORD_POOL)

    def test_resets_round_scores_and_history(self):
        room = _room("Alice", "Bob")
        room.phase = Phase.LEADERBOARD
        room.current_round = 10
        room.scores = {"p0": 4, "p1": 6}
        room.history = [RoundOutcome.timeout("love")]

        start_game(room, WORDS)

        assert room.current_round == 0
        assert room.scores == {"p0": 0, "p1": 0}
        assert room.history == []

    def test_requires_players(self):
        with pytest.raises(RoomUpdateError, match="without players"):
            start_game(_room())

    def test_rejected_while_playing(self):
        room = _playing_room()
        with pytest.raises(RoomUpdateError, match="already in progress"):
            start_game(room, WORDS)


class TestRecordOutcome:
    def test_success_scores_and_advances(self):
        room = _playing_room()

        assert record_outcome(room, RoundOutcome.success("love", "p1", "Song", "Artist"))

        assert room.scores["p1"] == 1
        assert room.current_round == 1
        assert room.history[0].winner_id == "p1"

    def test_timeout_advances_without_scoring(self):
        room = _playing_room()

        assert record_outcome(room, RoundOutcome.timeout("love"))

        assert room.scores == {"p0": 0, "p1": 0}
        assert room.history[0].outcome == RoundOutcomeKind.TIMEOUT
        assert room.current_round == 1

    def test_second_outcome_for_same_round_is_noop(self):
        room = _playing_room()

        assert record_outcome(room, RoundOutcome.success("love", "p1", "Song", "Artist"), expected_round=0)
        assert not record_outcome(room, RoundOutcome.timeout("love"), expected_round=0)

        assert len(room.history) == 1
        assert room.current_round == 1

    def test_outcome_for_previous_word_is_noop(self):
        room = _playing_room()
        record_outcome(room, RoundOutcome.timeout("love"))

        assert not record_outcome(room, RoundOutcome.skipped("love"))
        assert len(room.history) == 1

    def test_word_match_is_case_insensitive(self):
        room = _playing_room()
        assert record_outcome(room, RoundOutcome.skipped("LOVE"))
        assert room.history[0].word == "love"

    def test_unknown_winner_is_noop(self):
        room = _playing_room()
        assert not record_outcome(room, RoundOutcome.success("love", "ghost", "Song", "Artist"))

    def test_last_round_moves_to_leaderboard(self):
        room = _playing_room()
        for word in WORDS:
            assert record_outcome(room, RoundOutcome.timeout(word))

        assert room.current_round == len(room.round_words)
        assert room.phase == Phase.LEADERBOARD

    def test_ignored_outside_playing(self):
        room = _room("Alice")
        assert not record_outcome(room, RoundOutcome.timeout("love"))


class TestReshuffle:
    def test_replaces_current_word_with_unused_word(self):
        room = _playing_room()
        record_outcome(room, RoundOutcome.timeout("love"))

        assert reshuffle_current_word(room, rng=random.Random(5))

        new_word = room.round_words[1]
        assert new_word not in WORDS
        assert room.reshuffle_used
        assert room.current_round == 1

    def test_only_once_per_round(self):
        room = _playing_room()
        reshuffle_current_word(room)
        with pytest.raises(RoomUpdateError, match="already used"):
            reshuffle_current_word(room)

    def test_allowed_again_next_round(self):
        room = _playing_room()
        reshuffle_current_word(room)
        record_outcome(room, RoundOutcome.skipped(room.round_words[0]))

        assert not room.reshuffle_used
        assert reshuffle_current_word(room)

    def test_never_reuses_history_words(self):
        pool = [*WORDS, "extra1", "extra2"]
        room = _playing_room()
        room.history.append(RoundOutcome.timeout("extra1"))

        assert reshuffle_current_word(room, pool=pool, rng=random.Random(0))
        assert room.round_words[0] == "extra2"

    def test_noop_when_pool_exhausted(self):
        room = _playing_room()

        assert not reshuffle_current_word(room, pool=WORDS)
        assert room.round_words[0] == "love"
        assert not room.reshuffle_used


class TestReturnToLobby:
    def test_keeps_roster_and_clears_game(self):
        room = _playing_room()
        record_outcome(room, RoundOutcome.success("love", "p1", "Song", "Artist"))

        return_to_lobby(room)

        assert room.phase == Phase.LOBBY
        assert [p.name for p in room.players] == ["Alice", "Bob"]
        assert room.round_words == []
        assert room.scores == {}
        assert room.history == []
        assert room.current_round == 0


class TestRoomUpdateModel:
    def test_accepts_camel_case_fields(self):
        update = RoomUpdate.model_validate({"phase": "playing", "roundDuration": 30})
        assert update.phase == Phase.PLAYING
        assert update.round_duration == 30

    def test_rejects_unknown_fields(self):
        with pytest.raises(ValidationError):
            RoomUpdate.model_validate({"gameMasterId": "p1"})

    @pytest.mark.parametrize("seconds", [5, 61])
    def test_rejects_out_of_range_duration(self, seconds):
        with pytest.raises(ValidationError):
            RoomUpdate(round_duration=seconds)

    def test_custom_words_must_be_unique(self):
        with pytest.raises(ValidationError, match="unique"):
            RoomUpdate(phase=Phase.PLAYING, round_words=["love"] * ROUNDS_PER_GAME)

    def test_custom_words_must_fill_every_round(self):
        with pytest.raises(ValidationError, match="exactly"):
            RoomUpdate(phase=Phase.PLAYING, round_words=["love", "fire"])


class TestApplyUpdate:
    def test_duration_then_start_in_one_patch(self):
        room = _room("Alice")
        assert apply_update(room, RoomUpdate(phase=Phase.PLAYING, round_duration=45), rng=random.Random(1))
        assert room.round_duration == 45
        assert room.phase == Phase.PLAYING

    def test_duration_change_rejected_during_game(self):
        room = _playing_room()
        with pytest.raises(RoomUpdateError, match="during a game"):
            apply_update(room, RoomUpdate(round_duration=30))

    def test_failed_start_leaves_room_untouched(self):
        room = _room()
        with pytest.raises(RoomUpdateError):
            apply_update(room, RoomUpdate(phase=Phase.PLAYING, round_duration=45))
        assert room.round_duration == 20

    def test_manual_leaderboard_rejected(self):
        room = _playing_room()
        with pytest.raises(RoomUpdateError, match="leaderboard"):
            apply_update(room, RoomUpdate(phase=Phase.LEADERBOARD))

    def test_custom_words_require_start(self):
        room = _room("Alice")
        with pytest.raises(RoomUpdateError, match="starting a game"):
            apply_update(room, RoomUpdate(round_words=WORDS))

    def test_replay_from_leaderboard(self):
        room = _playing_room()
        for word in WORDS:
            record_outcome(room, RoundOutcome.success(word, "p0", "Song", "Artist"))
        assert room.phase == Phase.LEADERBOARD

        assert apply_update(room, RoomUpdate(phase=Phase.PLAYING, round_words=list(reversed(WORDS))))

        assert room.phase == Phase.PLAYING
        assert room.scores == {"p0": 0, "p1": 0}
        assert room.round_words[0] == "summer"

    def test_unchanged_duration_is_not_a_change(self):
        room = _room("Alice")
        assert not apply_update(room, RoomUpdate(round_duration=20))

    def test_reshuffle_in_lobby_rejected(self):
        with pytest.raises(RoomUpdateError, match="during a round"):
            apply_update(_room("Alice"), RoomUpdate(reshuffle=True))
