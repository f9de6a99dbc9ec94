from enum import StrEnum


class Phase(StrEnum):
    LOBBY = "lobby"
    PLAYING = "playing"
    LEADERBOARD = "leaderboard"


class RoundOutcomeKind(StrEnum):
    SUCCESS = "success"
    TIMEOUT = "timeout"
    SKIPPED = "skipped"
