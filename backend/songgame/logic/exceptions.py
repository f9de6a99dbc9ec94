"""Domain errors raised by pure room logic and mapped to error frames by the router."""


class SongGameError(Exception):
    """Base class for expected, recoverable game errors."""


class InvalidRoomCodeError(SongGameError, ValueError):
    """Room code does not match the expected format."""


class RoomUpdateError(SongGameError):
    """A game master patch is well-formed but not allowed in the room's current state."""
