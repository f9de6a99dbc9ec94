"""Shared helpers for room tests."""

from songgame.logic.enums import Phase
from songgame.logic.rounds import RoomUpdate
from songgame.session.manager import RoomManager
from songgame.tests.mocks import MockConnection

ROOM_ID = "ABC123"
TEST_WORDS = ["love", "night", "fire", "rain", "dance", "baby", "dream", "home", "money", "summer"]


async def join_with_player(
    manager: RoomManager,
    device_id: str,
    name: str,
    room_id: str = ROOM_ID,
) -> tuple[MockConnection, str]:
    """Connect a device, join the room and add its player. Returns (connection, player_id)."""
    connection = MockConnection()
    await manager.join_room(connection, room_id, device_id)
    state = await manager.add_player(room_id, device_id, name)
    assert state is not None
    player = state.player_for_device(device_id)
    assert player is not None
    return connection, player.id


async def start_game(manager: RoomManager, device_id: str, room_id: str = ROOM_ID, words=None) -> None:
    """Start a game as `device_id` (must be game master) with fixed words."""
    update = RoomUpdate(phase=Phase.PLAYING, round_words=list(words or TEST_WORDS))
    state = await manager.apply_game_master_update(room_id, device_id, update)
    assert state is not None
    assert state.phase == Phase.PLAYING
