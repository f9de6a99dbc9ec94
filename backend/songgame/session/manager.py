"""Room store operations: roster, game master authority, round outcomes and idle eviction.

Every accepted mutation is saved to the store and the full room state is
broadcast to every connection subscribed to the room. Rejected calls return
None without touching state or notifying anyone.
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import TYPE_CHECKING

import structlog

from songgame.logic import rounds
from songgame.logic.models import DEFAULT_ROUND_DURATION, RoomPlayer, RoundOutcome, new_player_id, normalize_room_code
from songgame.logic.words import WORD_POOL
from songgame.messaging.types import RoomStateMessage
from songgame.session.connections import RoomConnectionManager
from songgame.session.store import InMemoryRoomStore

if TYPE_CHECKING:
    import random
    from collections.abc import Sequence

    from songgame.logic.models import Room, RoomState
    from songgame.logic.rounds import RoomUpdate
    from songgame.messaging.protocol import ConnectionProtocol
    from songgame.session.store import RoomStore

logger = structlog.get_logger()

DEFAULT_ROOM_TTL_SECONDS = 3600
DEFAULT_REAPER_INTERVAL_SECONDS = 60


class RoomManager:
    """Authoritative owner of room state for this process.

    Mutations for one room are serialized by a per-room lock that is held
    through the broadcast, so every connection sees snapshots in commit
    order. Nothing slow (like lyrics lookups) may run under that lock.
    """

    def __init__(
        self,
        store: RoomStore | None = None,
        *,
        connections: RoomConnectionManager | None = None,
        room_ttl_seconds: float = DEFAULT_ROOM_TTL_SECONDS,
        reaper_interval_seconds: float = DEFAULT_REAPER_INTERVAL_SECONDS,
        default_round_duration: int = DEFAULT_ROUND_DURATION,
        word_pool: Sequence[str] = WORD_POOL,
        rng: random.Random | None = None,
    ) -> None:
        self._store = store if store is not None else InMemoryRoomStore()
        self._connections = connections if connections is not None else RoomConnectionManager()
        self._room_ttl_seconds = room_ttl_seconds
        self._reaper_interval_seconds = reaper_interval_seconds
        self._default_round_duration = default_round_duration
        self._word_pool = word_pool
        self._rng = rng
        self._room_locks: dict[str, asyncio.Lock] = {}
        self._reaper_task: asyncio.Task[None] | None = None

    @property
    def connections(self) -> RoomConnectionManager:
        return self._connections

    @property
    def room_count(self) -> int:
        return self._store.count()

    def get_room(self, room_id: str) -> Room | None:
        return self._store.get(room_id)

    def get_state(self, room_id: str) -> RoomState | None:
        room = self._store.get(room_id)
        return room.snapshot() if room is not None else None

    def room_of(self, connection: ConnectionProtocol) -> str | None:
        return self._connections.room_of(connection.connection_id)

    def create_room(self, room_id: str) -> Room:
        """Create (or overwrite) a lobby room under `room_id`."""
        self._room_locks.pop(room_id, None)
        return self._store.create(room_id, round_duration=self._default_round_duration)

    # --- Public API ---

    async def join_room(self, connection: ConnectionProtocol, room_id: str, device_id: str) -> RoomState:
        """Subscribe a connection to a room, creating the room if needed, and send it the current state.

        Raises InvalidRoomCodeError for malformed codes.
        """
        room_id = normalize_room_code(room_id)

        previous = self._connections.room_of(connection.connection_id)
        if previous == room_id:
            self._connections.remove(connection.connection_id)
        elif previous is not None:
            await self.handle_disconnect(connection)

        room = self._store.get(room_id)
        if room is None:
            room = self.create_room(room_id)

        self._connections.add(room_id, connection, device_id)
        structlog.contextvars.bind_contextvars(room_id=room_id)
        logger.info("connection joined room", room_id=room_id, connection_id=connection.connection_id)

        state = room.snapshot()
        await self._connections.send_to(connection, RoomStateMessage(state=state).to_wire())
        return state

    async def add_player(self, room_id: str, device_id: str, name: str) -> RoomState | None:
        """Add the device's player to the roster, or rename it if already present."""
        name = name.strip()
        if not name:
            return None

        async with self._lock_for(room_id):
            room = self._store.get(room_id)
            if room is None:
                return None

            player = room.player_by_device(device_id)
            if player is not None:
                if player.name == name:
                    return room.snapshot()
                player.name = name
                logger.info("player renamed", room_id=room_id, player_id=player.id)
            else:
                player = RoomPlayer(id=self._unique_player_id(room), name=name, device_id=device_id)
                room.players.append(player)
                if room.game_master_id is None:
                    room.game_master_id = player.id
                if room.round_words:
                    room.scores.setdefault(player.id, 0)
                logger.info("player added", room_id=room_id, player_id=player.id)

            return await self._commit(room)

    async def remove_player(self, room_id: str, device_id: str) -> RoomState | None:
        """Remove the device's player. The game master role passes to the first remaining player."""
        async with self._lock_for(room_id):
            room = self._store.get(room_id)
            if room is None:
                return None
            player = room.player_by_device(device_id)
            if player is None:
                return None

            room.players.remove(player)
            if room.game_master_id == player.id:
                room.game_master_id = room.players[0].id if room.players else None
                logger.info("game master reassigned", room_id=room_id, game_master_id=room.game_master_id)
            logger.info("player removed", room_id=room_id, player_id=player.id)

            return await self._commit(room)

    async def apply_game_master_update(self, room_id: str, device_id: str, update: RoomUpdate) -> RoomState | None:
        """Apply a partial room patch on behalf of the game master.

        Callers that are not the game master are ignored. Raises
        RoomUpdateError when the patch is not valid for the current phase.
        """
        async with self._lock_for(room_id):
            room = self._store.get(room_id)
            if room is None or not room.is_game_master(device_id):
                logger.debug("update rejected, not game master", room_id=room_id)
                return None

            previous_phase = room.phase
            if not rounds.apply_update(room, update, pool=self._word_pool, rng=self._rng):
                return room.snapshot()
            if room.phase != previous_phase:
                logger.info("phase changed", room_id=room_id, from_phase=previous_phase, to_phase=room.phase)

            return await self._commit(room)

    async def record_submission_success(
        self,
        room_id: str,
        device_id: str,
        player_id: str,
        word: str,
        song: str,
        artist: str,
        *,
        expected_round: int | None = None,
    ) -> RoomState | None:
        """Credit a verified submission. Players may only score for themselves."""
        async with self._lock_for(room_id):
            room = self._store.get(room_id)
            if room is None:
                return None
            player = room.player_by_device(device_id)
            if player is None or player.id != player_id:
                logger.debug("submission rejected, device does not own player", room_id=room_id)
                return None

            outcome = RoundOutcome.success(word, winner_id=player_id, song=song.strip(), artist=artist.strip())
            return await self._record_outcome(room, outcome, expected_round)

    async def record_timeout(
        self,
        room_id: str,
        device_id: str,
        word: str,
        *,
        expected_round: int | None = None,
    ) -> RoomState | None:
        async with self._lock_for(room_id):
            room = self._store.get(room_id)
            if room is None or not room.is_game_master(device_id):
                return None
            return await self._record_outcome(room, RoundOutcome.timeout(word), expected_round)

    async def record_skip(
        self,
        room_id: str,
        device_id: str,
        word: str,
        *,
        expected_round: int | None = None,
    ) -> RoomState | None:
        async with self._lock_for(room_id):
            room = self._store.get(room_id)
            if room is None or not room.is_game_master(device_id):
                return None
            return await self._record_outcome(room, RoundOutcome.skipped(word), expected_round)

    async def handle_disconnect(self, connection: ConnectionProtocol) -> None:
        """Unsubscribe a connection and drop its player unless the device is still connected elsewhere."""
        entry = self._connections.remove(connection.connection_id)
        if entry is None:
            return
        room_id, device_id = entry
        if self._connections.has_device(room_id, device_id):
            return
        await self.remove_player(room_id, device_id)

    # --- Eviction ---

    def start_reaper(self) -> None:
        """Start the periodic idle-room reaper task."""
        if self._reaper_task is not None:
            return
        self._reaper_task = asyncio.create_task(self._reaper_loop())

    async def stop_reaper(self) -> None:
        """Cancel the reaper task."""
        if self._reaper_task is not None:
            self._reaper_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._reaper_task
            self._reaper_task = None

    async def _reaper_loop(self) -> None:  # pragma: no cover
        """Periodically remove idle rooms."""
        while True:
            await asyncio.sleep(self._reaper_interval_seconds)
            self._reap_expired_rooms()

    def _reap_expired_rooms(self) -> None:
        """Silently drop rooms idle past the TTL and unsubscribe their connections."""
        for room in self._store.list_expired(self._room_ttl_seconds):
            try:
                self._store.delete(room.code)
                self._room_locks.pop(room.code, None)
                dropped = self._connections.drop_room(room.code)
            except Exception:
                logger.exception("failed to evict room", room_id=room.code)
                continue
            logger.info("room expired", room_id=room.code, connections=len(dropped))

    # --- Internals ---

    def _lock_for(self, room_id: str) -> asyncio.Lock:
        lock = self._room_locks.get(room_id)
        if lock is None:
            lock = asyncio.Lock()
            self._room_locks[room_id] = lock
        return lock

    def _unique_player_id(self, room: Room) -> str:
        player_id = new_player_id()
        while room.player_by_id(player_id) is not None:  # pragma: no cover
            player_id = new_player_id()
        return player_id

    async def _record_outcome(self, room: Room, outcome: RoundOutcome, expected_round: int | None) -> RoomState | None:
        round_index = room.current_round
        if not rounds.record_outcome(room, outcome, expected_round):
            logger.debug(
                "stale round outcome ignored",
                room_id=room.code,
                outcome=outcome.outcome,
                expected_round=expected_round,
                current_round=room.current_round,
            )
            return None
        logger.info("round completed", room_id=room.code, round=round_index, outcome=outcome.outcome)
        return await self._commit(room)

    async def _commit(self, room: Room) -> RoomState:
        self._store.save(room)
        state = room.snapshot()
        await self._connections.broadcast(room.code, RoomStateMessage(state=state).to_wire())
        return state
