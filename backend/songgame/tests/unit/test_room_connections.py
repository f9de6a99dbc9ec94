from songgame.session.connections import RoomConnectionManager
from songgame.tests.mocks import MockConnection


class TestRoomConnectionManager:
    def test_add_and_lookup(self):
        manager = RoomConnectionManager()
        conn = MockConnection()

        manager.add("ABC123", conn, "dev-a")

        assert manager.room_of(conn.connection_id) == "ABC123"
        assert manager.device_of(conn.connection_id) == "dev-a"
        assert manager.has_device("ABC123", "dev-a")
        assert manager.connection_count("ABC123") == 1

    def test_remove_returns_registration(self):
        manager = RoomConnectionManager()
        conn = MockConnection()
        manager.add("ABC123", conn, "dev-a")

        assert manager.remove(conn.connection_id) == ("ABC123", "dev-a")
        assert manager.remove(conn.connection_id) is None
        assert manager.connection_count("ABC123") == 0
        assert not manager.has_device("ABC123", "dev-a")

    def test_device_with_two_connections(self):
        """A device stays present while any of its connections remains."""
        manager = RoomConnectionManager()
        tab1, tab2 = MockConnection(), MockConnection()
        manager.add("ABC123", tab1, "dev-a")
        manager.add("ABC123", tab2, "dev-a")

        manager.remove(tab1.connection_id)

        assert manager.has_device("ABC123", "dev-a")

    async def test_broadcast_reaches_every_room_connection(self):
        manager = RoomConnectionManager()
        a, b, other = MockConnection(), MockConnection(), MockConnection()
        manager.add("ABC123", a, "dev-a")
        manager.add("ABC123", b, "dev-b")
        manager.add("XYZ789", other, "dev-c")

        await manager.broadcast("ABC123", {"type": "ping"})

        assert a.sent_messages == [{"type": "ping"}]
        assert b.sent_messages == [{"type": "ping"}]
        assert other.sent_messages == []

    async def test_broadcast_skips_closed_connections(self):
        manager = RoomConnectionManager()
        closed, open_ = MockConnection(), MockConnection()
        await closed.close()
        manager.add("ABC123", closed, "dev-a")
        manager.add("ABC123", open_, "dev-b")

        await manager.broadcast("ABC123", {"type": "ping"})

        assert open_.sent_messages == [{"type": "ping"}]

    async def test_send_to_closed_connection(self):
        manager = RoomConnectionManager()
        conn = MockConnection()
        await conn.close()

        assert await manager.send_to(conn, {"type": "ping"}) is False

    def test_drop_room_unsubscribes_without_closing(self):
        manager = RoomConnectionManager()
        conn = MockConnection()
        manager.add("ABC123", conn, "dev-a")

        dropped = manager.drop_room("ABC123")

        assert dropped == [conn.connection_id]
        assert manager.room_of(conn.connection_id) is None
        assert not conn.is_closed
