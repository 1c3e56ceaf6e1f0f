"""Tests for the connection registry."""
from chatrelay.chat.registry import ConnectionRegistry


class TestConnectionRegistry:
    """Tests for register / unregister / snapshot."""

    def test_register_adds_connection(self, make_connection):
        registry = ConnectionRegistry()
        conn = make_connection("a")
        registry.register(conn)
        assert conn in registry
        assert len(registry) == 1

    def test_register_twice_keeps_single_entry(self, make_connection):
        registry = ConnectionRegistry()
        conn = make_connection("a")
        registry.register(conn)
        registry.register(conn)
        assert len(registry) == 1

    def test_unregister_removes_connection(self, make_connection):
        registry = ConnectionRegistry()
        conn = make_connection("a")
        registry.register(conn)
        assert registry.unregister(conn) is True
        assert conn not in registry
        assert len(registry) == 0

    def test_unregister_twice_is_noop(self, make_connection):
        registry = ConnectionRegistry()
        a, b = make_connection("a"), make_connection("b")
        registry.register(a)
        registry.register(b)

        assert registry.unregister(a) is True
        assert registry.unregister(a) is False
        assert registry.snapshot() == (b,)

    def test_unregister_never_registered(self, make_connection):
        registry = ConnectionRegistry()
        registry.register(make_connection("a"))
        assert registry.unregister(make_connection("stranger")) is False
        assert len(registry) == 1

    def test_snapshot_is_point_in_time(self, make_connection):
        """Mutating the registry while iterating a snapshot is safe."""
        registry = ConnectionRegistry()
        conns = [make_connection(str(i)) for i in range(5)]
        for conn in conns:
            registry.register(conn)

        seen = []
        for conn in registry.snapshot():
            seen.append(conn)
            registry.unregister(conn)
            registry.register(make_connection("late"))

        assert set(seen) == set(conns)
        assert all(conn not in registry for conn in conns)
        assert len(registry) == 5

    def test_clear(self, make_connection):
        registry = ConnectionRegistry()
        registry.register(make_connection("a"))
        registry.clear()
        assert registry.snapshot() == ()
