"""Registry of live connections eligible for broadcast."""
import logging
from typing import Protocol, Set, Tuple

logger = logging.getLogger(__name__)


class Connection(Protocol):
    """Anything the engine can deliver serialized records to."""

    @property
    def is_open(self) -> bool:
        """Whether inbound records from this connection are still accepted."""
        ...

    def send(self, payload: str) -> bool:
        """Queue ``payload`` for delivery; False if the channel is not writable."""
        ...


class ConnectionRegistry:
    """Set of currently open connections.

    Broadcasts iterate over ``snapshot()`` so that concurrent register and
    unregister calls never invalidate an iteration in progress.
    """

    def __init__(self) -> None:
        self._connections: Set[Connection] = set()

    def register(self, connection: Connection) -> None:
        self._connections.add(connection)

    def unregister(self, connection: Connection) -> bool:
        """Remove a connection. Returns False if it was not registered."""
        if connection not in self._connections:
            return False
        self._connections.discard(connection)
        return True

    def snapshot(self) -> Tuple[Connection, ...]:
        return tuple(self._connections)

    def clear(self) -> None:
        self._connections.clear()

    def __len__(self) -> int:
        return len(self._connections)

    def __contains__(self, connection: object) -> bool:
        return connection in self._connections
