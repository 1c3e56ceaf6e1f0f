"""Broadcast and history engine for the chat relay.

This module turns inbound event records into history mutations and
outbound deliveries. A single engine instance is shared by every WebSocket
handler in the process.

Key features:
    - Bounded history (last 50 records, oldest evicted first)
    - History replay to each new connection, exactly once
    - Fan-out of every chat record to all registered connections
    - Server-assigned timestamps and name/text defaults
    - Dead and slow connections unregistered during broadcast

Concurrency:
    One asyncio.Lock serialises history mutation, registry membership
    changes and the broadcast enumeration. Nothing awaits the network while
    holding it: connections only enqueue (see connection.py).
"""
import asyncio
import logging
from collections import deque
from typing import Callable, Deque, List, Optional, Union

from .events import (
    ChatRecord,
    EventType,
    HistoryRecord,
    MessageRecord,
    SystemRecord,
    now_millis,
    parse_event,
)
from .registry import Connection, ConnectionRegistry

logger = logging.getLogger(__name__)

# Number of records replayed to a new connection
HISTORY_LIMIT = 50

DEFAULT_JOIN_NAME = "Someone"
DEFAULT_MESSAGE_NAME = "Anonymous"


class BroadcastEngine:
    """Owns the history buffer and fans records out to the registry.

    Attributes:
        registry: Connections that receive broadcasts.
        history: Recent message/system records, oldest first.
    """

    def __init__(
        self,
        registry: Optional[ConnectionRegistry] = None,
        history_limit: int = HISTORY_LIMIT,
        clock: Optional[Callable[[], int]] = None,
    ) -> None:
        self.registry = registry if registry is not None else ConnectionRegistry()
        self.history: Deque[ChatRecord] = deque(maxlen=history_limit)
        self._clock = clock or now_millis
        self._lock = asyncio.Lock()

    async def connect(self, connection: Connection) -> None:
        """Register a connection and replay the history to it.

        The replay is queued inside the same critical section as the
        registration, so it precedes any broadcast the connection receives.
        """
        async with self._lock:
            self.registry.register(connection)
            replay = HistoryRecord(data=list(self.history))
            if not connection.send(replay.model_dump_json()):
                self.registry.unregister(connection)
                logger.info("[Engine] Connection closed before history replay")
                return
        logger.info(f"[Engine] New connection. Total clients: {len(self.registry)}")

    async def disconnect(self, connection: Connection) -> None:
        """Unregister a connection. Safe to call more than once."""
        async with self._lock:
            removed = self.registry.unregister(connection)
        if removed:
            logger.info(f"[Engine] Connection closed. Total clients: {len(self.registry)}")

    async def handle(
        self, connection: Connection, raw: Union[str, bytes]
    ) -> Optional[ChatRecord]:
        """Process one inbound frame from ``connection``.

        Args:
            connection: The sender.
            raw: The frame as received.

        Returns:
            The record stored and broadcast, or None if the frame was
            discarded or the sender is no longer open.
        """
        if not connection.is_open:
            logger.debug(f"[Engine] Ignoring frame from closed connection {connection!r}")
            return None

        event = parse_event(raw)
        if event is None:
            return None

        if event.type not in (EventType.JOIN.value, EventType.MESSAGE.value):
            logger.debug(f"[Engine] Ignoring record of type {event.type!r}")
            return None

        # Timestamp and history position are both taken under the lock,
        # so history order always matches receipt time.
        async with self._lock:
            now = self._clock()
            if event.type == EventType.JOIN.value:
                record: ChatRecord = SystemRecord(
                    text=f"{event.name or DEFAULT_JOIN_NAME} joined the chat",
                    time=now,
                )
            else:
                record = MessageRecord(
                    name=event.name or DEFAULT_MESSAGE_NAME,
                    text=event.text or "",
                    time=now,
                )
            self.history.append(record)
            self._fan_out(record, None)
        return record

    async def publish(
        self, record: ChatRecord, exclude: Optional[Connection] = None
    ) -> int:
        """Append a record to history and broadcast it.

        Returns:
            Number of connections the record was queued for.
        """
        async with self._lock:
            self.history.append(record)
            return self._fan_out(record, exclude)

    async def broadcast(
        self, record: ChatRecord, exclude: Optional[Connection] = None
    ) -> int:
        """Broadcast a record without storing it.

        Args:
            record: Record to deliver.
            exclude: Optional connection to skip (usually the sender).

        Returns:
            Number of connections the record was queued for.
        """
        async with self._lock:
            return self._fan_out(record, exclude)

    def _fan_out(self, record: ChatRecord, exclude: Optional[Connection]) -> int:
        payload = record.model_dump_json()
        delivered = 0
        failed: List[Connection] = []

        for connection in self.registry.snapshot():
            if connection is exclude:
                continue
            if connection.send(payload):
                delivered += 1
            else:
                failed.append(connection)

        for connection in failed:
            self.registry.unregister(connection)
        if failed:
            logger.info(
                f"[Engine] Removed {len(failed)} unwritable connection(s). "
                f"Total clients: {len(self.registry)}"
            )
        return delivered

    def get_history(self) -> List[ChatRecord]:
        """Current history, oldest first."""
        return list(self.history)

    def get_connection_count(self) -> int:
        return len(self.registry)

    def reset(self) -> None:
        """Drop all history and registered connections."""
        self.history.clear()
        self.registry.clear()


# Global instance shared by all WebSocket handlers
engine = BroadcastEngine()
