"""WebSocket-backed connection with a bounded outbound queue.

Each connection owns a writer task that drains its queue onto the socket,
so a broadcast only ever enqueues and never waits on a slow client. A client
whose queue fills up is dropped: the connection moves to CLOSED and the
socket is closed with 1013 (try again later). A failed write closes the
connection the same way with 1011. Either way the on_close callback runs
first so the connection leaves the registry straight away.
"""
import asyncio
import logging
import uuid
from contextlib import suppress
from enum import Enum
from typing import Awaitable, Callable, Optional

from fastapi import WebSocket, status
from starlette.websockets import WebSocketState

logger = logging.getLogger(__name__)

# Records a single client may have pending before it is dropped
OUTBOUND_QUEUE_SIZE = 100

# Called once when the connection shuts itself down (failed write or overflow)
CloseCallback = Callable[["WebSocketConnection"], Awaitable[None]]


class ConnectionState(str, Enum):
    """Lifecycle of a connection. CLOSED is terminal."""
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


class WebSocketConnection:
    """One client's persistent channel.

    Attributes:
        websocket: The underlying Starlette WebSocket.
        id: Short identifier used in log lines.
        state: Current lifecycle state.
    """

    def __init__(
        self,
        websocket: WebSocket,
        max_pending: int = OUTBOUND_QUEUE_SIZE,
        on_close: Optional[CloseCallback] = None,
    ) -> None:
        self.websocket = websocket
        self.id = uuid.uuid4().hex[:8]
        self.state = ConnectionState.CONNECTING
        self._outbox: "asyncio.Queue[str]" = asyncio.Queue(maxsize=max_pending)
        self._on_close = on_close
        self._writer: Optional[asyncio.Task] = None
        self._closer: Optional[asyncio.Task] = None
        self._transport_closed = False
        self._closed = asyncio.Event()

    @property
    def is_open(self) -> bool:
        return self.state is ConnectionState.OPEN

    async def open(self) -> None:
        """Complete the handshake and start delivering queued records."""
        await self.websocket.accept()
        self.state = ConnectionState.OPEN
        self._writer = asyncio.create_task(self._drain())

    def send(self, payload: str) -> bool:
        """Queue a serialized record without blocking.

        Returns:
            True if queued. False if the connection is not open or its
            queue overflowed, in which case the connection is dropped.
        """
        if not self.is_open:
            return False
        try:
            self._outbox.put_nowait(payload)
        except asyncio.QueueFull:
            logger.warning(
                f"[WS] Connection {self.id} has {self._outbox.qsize()} pending records, dropping it"
            )
            self._drop()
            return False
        return True

    async def flush(self) -> None:
        """Wait until every queued record has been handed to the socket."""
        await self._outbox.join()

    async def wait_closed(self) -> None:
        """Wait until the connection has been shut down."""
        await self._closed.wait()

    async def close(self, code: int = status.WS_1000_NORMAL_CLOSURE) -> None:
        """Stop the writer and close the socket if it is still connected."""
        self.state = ConnectionState.CLOSED
        await self._stop_writer()
        if self._closer is not None:
            await self._closer
        else:
            await self._close_transport(code)
        self._closed.set()

    async def _drain(self) -> None:
        while True:
            payload = await self._outbox.get()
            try:
                await self.websocket.send_text(payload)
            except Exception as e:
                logger.debug(f"[WS] Write to connection {self.id} failed: {e}")
                break
            finally:
                self._outbox.task_done()

        self.state = ConnectionState.CLOSED
        self._discard_pending()
        await self._shutdown(status.WS_1011_INTERNAL_ERROR)

    async def _shutdown(self, code: int) -> None:
        # Unregister before touching the socket, which may be slow to close.
        if self._on_close is not None:
            await self._on_close(self)
        await self._close_transport(code)
        self._closed.set()

    def _discard_pending(self) -> None:
        # Anything still queued will never be written.
        while not self._outbox.empty():
            self._outbox.get_nowait()
            self._outbox.task_done()

    def _drop(self) -> None:
        self.state = ConnectionState.CLOSED
        if self._writer is not None:
            self._writer.cancel()
        self._discard_pending()
        self._closer = asyncio.create_task(
            self._shutdown(status.WS_1013_TRY_AGAIN_LATER)
        )

    async def _stop_writer(self) -> None:
        if self._writer is None or self._writer.done():
            return
        self._writer.cancel()
        with suppress(asyncio.CancelledError):
            await self._writer

    async def _close_transport(self, code: int) -> None:
        if self._transport_closed:
            return
        self._transport_closed = True
        if (
            self.websocket.application_state != WebSocketState.CONNECTED
            or self.websocket.client_state != WebSocketState.CONNECTED
        ):
            return
        try:
            await self.websocket.close(code=code)
        except Exception as e:
            logger.debug(f"[WS] Close of connection {self.id} failed: {e}")

    def __repr__(self) -> str:
        return f"WebSocketConnection(id={self.id!r}, state={self.state.value!r})"
