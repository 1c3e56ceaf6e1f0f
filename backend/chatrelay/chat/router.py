"""Chat router providing the WebSocket endpoint and a history view.

This module provides:
    - WebSocket /: real-time chat relay
    - GET /history: current history buffer

Protocol Flow:
    1. Client connects → Server sends: {type: "history", data: [...]}
    2. Client sends: {type: "join", name}
       → Server broadcasts: {type: "system", text: "<name> joined the chat", time}
    3. Client sends: {type: "message", name, text}
       → Server broadcasts: {type: "message", name, text, time}
    4. On disconnect the connection is unregistered. No notice is sent.

Malformed frames and unknown types are dropped without a reply.
"""
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from .connection import WebSocketConnection
from .engine import engine

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/history")
async def get_history() -> JSONResponse:
    """Get the records a newly connected client would be replayed.

    Returns:
        JSON list of message/system records, oldest first.
    """
    return JSONResponse([record.model_dump() for record in engine.get_history()])


@router.websocket("/")
async def websocket_chat_endpoint(websocket: WebSocket) -> None:
    """WebSocket endpoint for the chat relay.

    Handles the complete lifecycle for a single client: handshake, history
    replay, the receive loop, and unregistration on disconnect.

    Args:
        websocket: The WebSocket connection.
    """
    connection = WebSocketConnection(websocket, on_close=engine.disconnect)
    await connection.open()
    await engine.connect(connection)
    logger.info(f"[WS] Connection {connection.id} accepted")

    try:
        while connection.is_open:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break

            raw = message.get("text")
            if raw is None:
                raw = message.get("bytes")
            if raw is None:
                continue

            await engine.handle(connection, raw)
    except WebSocketDisconnect:
        pass
    finally:
        await engine.disconnect(connection)
        await connection.close()
        logger.info(f"[WS] Connection {connection.id} closed")
