"""Event records exchanged over the chat WebSocket.

Every frame on the wire is a JSON object with a ``type`` field:

    - join: client asks for a join announcement ({type, name})
    - message: chat message ({type, name, text, time})
    - system: server notice ({type, text, time})
    - history: replay sent once per connection ({type, data: [...]})

Only ``join`` and ``message`` are accepted from clients. ``time`` is always
assigned by the server in epoch milliseconds.
"""
import json
import logging
import time
from enum import Enum
from typing import Any, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    """Record types understood by the relay."""
    JOIN = "join"
    MESSAGE = "message"
    SYSTEM = "system"
    HISTORY = "history"


def now_millis() -> int:
    """Current server time in milliseconds since the epoch."""
    return int(time.time() * 1000)


# =============================================================================
# Inbound
# =============================================================================


class ClientEvent(BaseModel):
    """A record received from a client, before normalisation.

    Unknown fields are ignored. Non-string ``name``/``text`` values are
    treated as absent so that the defaults apply downstream.
    """
    model_config = ConfigDict(extra="ignore")

    type: str = Field(..., description="Declared record type")
    name: Optional[str] = Field(default=None, description="Client-asserted display name")
    text: Optional[str] = Field(default=None, description="Message body")

    @field_validator("name", "text", mode="before")
    @classmethod
    def _strings_only(cls, value: Any) -> Optional[str]:
        return value if isinstance(value, str) else None


def parse_event(raw: Union[str, bytes, bytearray]) -> Optional[ClientEvent]:
    """Parse one inbound frame.

    Returns None when the frame is not a JSON object with a string ``type``.
    """
    try:
        data = json.loads(raw)
    except (ValueError, TypeError, RecursionError) as e:
        logger.warning(f"[Events] Invalid JSON: {e}")
        return None

    if not isinstance(data, dict) or not isinstance(data.get("type"), str):
        logger.debug("[Events] Discarding record without a type")
        return None

    return ClientEvent.model_validate(data)


# =============================================================================
# Outbound
# =============================================================================


class MessageRecord(BaseModel):
    """Chat message as stored in history and broadcast to every client."""
    type: Literal["message"] = "message"
    name: str = Field(default="Anonymous", description="Display name of the sender")
    text: str = Field(default="", description="Message body")
    time: int = Field(default_factory=now_millis, description="Server receipt time (ms)")


class SystemRecord(BaseModel):
    """Informational notice, e.g. a join announcement."""
    type: Literal["system"] = "system"
    text: str
    time: int = Field(default_factory=now_millis, description="Server receipt time (ms)")


ChatRecord = Union[MessageRecord, SystemRecord]


class HistoryRecord(BaseModel):
    """Replay of the history buffer, oldest first."""
    type: Literal["history"] = "history"
    data: List[ChatRecord] = Field(default_factory=list)
