"""Chat relay core: connection registry, broadcast & history engine."""
from .engine import HISTORY_LIMIT, BroadcastEngine, engine
from .registry import ConnectionRegistry

__all__ = ["HISTORY_LIMIT", "BroadcastEngine", "ConnectionRegistry", "engine"]
