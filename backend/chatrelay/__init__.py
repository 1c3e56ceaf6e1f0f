"""Real-time WebSocket chat relay with bounded history replay."""

__version__ = "0.1.0"
