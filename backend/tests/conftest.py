"""Shared test fixtures and configuration for backend tests."""
import json
from typing import List

import pytest
from fastapi.testclient import TestClient

from chatrelay.chat.engine import engine
from chatrelay.main import app


class FakeConnection:
    """In-memory connection that records every payload it is sent.

    Set ``writable = False`` to simulate a broken channel and
    ``is_open = False`` for a connection that has already closed.
    """

    def __init__(self, name: str = "conn") -> None:
        self.name = name
        self.writable = True
        self.is_open = True
        self.sent: List[str] = []

    def send(self, payload: str) -> bool:
        if not self.writable:
            return False
        self.sent.append(payload)
        return True

    @property
    def records(self) -> List[dict]:
        return [json.loads(payload) for payload in self.sent]

    def __repr__(self) -> str:
        return f"FakeConnection({self.name!r})"


@pytest.fixture
def make_connection():
    """Factory for FakeConnection instances."""
    return FakeConnection


@pytest.fixture
def api_client():
    """Provide a TestClient for the main FastAPI app.

    Used as a context manager so every WebSocket opened in a test shares
    one event loop, as they would under uvicorn.
    """
    with TestClient(app) as client:
        yield client


@pytest.fixture(autouse=True)
def reset_engine():
    """Start and end every test with an empty shared engine."""
    engine.reset()
    yield
    engine.reset()
