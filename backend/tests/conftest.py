"""Shared test fixtures and configuration for backend tests."""
from typing import Any, List, Tuple

import pytest
from fastapi.testclient import TestClient

from relay.main import app


class FakeClock:
    """Manually advanced clock returning epoch milliseconds."""

    def __init__(self, start: int = 0) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class RecordingTransport:
    """Transport double that records every outbound call.

    Connection ids listed in ``failing`` raise on ``send_to_one``.
    """

    def __init__(self) -> None:
        self.sent: List[Tuple[str, str, Any]] = []
        self.broadcasts: List[Tuple[str, Any]] = []
        self.groups: List[Tuple[str, str]] = []
        self.failing: set = set()

    async def send_to_one(self, connection_id: str, event: str, payload: Any) -> None:
        if connection_id in self.failing:
            raise ConnectionError(f"connection {connection_id} is gone")
        self.sent.append((connection_id, event, payload))

    async def send_to_all(self, event: str, payload: Any) -> None:
        self.broadcasts.append((event, payload))

    async def add_to_group(self, connection_id: str, group: str) -> None:
        self.groups.append((connection_id, group))

    def sent_to(self, connection_id: str, event: str) -> List[Any]:
        return [p for conn, ev, p in self.sent if conn == connection_id and ev == event]

    def user_counts(self) -> List[int]:
        return [p for ev, p in self.broadcasts if ev == "user_count"]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def api_client():
    """Provide a TestClient for the main FastAPI app."""
    return TestClient(app)
