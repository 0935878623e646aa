"""Tests for the HTTP endpoints."""
import pytest

from relay.chat import sockets
from relay.chat.manager import RelayManager


@pytest.fixture
def relay(monkeypatch, transport, clock):
    fresh = RelayManager(transport, clock=clock)
    monkeypatch.setattr(sockets, "manager", fresh)
    return fresh


def test_health(api_client, relay):
    response = api_client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "connections": 0, "bufferedMessages": 0}


def test_health_reports_state(api_client, relay):
    relay.registry.register("sid-1")
    relay.buffer.insert({"id": "m1"})
    body = api_client.get("/health").json()
    assert body["connections"] == 1
    assert body["bufferedMessages"] == 1


def test_recent_messages_default_window(api_client, relay, clock):
    relay.buffer.insert({"id": "old"})
    clock.advance(relay.sync_window_ms)
    relay.buffer.insert({"id": "new"})

    body = api_client.get("/messages/recent").json()
    assert body["windowMs"] == relay.sync_window_ms
    assert body["messages"] == [{"id": "new", "timestamp": relay.sync_window_ms}]


def test_recent_messages_custom_window(api_client, relay, clock):
    relay.buffer.insert({"id": "old"})
    clock.advance(5_000)
    relay.buffer.insert({"id": "new"})

    body = api_client.get("/messages/recent", params={"windowMs": 10_000}).json()
    assert [m["id"] for m in body["messages"]] == ["old", "new"]

    body = api_client.get("/messages/recent", params={"windowMs": 0}).json()
    assert body["messages"] == []


def test_recent_messages_rejects_negative_window(api_client, relay):
    response = api_client.get("/messages/recent", params={"windowMs": -1})
    assert response.status_code == 422


def test_rooms_lists_only_occupied(api_client, relay):
    relay.rooms.join("sid-1", "general")
    relay.rooms.join("sid-2", "general")
    relay.rooms.join("sid-2", "random")
    relay.rooms.leave_all("sid-2")

    body = api_client.get("/rooms").json()
    assert body == {"rooms": [{"name": "general", "members": 1}]}
