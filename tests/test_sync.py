"""Tests for the presence sync protocol."""

import pytest

from rendezvous.core.presence import PresenceEventKind, PresenceRegistry
from rendezvous.core.profile import AvailabilityStatus
from rendezvous.sync import PresenceSync


@pytest.fixture
def registry():
    return PresenceRegistry()


@pytest.fixture
def sync(registry, transport):
    s = PresenceSync(registry)
    s.attach(transport)
    return s


@pytest.fixture
def events(registry):
    received = []
    registry.subscribe(received.append)
    return received


class TestInit:
    def test_builds_registry(self, sync, transport, registry, events):
        transport.fire(
            "presence:init",
            {
                "onlineUsers": [
                    {"userId": "alice", "online": True},
                    {"userId": "bob", "online": True, "availabilityStatus": "limited"},
                    {"userId": "carol", "online": False, "availabilityStatus": "away"},
                    {"online": True},
                ]
            },
        )
        assert registry.online_users() == frozenset({"alice", "bob"})
        assert registry.get_status("bob") == AvailabilityStatus.LIMITED
        assert registry.get_status("carol") == AvailabilityStatus.AWAY
        assert [e.kind for e in events] == [PresenceEventKind.SYNC]

    def test_online_defaults_true(self, sync, transport, registry):
        transport.fire("presence:init", {"onlineUsers": [{"userId": 42}]})
        assert registry.is_online("42")

    def test_malformed_init_ignored(self, sync, transport, registry):
        transport.fire("presence:init", {"onlineUsers": "nope"})
        assert registry.awaiting_init


class TestUpdates:
    def test_presence_update(self, sync, transport, registry, events):
        transport.fire("presence:update", {"userId": "alice", "online": True})
        transport.fire("presence:update", {"userId": "alice", "online": True})
        assert registry.is_online("alice")
        assert len(events) == 1

    def test_update_without_user_ignored(self, sync, transport, registry, events):
        transport.fire("presence:update", {"online": True})
        transport.fire("presence:update", None)
        assert events == []

    def test_availability_changed(self, sync, transport, registry):
        transport.fire(
            "availability:changed",
            {
                "userId": "bob",
                "availabilityStatus": "away",
                "availability": {"days": [1, 2], "start": "10:00", "end": "12:00"},
            },
        )
        assert registry.get_status("bob") == AvailabilityStatus.AWAY
        cached = sync.latest_profile("bob")
        assert cached.days == frozenset({1, 2})
        assert cached.is_away

    def test_unknown_status_ignored(self, sync, transport, registry, events):
        transport.fire("availability:changed", {"userId": "bob", "availabilityStatus": "on vacation"})
        assert registry.get_status("bob") is None
        assert events == []


class TestLifecycle:
    def test_disconnect_resets(self, sync, transport, registry, events):
        transport.fire("presence:init", {"onlineUsers": [{"userId": "alice", "online": True}]})
        transport.fire("disconnect")
        assert registry.awaiting_init
        assert not registry.is_online("alice")
        assert [e.kind for e in events] == [PresenceEventKind.SYNC, PresenceEventKind.SYNC]

    def test_reinit_after_reconnect(self, sync, transport, registry):
        transport.fire("presence:init", {"onlineUsers": [{"userId": "alice"}]})
        transport.fire("disconnect")
        transport.fire("presence:init", {"onlineUsers": [{"userId": "bob"}]})
        assert registry.online_users() == frozenset({"bob"})

    def test_attach_is_idempotent(self, sync, transport, registry, events):
        assert not sync.attach(transport)
        assert transport.handler_count("presence:update") == 1
        transport.fire("presence:update", {"userId": "alice", "online": True})
        assert len(events) == 1

    def test_attach_to_new_transport_detaches_old(self, sync, transport, registry, make_transport):
        other = make_transport("conn-2")
        assert sync.attach(other)
        assert transport.handler_count("presence:update") == 0
        other.fire("presence:update", {"userId": "alice", "online": True})
        assert registry.is_online("alice")

    def test_detach(self, sync, transport, registry):
        transport.fire("presence:init", {"onlineUsers": [{"userId": "alice"}]})
        sync.detach()
        assert not sync.attached
        assert registry.awaiting_init
        transport.fire("presence:update", {"userId": "bob", "online": True})
        assert not registry.is_online("bob")
