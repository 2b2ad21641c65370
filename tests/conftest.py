"""Shared fixtures."""

from datetime import date, datetime, time, timedelta

import pytest

from rendezvous.core.appointments import Appointment, AppointmentStatus
from rendezvous.core.profile import AvailabilityProfile


class FakeTransport:
    """In-memory PushTransport; fire() plays the server's part."""

    def __init__(self, connection_id: str | None = "conn-1"):
        self._connection_id = connection_id
        self.handlers: dict[str, list] = {}
        self.emitted: list[tuple[str, object]] = []

    @property
    def connection_id(self) -> str | None:
        return self._connection_id

    def on(self, event, handler):
        self.handlers.setdefault(event, []).append(handler)

    def off(self, event, handler):
        if handler in self.handlers.get(event, []):
            self.handlers[event].remove(handler)

    def emit(self, event, data=None):
        self.emitted.append((event, data))

    def fire(self, event, *args):
        for handler in list(self.handlers.get(event, [])):
            handler(*args)

    def handler_count(self, event) -> int:
        return len(self.handlers.get(event, []))


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def today():
    # A Wednesday
    return date(2025, 1, 15)


@pytest.fixture
def now(today):
    return datetime.combine(today, time(8, 0))


@pytest.fixture
def profile():
    return AvailabilityProfile.default()


@pytest.fixture
def make_appointment(today):
    """Factory for appointments between `creator` and `participant`."""
    counter = iter(range(1, 1000))

    def _make(
        hour: int,
        minute: int = 0,
        creator: str = "alice",
        participant: str = "bob",
        status: AppointmentStatus = AppointmentStatus.CONFIRMED,
        duration: int = 30,
        on: date | None = None,
        id: str | None = None,
    ) -> Appointment:
        start = datetime.combine(on or today, time(hour, minute))
        return Appointment(
            id=id or f"appt-{next(counter)}",
            creator_id=creator,
            participant_id=participant,
            start_time=start,
            end_time=start + timedelta(minutes=duration),
            title="Catch up",
            status=status,
        )

    return _make


@pytest.fixture
def make_transport():
    return FakeTransport
