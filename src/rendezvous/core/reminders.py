"""Reminder and completion selection - pure, no I/O."""

from datetime import datetime, timedelta
from typing import Iterable

from .appointments import Appointment, AppointmentStatus

REMINDER_MINUTES = 5
START_WINDOW_MINUTES = 1
LEDGER_RETENTION = timedelta(hours=1)


def due_for_reminder(
    appointments: Iterable[Appointment],
    now: datetime,
    minutes: int = REMINDER_MINUTES,
) -> list[Appointment]:
    """Active appointments starting within the next `minutes`."""
    horizon = now + timedelta(minutes=minutes)
    return [a for a in appointments if a.is_active and now <= a.start_time <= horizon]


def due_for_start(appointments: Iterable[Appointment], now: datetime) -> list[Appointment]:
    """Active appointments starting right about now."""
    return due_for_reminder(appointments, now, START_WINDOW_MINUTES)


def due_for_completion(appointments: Iterable[Appointment], now: datetime) -> list[Appointment]:
    """Confirmed appointments whose end time has passed."""
    confirmed = (AppointmentStatus.CONFIRMED, AppointmentStatus.RESCHEDULED)
    return [a for a in appointments if a.status in confirmed and a.end_time <= now]


class ReminderLedger:
    """Remembers which notices were sent so each goes out once."""

    def __init__(self):
        self._sent: dict[str, datetime] = {}

    def _key(self, appointment: Appointment, kind: str) -> str:
        return f"{appointment.id}-{kind}"

    def mark(self, appointment: Appointment, kind: str) -> bool:
        """Record a notice; False if it was already sent."""
        key = self._key(appointment, kind)
        if key in self._sent:
            return False
        self._sent[key] = appointment.start_time
        return True

    def was_sent(self, appointment: Appointment, kind: str) -> bool:
        return self._key(appointment, kind) in self._sent

    def prune(self, now: datetime) -> None:
        """Forget entries for appointments that started over an hour ago."""
        cutoff = now - LEDGER_RETENTION
        self._sent = {k: start for k, start in self._sent.items() if start >= cutoff}

    def __len__(self) -> int:
        return len(self._sent)
