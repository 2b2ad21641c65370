"""Slot generation - what a calendar could ever offer on a given day.

Pure functions, no I/O. Knows nothing about existing bookings; see
conflicts.py for whether a slot is bookable right now.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta

from .profile import AvailabilityProfile
from .timegrid import at_minutes, weekday_index


@dataclass(frozen=True)
class TimeSlot:
    """A bookable window on the profile's grid."""

    start: datetime
    end: datetime

    def duration_minutes(self) -> int:
        return int((self.end - self.start).total_seconds() / 60)

    def format(self) -> str:
        return f"{self.start.strftime('%H:%M')}-{self.end.strftime('%H:%M')} ({self.duration_minutes()} min)"

    def contains(self, dt: datetime) -> bool:
        """Check if a datetime falls within this slot."""
        return self.start <= dt < self.end

    def overlaps(self, other: "TimeSlot") -> bool:
        """Check if this slot overlaps with another."""
        return self.start < other.end and other.start < self.end


def is_open_day(target_date: date, profile: AvailabilityProfile) -> bool:
    """True if the profile offers any slots on this date at all."""
    return not profile.is_away and weekday_index(target_date) in profile.days


def _grid_minutes(profile: AvailabilityProfile) -> list[int]:
    """Slot starts as minutes since midnight, before calendar gating."""
    step = profile.slot_duration
    day_start = profile.start_minutes
    day_end = profile.end_minutes

    starts = []
    minute = day_start
    while minute < day_end:
        slot_end = minute + step
        if slot_end > day_end:
            break
        if not any(brk.intersects(minute, slot_end) for brk in profile.break_times):
            starts.append(minute)
        minute += step
    return starts


def generate_slots(target_date: date, profile: AvailabilityProfile) -> list[datetime]:
    """
    Candidate slot starts for a day, in increasing order.

    Empty when the weekday is closed or the owner is away. Every start is
    `profile.start + k * slot_duration`, lies before `profile.end`, and its
    `[start, start + slot_duration)` window avoids every break.
    """
    if not is_open_day(target_date, profile):
        return []
    return [at_minutes(target_date, m) for m in _grid_minutes(profile)]


def slot_windows(target_date: date, profile: AvailabilityProfile) -> list[TimeSlot]:
    """Like generate_slots, but with each slot's end attached."""
    step = timedelta(minutes=profile.slot_duration)
    return [TimeSlot(start=s, end=s + step) for s in generate_slots(target_date, profile)]


def generate_range(start_date: date, days: int, profile: AvailabilityProfile) -> dict[date, list[datetime]]:
    """Slot starts for `days` consecutive dates, keyed by date (closed days omitted)."""
    result = {}
    for offset in range(days):
        d = start_date + timedelta(days=offset)
        slots = generate_slots(d, profile)
        if slots:
            result[d] = slots
    return result
