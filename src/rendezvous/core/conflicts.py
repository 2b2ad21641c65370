"""Admission rules for a candidate slot.

Pure functions - no I/O. Rules run in a fixed order and the first failure
wins, so the user always gets one specific reason:

    0. owner away
    1. past / lead time
    2. day capacity (owner, then requester)
    3. buffer between bookings on either calendar
    4. exact duplicate for the same pair

Booking and rescheduling also require the start to be a generated slot
(check_on_grid), after these rules.

Admission is advisory: the server re-checks at commit time.
"""

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Iterable

from .appointments import Appointment
from .errors import AdmissionError
from .profile import AvailabilityProfile
from .slots import generate_slots
from .timegrid import hours_between, minutes_between


class RejectReason(Enum):
    """Why a candidate slot was rejected."""

    AWAY = "away"
    PAST = "past"
    LEAD_TIME = "lead_time"
    CAPACITY = "capacity"
    BUFFER = "buffer"
    TIME_CONFLICT = "time_conflict"
    DUPLICATE = "duplicate"
    OUTSIDE_HOURS = "outside_hours"


@dataclass(frozen=True)
class Admission:
    """Outcome of admit(): admitted, or rejected with a reason."""

    admitted: bool
    reason: RejectReason | None = None
    message: str = ""

    def __bool__(self) -> bool:
        return self.admitted


ADMIT = Admission(admitted=True)


def _reject(reason: RejectReason, message: str) -> Admission:
    return Admission(admitted=False, reason=reason, message=message)


def _relevant(
    existing: Iterable[Appointment],
    owner_id: str | None,
    requester_id: str | None,
    exclude_id: str | None,
) -> list[Appointment]:
    """Active bookings on either party's calendar."""
    parties = {p for p in (owner_id, requester_id) if p}
    result = []
    for appt in existing:
        if not appt.is_active:
            continue
        if exclude_id and appt.id == exclude_id:
            continue
        if parties and not (parties & appt.pair):
            continue
        result.append(appt)
    return result


def count_on_date(bookings: Iterable[Appointment], target_date: date, user_id: str | None = None) -> int:
    """Bookings starting on a date; restricted to one user's calendar if given."""
    return sum(
        1
        for b in bookings
        if b.date == target_date and (user_id is None or b.involves(user_id))
    )


def admit(
    candidate: datetime,
    profile: AvailabilityProfile,
    existing: Iterable[Appointment],
    now: datetime,
    *,
    owner_id: str | None = None,
    requester_id: str | None = None,
    requester_profile: AvailabilityProfile | None = None,
    exclude_id: str | None = None,
) -> Admission:
    """
    Decide whether `candidate` can be booked on the owner's calendar.

    Args:
        candidate: Proposed start instant
        profile: The slot owner's availability profile
        existing: Bookings of both parties (inactive ones are ignored)
        now: Current instant
        owner_id: Slot owner; limits checks to bookings touching the parties
        requester_id: The booking party
        requester_profile: If given, the requester's own daily cap also applies
        exclude_id: Appointment being rescheduled, ignored for conflicts

    Returns:
        Admission (truthy when admitted)
    """
    bookings = _relevant(existing, owner_id, requester_id, exclude_id)

    # 0. Away closes the whole calendar
    if profile.is_away:
        return _reject(RejectReason.AWAY, "This person is currently away and not taking bookings")

    # 1. Past / lead time
    if candidate <= now:
        return _reject(RejectReason.PAST, "This time has already passed")
    if hours_between(now, candidate) < profile.min_lead_time:
        return _reject(RejectReason.LEAD_TIME, profile.lead_time_message())

    # 2. Day capacity, each party against their own profile
    target_date = candidate.date()
    owner_count = count_on_date(bookings, target_date, owner_id)
    owner_cap = profile.effective_max_per_day()
    if owner_count >= owner_cap:
        return _reject(
            RejectReason.CAPACITY,
            f"No more bookings available on {target_date.isoformat()} (limit {owner_cap} per day)",
        )
    if requester_profile is not None and requester_id:
        requester_cap = requester_profile.effective_max_per_day()
        if count_on_date(bookings, target_date, requester_id) >= requester_cap:
            return _reject(
                RejectReason.CAPACITY,
                f"You already have the maximum number of bookings on {target_date.isoformat()}",
            )

    # 3. Buffer, symmetric over both calendars
    pair = frozenset(p for p in (owner_id, requester_id) if p)
    for booking in bookings:
        distance = abs(minutes_between(booking.start_time, candidate))
        if distance < profile.buffer:
            return _reject(
                RejectReason.BUFFER,
                f"Too close to another appointment at {booking.start_time.strftime('%H:%M')} "
                f"({int(distance)} min apart, {profile.buffer} min buffer required)",
            )
        if distance == 0 and booking.pair != pair:
            return _reject(
                RejectReason.TIME_CONFLICT,
                "There's already an appointment at this time with you or the selected friend.",
            )

    # 4. Exact duplicate, independent of buffer
    for booking in bookings:
        if booking.start_time == candidate and (not pair or booking.pair == pair):
            return _reject(RejectReason.DUPLICATE, "You already have an appointment with this person at this time")

    return ADMIT


def check(candidate: datetime, profile: AvailabilityProfile, existing: Iterable[Appointment], now: datetime, **kwargs) -> None:
    """Like admit(), but raise AdmissionError on rejection."""
    admission = admit(candidate, profile, existing, now, **kwargs)
    if not admission:
        raise AdmissionError(admission.reason, admission.message)


def check_on_grid(candidate: datetime, profile: AvailabilityProfile) -> None:
    """
    Raise AdmissionError unless `candidate` is one of the owner's generated slots.

    Catches closed weekdays, times outside the daily window, off-grid
    starts and starts inside a break.
    """
    if candidate not in generate_slots(candidate.date(), profile):
        raise AdmissionError(
            RejectReason.OUTSIDE_HOURS,
            f"{candidate.strftime('%Y-%m-%d %H:%M')} is not one of the available slots",
        )


def evaluate_day(
    target_date: date,
    profile: AvailabilityProfile,
    existing: Iterable[Appointment],
    now: datetime,
    **kwargs,
) -> list[tuple[datetime, Admission]]:
    """Every generated slot of the day with its admission outcome."""
    existing = list(existing)
    return [
        (slot, admit(slot, profile, existing, now, **kwargs))
        for slot in generate_slots(target_date, profile)
    ]


def admissible_slots(
    target_date: date,
    profile: AvailabilityProfile,
    existing: Iterable[Appointment],
    now: datetime,
    **kwargs,
) -> list[datetime]:
    """Generated slots of the day that pass admission right now."""
    return [slot for slot, admission in evaluate_day(target_date, profile, existing, now, **kwargs) if admission]
