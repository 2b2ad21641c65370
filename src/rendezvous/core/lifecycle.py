"""Appointment lifecycle state machine - pure transitions, no I/O.

    pending   --accept-->       confirmed
    pending   --decline-->      declined
    confirmed --reschedule-->   rescheduled   (rescheduled behaves like confirmed)
    pending|confirmed|rescheduled --cancel--> cancelled   (cancel notice applies)
    confirmed|rescheduled --complete--> completed
    completed --rate--> completed          (metadata only)

Every transition returns a new Appointment; the input is never mutated.
Only the creator or the participant may act.
"""

import uuid
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Iterable

from .appointments import (
    DEFAULT_TITLE,
    MEETING_TYPES,
    Appointment,
    AppointmentStatus,
    Rating,
)
from .conflicts import check, check_on_grid
from .errors import (
    CancelNoticeError,
    NotAParticipantError,
    TransitionError,
    ValidationError,
)
from .profile import AvailabilityProfile
from .timegrid import hours_between

S = AppointmentStatus

TRANSITIONS: dict[str, tuple[frozenset[AppointmentStatus], AppointmentStatus | None]] = {
    "accept": (frozenset({S.PENDING}), S.CONFIRMED),
    "decline": (frozenset({S.PENDING}), S.DECLINED),
    "reschedule": (frozenset({S.CONFIRMED, S.RESCHEDULED}), S.RESCHEDULED),
    "cancel": (frozenset({S.PENDING, S.CONFIRMED, S.RESCHEDULED}), S.CANCELLED),
    "complete": (frozenset({S.CONFIRMED, S.RESCHEDULED}), S.COMPLETED),
    "rate": (frozenset({S.COMPLETED}), None),
}


def can_transition(status: AppointmentStatus, action: str) -> bool:
    """True if `action` is legal from `status`."""
    allowed, _ = TRANSITIONS[action]
    return status in allowed


def _require(appointment: Appointment, action: str) -> AppointmentStatus | None:
    if not can_transition(appointment.status, action):
        raise TransitionError(f"Cannot {action} an appointment that is {appointment.status.value}")
    return TRANSITIONS[action][1]


def require_party(appointment: Appointment, actor_id: str) -> None:
    if not appointment.involves(actor_id):
        raise NotAParticipantError("Only the two people in this appointment can change it")


def _require_participant(appointment: Appointment, actor_id: str, action: str) -> None:
    require_party(appointment, actor_id)
    if str(actor_id) != appointment.participant_id:
        raise NotAParticipantError(f"Only the invited participant can {action} this appointment")


def create_appointment(
    creator_id: str,
    participant_id: str,
    start: datetime,
    duration: int,
    profile: AvailabilityProfile,
    existing: Iterable[Appointment],
    now: datetime,
    *,
    title: str = DEFAULT_TITLE,
    description: str = "",
    meeting_type: str = "Video Call",
    requester_profile: AvailabilityProfile | None = None,
    appointment_id: str | None = None,
) -> Appointment:
    """
    Build a pending appointment on one of the owner's slots, after local
    validation and admission.

    `profile` belongs to the participant, whose calendar is being booked.
    Raises ValidationError or AdmissionError; nothing is sent anywhere.
    """
    if not creator_id or not participant_id:
        raise ValidationError("Both creator and participant are required")
    if str(creator_id) == str(participant_id):
        raise ValidationError("You cannot book an appointment with yourself")
    if meeting_type not in MEETING_TYPES:
        raise ValidationError(f"Meeting type must be one of: {', '.join(MEETING_TYPES)}")
    profile.validate_duration(duration)

    check(
        start,
        profile,
        existing,
        now,
        owner_id=str(participant_id),
        requester_id=str(creator_id),
        requester_profile=requester_profile,
    )
    check_on_grid(start, profile)

    return Appointment(
        id=appointment_id or uuid.uuid4().hex,
        creator_id=str(creator_id),
        participant_id=str(participant_id),
        start_time=start,
        end_time=start + timedelta(minutes=duration),
        title=(title or "").strip() or DEFAULT_TITLE,
        description=description or "",
        meeting_type=meeting_type,
        status=S.PENDING,
    )


def accept(appointment: Appointment, actor_id: str) -> Appointment:
    _require_participant(appointment, actor_id, "accept")
    return replace(appointment, status=_require(appointment, "accept"))


def decline(appointment: Appointment, actor_id: str, reason: str) -> Appointment:
    """Participant turns down a pending request; a reason is mandatory."""
    _require_participant(appointment, actor_id, "decline")
    status = _require(appointment, "decline")
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("Please give a reason for declining")
    return replace(appointment, status=status, declined_reason=reason)


def reschedule(
    appointment: Appointment,
    actor_id: str,
    new_start: datetime,
    profile: AvailabilityProfile,
    existing: Iterable[Appointment],
    now: datetime,
) -> Appointment:
    """
    Move a confirmed appointment to a new slot, keeping its identity and length.

    The new start must be one of the participant's slots and pass admission,
    ignoring the appointment itself.
    """
    require_party(appointment, actor_id)
    status = _require(appointment, "reschedule")
    check(
        new_start,
        profile,
        existing,
        now,
        owner_id=appointment.participant_id,
        requester_id=appointment.creator_id,
        exclude_id=appointment.id,
    )
    check_on_grid(new_start, profile)
    length = appointment.end_time - appointment.start_time
    return replace(appointment, status=status, start_time=new_start, end_time=new_start + length)


def can_cancel(appointment: Appointment, now: datetime, cancel_notice_hours: float) -> bool:
    """True if there is still enough notice to cancel."""
    if not cancel_notice_hours:
        return True
    return hours_between(now, appointment.start_time) >= cancel_notice_hours


def cancel(appointment: Appointment, actor_id: str, now: datetime, cancel_notice_hours: float = 0) -> Appointment:
    """Either party cancels, provided the owner's cancel notice is respected."""
    require_party(appointment, actor_id)
    status = _require(appointment, "cancel")
    if not can_cancel(appointment, now, cancel_notice_hours):
        raise CancelNoticeError(
            f"Appointments must be cancelled at least {cancel_notice_hours:g} hours in advance"
        )
    return replace(appointment, status=status)


def complete(appointment: Appointment, now: datetime) -> Appointment:
    """Mark a confirmed appointment completed once it has started."""
    status = _require(appointment, "complete")
    if now < appointment.start_time:
        raise TransitionError("Cannot complete an appointment that has not started yet")
    return replace(appointment, status=status)


def rate(appointment: Appointment, actor_id: str, rating: int, feedback: str = "") -> Appointment:
    """Append a 1-5 rating; each party may rate once."""
    require_party(appointment, actor_id)
    _require(appointment, "rate")
    if not isinstance(rating, int) or not 1 <= rating <= 5:
        raise ValidationError("Rating must be between 1 and 5")
    if appointment.rating_by(actor_id):
        raise ValidationError("You have already rated this appointment")
    entry = Rating(user_id=str(actor_id), rating=rating, feedback=(feedback or "").strip())
    return replace(appointment, ratings=[*appointment.ratings, entry])


def apply_remote(appointment: Appointment, data: dict) -> Appointment:
    """
    Merge an authoritative server update (e.g. external completion).

    The server is the source of truth, so no transition rules apply here.
    """
    merged = appointment.to_api()
    merged.update({k: v for k, v in data.items() if v is not None})
    merged["_id"] = appointment.id
    if data.get("ratings") is None:
        merged["ratings"] = [
            {"userId": r.user_id, "rating": r.rating, "feedback": r.feedback}
            for r in appointment.ratings
        ]
    return Appointment.from_api(merged)
