"""Shared workflow layer between the CLI and the push feed.

Each operation validates locally with the pure core first, then commits
through the booking repository. Local checks are advisory: the server has
the final say and may still answer with a RemoteRejectionError.
"""

import logging
from datetime import date, datetime
from typing import Callable

from .core import lifecycle
from .core.appointments import Appointment, sort_by_start
from .core.conflicts import Admission, evaluate_day
from .core.errors import NotAParticipantError
from .core.profile import AvailabilityProfile
from .ports.booking_repo import BookingRepository
from .ports.push_transport import (
    APPOINTMENT_CREATED,
    APPOINTMENT_DECLINED,
    APPOINTMENT_DELETED,
    APPOINTMENT_JOINED,
    APPOINTMENT_REMINDER,
    APPOINTMENT_STARTED,
    APPOINTMENT_STATUS_CHANGED,
    APPOINTMENT_UPDATED,
    PushTransport,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def merge_bookings(*groups: list[Appointment]) -> list[Appointment]:
    """Union of booking lists, deduplicated by id, sorted by start."""
    seen: dict[str, Appointment] = {}
    for group in groups:
        for appt in group:
            seen.setdefault(appt.id, appt)
    return sort_by_start(list(seen.values()))


class BookingService:
    """Booking operations on behalf of one signed-in user."""

    def __init__(self, repo: BookingRepository, user_id: str, clock: Clock = datetime.now):
        if not user_id:
            raise ValueError("A signed-in user id is required")
        self.repo = repo
        self.user_id = str(user_id)
        self.clock = clock

    # ---- availability ----

    def profile(self, owner_id: str | None = None) -> AvailabilityProfile:
        return self.repo.fetch_profile(owner_id or self.user_id)

    def save_profile(self, profile: AvailabilityProfile) -> AvailabilityProfile:
        """Replace the caller's profile wholesale (validated before sending)."""
        return self.repo.save_profile(profile.validate())

    def bookings_for(self, owner_id: str) -> list[Appointment]:
        """Bookings on both calendars: the owner's and the caller's."""
        own = self.repo.list_appointments()
        if str(owner_id) == self.user_id:
            return merge_bookings(own)
        return merge_bookings(own, self.repo.list_user_appointments(owner_id))

    def day_slots(self, owner_id: str, target_date: date) -> list[tuple[datetime, Admission]]:
        """Every slot the owner offers on a date, with its admission outcome."""
        profile = self.profile(owner_id)
        return evaluate_day(
            target_date,
            profile,
            self.bookings_for(owner_id),
            self.clock(),
            owner_id=str(owner_id),
            requester_id=self.user_id,
        )

    def available_slots(self, owner_id: str, target_date: date) -> list[datetime]:
        return [slot for slot, admission in self.day_slots(owner_id, target_date) if admission]

    # ---- lifecycle ----

    def book(
        self,
        owner_id: str,
        start: datetime,
        duration: int | None = None,
        *,
        title: str = "",
        description: str = "",
        meeting_type: str = "Video Call",
    ) -> Appointment:
        """Request a pending appointment on the owner's calendar."""
        profile = self.profile(owner_id)
        draft = lifecycle.create_appointment(
            self.user_id,
            owner_id,
            start,
            duration or profile.slot_duration,
            profile,
            self.bookings_for(owner_id),
            self.clock(),
            title=title,
            description=description,
            meeting_type=meeting_type,
        )
        created = self.repo.create_appointment(draft)
        logger.info(f"Requested {created.id} with {owner_id} at {start:%Y-%m-%d %H:%M}")
        return created

    def appointment(self, appointment_id: str) -> Appointment:
        return self.repo.fetch_appointment(appointment_id)

    def appointments(self, status: str | None = None) -> list[Appointment]:
        items = self.repo.list_appointments()
        if status:
            items = [a for a in items if a.status.value == status]
        return sort_by_start(items)

    def _commit(self, before: Appointment, after: Appointment, extra: dict | None = None) -> Appointment:
        fields = {"status": after.status.value}
        if after.start_time != before.start_time:
            fields["startTime"] = after.start_time.isoformat()
            fields["endTime"] = after.end_time.isoformat()
        fields.update(extra or {})
        updated = self.repo.update_appointment(before.id, fields)
        logger.info(f"{before.id}: {before.status.value} -> {updated.status.value}")
        return updated

    def accept(self, appointment_id: str) -> Appointment:
        appt = self.appointment(appointment_id)
        return self._commit(appt, lifecycle.accept(appt, self.user_id))

    def decline(self, appointment_id: str, reason: str) -> Appointment:
        appt = self.appointment(appointment_id)
        declined = lifecycle.decline(appt, self.user_id, reason)
        return self._commit(appt, declined, {"declinedReason": declined.declined_reason})

    def cancel(self, appointment_id: str) -> Appointment:
        """Cancel, honouring the cancel notice of the booked calendar's owner."""
        appt = self.appointment(appointment_id)
        notice = self.profile(appt.participant_id).cancel_notice
        return self._commit(appt, lifecycle.cancel(appt, self.user_id, self.clock(), notice))

    def reschedule(self, appointment_id: str, new_start: datetime) -> Appointment:
        appt = self.appointment(appointment_id)
        owner = appt.participant_id
        moved = lifecycle.reschedule(
            appt,
            self.user_id,
            new_start,
            self.profile(owner),
            self.bookings_for(owner),
            self.clock(),
        )
        return self._commit(appt, moved)

    def complete(self, appointment_id: str) -> Appointment:
        appt = self.appointment(appointment_id)
        lifecycle.require_party(appt, self.user_id)
        return self._commit(appt, lifecycle.complete(appt, self.clock()))

    def rate(self, appointment_id: str, rating: int, feedback: str = "") -> Appointment:
        appt = self.appointment(appointment_id)
        lifecycle.rate(appt, self.user_id, rating, feedback)
        return self.repo.update_appointment(appt.id, {"rating": rating, "feedback": feedback})

    def delete(self, appointment_id: str) -> None:
        """Hard delete - unlike cancel, the appointment disappears."""
        appt = self.appointment(appointment_id)
        if not appt.involves(self.user_id):
            raise NotAParticipantError("Only the two people in this appointment can delete it")
        self.repo.delete_appointment(appt.id)


class AppointmentFeed:
    """
    Appointment push events for one user.

    Relays reminders and lifecycle updates to callbacks, and answers
    reminders with appointment:joined / appointment:declined.
    """

    UPDATE_EVENTS = (
        APPOINTMENT_CREATED,
        APPOINTMENT_UPDATED,
        APPOINTMENT_STATUS_CHANGED,
    )

    def __init__(
        self,
        user_id: str,
        on_reminder: Callable[[Appointment], None] | None = None,
        on_started: Callable[[Appointment], None] | None = None,
        on_change: Callable[[str, Appointment | str], None] | None = None,
    ):
        self.user_id = str(user_id)
        self.on_reminder = on_reminder
        self.on_started = on_started
        self.on_change = on_change
        self.upcoming: Appointment | None = None
        self.known: dict[str, Appointment] = {}
        self._transport: PushTransport | None = None

    def attach(self, transport: PushTransport) -> bool:
        if self._transport is transport:
            return False
        transport.on(APPOINTMENT_REMINDER, self._handle_reminder)
        transport.on(APPOINTMENT_STARTED, self._handle_started)
        transport.on(APPOINTMENT_DELETED, self._handle_deleted)
        for event in self.UPDATE_EVENTS:
            transport.on(event, self._updater(event))
        self._transport = transport
        return True

    def track(self, appointments: list[Appointment]) -> None:
        """Seed the known appointments so partial updates can be merged."""
        for appt in appointments:
            self.known[appt.id] = appt

    def _parse(self, event: str, payload) -> Appointment | None:
        data = payload.get("appointment", payload) if isinstance(payload, dict) else None
        if isinstance(data, dict):
            known = self.known.get(str(data.get("_id") or data.get("id") or data.get("appointmentId") or ""))
            if known is not None:
                # Partial updates (e.g. just a status) merge over what we have
                appt = lifecycle.apply_remote(known, data)
                self.known[appt.id] = appt
                return appt
        try:
            appt = Appointment.from_api(data)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Ignoring malformed {event} payload: {e}")
            return None
        self.known[appt.id] = appt
        return appt

    def _handle_reminder(self, payload) -> None:
        appt = self._parse(APPOINTMENT_REMINDER, payload)
        if appt is None:
            return
        self.upcoming = appt
        logger.info(f"Reminder: {appt.title} at {appt.start_time:%H:%M}")
        if self.on_reminder:
            self.on_reminder(appt)

    def _handle_started(self, payload) -> None:
        appt = self._parse(APPOINTMENT_STARTED, payload)
        if appt is None:
            return
        if self.upcoming and self.upcoming.id == appt.id:
            self.upcoming = None
        if self.on_started:
            self.on_started(appt)

    def _handle_deleted(self, payload) -> None:
        appointment_id = (payload.get("appointmentId") or payload.get("_id")) if isinstance(payload, dict) else payload
        if not appointment_id:
            return
        self.known.pop(str(appointment_id), None)
        if self.on_change:
            self.on_change(APPOINTMENT_DELETED, str(appointment_id))

    def _updater(self, event: str):
        def handle(payload) -> None:
            appt = self._parse(event, payload)
            if appt is not None and self.on_change:
                self.on_change(event, appt)

        return handle

    def join(self, appointment: Appointment | None = None) -> None:
        """Tell the other party we are joining the call."""
        self._answer(APPOINTMENT_JOINED, appointment)

    def decline_call(self, appointment: Appointment | None = None) -> None:
        """Tell the other party we are not joining."""
        self._answer(APPOINTMENT_DECLINED, appointment)
        self.upcoming = None

    def _answer(self, event: str, appointment: Appointment | None) -> None:
        appt = appointment or self.upcoming
        if appt is None or self._transport is None:
            return
        self._transport.emit(event, {"appointmentId": appt.id, "userId": self.user_id})
