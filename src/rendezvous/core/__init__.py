"""Functional core - pure booking logic with no I/O."""

from .errors import (
    BookingError,
    ValidationError,
    AdmissionError,
    TransitionError,
    CancelNoticeError,
    NotAParticipantError,
)
from .profile import AvailabilityProfile, AvailabilityStatus, BreakTime, DurationRange
from .slots import TimeSlot, generate_slots, slot_windows
from .conflicts import Admission, RejectReason, admit, admissible_slots
from .appointments import Appointment, AppointmentStatus, Rating
from .lifecycle import accept, decline, reschedule, cancel, complete, rate, create_appointment
from .presence import PresenceRegistry, PresenceEvent, PresenceEventKind, Subscription

__all__ = [
    # Errors
    "BookingError",
    "ValidationError",
    "AdmissionError",
    "TransitionError",
    "CancelNoticeError",
    "NotAParticipantError",
    # Profile
    "AvailabilityProfile",
    "AvailabilityStatus",
    "BreakTime",
    "DurationRange",
    # Slots
    "TimeSlot",
    "generate_slots",
    "slot_windows",
    # Admission
    "Admission",
    "RejectReason",
    "admit",
    "admissible_slots",
    # Appointments
    "Appointment",
    "AppointmentStatus",
    "Rating",
    "create_appointment",
    "accept",
    "decline",
    "reschedule",
    "cancel",
    "complete",
    "rate",
    # Presence
    "PresenceRegistry",
    "PresenceEvent",
    "PresenceEventKind",
    "Subscription",
]
