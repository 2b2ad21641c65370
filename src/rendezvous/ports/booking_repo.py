"""Booking repository interface."""

from typing import Protocol

from rendezvous.core.appointments import Appointment
from rendezvous.core.profile import AvailabilityProfile


class BookingRepository(Protocol):
    """Interface to the authoritative store of profiles and appointments."""

    def fetch_profile(self, owner_id: str) -> AvailabilityProfile:
        """Fetch a user's availability profile (defaults if never set)."""
        ...

    def save_profile(self, profile: AvailabilityProfile) -> AvailabilityProfile:
        """Replace the caller's profile wholesale."""
        ...

    def list_appointments(self) -> list[Appointment]:
        """Appointments the caller is a party to."""
        ...

    def list_user_appointments(self, user_id: str) -> list[Appointment]:
        """Appointments on another user's calendar."""
        ...

    def fetch_appointment(self, appointment_id: str) -> Appointment:
        ...

    def create_appointment(self, appointment: Appointment) -> Appointment:
        """Persist a new pending appointment."""
        ...

    def update_appointment(self, appointment_id: str, fields: dict) -> Appointment:
        """Apply a partial update (status, declinedReason, rating, times)."""
        ...

    def delete_appointment(self, appointment_id: str) -> None:
        """Hard delete, distinct from the cancelled status."""
        ...
