"""Ports - interfaces/protocols for external dependencies."""

from .booking_repo import BookingRepository
from .push_transport import PushTransport

__all__ = [
    "BookingRepository",
    "PushTransport",
]
