"""Adapters - I/O implementations of ports."""

from .booking_api import BookingApiAdapter, AuthenticationError, RemoteRejectionError
from .socketio_transport import SocketIOTransport, TransportError

__all__ = [
    "BookingApiAdapter",
    "AuthenticationError",
    "RemoteRejectionError",
    "SocketIOTransport",
    "TransportError",
]
