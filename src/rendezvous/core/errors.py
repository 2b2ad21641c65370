"""Booking engine error taxonomy - raised locally, before any network call."""


class BookingError(Exception):
    """Base class for all booking engine errors."""

    pass


class ValidationError(BookingError):
    """Raised when input is malformed (bad time range, missing reason, ...)."""

    pass


class AdmissionError(BookingError):
    """Raised when a candidate slot is rejected by the conflict rules."""

    def __init__(self, reason, message: str):
        super().__init__(message)
        self.reason = reason


class TransitionError(BookingError):
    """Raised when an appointment cannot move to the requested status."""

    pass


class CancelNoticeError(TransitionError):
    """Raised when cancelling too close to the booked start."""

    pass


class NotAParticipantError(BookingError):
    """Raised when someone outside the appointment tries to act on it."""

    pass
