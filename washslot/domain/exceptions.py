"""
Domain-specific exception hierarchy for the booking application.
"""


class BookingError(Exception):
    """Base class for all application-level errors."""


class InvalidInputError(BookingError, ValueError):
    """Raised when a caller supplies a malformed date, time, duration or record."""


class InvalidStatusTransitionError(InvalidInputError):
    """Raised when an appointment status change is not allowed."""


class ServiceUnavailableError(InvalidInputError):
    """Raised when a booking references an unknown or inactive service."""


class NotFoundError(BookingError, LookupError):
    """Raised when a requested record does not exist."""


class SlotConflictError(BookingError):
    """
    Raised when a booking overlaps an existing appointment.

    The store raises this at commit time when two requests race past the
    availability check. Callers should re-run availability before prompting
    the user again.
    """

    user_message = "This time was just taken, please pick another."
