"""
Domain layer - Pure business logic without external dependencies.
"""

from .exceptions import (
    BookingError,
    InvalidInputError,
    InvalidStatusTransitionError,
    NotFoundError,
    ServiceUnavailableError,
    SlotConflictError,
)
from .models import (
    Appointment,
    AppointmentStatus,
    BusinessHoursRule,
    DateOverride,
    ServiceDefinition,
    TimeRange,
    TimeSlot,
)
from .slot_calculator import SlotCalculator

__all__ = [
    "Appointment",
    "AppointmentStatus",
    "BookingError",
    "BusinessHoursRule",
    "DateOverride",
    "InvalidInputError",
    "InvalidStatusTransitionError",
    "NotFoundError",
    "ServiceDefinition",
    "ServiceUnavailableError",
    "SlotCalculator",
    "SlotConflictError",
    "TimeRange",
    "TimeSlot",
]
