"""
Domain models for opening hours, bookings and computed slots.
"""

from dataclasses import dataclass, field
from datetime import date, time
from enum import Enum
from typing import Dict, FrozenSet, List, Optional

from pendulum import Date, DateTime

from .exceptions import InvalidInputError, InvalidStatusTransitionError
from .timeformat import format_instant, format_time_of_day, parse_date, parse_time_of_day


def weekday_index(day: date) -> int:
    """Return the weekday of a calendar date with 0=Sunday and 6=Saturday."""
    return day.isoweekday() % 7


@dataclass(frozen=True)
class TimeRange:
    """
    Represents an immutable half-open time range ``[start, end)``.
    
    Invariant: start must be before end.
    """
    start: DateTime
    end: DateTime
    
    def __post_init__(self):
        if self.start >= self.end:
            raise InvalidInputError(f"Start time {self.start} must be before end time {self.end}")
    
    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return int((self.end - self.start).total_seconds() / 60)
    
    def overlaps(self, other: "TimeRange") -> bool:
        """Check if this range overlaps with another. Touching ranges do not overlap."""
        return self.start < other.end and other.start < self.end
    
    def __str__(self) -> str:
        return f"{self.start.format('YYYY-MM-DD HH:mm')} - {self.end.format('HH:mm')}"


@dataclass(frozen=True)
class BusinessHoursRule:
    """
    Default opening hours for one weekday (0=Sunday .. 6=Saturday).

    Times may be given as ``HH:MM`` strings and are normalised to ``time``.
    """
    day_of_week: int
    is_open: bool
    open_time: time
    close_time: time

    def __post_init__(self):
        if not isinstance(self.day_of_week, int) or not 0 <= self.day_of_week <= 6:
            raise InvalidInputError(f"day_of_week must be between 0 and 6, got {self.day_of_week!r}")
        object.__setattr__(self, "open_time", parse_time_of_day(self.open_time))
        object.__setattr__(self, "close_time", parse_time_of_day(self.close_time))
        if self.is_open and self.open_time >= self.close_time:
            raise InvalidInputError(
                f"Opening time {format_time_of_day(self.open_time)} must be before "
                f"closing time {format_time_of_day(self.close_time)}"
            )


@dataclass(frozen=True)
class DateOverride:
    """
    Per-date exception to the weekly schedule: a full block or special hours.

    An override that is not blocking and carries no times only attaches a
    reason; the weekday default still applies.
    """
    date: Date
    is_fully_blocked: bool
    open_time: Optional[time] = None
    close_time: Optional[time] = None
    reason: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "date", parse_date(self.date))
        if self.open_time is not None:
            object.__setattr__(self, "open_time", parse_time_of_day(self.open_time))
        if self.close_time is not None:
            object.__setattr__(self, "close_time", parse_time_of_day(self.close_time))
        if (
            not self.is_fully_blocked
            and self.open_time is not None
            and self.close_time is not None
            and self.open_time >= self.close_time
        ):
            raise InvalidInputError("Special opening time must be before closing time")

    @property
    def has_explicit_hours(self) -> bool:
        return self.open_time is not None and self.close_time is not None


@dataclass(frozen=True)
class ServiceDefinition:
    """A bookable service; its duration sizes the interval a slot reserves."""
    id: str
    name: str
    duration_minutes: int
    active: bool = True
    price: float = 0.0
    description: Optional[str] = None

    def __post_init__(self):
        if isinstance(self.duration_minutes, bool) or not isinstance(self.duration_minutes, int):
            raise InvalidInputError(f"duration_minutes must be an integer, got {self.duration_minutes!r}")
        if self.duration_minutes <= 0:
            raise InvalidInputError("duration_minutes must be greater than zero")
        if self.price < 0:
            raise InvalidInputError(f"Invalid price: {self.price}")


class AppointmentStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @classmethod
    def parse(cls, value: "str | AppointmentStatus") -> "AppointmentStatus":
        """Resolve a status value, rejecting anything outside the enum."""
        try:
            return cls(value)
        except ValueError:
            allowed = ", ".join(status.value for status in cls)
            raise InvalidInputError(f"Invalid status {value!r}. Use: {allowed}") from None

    @property
    def is_terminal(self) -> bool:
        return not _TRANSITIONS[self]

    def can_transition_to(self, target: "AppointmentStatus") -> bool:
        return target in _TRANSITIONS[self]

    def transition_to(self, target: "AppointmentStatus") -> "AppointmentStatus":
        if not self.can_transition_to(target):
            raise InvalidStatusTransitionError(
                f"Cannot change appointment status from {self.value} to {target.value}"
            )
        return target


_TRANSITIONS: Dict[AppointmentStatus, FrozenSet[AppointmentStatus]] = {
    AppointmentStatus.PENDING: frozenset({AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED}),
    AppointmentStatus.CONFIRMED: frozenset({AppointmentStatus.IN_PROGRESS, AppointmentStatus.CANCELLED}),
    AppointmentStatus.IN_PROGRESS: frozenset({AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED}),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.CANCELLED: frozenset(),
}


@dataclass(frozen=True)
class Appointment:
    """
    A booked appointment.

    ``end_time`` is fixed at creation from the service duration and is never
    edited on its own. Cancelled appointments do not occupy time.
    """
    id: str
    service_id: str
    start_time: DateTime
    end_time: DateTime
    status: AppointmentStatus = AppointmentStatus.PENDING
    customer_name: str = ""
    customer_phone: str = ""
    vehicle_type: str = ""
    notes: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "status", AppointmentStatus.parse(self.status))
        if self.start_time >= self.end_time:
            raise InvalidInputError(
                f"Appointment {self.id} must end after it starts ({self.start_time} - {self.end_time})"
            )

    @property
    def time_range(self) -> TimeRange:
        return TimeRange(start=self.start_time, end=self.end_time)

    @property
    def occupies_time(self) -> bool:
        return self.status is not AppointmentStatus.CANCELLED


@dataclass(frozen=True)
class TimeSlot:
    """
    A computed bookable start time. Never persisted.

    ``available`` is only set when the slot comes from the candidate view
    that keeps conflicting slots.
    """
    start: DateTime
    duration_minutes: int
    available: Optional[bool] = field(default=None)

    @property
    def time(self) -> str:
        """ISO-8601 start instant."""
        return format_instant(self.start)

    @property
    def display(self) -> str:
        """Display label, ``HH:MM`` on a 24-hour clock."""
        return self.start.format("HH:mm")

    @property
    def end(self) -> DateTime:
        return self.start.add(minutes=self.duration_minutes)

    def to_dict(self) -> Dict[str, object]:
        data: Dict[str, object] = {"time": self.time, "display": self.display}
        if self.available is not None:
            data["available"] = self.available
        return data


def sort_by_start(appointments: List[Appointment]) -> List[Appointment]:
    return sorted(appointments, key=lambda appointment: appointment.start_time)
