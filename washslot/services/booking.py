"""
Application service for availability lookups and the appointment lifecycle.

The service fetches snapshots from the store collaborators and delegates
the slot calculation to the domain-level ``SlotCalculator``. Its conflict
check before booking is advisory: the store's atomic overlap guard is the
final authority when two bookings race for the same time.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Callable, Dict, List, Optional, Tuple

import pendulum
from pendulum import Date, DateTime

from ..domain.exceptions import (
    InvalidInputError,
    NotFoundError,
    ServiceUnavailableError,
    SlotConflictError,
)
from ..domain.models import (
    Appointment,
    AppointmentStatus,
    BusinessHoursRule,
    DateOverride,
    ServiceDefinition,
    TimeSlot,
    sort_by_start,
)
from ..domain.slot_calculator import SlotCalculator
from ..domain.timeformat import parse_date, parse_instant
from .protocols import AppointmentStore, ScheduleConfigStore, ServiceCatalog

logger = logging.getLogger(__name__)

DEFAULT_SERVICE_DURATION_MINUTES = 90

EDITABLE_APPOINTMENT_FIELDS = ("customer_name", "customer_phone", "vehicle_type", "notes")

UPCOMING_STATUSES = (AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED)


@dataclass
class BookingRequest:
    """Input of the public booking flow."""
    customer_name: str
    customer_phone: str
    vehicle_type: str
    service_id: str
    start_time: str | datetime
    notes: Optional[str] = None


@dataclass
class DashboardSummary:
    """Today's appointments counted by status, plus the next few bookings."""
    date: Date
    appointments: List[Appointment]
    status_counts: Dict[str, int]
    upcoming: List[Appointment] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.appointments)


class BookingService:
    """
    Orchestrates snapshot retrieval, slot calculation and booking writes.

    Time is injected through ``clock`` so callers and tests control "now".
    """

    def __init__(
        self,
        store: AppointmentStore,
        catalog: ServiceCatalog,
        schedule: ScheduleConfigStore,
        calculator: SlotCalculator,
        clock: Callable[[str], DateTime] = pendulum.now,
        default_duration_minutes: int = DEFAULT_SERVICE_DURATION_MINUTES,
        allow_past_dates: bool = False,
    ) -> None:
        self._store = store
        self._catalog = catalog
        self._schedule = schedule
        self._calculator = calculator
        self._clock = clock
        self._default_duration_minutes = default_duration_minutes
        self._allow_past_dates = allow_past_dates

    @property
    def timezone(self) -> str:
        return self._calculator.timezone

    # ------------------------------------------------------------------
    # Availability
    # ------------------------------------------------------------------

    def get_availability(
        self,
        date: str | date,
        *,
        service_duration_minutes: Optional[int] = None,
        service_id: Optional[str] = None,
        now: Optional[DateTime | datetime] = None,
    ) -> List[TimeSlot]:
        """
        Return the bookable slots for a date.

        The duration comes from ``service_id`` when given, otherwise from
        ``service_duration_minutes``, otherwise from the configured default.
        """
        day, duration, current = self._prepare_lookup(
            date, service_duration_minutes, service_id, now
        )
        business_hours, override, appointments = self.load_snapshot(day)

        slots = self._calculator.compute_available_slots(
            day, duration, business_hours, override, appointments, current
        )
        logger.debug("%d slot(s) available on %s for %d minutes", len(slots), day, duration)
        return slots

    def get_slot_board(
        self,
        date: str | date,
        *,
        service_duration_minutes: Optional[int] = None,
        service_id: Optional[str] = None,
        now: Optional[DateTime | datetime] = None,
    ) -> List[TimeSlot]:
        """Return every candidate slot with its ``available`` flag."""
        day, duration, current = self._prepare_lookup(
            date, service_duration_minutes, service_id, now
        )
        business_hours, override, appointments = self.load_snapshot(day)

        return self._calculator.compute_candidate_slots(
            day, duration, business_hours, override, appointments, current
        )

    def is_day_available(self, date: str | date) -> bool:
        """Check whether a date is open at all (for calendar marking)."""
        day = parse_date(date)
        return self._calculator.is_day_open(
            day,
            self._schedule.get_business_hours(),
            self._schedule.get_date_override(day),
        )

    def load_snapshot(
        self,
        day: Date,
    ) -> Tuple[List[BusinessHoursRule], Optional[DateOverride], List[Appointment]]:
        """Fetch business hours, the date's override and all its appointments."""
        day_start = self._start_of_day(day)
        appointments = self._store.list_appointments(
            start=day_start,
            end=day_start.add(days=1),
        )
        return (
            self._schedule.get_business_hours(),
            self._schedule.get_date_override(day),
            appointments,
        )

    # ------------------------------------------------------------------
    # Appointment lifecycle
    # ------------------------------------------------------------------

    def create_appointment(
        self,
        request: BookingRequest,
        now: Optional[DateTime | datetime] = None,
    ) -> Appointment:
        """
        Book an appointment in ``pending`` state.

        Raises:
            InvalidInputError: Missing customer data or a start time that is
                not a bookable slot for the service
            ServiceUnavailableError: Unknown or inactive service
            SlotConflictError: The slot is taken, either already or by a
                concurrent booking caught at commit
        """
        customer_name = _require_text(request.customer_name, "Customer name")
        customer_phone = _require_text(request.customer_phone, "Customer phone")
        vehicle_type = _require_text(request.vehicle_type, "Vehicle type")
        if not request.service_id:
            raise InvalidInputError("Service is required")
        if not request.start_time:
            raise InvalidInputError("Start time is required")

        service = self._require_active_service(request.service_id)
        start = parse_instant(request.start_time, self.timezone).in_timezone(self.timezone)
        current = self._now(now)
        day = start.date()
        self._check_not_past(day, current)

        business_hours, override, appointments = self.load_snapshot(day)
        board = self._calculator.compute_candidate_slots(
            day, service.duration_minutes, business_hours, override, appointments, current
        )
        slot = next((candidate for candidate in board if candidate.start == start), None)

        if slot is None:
            raise InvalidInputError(
                f"{start.format('YYYY-MM-DD HH:mm')} is not a bookable time for {service.name}"
            )
        if not slot.available:
            raise SlotConflictError(SlotConflictError.user_message)

        appointment = Appointment(
            id=str(uuid.uuid4()),
            service_id=service.id,
            start_time=start,
            end_time=start.add(minutes=service.duration_minutes),
            status=AppointmentStatus.PENDING,
            customer_name=customer_name,
            customer_phone=customer_phone,
            vehicle_type=vehicle_type,
            notes=_optional_text(request.notes),
        )

        try:
            stored = self._store.insert_appointment(appointment)
        except SlotConflictError:
            logger.warning("Booking for %s lost a race at commit", slot.time)
            raise

        logger.info("Booked appointment %s at %s (%s)", stored.id, slot.time, service.name)
        return stored

    def get_appointment(self, appointment_id: str) -> Appointment:
        appointment = self._store.get_appointment(appointment_id)
        if appointment is None:
            raise NotFoundError(f"Appointment not found: {appointment_id}")
        return appointment

    def update_status(
        self,
        appointment_id: str,
        status: str | AppointmentStatus,
    ) -> Appointment:
        """
        Move an appointment along its lifecycle.

        pending -> confirmed | cancelled, confirmed -> in_progress | cancelled,
        in_progress -> completed | cancelled. completed and cancelled are final.
        """
        target = AppointmentStatus.parse(status)
        appointment = self.get_appointment(appointment_id)
        new_status = appointment.status.transition_to(target)

        saved = self._store.save_appointment(replace(appointment, status=new_status))
        logger.info(
            "Appointment %s: %s -> %s", appointment_id, appointment.status.value, new_status.value
        )
        return saved

    def cancel_appointment(self, appointment_id: str) -> Appointment:
        """Cancel an appointment. Cancelled appointments free their time."""
        return self.update_status(appointment_id, AppointmentStatus.CANCELLED)

    def update_appointment(self, appointment_id: str, **changes: object) -> Appointment:
        """
        Edit customer details. A ``status`` change goes through the lifecycle
        rules; start and end times cannot be edited.
        """
        status = changes.pop("status", None)
        unknown = sorted(set(changes) - set(EDITABLE_APPOINTMENT_FIELDS))
        if unknown:
            raise InvalidInputError(f"Fields cannot be edited: {', '.join(unknown)}")

        cleaned: Dict[str, object] = {}
        for name, value in changes.items():
            if name == "notes":
                cleaned[name] = _optional_text(value)
            else:
                cleaned[name] = _require_text(value, name.replace("_", " ").capitalize())

        if status is not None:
            self.update_status(appointment_id, status)

        appointment = self.get_appointment(appointment_id)
        if not cleaned:
            return appointment
        return self._store.save_appointment(replace(appointment, **cleaned))

    def list_appointments(
        self,
        date: Optional[str | date] = None,
        status: Optional[str | AppointmentStatus] = None,
        start_date: Optional[str | date] = None,
        end_date: Optional[str | date] = None,
    ) -> List[Appointment]:
        """List appointments by start date (or inclusive date range) and status."""
        start: Optional[DateTime] = None
        end: Optional[DateTime] = None

        if date is not None:
            start = self._start_of_day(parse_date(date))
            end = start.add(days=1)
        if start_date is not None:
            range_start = self._start_of_day(parse_date(start_date))
            start = range_start if start is None else max(start, range_start)
        if end_date is not None:
            range_end = self._start_of_day(parse_date(end_date)).add(days=1)
            end = range_end if end is None else min(end, range_end)

        if start is not None and end is not None and start >= end:
            return []

        parsed_status = AppointmentStatus.parse(status) if status is not None else None
        return self._store.list_appointments(start=start, end=end, status=parsed_status)

    def get_upcoming(
        self,
        limit: int = 10,
        now: Optional[DateTime | datetime] = None,
    ) -> List[Appointment]:
        """Pending and confirmed appointments starting from now on."""
        if limit <= 0:
            raise InvalidInputError("limit must be greater than zero")

        upcoming = [
            appointment
            for appointment in self._store.list_appointments(start=self._now(now))
            if appointment.status in UPCOMING_STATUSES
        ]
        return sort_by_start(upcoming)[:limit]

    def get_dashboard(self, now: Optional[DateTime | datetime] = None) -> DashboardSummary:
        current = self._now(now)
        today = current.in_timezone(self.timezone).date()
        appointments = self.list_appointments(date=today)

        status_counts = {status.value: 0 for status in AppointmentStatus}
        for appointment in appointments:
            status_counts[appointment.status.value] += 1

        return DashboardSummary(
            date=today,
            appointments=appointments,
            status_counts=status_counts,
            upcoming=self.get_upcoming(limit=5, now=current),
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _prepare_lookup(
        self,
        date: str | date,
        service_duration_minutes: Optional[int],
        service_id: Optional[str],
        now: Optional[DateTime | datetime],
    ) -> Tuple[Date, int, DateTime]:
        day = parse_date(date)
        current = self._now(now)
        self._check_not_past(day, current)

        if service_id is not None and service_duration_minutes is not None:
            raise InvalidInputError("Provide either a service or a duration, not both")

        if service_id is not None:
            duration = self._require_active_service(service_id).duration_minutes
        elif service_duration_minutes is not None:
            duration = service_duration_minutes
        else:
            duration = self._default_duration_minutes

        if isinstance(duration, bool) or not isinstance(duration, int) or duration <= 0:
            raise InvalidInputError(f"Service duration must be a positive integer, got {duration!r}")

        return day, duration, current

    def _check_not_past(self, day: Date, current: DateTime) -> None:
        if self._allow_past_dates:
            return
        if day < current.in_timezone(self.timezone).date():
            raise InvalidInputError(f"Cannot book on past dates ({day})")

    def _require_active_service(self, service_id: str) -> ServiceDefinition:
        service = self._catalog.get_service(service_id)
        if service is None or not service.active:
            raise ServiceUnavailableError(f"Service not found or inactive: {service_id}")
        return service

    def _now(self, now: Optional[DateTime | datetime]) -> DateTime:
        if now is None:
            now = self._clock(self.timezone)
        return parse_instant(now, self.timezone)

    def _start_of_day(self, day: Date) -> DateTime:
        return pendulum.datetime(day.year, day.month, day.day, tz=self.timezone)


def _require_text(value: object, label: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidInputError(f"{label} is required")
    return value.strip()


def _optional_text(value: object) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise InvalidInputError(f"Expected text, got {value!r}")
    return value.strip() or None
