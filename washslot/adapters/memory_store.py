"""
In-memory implementation of the appointment, schedule and catalog stores.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from datetime import date
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from pendulum import DateTime

from ..domain.exceptions import InvalidInputError, NotFoundError, SlotConflictError
from ..domain.models import (
    Appointment,
    AppointmentStatus,
    BusinessHoursRule,
    DateOverride,
    ServiceDefinition,
    sort_by_start,
)

logger = logging.getLogger(__name__)


class InMemoryStore:
    """
    Thread-safe store implementing ``AppointmentStore``, ``ScheduleConfigStore``
    and ``ServiceCatalog``.

    Inserting an appointment checks for overlaps with every non-cancelled
    appointment inside the same transaction as the write, so of two racing
    bookings for the same time only one is stored.
    """

    def __init__(
        self,
        business_hours: Iterable[BusinessHoursRule] = (),
        services: Iterable[ServiceDefinition] = (),
        appointments: Iterable[Appointment] = (),
        date_overrides: Iterable[DateOverride] = (),
    ):
        self._lock = threading.RLock()
        self._replace_state(business_hours, services, appointments, date_overrides)

    def _replace_state(
        self,
        business_hours: Iterable[BusinessHoursRule],
        services: Iterable[ServiceDefinition],
        appointments: Iterable[Appointment],
        date_overrides: Iterable[DateOverride],
    ) -> None:
        self._business_hours: Dict[int, BusinessHoursRule] = {
            rule.day_of_week: rule for rule in business_hours
        }
        self._services: Dict[str, ServiceDefinition] = {service.id: service for service in services}
        self._appointments: Dict[str, Appointment] = {
            appointment.id: appointment for appointment in appointments
        }
        self._date_overrides: Dict[date, DateOverride] = {
            override.date: override for override in date_overrides
        }

    def _snapshot(self) -> Tuple[list, list, list, list]:
        return (
            list(self._business_hours.values()),
            list(self._services.values()),
            list(self._appointments.values()),
            list(self._date_overrides.values()),
        )

    @contextmanager
    def _transaction(self) -> Iterator[None]:
        """Scope of one write. Subclasses persist the state when it exits cleanly."""
        with self._lock:
            yield

    # AppointmentStore

    def list_appointments(
        self,
        start: Optional[DateTime] = None,
        end: Optional[DateTime] = None,
        status: Optional[AppointmentStatus] = None,
    ) -> List[Appointment]:
        with self._lock:
            selected = [
                appointment
                for appointment in self._appointments.values()
                if (start is None or appointment.start_time >= start)
                and (end is None or appointment.start_time < end)
                and (status is None or appointment.status is status)
            ]
        return sort_by_start(selected)

    def get_appointment(self, appointment_id: str) -> Optional[Appointment]:
        with self._lock:
            return self._appointments.get(appointment_id)

    def insert_appointment(self, appointment: Appointment) -> Appointment:
        with self._transaction():
            if appointment.id in self._appointments:
                raise InvalidInputError(f"Appointment already exists: {appointment.id}")
            if appointment.occupies_time:
                self._ensure_no_overlap(appointment)
            self._appointments[appointment.id] = appointment
        return appointment

    def save_appointment(self, appointment: Appointment) -> Appointment:
        with self._transaction():
            current = self._appointments.get(appointment.id)
            if current is None:
                raise NotFoundError(f"Appointment not found: {appointment.id}")
            if appointment.occupies_time and (
                not current.occupies_time or current.time_range != appointment.time_range
            ):
                self._ensure_no_overlap(appointment)
            self._appointments[appointment.id] = appointment
        return appointment

    def _ensure_no_overlap(self, appointment: Appointment) -> None:
        for other in self._appointments.values():
            if other.id == appointment.id or not other.occupies_time:
                continue
            if other.time_range.overlaps(appointment.time_range):
                logger.info(
                    "Rejected appointment %s: overlaps %s (%s)",
                    appointment.id,
                    other.id,
                    other.time_range,
                )
                raise SlotConflictError(SlotConflictError.user_message)

    # ScheduleConfigStore

    def get_business_hours(self) -> List[BusinessHoursRule]:
        with self._lock:
            return [self._business_hours[day] for day in sorted(self._business_hours)]

    def upsert_business_hours(self, rule: BusinessHoursRule) -> BusinessHoursRule:
        with self._transaction():
            self._business_hours[rule.day_of_week] = rule
        return rule

    def get_date_override(self, day: date) -> Optional[DateOverride]:
        with self._lock:
            return self._date_overrides.get(day)

    def list_date_overrides(
        self,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> List[DateOverride]:
        with self._lock:
            return [
                self._date_overrides[day]
                for day in sorted(self._date_overrides)
                if (start is None or day >= start) and (end is None or day <= end)
            ]

    def upsert_date_override(self, override: DateOverride) -> DateOverride:
        with self._transaction():
            self._date_overrides[override.date] = override
        return override

    def delete_date_override(self, day: date) -> bool:
        with self._transaction():
            removed = self._date_overrides.pop(day, None) is not None
        return removed

    # ServiceCatalog

    def list_services(self, only_active: bool = False) -> List[ServiceDefinition]:
        with self._lock:
            services = [
                service
                for service in self._services.values()
                if service.active or not only_active
            ]
        return sorted(services, key=lambda service: service.name.lower())

    def get_service(self, service_id: str) -> Optional[ServiceDefinition]:
        with self._lock:
            return self._services.get(service_id)

    def insert_service(self, service: ServiceDefinition) -> ServiceDefinition:
        with self._transaction():
            if service.id in self._services:
                raise InvalidInputError(f"Service already exists: {service.id}")
            self._services[service.id] = service
        return service

    def save_service(self, service: ServiceDefinition) -> ServiceDefinition:
        with self._transaction():
            if service.id not in self._services:
                raise NotFoundError(f"Service not found: {service.id}")
            self._services[service.id] = service
        return service
