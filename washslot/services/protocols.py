"""
Protocols describing the persistence collaborators the services rely on.

The concrete stores live in ``washslot.adapters``; tests and other callers
can plug in anything with the same shape.
"""

from __future__ import annotations

from datetime import date
from typing import List, Optional, Protocol

from pendulum import DateTime

from ..domain.models import (
    Appointment,
    AppointmentStatus,
    BusinessHoursRule,
    DateOverride,
    ServiceDefinition,
)


class AppointmentStore(Protocol):
    """Appointment persistence with an atomic overlap guard on insert."""

    def list_appointments(
        self,
        start: Optional[DateTime] = None,
        end: Optional[DateTime] = None,
        status: Optional[AppointmentStatus] = None,
    ) -> List[Appointment]:
        """Return appointments whose start lies in ``[start, end)``, ordered by start."""

    def get_appointment(self, appointment_id: str) -> Optional[Appointment]:
        """Return one appointment or None."""

    def insert_appointment(self, appointment: Appointment) -> Appointment:
        """
        Store a new appointment.

        Must raise ``SlotConflictError`` when it would overlap another
        non-cancelled appointment, checked atomically with the write.
        """

    def save_appointment(self, appointment: Appointment) -> Appointment:
        """Replace an existing appointment; raises ``NotFoundError`` if missing."""


class ScheduleConfigStore(Protocol):
    """Weekly business hours and per-date overrides."""

    def get_business_hours(self) -> List[BusinessHoursRule]:
        """Return all weekday rules ordered by weekday."""

    def upsert_business_hours(self, rule: BusinessHoursRule) -> BusinessHoursRule:
        """Insert or replace the rule for ``rule.day_of_week``."""

    def get_date_override(self, day: date) -> Optional[DateOverride]:
        """Return the override for one date or None."""

    def list_date_overrides(
        self,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> List[DateOverride]:
        """Return overrides with ``start <= date <= end``, ordered by date."""

    def upsert_date_override(self, override: DateOverride) -> DateOverride:
        """Insert or replace the override for ``override.date``."""

    def delete_date_override(self, day: date) -> bool:
        """Remove the override for a date; returns whether one existed."""


class ServiceCatalog(Protocol):
    """Bookable services."""

    def list_services(self, only_active: bool = False) -> List[ServiceDefinition]:
        """Return services ordered by name."""

    def get_service(self, service_id: str) -> Optional[ServiceDefinition]:
        """Return one service or None."""

    def insert_service(self, service: ServiceDefinition) -> ServiceDefinition:
        """Store a new service."""

    def save_service(self, service: ServiceDefinition) -> ServiceDefinition:
        """Replace an existing service; raises ``NotFoundError`` if missing."""
