"""
File-backed store that keeps the in-memory state in a JSON document.

Dates are written as ``YYYY-MM-DD``, times of day as ``HH:MM`` and instants
as ISO-8601 timestamps.
"""

from __future__ import annotations

import json
import logging
import os
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator

from filelock import FileLock

from ..domain.exceptions import InvalidInputError
from ..domain.models import Appointment, BusinessHoursRule, DateOverride, ServiceDefinition
from ..domain.timeformat import format_date, format_instant, format_time_of_day, parse_instant
from .memory_store import InMemoryStore

logger = logging.getLogger(__name__)


class JsonFileStore(InMemoryStore):
    """
    ``InMemoryStore`` that loads from and saves to a JSON file.

    Every write runs under an inter-process lock on ``<path>.lock``: the file
    is re-read, the change is checked against that fresh state, and the
    result is written back atomically. Several processes sharing one data
    file therefore see each other's bookings before committing their own.
    When the file does not exist yet, the store starts from
    ``default_business_hours``.
    """

    def __init__(
        self,
        path: Path,
        timezone: str,
        default_business_hours: Iterable[BusinessHoursRule] = (),
    ):
        self.path = Path(path)
        self.timezone = timezone
        self._file_lock = FileLock(f"{self.path}.lock")
        super().__init__(business_hours=default_business_hours)

        if self.path.exists():
            self._reload()
            logger.debug("Loaded booking data from %s", self.path)
        else:
            logger.debug("No data file at %s, starting with default business hours", self.path)

    @contextmanager
    def _transaction(self) -> Iterator[None]:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self._lock, self._file_lock:
            self._reload()
            previous = self._snapshot()
            try:
                yield
                self._write()
            except Exception:
                # Memory must match the file after a rejected change or a failed write
                self._replace_state(*previous)
                raise

    def reload(self) -> None:
        """Pick up changes written by other processes."""
        with self._lock:
            self._reload()

    def _reload(self) -> None:
        if not self.path.exists():
            return
        data = self._read()
        self._replace_state(
            business_hours=[_rule_from_dict(item) for item in data.get("business_hours", [])],
            services=[_service_from_dict(item) for item in data.get("services", [])],
            appointments=[
                _appointment_from_dict(item, self.timezone) for item in data.get("appointments", [])
            ],
            date_overrides=[_override_from_dict(item) for item in data.get("date_overrides", [])],
        )

    def _write(self) -> None:
        """Write the current state atomically (temp file + rename)."""
        payload = {
            "business_hours": [_rule_to_dict(rule) for rule in self.get_business_hours()],
            "date_overrides": [_override_to_dict(item) for item in self.list_date_overrides()],
            "services": [_service_to_dict(service) for service in self.list_services()],
            "appointments": [_appointment_to_dict(item) for item in self.list_appointments()],
        }
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, ensure_ascii=False)
        os.replace(tmp_path, self.path)

    def _read(self) -> Dict[str, Any]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid JSON in {self.path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError(f"Data file {self.path} must contain an object at the root level.")

        return data


def _rule_to_dict(rule: BusinessHoursRule) -> Dict[str, Any]:
    return {
        "day_of_week": rule.day_of_week,
        "is_open": rule.is_open,
        "open_time": format_time_of_day(rule.open_time),
        "close_time": format_time_of_day(rule.close_time),
    }


def _rule_from_dict(data: Dict[str, Any]) -> BusinessHoursRule:
    try:
        return BusinessHoursRule(
            day_of_week=data["day_of_week"],
            is_open=bool(data["is_open"]),
            open_time=data["open_time"],
            close_time=data["close_time"],
        )
    except KeyError as exc:
        raise InvalidInputError(f"Business hours entry is missing {exc}") from exc


def _override_to_dict(override: DateOverride) -> Dict[str, Any]:
    return {
        "date": format_date(override.date),
        "is_fully_blocked": override.is_fully_blocked,
        "open_time": format_time_of_day(override.open_time) if override.open_time is not None else None,
        "close_time": format_time_of_day(override.close_time) if override.close_time is not None else None,
        "reason": override.reason,
    }


def _override_from_dict(data: Dict[str, Any]) -> DateOverride:
    try:
        return DateOverride(
            date=data["date"],
            is_fully_blocked=bool(data["is_fully_blocked"]),
            open_time=data.get("open_time"),
            close_time=data.get("close_time"),
            reason=data.get("reason"),
        )
    except KeyError as exc:
        raise InvalidInputError(f"Date override entry is missing {exc}") from exc


def _service_to_dict(service: ServiceDefinition) -> Dict[str, Any]:
    return {
        "id": service.id,
        "name": service.name,
        "description": service.description,
        "price": service.price,
        "duration_minutes": service.duration_minutes,
        "active": service.active,
    }


def _service_from_dict(data: Dict[str, Any]) -> ServiceDefinition:
    try:
        return ServiceDefinition(
            id=data["id"],
            name=data["name"],
            duration_minutes=data["duration_minutes"],
            active=bool(data.get("active", True)),
            price=float(data.get("price", 0.0)),
            description=data.get("description"),
        )
    except KeyError as exc:
        raise InvalidInputError(f"Service entry is missing {exc}") from exc


def _appointment_to_dict(appointment: Appointment) -> Dict[str, Any]:
    return {
        "id": appointment.id,
        "service_id": appointment.service_id,
        "start_time": format_instant(appointment.start_time),
        "end_time": format_instant(appointment.end_time),
        "status": appointment.status.value,
        "customer_name": appointment.customer_name,
        "customer_phone": appointment.customer_phone,
        "vehicle_type": appointment.vehicle_type,
        "notes": appointment.notes,
    }


def _appointment_from_dict(data: Dict[str, Any], timezone: str) -> Appointment:
    try:
        return Appointment(
            id=data["id"],
            service_id=data["service_id"],
            start_time=parse_instant(data["start_time"], timezone),
            end_time=parse_instant(data["end_time"], timezone),
            status=data.get("status", "pending"),
            customer_name=data.get("customer_name", ""),
            customer_phone=data.get("customer_phone", ""),
            vehicle_type=data.get("vehicle_type", ""),
            notes=data.get("notes"),
        )
    except KeyError as exc:
        raise InvalidInputError(f"Appointment entry is missing {exc}") from exc
