"""
Tests for the BookingService orchestration layer.
"""

import threading
from typing import List

import pendulum
import pytest

from washslot.adapters.memory_store import InMemoryStore
from washslot.domain.exceptions import (
    InvalidInputError,
    InvalidStatusTransitionError,
    NotFoundError,
    ServiceUnavailableError,
    SlotConflictError,
)
from washslot.domain.models import Appointment, AppointmentStatus, DateOverride, ServiceDefinition
from washslot.domain.slot_calculator import SlotCalculator
from washslot.services.booking import BookingRequest, BookingService

TZ = "America/Sao_Paulo"
NOW = pendulum.datetime(2025, 3, 13, 10, 0, tz=TZ)  # Thursday

FULL_WASH = ServiceDefinition(id="svc-full", name="Full wash", duration_minutes=90, price=80.0)
QUICK_WASH = ServiceDefinition(id="svc-quick", name="Quick wash", duration_minutes=30, price=35.0)
RETIRED = ServiceDefinition(id="svc-old", name="Wax", duration_minutes=60, price=50.0, active=False)


class StaleSnapshotStore(InMemoryStore):
    """Simulates a second request that read its snapshot before the first booking landed."""

    def list_appointments(self, start=None, end=None, status=None) -> List[Appointment]:
        return []


def _build_service(weekly_hours, store=None, **kwargs) -> BookingService:
    store = store or InMemoryStore(business_hours=weekly_hours, services=[FULL_WASH, QUICK_WASH, RETIRED])
    return BookingService(
        store=store,
        catalog=store,
        schedule=store,
        calculator=SlotCalculator(timezone=TZ),
        clock=lambda tz: NOW.in_timezone(tz),
        **kwargs,
    )


def _request(start_time="2025-03-14T09:00:00", service_id="svc-full", **overrides) -> BookingRequest:
    data = dict(
        customer_name="  Ana Souza ",
        customer_phone="11 99999-0000",
        vehicle_type="SUV",
        service_id=service_id,
        start_time=start_time,
    )
    data.update(overrides)
    return BookingRequest(**data)


def test_availability_defaults_to_ninety_minutes(weekly_hours):
    service = _build_service(weekly_hours)

    slots = service.get_availability("2025-03-14")

    assert slots[0].display == "08:00"
    assert slots[-1].display == "16:30"


def test_availability_uses_service_duration(weekly_hours):
    service = _build_service(weekly_hours)

    slots = service.get_availability("2025-03-14", service_id="svc-quick")

    assert slots[-1].display == "17:30"


def test_availability_rejects_inactive_service(weekly_hours):
    service = _build_service(weekly_hours)

    with pytest.raises(ServiceUnavailableError):
        service.get_availability("2025-03-14", service_id="svc-old")


def test_availability_rejects_service_and_duration_together(weekly_hours):
    service = _build_service(weekly_hours)

    with pytest.raises(InvalidInputError):
        service.get_availability("2025-03-14", service_id="svc-quick", service_duration_minutes=30)


@pytest.mark.parametrize("duration", [0, -15])
def test_availability_rejects_non_positive_duration(weekly_hours, duration):
    service = _build_service(weekly_hours)

    with pytest.raises(InvalidInputError):
        service.get_availability("2025-03-14", service_duration_minutes=duration)


def test_availability_rejects_past_dates(weekly_hours):
    service = _build_service(weekly_hours)

    with pytest.raises(InvalidInputError, match="past"):
        service.get_availability("2025-03-12")


def test_past_dates_can_be_allowed(weekly_hours):
    service = _build_service(weekly_hours, allow_past_dates=True)

    assert service.get_availability("2025-03-12")


def test_availability_today_applies_lead_time(weekly_hours):
    service = _build_service(weekly_hours)

    slots = service.get_availability("2025-03-13", service_duration_minutes=30)

    assert slots[0].display == "11:00"


def test_availability_honours_stored_override(weekly_hours):
    store = InMemoryStore(
        business_hours=weekly_hours,
        services=[FULL_WASH],
        date_overrides=[DateOverride(date="2025-03-14", is_fully_blocked=True, reason="Holiday")],
    )
    service = _build_service(weekly_hours, store=store)

    assert service.get_availability("2025-03-14") == []
    assert not service.is_day_available("2025-03-14")
    assert service.is_day_available("2025-03-15")


def test_create_appointment_books_pending_slot(weekly_hours):
    service = _build_service(weekly_hours)

    appointment = service.create_appointment(_request())

    assert appointment.status is AppointmentStatus.PENDING
    assert appointment.customer_name == "Ana Souza"
    assert appointment.start_time == pendulum.datetime(2025, 3, 14, 9, 0, tz=TZ)
    assert appointment.end_time == pendulum.datetime(2025, 3, 14, 10, 30, tz=TZ)
    assert service.get_appointment(appointment.id) == appointment


def test_booked_slot_disappears_from_availability(weekly_hours):
    service = _build_service(weekly_hours)
    service.create_appointment(_request())

    displays = [slot.display for slot in service.get_availability("2025-03-14")]

    assert displays[:2] == ["10:30", "11:00"]


def test_create_appointment_rejects_taken_slot(weekly_hours):
    service = _build_service(weekly_hours)
    service.create_appointment(_request())

    with pytest.raises(SlotConflictError):
        service.create_appointment(_request(start_time="2025-03-14T09:30:00"))


def test_cancelled_appointment_frees_its_slot(weekly_hours):
    service = _build_service(weekly_hours)
    first = service.create_appointment(_request())
    service.cancel_appointment(first.id)

    second = service.create_appointment(_request())

    assert second.id != first.id


@pytest.mark.parametrize(
    "start_time",
    [
        "2025-03-14T09:15:00",  # off the grid
        "2025-03-14T17:00:00",  # would end after closing
        "2025-03-16T09:00:00",  # Sunday
        "2025-03-13T10:30:00",  # inside today's lead time
    ],
)
def test_create_appointment_rejects_unbookable_times(weekly_hours, start_time):
    service = _build_service(weekly_hours)

    with pytest.raises(InvalidInputError):
        service.create_appointment(_request(start_time=start_time))


@pytest.mark.parametrize("field", ["customer_name", "customer_phone", "vehicle_type"])
def test_create_appointment_requires_customer_data(weekly_hours, field):
    service = _build_service(weekly_hours)

    with pytest.raises(InvalidInputError, match="required"):
        service.create_appointment(_request(**{field: "   "}))


def test_create_appointment_requires_active_service(weekly_hours):
    service = _build_service(weekly_hours)

    with pytest.raises(ServiceUnavailableError):
        service.create_appointment(_request(service_id="svc-old"))
    with pytest.raises(ServiceUnavailableError):
        service.create_appointment(_request(service_id="missing"))


def test_create_appointment_accepts_offsets(weekly_hours):
    service = _build_service(weekly_hours)

    appointment = service.create_appointment(_request(start_time="2025-03-14T12:00:00Z"))

    assert appointment.start_time.in_timezone(TZ).format("HH:mm") == "09:00"


def test_store_rejects_booking_that_passed_a_stale_check(weekly_hours, caplog):
    """The advisory check can be fooled; the store's guard cannot."""
    store = StaleSnapshotStore(business_hours=weekly_hours, services=[FULL_WASH])
    service = _build_service(weekly_hours, store=store)
    service.create_appointment(_request())

    with caplog.at_level("WARNING", logger="washslot.services.booking"):
        with pytest.raises(SlotConflictError):
            service.create_appointment(_request(start_time="2025-03-14T10:00:00"))

    assert "lost a race at commit" in caplog.text


def test_concurrent_bookings_store_only_one(weekly_hours):
    store = StaleSnapshotStore(business_hours=weekly_hours, services=[FULL_WASH])
    service = _build_service(weekly_hours, store=store)
    barrier = threading.Barrier(4)
    outcomes: List[str] = []

    def book():
        barrier.wait()
        try:
            service.create_appointment(_request())
            outcomes.append("booked")
        except SlotConflictError:
            outcomes.append("conflict")

    threads = [threading.Thread(target=book) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sorted(outcomes) == ["booked", "conflict", "conflict", "conflict"]
    assert len(InMemoryStore.list_appointments(store)) == 1


def test_status_lifecycle(weekly_hours):
    service = _build_service(weekly_hours)
    appointment = service.create_appointment(_request())

    for status in ("confirmed", "in_progress", "completed"):
        appointment = service.update_status(appointment.id, status)

    assert appointment.status is AppointmentStatus.COMPLETED
    with pytest.raises(InvalidStatusTransitionError):
        service.cancel_appointment(appointment.id)


def test_status_rejects_unknown_value(weekly_hours):
    service = _build_service(weekly_hours)
    appointment = service.create_appointment(_request())

    with pytest.raises(InvalidInputError, match="Invalid status"):
        service.update_status(appointment.id, "archived")


def test_status_for_missing_appointment(weekly_hours):
    service = _build_service(weekly_hours)

    with pytest.raises(NotFoundError):
        service.update_status("missing", "confirmed")


def test_update_appointment_edits_customer_details_only(weekly_hours):
    service = _build_service(weekly_hours)
    appointment = service.create_appointment(_request())

    updated = service.update_appointment(appointment.id, vehicle_type=" Pickup ", notes="  ")

    assert updated.vehicle_type == "Pickup"
    assert updated.notes is None
    assert updated.start_time == appointment.start_time
    with pytest.raises(InvalidInputError, match="cannot be edited"):
        service.update_appointment(appointment.id, end_time="2025-03-14T12:00:00")


def test_update_appointment_routes_status_through_lifecycle(weekly_hours):
    service = _build_service(weekly_hours)
    appointment = service.create_appointment(_request())

    updated = service.update_appointment(appointment.id, status="confirmed", notes="Bring keys")

    assert updated.status is AppointmentStatus.CONFIRMED
    assert updated.notes == "Bring keys"


def test_list_appointments_filters(weekly_hours):
    service = _build_service(weekly_hours)
    friday = service.create_appointment(_request())
    saturday = service.create_appointment(_request(start_time="2025-03-15T09:00:00"))
    service.update_status(saturday.id, "confirmed")

    assert service.list_appointments(date="2025-03-14") == [friday]
    assert [a.id for a in service.list_appointments(status="confirmed")] == [saturday.id]
    assert len(service.list_appointments(start_date="2025-03-14", end_date="2025-03-15")) == 2
    assert service.list_appointments(start_date="2025-03-15", end_date="2025-03-14") == []


def test_upcoming_and_dashboard(weekly_hours):
    service = _build_service(weekly_hours)
    today = service.create_appointment(_request(start_time="2025-03-13T14:00:00"))
    later = service.create_appointment(_request(start_time="2025-03-14T09:00:00"))
    cancelled = service.create_appointment(_request(start_time="2025-03-14T13:00:00"))
    service.cancel_appointment(cancelled.id)

    upcoming = service.get_upcoming()
    summary = service.get_dashboard()

    assert [a.id for a in upcoming] == [today.id, later.id]
    assert summary.date == pendulum.date(2025, 3, 13)
    assert summary.total == 1
    assert summary.status_counts["pending"] == 1
    assert summary.status_counts["cancelled"] == 0
    assert [a.id for a in summary.upcoming] == [today.id, later.id]


def test_upcoming_limit_must_be_positive(weekly_hours):
    service = _build_service(weekly_hours)

    with pytest.raises(InvalidInputError):
        service.get_upcoming(limit=0)


def test_slot_board_flags_taken_slots(weekly_hours):
    service = _build_service(weekly_hours)
    service.create_appointment(_request())

    board = service.get_slot_board("2025-03-14")

    assert len(board) == 18
    assert {slot.display for slot in board if not slot.available} == {
        "08:00", "08:30", "09:00", "09:30", "10:00",
    }
