"""
Tests for the store adapters.
"""

import json

import pytest

from washslot.adapters.json_store import JsonFileStore
from washslot.adapters.memory_store import InMemoryStore
from washslot.domain.exceptions import NotFoundError, SlotConflictError
from washslot.domain.models import AppointmentStatus, DateOverride, ServiceDefinition

TZ = "America/Sao_Paulo"


class TestInMemoryStore:
    """Tests for the overlap guard and queries."""

    def test_insert_rejects_overlap(self, make_appointment):
        store = InMemoryStore()
        store.insert_appointment(make_appointment("2025-03-14 09:00", "2025-03-14 10:30"))

        with pytest.raises(SlotConflictError):
            store.insert_appointment(make_appointment("2025-03-14 10:00", "2025-03-14 11:00"))

    def test_insert_allows_touching_and_cancelled(self, make_appointment):
        store = InMemoryStore()
        store.insert_appointment(make_appointment("2025-03-14 09:00", "2025-03-14 10:30"))
        store.insert_appointment(make_appointment("2025-03-14 09:30", "2025-03-14 10:00", status="cancelled"))

        store.insert_appointment(make_appointment("2025-03-14 10:30", "2025-03-14 12:00"))

        assert len(store.list_appointments()) == 3

    def test_list_by_range_and_status(self, make_appointment, at):
        store = InMemoryStore()
        late = store.insert_appointment(make_appointment("2025-03-14 15:00", "2025-03-14 16:00"))
        early = store.insert_appointment(make_appointment("2025-03-14 08:00", "2025-03-14 09:00", status="pending"))
        store.insert_appointment(make_appointment("2025-03-15 08:00", "2025-03-15 09:00"))

        same_day = store.list_appointments(start=at("2025-03-14 00:00"), end=at("2025-03-15 00:00"))
        pending = store.list_appointments(status=AppointmentStatus.PENDING)

        assert same_day == [early, late]
        assert pending == [early]

    def test_save_missing_appointment(self, make_appointment):
        with pytest.raises(NotFoundError):
            InMemoryStore().save_appointment(make_appointment("2025-03-14 08:00", "2025-03-14 09:00"))


class TestJsonFileStore:
    """Tests for the file-backed store."""

    def test_starts_with_default_hours(self, tmp_path, weekly_hours):
        store = JsonFileStore(tmp_path / "data.json", TZ, default_business_hours=weekly_hours)

        assert store.get_business_hours() == weekly_hours
        assert not (tmp_path / "data.json").exists()

    def test_writes_survive_reload(self, tmp_path, weekly_hours, make_appointment):
        path = tmp_path / "data.json"
        store = JsonFileStore(path, TZ, default_business_hours=weekly_hours)
        store.insert_service(ServiceDefinition(id="svc-full", name="Full wash", duration_minutes=90, price=80.0))
        store.upsert_date_override(DateOverride(date="2025-12-24", is_fully_blocked=False, close_time="12:00"))
        appointment = store.insert_appointment(make_appointment("2025-03-14 09:00", "2025-03-14 10:30"))

        reloaded = JsonFileStore(path, TZ)

        assert reloaded.get_business_hours() == weekly_hours
        assert reloaded.get_service("svc-full").price == 80.0
        assert reloaded.list_date_overrides()[0].close_time.hour == 12
        assert reloaded.get_appointment(appointment.id) == appointment

    def test_file_uses_textual_conventions(self, tmp_path, weekly_hours, make_appointment):
        path = tmp_path / "data.json"
        store = JsonFileStore(path, TZ, default_business_hours=weekly_hours)
        store.insert_appointment(make_appointment("2025-03-14 09:00", "2025-03-14 10:30"))
        store.upsert_date_override(DateOverride(date="2025-12-25", is_fully_blocked=True))

        data = json.loads(path.read_text(encoding="utf-8"))

        assert data["business_hours"][1]["open_time"] == "08:00"
        assert data["date_overrides"][0]["date"] == "2025-12-25"
        assert data["appointments"][0]["start_time"] == "2025-03-14T09:00:00-03:00"
        assert data["appointments"][0]["status"] == "confirmed"

    def test_invalid_json_is_reported(self, tmp_path):
        path = tmp_path / "data.json"
        path.write_text("{not json", encoding="utf-8")

        with pytest.raises(ValueError, match="Invalid JSON"):
            JsonFileStore(path, TZ)


class TestJsonFileStoreSharing:
    """Tests for several store instances writing to one data file."""

    def test_second_instance_sees_booking_made_by_first(self, tmp_path, weekly_hours, make_appointment):
        path = tmp_path / "data.json"
        first = JsonFileStore(path, TZ, default_business_hours=weekly_hours)
        second = JsonFileStore(path, TZ, default_business_hours=weekly_hours)
        booked = first.insert_appointment(make_appointment("2025-03-14 09:00", "2025-03-14 10:30"))

        with pytest.raises(SlotConflictError):
            second.insert_appointment(make_appointment("2025-03-14 09:00", "2025-03-14 10:30"))

        stored = json.loads(path.read_text(encoding="utf-8"))["appointments"]
        assert [item["id"] for item in stored] == [booked.id]
        assert second.list_appointments() == [booked]

    def test_writes_from_both_instances_are_kept(self, tmp_path, weekly_hours, make_appointment):
        path = tmp_path / "data.json"
        first = JsonFileStore(path, TZ, default_business_hours=weekly_hours)
        second = JsonFileStore(path, TZ, default_business_hours=weekly_hours)

        first.insert_service(ServiceDefinition(id="svc-full", name="Full wash", duration_minutes=90, price=80.0))
        second.insert_service(ServiceDefinition(id="svc-quick", name="Quick wash", duration_minutes=30, price=35.0))
        first.insert_appointment(make_appointment("2025-03-14 09:00", "2025-03-14 10:30"))
        second.insert_appointment(make_appointment("2025-03-14 10:30", "2025-03-14 12:00"))

        reloaded = JsonFileStore(path, TZ)
        assert [service.id for service in reloaded.list_services()] == ["svc-full", "svc-quick"]
        assert len(reloaded.list_appointments()) == 2

    def test_reload_picks_up_other_writers(self, tmp_path, weekly_hours):
        path = tmp_path / "data.json"
        reader = JsonFileStore(path, TZ, default_business_hours=weekly_hours)
        writer = JsonFileStore(path, TZ, default_business_hours=weekly_hours)
        writer.upsert_date_override(DateOverride(date="2025-12-25", is_fully_blocked=True))

        assert reader.list_date_overrides() == []
        reader.reload()
        assert [override.is_fully_blocked for override in reader.list_date_overrides()] == [True]

    def test_failed_write_leaves_memory_unchanged(self, tmp_path, weekly_hours, make_appointment, monkeypatch):
        path = tmp_path / "data.json"
        store = JsonFileStore(path, TZ, default_business_hours=weekly_hours)
        kept = store.insert_appointment(make_appointment("2025-03-14 09:00", "2025-03-14 10:30"))

        def fail_write():
            raise OSError("disk full")

        monkeypatch.setattr(store, "_write", fail_write)
        with pytest.raises(OSError, match="disk full"):
            store.insert_appointment(make_appointment("2025-03-14 13:00", "2025-03-14 14:30"))

        assert store.list_appointments() == [kept]
        assert JsonFileStore(path, TZ).list_appointments() == [kept]
