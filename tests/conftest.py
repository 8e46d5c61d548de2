"""
Shared fixtures for the test suite.
"""

import itertools
from typing import Callable, List

import pendulum
import pytest

from washslot.domain.models import Appointment, BusinessHoursRule
from washslot.domain.slot_calculator import SlotCalculator

TZ = "America/Sao_Paulo"


@pytest.fixture
def tz() -> str:
    return TZ


@pytest.fixture
def at() -> Callable[[str], pendulum.DateTime]:
    """Parse a local 'YYYY-MM-DD HH:mm' string in the reference timezone."""
    return lambda text: pendulum.parse(text, tz=TZ)


@pytest.fixture
def weekly_hours() -> List[BusinessHoursRule]:
    """Sunday closed, Monday-Saturday 08:00-18:00."""
    return [BusinessHoursRule(day_of_week=0, is_open=False, open_time="08:00", close_time="18:00")] + [
        BusinessHoursRule(day_of_week=day, is_open=True, open_time="08:00", close_time="18:00")
        for day in range(1, 7)
    ]


@pytest.fixture
def calculator() -> SlotCalculator:
    return SlotCalculator(timezone=TZ)


@pytest.fixture
def make_appointment(at) -> Callable[..., Appointment]:
    counter = itertools.count(1)

    def factory(start: str, end: str, status: str = "confirmed", service_id: str = "svc-full") -> Appointment:
        return Appointment(
            id=f"apt-{next(counter)}",
            service_id=service_id,
            start_time=at(start),
            end_time=at(end),
            status=status,
            customer_name="Ana",
            customer_phone="11 99999-0000",
            vehicle_type="sedan",
        )

    return factory
