"""
Business-hours and blocked-date configuration.
"""

from __future__ import annotations

import logging
from datetime import date, time
from typing import List, Optional

from ..domain.exceptions import NotFoundError
from ..domain.models import BusinessHoursRule, DateOverride
from ..domain.timeformat import parse_date
from .protocols import ScheduleConfigStore

logger = logging.getLogger(__name__)


class ScheduleService:
    """Maintains the weekly schedule and its per-date exceptions."""

    def __init__(self, schedule: ScheduleConfigStore) -> None:
        self._schedule = schedule

    def get_business_hours(self) -> List[BusinessHoursRule]:
        return sorted(self._schedule.get_business_hours(), key=lambda rule: rule.day_of_week)

    def set_business_hours(
        self,
        day_of_week: int,
        is_open: bool,
        open_time: str | time,
        close_time: str | time,
    ) -> BusinessHoursRule:
        """Replace the rule for one weekday (0=Sunday .. 6=Saturday)."""
        rule = BusinessHoursRule(
            day_of_week=day_of_week,
            is_open=is_open,
            open_time=open_time,
            close_time=close_time,
        )
        stored = self._schedule.upsert_business_hours(rule)
        logger.info("Business hours for weekday %d updated", day_of_week)
        return stored

    def list_date_overrides(
        self,
        start_date: Optional[str | date] = None,
        end_date: Optional[str | date] = None,
    ) -> List[DateOverride]:
        start = parse_date(start_date) if start_date is not None else None
        end = parse_date(end_date) if end_date is not None else None
        return self._schedule.list_date_overrides(start=start, end=end)

    def upsert_date_override(
        self,
        date: str | date,
        is_fully_blocked: bool,
        open_time: Optional[str | time] = None,
        close_time: Optional[str | time] = None,
        reason: Optional[str] = None,
    ) -> DateOverride:
        """
        Block a date or give it special hours. A full block drops any times.
        """
        override = DateOverride(
            date=parse_date(date),
            is_fully_blocked=is_fully_blocked,
            open_time=None if is_fully_blocked else open_time,
            close_time=None if is_fully_blocked else close_time,
            reason=(reason or "").strip() or None,
        )
        stored = self._schedule.upsert_date_override(override)
        logger.info(
            "Date override for %s saved (%s)",
            stored.date,
            "blocked" if stored.is_fully_blocked else "special hours",
        )
        return stored

    def delete_date_override(self, date: str | date) -> None:
        day = parse_date(date)
        if not self._schedule.delete_date_override(day):
            raise NotFoundError(f"No override for {day}")
        logger.info("Date override for %s removed", day)
