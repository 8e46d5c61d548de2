"""
Core business logic for calculating bookable appointment slots.

This is the heart of the application - pure domain logic without any
external dependencies (no API calls, no database, no I/O). Every input,
including the current instant, is passed in by the caller.
"""

from datetime import date, datetime, time
from typing import List, Optional, Sequence, Tuple

import pendulum
from pendulum import Date, DateTime

from .exceptions import InvalidInputError
from .models import (
    Appointment,
    BusinessHoursRule,
    DateOverride,
    TimeRange,
    TimeSlot,
    weekday_index,
)
from .timeformat import parse_date, parse_instant

DEFAULT_TIMEZONE = "America/Sao_Paulo"
DEFAULT_SLOT_INTERVAL_MINUTES = 30
DEFAULT_LEAD_TIME_MINUTES = 60


class SlotCalculator:
    """
    Calculates bookable start times for one calendar date.
    
    Algorithm:
    1. Resolve the effective opening hours (date override, else weekday rule)
    2. Generate candidate starts every ``slot_interval_minutes`` from opening,
       keeping only those whose service would end by closing time
    3. For today, drop candidates starting before ``now + lead time``
    4. Drop candidates overlapping any non-cancelled appointment
    5. Return the survivors in start order
    """
    
    def __init__(
        self,
        timezone: str = DEFAULT_TIMEZONE,
        slot_interval_minutes: int = DEFAULT_SLOT_INTERVAL_MINUTES,
        lead_time_minutes: int = DEFAULT_LEAD_TIME_MINUTES,
    ):
        """
        Args:
            timezone: IANA timezone that dates and opening hours are anchored in
            slot_interval_minutes: Granularity of candidate start times
            lead_time_minutes: Minimum notice for same-day bookings
        """
        if slot_interval_minutes <= 0:
            raise InvalidInputError("slot_interval_minutes must be greater than zero")
        if lead_time_minutes < 0:
            raise InvalidInputError("lead_time_minutes must not be negative")

        self.timezone = timezone
        self.slot_interval_minutes = slot_interval_minutes
        self.lead_time_minutes = lead_time_minutes
    
    def compute_available_slots(
        self,
        date: str | date,
        service_duration_minutes: int,
        business_hours: Sequence[BusinessHoursRule],
        date_override: Optional[DateOverride],
        existing_appointments: Sequence[Appointment],
        now: DateTime | datetime,
    ) -> List[TimeSlot]:
        """
        Compute the ordered list of bookable slots for a date.
        
        Args:
            date: Target calendar date (``YYYY-MM-DD`` or a date)
            service_duration_minutes: Length of the interval each slot reserves
            business_hours: Weekly rules, one per weekday
            date_override: Optional blocked/special-hours entry for this date
            existing_appointments: Appointments starting on this date, any status
            now: The current instant
            
        Returns:
            Bookable slots in ascending start order. An empty list means no
            availability and is not an error.
        """
        return [
            TimeSlot(start=start, duration_minutes=service_duration_minutes)
            for start, conflicts in self._evaluate_candidates(
                date,
                service_duration_minutes,
                business_hours,
                date_override,
                existing_appointments,
                now,
            )
            if not conflicts
        ]
    
    def compute_candidate_slots(
        self,
        date: str | date,
        service_duration_minutes: int,
        business_hours: Sequence[BusinessHoursRule],
        date_override: Optional[DateOverride],
        existing_appointments: Sequence[Appointment],
        now: DateTime | datetime,
    ) -> List[TimeSlot]:
        """
        Like ``compute_available_slots`` but keeps conflicting candidates,
        flagged with ``available=False``.
        """
        return [
            TimeSlot(start=start, duration_minutes=service_duration_minutes, available=not conflicts)
            for start, conflicts in self._evaluate_candidates(
                date,
                service_duration_minutes,
                business_hours,
                date_override,
                existing_appointments,
                now,
            )
        ]
    
    def resolve_opening_hours(
        self,
        date: str | date,
        business_hours: Sequence[BusinessHoursRule],
        date_override: Optional[DateOverride] = None,
    ) -> TimeRange | None:
        """
        Resolve the effective opening hours for a date.
        
        Returns None when the date is fully blocked, when the weekday is
        closed (or has no rule) and no override supplies both times, or when
        the resulting window is empty.
        """
        day = parse_date(date)
        override = self._check_override(day, date_override)
        
        if override is not None and override.is_fully_blocked:
            return None
        
        open_time: Optional[time] = None
        close_time: Optional[time] = None
        
        rule = self._find_rule(business_hours, weekday_index(day))
        if rule is not None and rule.is_open:
            open_time, close_time = rule.open_time, rule.close_time
        
        if override is not None:
            if override.has_explicit_hours:
                open_time, close_time = override.open_time, override.close_time
            elif open_time is not None:
                # Partial overrides only adjust a day that is already open
                if override.open_time is not None:
                    open_time = override.open_time
                if override.close_time is not None:
                    close_time = override.close_time
        
        if open_time is None or close_time is None or open_time >= close_time:
            return None
        
        return TimeRange(start=self._at(day, open_time), end=self._at(day, close_time))
    
    def is_day_open(
        self,
        date: str | date,
        business_hours: Sequence[BusinessHoursRule],
        date_override: Optional[DateOverride] = None,
    ) -> bool:
        """Check whether a date has any opening hours at all."""
        return self.resolve_opening_hours(date, business_hours, date_override) is not None
    
    def _evaluate_candidates(
        self,
        date: str | date,
        service_duration_minutes: int,
        business_hours: Sequence[BusinessHoursRule],
        date_override: Optional[DateOverride],
        existing_appointments: Sequence[Appointment],
        now: DateTime | datetime,
    ) -> List[Tuple[DateTime, bool]]:
        """Return (start, conflicts) pairs for every candidate past the lead time."""
        self._validate_duration(service_duration_minutes)
        day = parse_date(date)
        current = parse_instant(now, self.timezone)
        
        # Step 1: Effective opening hours (a full block short-circuits here)
        opening = self.resolve_opening_hours(day, business_hours, date_override)
        if opening is None:
            return []
        
        # Step 2: Candidates on the fixed grid that finish by closing time
        candidates = self._generate_candidates(opening, service_duration_minutes)
        
        # Step 3: Same-day lead time
        if current.in_timezone(self.timezone).date() == day:
            cutoff = current.add(minutes=self.lead_time_minutes)
            candidates = [start for start in candidates if start >= cutoff]
        
        # Step 4: Conflicts with appointments that still occupy time
        busy_ranges = [
            appointment.time_range
            for appointment in existing_appointments
            if appointment.occupies_time
        ]
        
        evaluated: List[Tuple[DateTime, bool]] = []
        for start in candidates:
            slot_range = TimeRange(start=start, end=start.add(minutes=service_duration_minutes))
            conflicts = any(slot_range.overlaps(busy) for busy in busy_ranges)
            evaluated.append((start, conflicts))
        
        return evaluated
    
    def _generate_candidates(
        self,
        opening: TimeRange,
        service_duration_minutes: int,
    ) -> List[DateTime]:
        """
        Generate start times every slot interval from opening.
        
        A slot ending exactly at closing time is valid.
        """
        candidates: List[DateTime] = []
        start = opening.start
        
        while start < opening.end:
            if start.add(minutes=service_duration_minutes) > opening.end:
                break
            candidates.append(start)
            start = start.add(minutes=self.slot_interval_minutes)
        
        return candidates
    
    def _at(self, day: Date, wall_clock: time) -> DateTime:
        return pendulum.datetime(
            day.year,
            day.month,
            day.day,
            wall_clock.hour,
            wall_clock.minute,
            tz=self.timezone,
        )
    
    @staticmethod
    def _find_rule(
        business_hours: Sequence[BusinessHoursRule],
        day_of_week: int,
    ) -> BusinessHoursRule | None:
        for rule in business_hours:
            if rule.day_of_week == day_of_week:
                return rule
        return None
    
    @staticmethod
    def _check_override(day: Date, date_override: Optional[DateOverride]) -> DateOverride | None:
        if date_override is not None and date_override.date != day:
            raise InvalidInputError(
                f"Date override for {date_override.date} does not apply to {day}"
            )
        return date_override
    
    @staticmethod
    def _validate_duration(service_duration_minutes: int) -> None:
        if (
            isinstance(service_duration_minutes, bool)
            or not isinstance(service_duration_minutes, int)
            or service_duration_minutes <= 0
        ):
            raise InvalidInputError(
                f"Service duration must be a positive number of minutes, got {service_duration_minutes!r}"
            )
