"""
Textual conventions shared between the engine and its callers.

Dates travel as ``YYYY-MM-DD``, times of day as ``HH:MM`` (24-hour clock)
and instants as ISO-8601 timestamps.
"""

import re
from datetime import date, datetime, time

import pendulum
from pendulum import Date, DateTime

from .exceptions import InvalidInputError

_DATE_PATTERN = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
_TIME_PATTERN = re.compile(r"^(\d{2}):(\d{2})(?::(\d{2}))?$")


def parse_date(value: str | date) -> Date:
    """
    Parse a ``YYYY-MM-DD`` calendar date.

    Raises:
        InvalidInputError: If the value is not a valid calendar date
    """
    if isinstance(value, datetime):
        raise InvalidInputError(f"Expected a calendar date without time, got {value!r}")
    if isinstance(value, date):
        return pendulum.date(value.year, value.month, value.day)

    match = _DATE_PATTERN.match(value.strip()) if isinstance(value, str) else None
    if not match:
        raise InvalidInputError(f"Invalid date format: {value!r}. Use YYYY-MM-DD")

    year, month, day = (int(part) for part in match.groups())
    try:
        return pendulum.date(year, month, day)
    except ValueError as exc:
        raise InvalidInputError(f"Invalid date: {value!r} ({exc})") from exc


def parse_time_of_day(value: str | time) -> time:
    """
    Parse a wall-clock ``HH:MM`` time.

    ``HH:MM:SS`` is accepted as long as the seconds are zero, which is how
    SQL ``time`` columns usually come back.
    """
    if isinstance(value, time):
        if value.second or value.microsecond:
            raise InvalidInputError(f"Time of day must be whole minutes, got {value}")
        return value.replace(tzinfo=None)

    match = _TIME_PATTERN.match(value.strip()) if isinstance(value, str) else None
    if not match:
        raise InvalidInputError(f"Invalid time format: {value!r}. Use HH:MM")

    hour, minute = int(match.group(1)), int(match.group(2))
    seconds = int(match.group(3) or 0)
    if not 0 <= hour < 24 or not 0 <= minute < 60 or seconds:
        raise InvalidInputError(f"Invalid time of day: {value!r}")

    return time(hour=hour, minute=minute)


def format_time_of_day(value: time) -> str:
    """Format a wall-clock time as ``HH:MM``."""
    return f"{value.hour:02d}:{value.minute:02d}"


def format_date(value: date) -> str:
    return f"{value.year:04d}-{value.month:02d}-{value.day:02d}"


def parse_instant(value: str | datetime, timezone: str) -> DateTime:
    """
    Parse an ISO-8601 timestamp into an aware pendulum DateTime.

    Timestamps without an offset are interpreted in ``timezone``.
    """
    if isinstance(value, datetime):
        return pendulum.instance(value, tz=timezone)

    if not isinstance(value, str) or not value.strip():
        raise InvalidInputError(f"Invalid timestamp: {value!r}")

    try:
        parsed = pendulum.parse(value.strip(), tz=timezone)
    except ValueError as exc:
        raise InvalidInputError(f"Invalid timestamp: {value!r} ({exc})") from exc

    if not isinstance(parsed, DateTime):
        raise InvalidInputError(f"Timestamp must contain a date and time: {value!r}")

    return parsed


def format_instant(value: DateTime) -> str:
    """Format an instant as an ISO-8601 string with its UTC offset."""
    return value.to_iso8601_string()
