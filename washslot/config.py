"""
Configuration management using Pydantic models loaded from YAML.
"""

from pathlib import Path
from typing import List, Optional

import pendulum
import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .domain.exceptions import InvalidInputError
from .domain.models import BusinessHoursRule
from .domain.slot_calculator import SlotCalculator
from .domain.timeformat import parse_time_of_day

CONFIG_FILE_NAME = "washslot.yaml"


class SchedulingConfig(BaseModel):
    """Slot grid and booking policy."""
    slot_interval_minutes: int = 30
    lead_time_minutes: int = 60
    default_duration_minutes: int = 90
    allow_past_dates: bool = False

    @field_validator("slot_interval_minutes", "default_duration_minutes")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        """Ensure durations are positive."""
        if value <= 0:
            raise ValueError("must be greater than zero")
        return value

    @field_validator("lead_time_minutes")
    @classmethod
    def validate_lead_time(cls, value: int) -> int:
        if value < 0:
            raise ValueError("lead_time_minutes must not be negative")
        return value


class BusinessHoursConfig(BaseModel):
    """Default opening hours for one weekday (0=Sunday .. 6=Saturday)."""
    day_of_week: int
    is_open: bool = True
    open_time: str = "08:00"
    close_time: str = "18:00"

    @field_validator("day_of_week")
    @classmethod
    def validate_day(cls, v: int) -> int:
        """Validate weekday is between 0 and 6."""
        if not 0 <= v <= 6:
            raise ValueError(f"day_of_week must be between 0 and 6, got {v}")
        return v

    @field_validator("open_time", "close_time", mode="before")
    @classmethod
    def coerce_sexagesimal(cls, value: object) -> object:
        # YAML 1.1 reads unquoted 10:00 as the integer 600
        if isinstance(value, int) and not isinstance(value, bool):
            return f"{value // 60:02d}:{value % 60:02d}"
        return value

    @field_validator("open_time", "close_time")
    @classmethod
    def validate_time(cls, value: str) -> str:
        """Validate HH:MM format."""
        try:
            parse_time_of_day(value)
        except InvalidInputError as exc:
            raise ValueError(str(exc)) from exc
        return value

    @model_validator(mode="after")
    def validate_hours_order(self) -> "BusinessHoursConfig":
        """Ensure an open day opens before it closes."""
        if self.is_open and parse_time_of_day(self.open_time) >= parse_time_of_day(self.close_time):
            raise ValueError("open_time must be earlier than close_time")
        return self

    def to_rule(self) -> BusinessHoursRule:
        return BusinessHoursRule(
            day_of_week=self.day_of_week,
            is_open=self.is_open,
            open_time=self.open_time,
            close_time=self.close_time,
        )


def _default_business_hours() -> List[BusinessHoursConfig]:
    return [
        BusinessHoursConfig(day_of_week=0, is_open=False),
        *(BusinessHoursConfig(day_of_week=day) for day in range(1, 6)),
        BusinessHoursConfig(day_of_week=6, close_time="14:00"),
    ]


class AppConfig(BaseModel):
    """Application configuration."""
    timezone: str = "America/Sao_Paulo"
    scheduling: SchedulingConfig = Field(default_factory=SchedulingConfig)
    business_hours: List[BusinessHoursConfig] = Field(default_factory=_default_business_hours)
    data_file: Path = Path("washslot_data.json")
    log_level: str = "WARNING"

    @field_validator("business_hours")
    @classmethod
    def validate_business_hours(cls, value: List[BusinessHoursConfig]) -> List[BusinessHoursConfig]:
        """Ensure there is at most one entry per weekday."""
        seen: set[int] = set()
        for entry in value:
            if entry.day_of_week in seen:
                raise ValueError(f"Duplicate business hours for weekday {entry.day_of_week}")
            seen.add(entry.day_of_week)
        return sorted(value, key=lambda entry: entry.day_of_week)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        """Ensure the timezone is a known IANA name."""
        try:
            pendulum.timezone(value)
        except (KeyError, ValueError) as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {value}")
        return level

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Load configuration from YAML file.
        
        Args:
            config_path: Path to the YAML config file
            
        Returns:
            AppConfig instance
            
        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is invalid
        """
        if not config_path.exists():
            raise FileNotFoundError(
                f"Config file not found: {config_path}\n"
                f"Please create a {CONFIG_FILE_NAME} file. See washslot.example.yaml for reference."
            )
        
        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Config file must contain a mapping at the root level.")

        return cls(**data)

    def business_hours_rules(self) -> List[BusinessHoursRule]:
        return [entry.to_rule() for entry in self.business_hours]

    def build_calculator(self) -> SlotCalculator:
        return SlotCalculator(
            timezone=self.timezone,
            slot_interval_minutes=self.scheduling.slot_interval_minutes,
            lead_time_minutes=self.scheduling.lead_time_minutes,
        )


def get_default_config_path(directory: Optional[Path] = None) -> Path:
    """Get the default configuration file path (``washslot.yaml`` in the working directory)."""
    return (directory or Path.cwd()) / CONFIG_FILE_NAME
