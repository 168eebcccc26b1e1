"""Application settings with YAML defaults and .env overrides."""

from datetime import date, time
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from workday_checkin.config.loader import get_yaml_defaults

# Get flattened defaults from YAML config
_yaml_defaults = get_yaml_defaults()


def _yaml_field(key: str, default):
    """Field whose default is the flattened YAML value for ``key``, else ``default``."""
    return Field(default=_yaml_defaults.get(key.upper(), default))


class Settings(BaseSettings):
    """Application settings loaded from YAML defaults + environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        validate_default=True,
    )

    # ============================================================================
    # Storage
    # ============================================================================

    DATA_ROOT: Path = _yaml_field("STORAGE_DATA_ROOT", Path("./data"))
    DB_FILE: str = _yaml_field("STORAGE_DB_FILE", "workday.db")

    # Logging
    LOG_LEVEL: str = _yaml_field("LOGGING_LEVEL", "INFO")
    LOG_FILE: str | None = _yaml_field("LOGGING_FILE", None)

    # ============================================================================
    # Location
    # ============================================================================

    LOCATION_TIMEOUT_SECONDS: float = _yaml_field("LOCATION_TIMEOUT_SECONDS", 15.0)
    MIN_ACCURACY_METERS: float = _yaml_field("LOCATION_MIN_ACCURACY_METERS", 3000.0)

    REFERENCE_CENTER_LAT: float = _yaml_field("REFERENCE_CENTER_LAT", 51.340)
    REFERENCE_CENTER_LON: float = _yaml_field("REFERENCE_CENTER_LON", 12.374)
    REFERENCE_RADIUS_METERS: float = _yaml_field("REFERENCE_RADIUS_METERS", 30_000.0)

    # ============================================================================
    # Workday defaults for newly created entries
    # ============================================================================

    WORK_START_DEFAULT: time | None = _yaml_field("WORKDAY_START", time(8, 0))
    WORK_END_DEFAULT: time | None = _yaml_field("WORKDAY_END", time(19, 0))
    BREAK_MINUTES_DEFAULT: int = _yaml_field("WORKDAY_BREAK_MINUTES", 60)

    # ============================================================================
    # Reminder windows
    # ============================================================================

    REMINDER_MORNING_ENABLED: bool = _yaml_field("REMINDERS_MORNING_ENABLED", True)
    REMINDER_MORNING_START: time = _yaml_field("REMINDERS_MORNING_START", time(6, 0))
    REMINDER_MORNING_END: time = _yaml_field("REMINDERS_MORNING_END", time(13, 0))

    REMINDER_EVENING_ENABLED: bool = _yaml_field("REMINDERS_EVENING_ENABLED", True)
    REMINDER_EVENING_START: time = _yaml_field("REMINDERS_EVENING_START", time(16, 0))
    REMINDER_EVENING_END: time = _yaml_field("REMINDERS_EVENING_END", time(22, 30))

    CHECK_INTERVAL_MINUTES: int = _yaml_field("REMINDERS_CHECK_INTERVAL_MINUTES", 30)
    SKIP_OFF_DAYS: bool = _yaml_field("REMINDERS_SKIP_OFF_DAYS", False)

    REMINDER_FALLBACK_ENABLED: bool = _yaml_field("REMINDERS_FALLBACK_ENABLED", True)
    REMINDER_FALLBACK_TIME: time = _yaml_field("REMINDERS_FALLBACK_TIME", time(22, 30))

    # Days without an entry that are off unless worked
    AUTO_OFF_WEEKENDS: bool = _yaml_field("REMINDERS_AUTO_OFF_WEEKENDS", True)
    AUTO_OFF_HOLIDAYS: bool = _yaml_field("REMINDERS_AUTO_OFF_HOLIDAYS", True)
    # Comma-separated ISO dates, e.g. "2025-12-25,2025-12-26"
    HOLIDAY_DATES: str = _yaml_field("REMINDERS_HOLIDAY_DATES", "")

    # Scheduler retry policy for timer registration
    SCHEDULER_MAX_ATTEMPTS: int = _yaml_field("SCHEDULER_MAX_ATTEMPTS", 5)
    SCHEDULER_BACKOFF_SECONDS: float = _yaml_field("SCHEDULER_BACKOFF_SECONDS", 1.0)

    # Clock / timezone change detection
    CLOCK_CHECK_SECONDS: int = _yaml_field("CLOCK_CHECK_SECONDS", 60)
    CLOCK_JUMP_THRESHOLD_SECONDS: float = _yaml_field("CLOCK_JUMP_THRESHOLD_SECONDS", 120.0)

    @field_validator(
        "WORK_START_DEFAULT",
        "WORK_END_DEFAULT",
        "REMINDER_MORNING_START",
        "REMINDER_MORNING_END",
        "REMINDER_EVENING_START",
        "REMINDER_EVENING_END",
        "REMINDER_FALLBACK_TIME",
        mode="before",
    )
    @classmethod
    def parse_time_of_day(cls, v):
        """Accept "HH:MM" strings and YAML 1.1 base-60 integers (16:00 -> 960)."""
        if v is None or v == "":
            return None
        if isinstance(v, int) and not isinstance(v, bool):
            return time(v // 60, v % 60)
        if isinstance(v, str):
            return time.fromisoformat(v.strip())
        return v

    @field_validator("HOLIDAY_DATES", mode="before")
    @classmethod
    def join_holiday_dates(cls, v):
        """Accept a YAML list of dates as well as a comma-separated string."""
        if v is None:
            return ""
        if isinstance(v, (list, tuple, set)):
            return ",".join(str(d) for d in v)
        return v

    @field_validator("DATA_ROOT", mode="before")
    @classmethod
    def resolve_data_root(cls, v: str | Path) -> Path:
        """Resolve data root to absolute path."""
        return Path(v).resolve()

    @field_validator("LOG_FILE", mode="before")
    @classmethod
    def empty_string_to_none(cls, v: str | None) -> str | None:
        """Convert empty strings to None for optional log file."""
        return v or None

    # ============================================================================
    # Paths
    # ============================================================================

    @property
    def db_path(self) -> Path:
        """
        Get the SQLite database path.

        Returns: {DATA_ROOT}/{DB_FILE}
        """
        self.DATA_ROOT.mkdir(parents=True, exist_ok=True)
        return self.DATA_ROOT / self.DB_FILE

    @property
    def holiday_dates(self) -> frozenset[date]:
        """Parsed HOLIDAY_DATES."""
        return frozenset(
            date.fromisoformat(part.strip()) for part in self.HOLIDAY_DATES.split(",") if part.strip()
        )

    def default_reminder_settings(self):
        """Build the initial ReminderSettings from configured defaults."""
        from workday_checkin.reminders.settings import (
            ReferenceArea,
            ReminderSettings,
            ReminderWindow,
        )

        return ReminderSettings(
            morning=ReminderWindow(
                enabled=self.REMINDER_MORNING_ENABLED,
                start=self.REMINDER_MORNING_START,
                end=self.REMINDER_MORNING_END,
            ),
            evening=ReminderWindow(
                enabled=self.REMINDER_EVENING_ENABLED,
                start=self.REMINDER_EVENING_START,
                end=self.REMINDER_EVENING_END,
            ),
            reference_area=ReferenceArea(
                center_lat=self.REFERENCE_CENTER_LAT,
                center_lon=self.REFERENCE_CENTER_LON,
                radius_meters=self.REFERENCE_RADIUS_METERS,
            ),
            min_accuracy_meters=self.MIN_ACCURACY_METERS,
            check_interval_minutes=self.CHECK_INTERVAL_MINUTES,
            skip_off_days=self.SKIP_OFF_DAYS,
            fallback_enabled=self.REMINDER_FALLBACK_ENABLED,
            fallback_time=self.REMINDER_FALLBACK_TIME,
            auto_off_weekends=self.AUTO_OFF_WEEKENDS,
            auto_off_holidays=self.AUTO_OFF_HOLIDAYS,
            holiday_dates=self.holiday_dates,
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Singleton instance
settings = get_settings()
