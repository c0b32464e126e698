"""Weekly availability editing (settings page).

The editor always holds exactly seven DayAvailability entries, Monday first.
Entries are immutable; every mutator swaps in a new entry for one day only.
"""
from typing import Iterable, List, Optional, Tuple

from clinician_console import config
from clinician_console.models import DayAvailability, WorkingHoursEntry

DAYS = [
    ("monday", "Monday"),
    ("tuesday", "Tuesday"),
    ("wednesday", "Wednesday"),
    ("thursday", "Thursday"),
    ("friday", "Friday"),
    ("saturday", "Saturday"),
    ("sunday", "Sunday"),
]
DAY_LABELS = dict(DAYS)


def time_options(interval_minutes: int = config.TIME_STEP_MINUTES) -> List[str]:
    """All selectable times of day: "00:00", "00:15", ... "23:45"."""
    options = []
    for hour in range(24):
        for minute in range(0, 60, interval_minutes):
            options.append(f"{hour:02d}:{minute:02d}")
    return options


TIME_OPTIONS = frozenset(time_options())


def to_minutes(value: str) -> int:
    """Minute of day for "HH:MM"."""
    hour, minute = value.split(":")
    return int(hour) * 60 + int(minute)


def default_day(day: str) -> DayAvailability:
    return DayAvailability(
        day=day,
        available=False,
        start=config.DEFAULT_START_TIME,
        end=config.DEFAULT_END_TIME,
    )


def default_week() -> List[DayAvailability]:
    return [default_day(key) for key, _ in DAYS]


def merge_working_hours(working_hours: Iterable[WorkingHoursEntry]) -> List[DayAvailability]:
    """
    Fit backend working hours into the seven-day frame.

    Matching is by day name, case-insensitive. Backend entries for unknown
    days are ignored; days the backend did not report keep the defaults.
    Missing times fall back to the default start/end.
    """
    by_day = {}
    for entry in working_hours:
        if entry.day and entry.day.lower() not in by_day:
            by_day[entry.day.lower()] = entry

    merged = []
    for key, _ in DAYS:
        found = by_day.get(key)
        if found is None:
            merged.append(default_day(key))
            continue
        merged.append(DayAvailability(
            day=key,
            available=found.is_available,
            start=found.start_time or config.DEFAULT_START_TIME,
            end=found.end_time or config.DEFAULT_END_TIME,
        ))
    return merged


def validate_week(days: Iterable[DayAvailability]) -> Tuple[bool, Optional[str]]:
    """
    Check that every available day ends after it starts.

    Returns:
        Tuple of (is_valid, message); message names the first offending day
    """
    for item in days:
        if not item.available:
            continue
        if to_minutes(item.end) <= to_minutes(item.start):
            return (False, f"{DAY_LABELS[item.day]}: end must be after start")
    return (True, None)


class ScheduleEditor:
    """In-memory weekly schedule for the settings page."""

    def __init__(self, days: Optional[List[DayAvailability]] = None):
        self.days: List[DayAvailability] = list(days) if days is not None else default_week()

    def merge(self, working_hours: Iterable[WorkingHoursEntry]) -> None:
        """Replace local state with the backend's working hours."""
        self.days = merge_working_hours(working_hours)

    def get(self, day: str) -> DayAvailability:
        return self.days[self._index(day)]

    def set_available(self, day: str, available: bool) -> None:
        self._replace(day, available=available)

    def set_start(self, day: str, start: str) -> None:
        self._replace(day, start=self._checked_time(start))

    def set_end(self, day: str, end: str) -> None:
        self._replace(day, end=self._checked_time(end))

    def apply_standard_hours(self, day: str) -> None:
        """Shortcut for a regular 09:00-17:00 working day."""
        self._replace(day, available=True, start="09:00", end="17:00")

    def validate(self) -> Tuple[bool, Optional[str]]:
        return validate_week(self.days)

    def to_wire(self) -> List[dict]:
        return [item.to_wire() for item in self.days]

    def _index(self, day: str) -> int:
        key = day.lower()
        for i, item in enumerate(self.days):
            if item.day == key:
                return i
        raise KeyError(f"Unknown day: {day}")

    def _replace(self, day: str, **changes) -> None:
        i = self._index(day)
        self.days[i] = self.days[i].model_copy(update=changes)

    @staticmethod
    def _checked_time(value: str) -> str:
        if value not in TIME_OPTIONS:
            raise ValueError(f"Time must be HH:MM in {config.TIME_STEP_MINUTES}-minute steps, got {value!r}")
        return value
