"""Pydantic models for backend payloads and the in-memory schedule."""
import re
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

TIME_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})(?::\d{2}(?:\.\d+)?)?$")


def normalize_time(value: Any) -> Optional[str]:
    """
    Normalize a backend time value to "HH:MM".

    Accepts "9:00", "09:00" and "09:00:00" (seconds are dropped).
    Returns None when the value is missing or not a time of day.
    """
    if not isinstance(value, str):
        return None
    match = TIME_PATTERN.match(value.strip())
    if not match:
        return None
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        return None
    return f"{hour:02d}:{minute:02d}"


class WorkingHoursEntry(BaseModel):
    """One day of working hours in the backend's wire shape."""
    day: Optional[str] = None
    is_available: bool = Field(default=False, alias="isAvailable")
    start_time: Optional[str] = Field(default=None, alias="startTime")
    end_time: Optional[str] = Field(default=None, alias="endTime")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @field_validator("is_available", mode="before")
    @classmethod
    def coerce_available(cls, v):
        return bool(v)

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def coerce_time(cls, v):
        return normalize_time(v)


class DayAvailability(BaseModel):
    """A weekday's availability as edited on the settings page."""
    day: str = Field(..., description="Lower-case weekday name, e.g. monday")
    available: bool = False
    start: str = "09:00"
    end: str = "17:00"

    model_config = ConfigDict(frozen=True)

    @field_validator("start", "end")
    @classmethod
    def check_time_format(cls, v):
        normalized = normalize_time(v)
        if normalized is None:
            raise ValueError(f"Invalid time of day: {v!r} (expected HH:MM)")
        return normalized

    def to_wire(self) -> Dict[str, Any]:
        """Map to the bulk working-hours payload shape."""
        return {
            "day": self.day,
            "isAvailable": self.available,
            "startTime": self.start,
            "endTime": self.end,
        }


class DoctorProfile(BaseModel):
    """The signed-in doctor as returned by the "who am I" call."""
    id: str
    name: str = ""
    email: str = ""
    specialization: Optional[str] = None
    working_hours: List[WorkingHoursEntry] = Field(
        default_factory=list,
        alias="workingHours"
    )

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v):
        return str(v)

    @field_validator("working_hours", mode="before")
    @classmethod
    def default_working_hours(cls, v):
        return v or []


class Appointment(BaseModel):
    """An upcoming appointment booked with the doctor."""
    id: str
    patient_name: str = Field(default="", alias="patientName")
    date_time: datetime = Field(..., alias="dateTime")
    reason: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v):
        return str(v)
