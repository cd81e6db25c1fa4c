"""Scheduling domain models: instructors, slots and booking payloads."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class Instructor:
    """Instructor from the school directory."""

    name: str
    email: str
    calendar_id: str = ""
    active: bool = True

    def __post_init__(self) -> None:
        # Directory rows without a calendar id book against the email calendar
        if not self.calendar_id:
            self.calendar_id = self.email

    @classmethod
    def from_dict(cls, data: dict) -> "Instructor":
        """Create from a stored or API dict."""
        return cls(
            name=data.get("name", ""),
            email=data.get("email", ""),
            calendar_id=data.get("calendar_id", data.get("calendarId", "")),
            active=data.get("active", True),
        )

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "email": self.email,
            "calendar_id": self.calendar_id,
            "active": self.active,
        }


@dataclass
class Slot:
    """A bookable lesson interval on one date, HH:MM 24-hour."""

    start: str
    end: str
    index: Optional[int] = None  # 1-based position in the last rendered list
    instructor: Optional[Instructor] = None

    @classmethod
    def from_dict(cls, data: dict) -> "Slot":
        """Create from a stored dict."""
        instructor = data.get("instructor")
        return cls(
            start=data.get("start", ""),
            end=data.get("end", ""),
            index=data.get("index"),
            instructor=Instructor.from_dict(instructor) if instructor else None,
        )

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "start": self.start,
            "end": self.end,
            "index": self.index,
            "instructor": self.instructor.to_dict() if self.instructor else None,
        }


def number_slots(slots: list[Slot]) -> list[Slot]:
    """Assign increasing 1-based display indices in list order."""
    for position, slot in enumerate(slots, 1):
        slot.index = position
    return slots


@dataclass
class BusyInterval:
    """An existing calendar event, timezone-aware."""

    start: datetime
    end: datetime
    summary: str = ""

    def overlaps(self, start: datetime, end: datetime) -> bool:
        """True if [start, end) shares any time with this event."""
        return start < self.end and end > self.start


@dataclass
class BookingRequest:
    """Terminal payload handed to the calendar on confirmation."""

    instructor_email: str
    date: str  # ISO format
    start_time: str
    end_time: str
    student_name: str
    student_phone: str

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "instructor_email": self.instructor_email,
            "date": self.date,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "student_name": self.student_name,
            "student_phone": self.student_phone,
        }


@dataclass
class BookingResult:
    """Result of a pending booking submission."""

    success: bool
    message: str = ""
    event_id: Optional[str] = None
    error_code: Optional[str] = None
