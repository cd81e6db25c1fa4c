"""
Session data models.

A session holds the dialogue state and the booking fields gathered so
far. Both are serialised to JSON for either store backend.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from app.core.scheduling.models import Instructor, Slot
from .state import BookingState


def _utcnow() -> datetime:
    """Get current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


@dataclass
class BookingData:
    """Booking fields, filled in the order the dialogue asks for them."""

    instructor: Optional[Instructor] = None
    date: Optional[str] = None  # ISO format
    date_formatted: Optional[str] = None
    start_time: Optional[str] = None  # HH:MM
    end_time: Optional[str] = None
    student_name: Optional[str] = None
    student_phone: Optional[str] = None

    # Most recently presented lists, 1-based indices
    available_slots: list[Slot] = field(default_factory=list)
    all_available_slots: list[Slot] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "instructor": self.instructor.to_dict() if self.instructor else None,
            "date": self.date,
            "date_formatted": self.date_formatted,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "student_name": self.student_name,
            "student_phone": self.student_phone,
            "available_slots": [slot.to_dict() for slot in self.available_slots],
            "all_available_slots": [slot.to_dict() for slot in self.all_available_slots],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "BookingData":
        """Create from dictionary."""
        instructor = data.get("instructor")
        return cls(
            instructor=Instructor.from_dict(instructor) if instructor else None,
            date=data.get("date"),
            date_formatted=data.get("date_formatted"),
            start_time=data.get("start_time"),
            end_time=data.get("end_time"),
            student_name=data.get("student_name"),
            student_phone=data.get("student_phone"),
            available_slots=[Slot.from_dict(s) for s in data.get("available_slots", [])],
            all_available_slots=[
                Slot.from_dict(s) for s in data.get("all_available_slots", [])
            ],
        )


@dataclass
class SessionData:
    """One booking conversation."""

    session_id: str = field(default_factory=lambda: str(uuid4()))
    state: BookingState = BookingState.IDLE
    data: BookingData = field(default_factory=BookingData)

    # Metadata
    message_count: int = 0
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def to_json(self) -> str:
        """Convert to JSON string for storage."""
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, json_str: str) -> "SessionData":
        """Create from JSON string."""
        data = json.loads(json_str)
        return cls(
            session_id=data["session_id"],
            state=BookingState(data.get("state", BookingState.IDLE.value)),
            data=BookingData.from_dict(data.get("data", {})),
            message_count=data.get("message_count", 0),
            created_at=datetime.fromisoformat(data["created_at"]),
            updated_at=datetime.fromisoformat(data["updated_at"]),
        )

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "session_id": self.session_id,
            "state": self.state.value,
            "data": self.data.to_dict(),
            "message_count": self.message_count,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }
