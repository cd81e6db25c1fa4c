"""In-memory instructor directory and calendar for development and tests."""

import logging
from datetime import datetime
from typing import Optional

from app.core.scheduling.models import BookingRequest, BusyInterval, Instructor

logger = logging.getLogger(__name__)


DEFAULT_INSTRUCTORS = [
    Instructor(name="Priya Sharma", email="priya@example.com"),
    Instructor(name="Marcus Chen", email="marcus@example.com"),
    Instructor(name="Elena Rossi", email="elena@example.com", active=False),
]


class MockInstructorDirectory:
    """Static directory, returned in the order given."""

    def __init__(self, instructors: Optional[list[Instructor]] = None) -> None:
        self._instructors = list(instructors or DEFAULT_INSTRUCTORS)

    async def list_instructors(self) -> list[Instructor]:
        return list(self._instructors)


class MockCalendar:
    """Calendar keyed by calendar id; pending lessons become busy time."""

    def __init__(
        self,
        events: Optional[dict[str, list[BusyInterval]]] = None,
    ) -> None:
        self._events: dict[str, list[BusyInterval]] = {
            calendar_id: list(intervals)
            for calendar_id, intervals in (events or {}).items()
        }
        self._pending: dict[str, BookingRequest] = {}

    async def list_busy(
        self,
        calendar_id: str,
        start: datetime,
        end: datetime,
    ) -> list[BusyInterval]:
        intervals = self._events.get(calendar_id, [])
        found = [interval for interval in intervals if interval.overlaps(start, end)]
        return sorted(found, key=lambda interval: interval.start)

    async def insert_pending_event(
        self,
        instructor: Instructor,
        request: BookingRequest,
        start: datetime,
        end: datetime,
    ) -> str:
        event_id = f"mock_event_{len(self._pending) + 1}"
        self._pending[event_id] = request
        self._events.setdefault(instructor.calendar_id, []).append(
            BusyInterval(
                start=start,
                end=end,
                summary=f"Driving Lesson - {request.student_name} (Pending)",
            )
        )
        logger.info(
            f"Mock pending lesson {event_id} for {instructor.email} "
            f"at {start.isoformat()}"
        )
        return event_id

    @property
    def pending_bookings(self) -> dict[str, BookingRequest]:
        """Submitted lessons still awaiting instructor approval."""
        return dict(self._pending)
