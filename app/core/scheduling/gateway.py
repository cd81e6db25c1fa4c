"""
Availability Gateway.

Wraps the instructor directory and the calendar back-end behind four
operations the dialogue needs. Read failures degrade to empty/False;
only booking submission reports failure to the caller.
"""

import asyncio
import logging
from datetime import date, datetime, time, timedelta
from typing import Callable, Optional, Protocol
from zoneinfo import ZoneInfo

from app.config import get_settings
from app.core.scheduling.availability import (
    generate_free_slots,
    is_interval_free,
    lesson_bounds,
    within_working_hours,
)
from app.core.scheduling.models import (
    BookingRequest,
    BookingResult,
    BusyInterval,
    Instructor,
    Slot,
)

logger = logging.getLogger(__name__)


class CalendarBackendError(Exception):
    """Raised by directory/calendar backends when the upstream call fails."""
    pass


class InstructorDirectory(Protocol):
    """Source of instructors, in directory order."""

    async def list_instructors(self) -> list[Instructor]: ...


class CalendarBackend(Protocol):
    """Per-instructor calendar storage."""

    async def list_busy(
        self,
        calendar_id: str,
        start: datetime,
        end: datetime,
    ) -> list[BusyInterval]: ...

    async def insert_pending_event(
        self,
        instructor: Instructor,
        request: BookingRequest,
        start: datetime,
        end: datetime,
    ) -> str: ...


class AvailabilityGateway:
    """
    Availability and booking operations over the directory + calendar.

    Every read is bounded by CALENDAR_TIMEOUT_SECONDS; the pending booking
    insert is bounded by BOOKING_TIMEOUT_SECONDS and never retried here.
    """

    def __init__(
        self,
        directory: InstructorDirectory,
        calendar: CalendarBackend,
        lesson_minutes: Optional[int] = None,
        working_hours: Optional[tuple[int, int]] = None,
        timezone: Optional[str] = None,
        read_timeout: Optional[float] = None,
        write_timeout: Optional[float] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        settings = get_settings()
        self._directory = directory
        self._calendar = calendar
        self.lesson_minutes = lesson_minutes or settings.lesson_duration_minutes
        self.start_hour, self.end_hour = working_hours or (
            settings.working_hours_start,
            settings.working_hours_end,
        )
        self.tz = ZoneInfo(timezone or settings.timezone)
        self._read_timeout = read_timeout or settings.calendar_timeout_seconds
        self._write_timeout = write_timeout or settings.booking_timeout_seconds
        self._clock = clock or (lambda: datetime.now(self.tz))

    # === Directory ===

    async def list_active_instructors(self) -> list[Instructor]:
        """Active instructors in directory order; [] on failure."""
        try:
            instructors = await asyncio.wait_for(
                self._directory.list_instructors(),
                timeout=self._read_timeout,
            )
        except asyncio.TimeoutError:
            logger.error("Instructor directory timed out")
            return []
        except CalendarBackendError as e:
            logger.error(f"Failed to list instructors: {e}")
            return []

        return [instructor for instructor in instructors if instructor.active]

    async def find_instructor(self, email: str) -> Optional[Instructor]:
        """Find an active instructor by contact email (case-insensitive)."""
        wanted = email.strip().lower()
        for instructor in await self.list_active_instructors():
            if instructor.email.lower() == wanted:
                return instructor
        return None

    # === Availability ===

    async def list_free_slots(self, instructor: Instructor, day: date) -> list[Slot]:
        """Ordered free slots for one instructor on one date; [] on failure."""
        busy = await self._busy_for_day(instructor, day)
        if busy is None:
            return []

        slots = generate_free_slots(
            day=day,
            busy=busy,
            start_hour=self.start_hour,
            end_hour=self.end_hour,
            duration_minutes=self.lesson_minutes,
            tz=self.tz,
            now=self._clock(),
        )
        for slot in slots:
            slot.instructor = instructor

        logger.debug(
            f"{len(slots)} free slots for {instructor.email} on {day.isoformat()}"
        )
        return slots

    async def list_free_slots_for_all(self, day: date) -> list[Slot]:
        """Free slots across every active instructor.

        Lookups run concurrently; the merge is by directory order, then by
        the order each lookup returned, so numbering is reproducible.
        """
        instructors = await self.list_active_instructors()
        if not instructors:
            return []

        per_instructor = await asyncio.gather(
            *(self.list_free_slots(instructor, day) for instructor in instructors)
        )

        merged: list[Slot] = []
        for slots in per_instructor:
            merged.extend(slots)
        return merged

    def fits_working_hours(self, start: str) -> bool:
        """True if a lesson starting at `start` fits the working window."""
        return within_working_hours(
            start, self.lesson_minutes, self.start_hour, self.end_hour
        )

    async def is_time_free(self, instructor: Instructor, day: date, start: str) -> bool:
        """True if the instructor can take a lesson at `start`; False on failure."""
        if not self.fits_working_hours(start):
            return False

        begin, end = lesson_bounds(day, start, self.lesson_minutes, self.tz)
        if begin <= self._clock():
            return False

        busy = await self._busy_for_day(instructor, day)
        if busy is None:
            return False
        return is_interval_free(begin, end, busy)

    async def _busy_for_day(
        self,
        instructor: Instructor,
        day: date,
    ) -> Optional[list[BusyInterval]]:
        """Busy intervals for the whole day, or None if the lookup failed."""
        day_start = datetime.combine(day, time(0), tzinfo=self.tz)
        day_end = day_start + timedelta(days=1)

        try:
            return await asyncio.wait_for(
                self._calendar.list_busy(instructor.calendar_id, day_start, day_end),
                timeout=self._read_timeout,
            )
        except asyncio.TimeoutError:
            logger.error(f"Calendar lookup timed out for {instructor.email}")
        except CalendarBackendError as e:
            logger.error(f"Calendar lookup failed for {instructor.email}: {e}")
        return None

    # === Bookings ===

    async def submit_pending_booking(self, request: BookingRequest) -> BookingResult:
        """Persist a pending-approval lesson.

        Returns:
            BookingResult; success=False on any failure, including timeout
        """
        instructor = await self.find_instructor(request.instructor_email)
        if instructor is None:
            # Inactive or unknown: still book against the given calendar
            instructor = Instructor(
                name=request.instructor_email,
                email=request.instructor_email,
            )

        try:
            day = date.fromisoformat(request.date)
            begin, _ = lesson_bounds(day, request.start_time, 0, self.tz)
            end, _ = lesson_bounds(day, request.end_time, 0, self.tz)
        except ValueError as e:
            logger.warning(f"Rejected malformed booking request: {e}")
            return BookingResult(
                success=False,
                error_code="invalid_request",
                message="The booking date or time is not valid.",
            )

        try:
            event_id = await asyncio.wait_for(
                self._calendar.insert_pending_event(instructor, request, begin, end),
                timeout=self._write_timeout,
            )
        except asyncio.TimeoutError:
            logger.error(
                f"Booking submission timed out for {request.instructor_email} "
                f"on {request.date} {request.start_time}"
            )
            return BookingResult(
                success=False,
                error_code="timeout",
                message="The calendar did not respond in time.",
            )
        except CalendarBackendError as e:
            logger.error(f"Booking submission failed: {e}")
            return BookingResult(
                success=False,
                error_code="calendar_error",
                message="The calendar rejected the booking.",
            )

        logger.info(
            f"Pending lesson {event_id} created for {request.instructor_email} "
            f"on {request.date} {request.start_time}-{request.end_time}"
        )
        return BookingResult(
            success=True,
            event_id=event_id,
            message="Lesson request sent to the instructor for approval.",
        )


# Singleton
_gateway: Optional[AvailabilityGateway] = None


def get_availability_gateway() -> AvailabilityGateway:
    """Get singleton AvailabilityGateway wired to the configured backend."""
    global _gateway
    if _gateway is None:
        settings = get_settings()
        if settings.calendar_backend == "google":
            from app.infra.google_calendar import GoogleCalendarBackend
            from app.infra.google_sheets import SheetsInstructorDirectory

            _gateway = AvailabilityGateway(
                directory=SheetsInstructorDirectory(),
                calendar=GoogleCalendarBackend(),
            )
        else:
            from app.infra.mock_calendar import (
                MockCalendar,
                MockInstructorDirectory,
            )

            _gateway = AvailabilityGateway(
                directory=MockInstructorDirectory(),
                calendar=MockCalendar(),
            )
    return _gateway
