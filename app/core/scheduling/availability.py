"""
Slot generation policy.

A day is cut into fixed-width lessons inside the working window; any
lesson that touches an existing event, by any amount, is not offered.
"""

from datetime import date, datetime, time, timedelta
from typing import Optional, Sequence
from zoneinfo import ZoneInfo

from app.core.scheduling.models import BusyInterval, Slot


def parse_hhmm(value: str) -> time:
    """Parse an HH:MM string; raises ValueError on bad input."""
    hours, minutes = value.split(":")
    return time(int(hours), int(minutes))


def add_minutes(value: str, minutes: int) -> str:
    """Add minutes to an HH:MM string, wrapping at midnight."""
    start = parse_hhmm(value)
    total = (start.hour * 60 + start.minute + minutes) % (24 * 60)
    return f"{total // 60:02d}:{total % 60:02d}"


def lesson_bounds(
    day: date,
    start: str,
    duration_minutes: int,
    tz: ZoneInfo,
) -> tuple[datetime, datetime]:
    """Timezone-aware start/end datetimes for a lesson."""
    begin = datetime.combine(day, parse_hhmm(start), tzinfo=tz)
    return begin, begin + timedelta(minutes=duration_minutes)


def within_working_hours(
    start: str,
    duration_minutes: int,
    start_hour: int,
    end_hour: int,
) -> bool:
    """True if a lesson starting at `start` fits the working window."""
    begin = parse_hhmm(start)
    begin_minutes = begin.hour * 60 + begin.minute
    return (
        begin_minutes >= start_hour * 60
        and begin_minutes + duration_minutes <= end_hour * 60
    )


def is_interval_free(
    begin: datetime,
    end: datetime,
    busy: Sequence[BusyInterval],
) -> bool:
    """True if no busy interval overlaps [begin, end)."""
    return not any(interval.overlaps(begin, end) for interval in busy)


def generate_free_slots(
    day: date,
    busy: Sequence[BusyInterval],
    start_hour: int,
    end_hour: int,
    duration_minutes: int,
    tz: ZoneInfo,
    now: Optional[datetime] = None,
) -> list[Slot]:
    """Build the ordered list of free slots for one calendar day.

    Args:
        day: Date to generate slots for
        busy: Existing events on that day
        start_hour: First bookable hour
        end_hour: Hour by which the last lesson must end
        duration_minutes: Slot width
        tz: School timezone
        now: Current time; slots starting before it are skipped

    Returns:
        Free slots in chronological order, unnumbered
    """
    slots: list[Slot] = []
    cursor = datetime.combine(day, time(start_hour), tzinfo=tz)
    closing = datetime.combine(day, time(0), tzinfo=tz) + timedelta(hours=end_hour)
    width = timedelta(minutes=duration_minutes)

    while cursor + width <= closing:
        slot_end = cursor + width
        if (now is None or cursor > now) and is_interval_free(cursor, slot_end, busy):
            slots.append(
                Slot(start=cursor.strftime("%H:%M"), end=slot_end.strftime("%H:%M"))
            )
        cursor = slot_end

    return slots
