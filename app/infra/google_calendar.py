"""
Google Calendar back-end.

Reads instructor events to derive busy time and inserts pending lesson
events. The Google client is synchronous, so every call runs in a
worker thread.
"""

import asyncio
import logging
from datetime import date, datetime, time
from typing import Any, Optional
from zoneinfo import ZoneInfo

from google.auth.exceptions import GoogleAuthError
from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from httplib2 import HttpLib2Error

from app.config import settings
from app.core.scheduling.gateway import CalendarBackendError
from app.core.scheduling.models import BookingRequest, BusyInterval, Instructor

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/calendar"]

# Google Calendar colour 5 is yellow
PENDING_COLOR_ID = "5"
PENDING_STATUS = "pending_approval"

# Transport, auth and key-file failures from the Google client stack
GOOGLE_API_ERRORS = (HttpError, GoogleAuthError, HttpLib2Error, OSError, ValueError)


def _parse_event_time(value: dict, tz: ZoneInfo) -> datetime:
    """Parse an event start/end; all-day events use the date at midnight."""
    if "dateTime" in value:
        parsed = datetime.fromisoformat(value["dateTime"].replace("Z", "+00:00"))
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=tz)
    return datetime.combine(date.fromisoformat(value["date"]), time(0), tzinfo=tz)


def event_to_interval(event: dict, tz: ZoneInfo) -> Optional[BusyInterval]:
    """Convert a Calendar API event to a busy interval.

    Cancelled events and events marked transparent ("free") are skipped.
    """
    if event.get("status") == "cancelled" or event.get("transparency") == "transparent":
        return None
    try:
        start = _parse_event_time(event["start"], tz)
        end = _parse_event_time(event["end"], tz)
    except (KeyError, ValueError):
        logger.warning(f"Skipping event with unreadable times: {event.get('id')}")
        return None
    return BusyInterval(start=start, end=end, summary=event.get("summary", ""))


def build_pending_event(
    instructor: Instructor,
    request: BookingRequest,
    start: datetime,
    end: datetime,
    timezone: str,
) -> dict:
    """Calendar API body for a lesson awaiting instructor approval."""
    return {
        "summary": f"Driving Lesson - {request.student_name} (Pending)",
        "description": (
            f"Student: {request.student_name}\n"
            f"Phone: {request.student_phone}\n"
            f"Status: Pending Approval"
        ),
        "start": {"dateTime": start.isoformat(), "timeZone": timezone},
        "end": {"dateTime": end.isoformat(), "timeZone": timezone},
        "colorId": PENDING_COLOR_ID,
        "attendees": [
            {"email": instructor.email, "responseStatus": "needsAction"},
        ],
        "extendedProperties": {
            "private": {"booking_status": PENDING_STATUS},
        },
    }


class GoogleCalendarBackend:
    """Calendar backend on the Google Calendar v3 API (service account)."""

    def __init__(
        self,
        service: Any = None,
        key_file: Optional[str] = None,
        timezone: Optional[str] = None,
    ):
        """Initialize backend.

        Args:
            service: Prebuilt Calendar API resource (for testing)
            key_file: Service account key file (defaults to settings)
            timezone: Event timezone (defaults to settings)
        """
        self._service = service
        self._key_file = key_file or settings.google_service_account_file
        self._timezone = timezone or settings.timezone
        self._tz = ZoneInfo(self._timezone)

    def _get_service(self) -> Any:
        """Build the Calendar API resource on first use."""
        if self._service is None:
            credentials = service_account.Credentials.from_service_account_file(
                self._key_file, scopes=SCOPES
            )
            self._service = build(
                "calendar", "v3", credentials=credentials, cache_discovery=False
            )
        return self._service

    async def list_busy(
        self,
        calendar_id: str,
        start: datetime,
        end: datetime,
    ) -> list[BusyInterval]:
        """Existing events on a calendar between start and end."""

        def _list() -> list[dict]:
            response = self._get_service().events().list(
                calendarId=calendar_id,
                timeMin=start.isoformat(),
                timeMax=end.isoformat(),
                singleEvents=True,
                orderBy="startTime",
            ).execute()
            return response.get("items", [])

        try:
            events = await asyncio.to_thread(_list)
        except GOOGLE_API_ERRORS as e:
            raise CalendarBackendError(f"events.list failed for {calendar_id}: {e}") from e

        intervals = []
        for event in events:
            interval = event_to_interval(event, self._tz)
            if interval is not None:
                intervals.append(interval)
        return intervals

    async def insert_pending_event(
        self,
        instructor: Instructor,
        request: BookingRequest,
        start: datetime,
        end: datetime,
    ) -> str:
        """Insert a pending lesson and notify the instructor."""
        body = build_pending_event(instructor, request, start, end, self._timezone)

        def _insert() -> dict:
            return self._get_service().events().insert(
                calendarId=instructor.calendar_id,
                body=body,
                sendUpdates="all",
            ).execute()

        try:
            created = await asyncio.to_thread(_insert)
        except GOOGLE_API_ERRORS as e:
            raise CalendarBackendError(
                f"events.insert failed for {instructor.calendar_id}: {e}"
            ) from e

        logger.info(f"Lesson created: {created.get('htmlLink', created.get('id'))}")
        return created.get("id", "")
