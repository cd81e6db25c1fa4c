"""Tests for the Google Calendar and Google Sheets backends."""

import pytest
from datetime import date, datetime
from unittest.mock import MagicMock, patch
from zoneinfo import ZoneInfo

import httplib2
from googleapiclient.errors import HttpError

from app.core.scheduling.gateway import AvailabilityGateway, CalendarBackendError
from app.core.scheduling.models import BookingRequest, Instructor
from app.infra.google_calendar import (
    PENDING_COLOR_ID,
    GoogleCalendarBackend,
    build_pending_event,
    event_to_interval,
)
from app.infra.google_sheets import SheetsInstructorDirectory, row_to_instructor
from app.infra.mock_calendar import MockInstructorDirectory

TZ = ZoneInfo("America/Toronto")

PRIYA = Instructor(name="Priya Sharma", email="priya@example.com", calendar_id="cal-priya")

REQUEST = BookingRequest(
    instructor_email="priya@example.com",
    date="2026-01-20",
    start_time="14:00",
    end_time="15:00",
    student_name="John Doe",
    student_phone="416-555-1234",
)


def http_error(status: int = 500) -> HttpError:
    response = MagicMock()
    response.status = status
    response.reason = "Server Error"
    return HttpError(resp=response, content=b"{}")


class TestEventConversion:
    """Test Calendar API event parsing."""

    def test_timed_event(self):
        """Test dateTime events keep their offset."""
        interval = event_to_interval(
            {
                "summary": "Lesson",
                "start": {"dateTime": "2026-01-20T10:00:00-05:00"},
                "end": {"dateTime": "2026-01-20T11:00:00-05:00"},
            },
            TZ,
        )

        assert interval.start == datetime(2026, 1, 20, 10, tzinfo=TZ)
        assert interval.end == datetime(2026, 1, 20, 11, tzinfo=TZ)
        assert interval.summary == "Lesson"

    def test_all_day_event(self):
        """Test all-day events block the whole day."""
        interval = event_to_interval(
            {"start": {"date": "2026-01-20"}, "end": {"date": "2026-01-21"}},
            TZ,
        )

        assert interval.start == datetime(2026, 1, 20, tzinfo=TZ)
        assert interval.end == datetime(2026, 1, 21, tzinfo=TZ)

    @pytest.mark.parametrize(
        "extra",
        [{"status": "cancelled"}, {"transparency": "transparent"}],
    )
    def test_skipped_events(self, extra):
        """Test cancelled and free events are not busy time."""
        event = {
            "start": {"dateTime": "2026-01-20T10:00:00-05:00"},
            "end": {"dateTime": "2026-01-20T11:00:00-05:00"},
            **extra,
        }
        assert event_to_interval(event, TZ) is None

    def test_unreadable_event(self):
        """Test events without times are skipped."""
        assert event_to_interval({"id": "x", "start": {}}, TZ) is None

    def test_pending_event_body(self):
        """Test pending lessons are marked for approval."""
        start = datetime(2026, 1, 20, 14, tzinfo=TZ)
        end = datetime(2026, 1, 20, 15, tzinfo=TZ)

        body = build_pending_event(PRIYA, REQUEST, start, end, "America/Toronto")

        assert body["summary"] == "Driving Lesson - John Doe (Pending)"
        assert "Phone: 416-555-1234" in body["description"]
        assert "Status: Pending Approval" in body["description"]
        assert body["colorId"] == PENDING_COLOR_ID
        assert body["attendees"] == [
            {"email": "priya@example.com", "responseStatus": "needsAction"}
        ]
        assert body["start"] == {
            "dateTime": "2026-01-20T14:00:00-05:00",
            "timeZone": "America/Toronto",
        }


class TestGoogleCalendarBackend:
    """Test the backend against a mocked Calendar API resource."""

    @pytest.fixture
    def service(self):
        """Mock Calendar v3 resource."""
        return MagicMock()

    @pytest.fixture
    def backend(self, service):
        return GoogleCalendarBackend(service=service, timezone="America/Toronto")

    @pytest.mark.asyncio
    async def test_list_busy(self, backend, service):
        """Test events become busy intervals."""
        service.events.return_value.list.return_value.execute.return_value = {
            "items": [
                {
                    "start": {"dateTime": "2026-01-20T10:00:00-05:00"},
                    "end": {"dateTime": "2026-01-20T11:00:00-05:00"},
                },
                {
                    "status": "cancelled",
                    "start": {"dateTime": "2026-01-20T12:00:00-05:00"},
                    "end": {"dateTime": "2026-01-20T13:00:00-05:00"},
                },
            ]
        }
        start = datetime(2026, 1, 20, tzinfo=TZ)
        end = datetime(2026, 1, 21, tzinfo=TZ)

        intervals = await backend.list_busy("cal-priya", start, end)

        assert len(intervals) == 1
        kwargs = service.events.return_value.list.call_args.kwargs
        assert kwargs["calendarId"] == "cal-priya"
        assert kwargs["singleEvents"] is True
        assert kwargs["timeMin"] == start.isoformat()

    @pytest.mark.asyncio
    async def test_list_busy_http_error(self, backend, service):
        """Test API errors surface as CalendarBackendError."""
        service.events.return_value.list.return_value.execute.side_effect = http_error()

        with pytest.raises(CalendarBackendError):
            await backend.list_busy(
                "cal-priya",
                datetime(2026, 1, 20, tzinfo=TZ),
                datetime(2026, 1, 21, tzinfo=TZ),
            )

    @pytest.mark.asyncio
    async def test_insert_pending_event(self, backend, service):
        """Test insert targets the instructor calendar and notifies."""
        service.events.return_value.insert.return_value.execute.return_value = {
            "id": "evt_123",
            "htmlLink": "https://calendar.google.com/event?eid=evt_123",
        }

        event_id = await backend.insert_pending_event(
            PRIYA,
            REQUEST,
            datetime(2026, 1, 20, 14, tzinfo=TZ),
            datetime(2026, 1, 20, 15, tzinfo=TZ),
        )

        assert event_id == "evt_123"
        kwargs = service.events.return_value.insert.call_args.kwargs
        assert kwargs["calendarId"] == "cal-priya"
        assert kwargs["sendUpdates"] == "all"

    @pytest.mark.asyncio
    async def test_insert_http_error(self, backend, service):
        """Test insert failures surface as CalendarBackendError."""
        service.events.return_value.insert.return_value.execute.side_effect = http_error(403)

        with pytest.raises(CalendarBackendError):
            await backend.insert_pending_event(
                PRIYA,
                REQUEST,
                datetime(2026, 1, 20, 14, tzinfo=TZ),
                datetime(2026, 1, 20, 15, tzinfo=TZ),
            )


class TestSheetsInstructorDirectory:
    """Test the spreadsheet instructor directory."""

    def test_row_conversion(self):
        """Test rows map to instructors."""
        instructor = row_to_instructor(["Priya Sharma", "priya@example.com", "cal-priya", "yes"])

        assert instructor == PRIYA

    def test_short_row(self):
        """Test missing cells default to inactive, email calendar."""
        instructor = row_to_instructor(["Marcus Chen", "marcus@example.com"])

        assert instructor.calendar_id == "marcus@example.com"
        assert not instructor.active

    def test_incomplete_row(self):
        """Test rows without an email are skipped."""
        assert row_to_instructor(["Nobody"]) is None

    @pytest.fixture
    def service(self):
        service = MagicMock()
        service.spreadsheets.return_value.values.return_value.get.return_value.execute.return_value = {
            "values": [
                ["Priya Sharma", "priya@example.com", "cal-priya", "YES"],
                ["", "", "", ""],
                ["Elena Rossi", "elena@example.com", "", "NO"],
            ]
        }
        return service

    @pytest.mark.asyncio
    async def test_list_instructors_cached(self, service):
        """Test rows are read once within the cache window."""
        directory = SheetsInstructorDirectory(
            service=service,
            spreadsheet_id="sheet-1",
            sheet_range="Instructors!A2:D",
            cache_seconds=300,
        )

        first = await directory.list_instructors()
        second = await directory.list_instructors()

        assert [i.name for i in first] == ["Priya Sharma", "Elena Rossi"]
        assert second == first
        get = service.spreadsheets.return_value.values.return_value.get
        assert get.call_count == 1
        assert get.call_args.kwargs["spreadsheetId"] == "sheet-1"

    @pytest.mark.asyncio
    async def test_list_instructors_error(self, service):
        """Test read failures surface as CalendarBackendError."""
        execute = service.spreadsheets.return_value.values.return_value.get.return_value.execute
        execute.side_effect = http_error()
        directory = SheetsInstructorDirectory(service=service, spreadsheet_id="sheet-1")

        with pytest.raises(CalendarBackendError):
            await directory.list_instructors()


class TestTransportFailures:
    """Test httplib2 and key-file failures degrade through the gateway."""

    @pytest.fixture
    def failing_service(self):
        service = MagicMock()
        service.events.return_value.list.return_value.execute.side_effect = (
            httplib2.ServerNotFoundError("Unable to find the server at www.googleapis.com")
        )
        service.spreadsheets.return_value.values.return_value.get.return_value.execute.side_effect = (
            httplib2.ServerNotFoundError("Unable to find the server at sheets.googleapis.com")
        )
        return service

    @pytest.fixture
    def gateway(self, failing_service):
        return AvailabilityGateway(
            directory=MockInstructorDirectory([PRIYA]),
            calendar=GoogleCalendarBackend(service=failing_service, timezone="America/Toronto"),
            lesson_minutes=60,
            working_hours=(9, 18),
            timezone="America/Toronto",
            clock=lambda: datetime(2026, 1, 19, 8, tzinfo=TZ),
        )

    @pytest.mark.asyncio
    async def test_list_busy_dns_failure(self, failing_service):
        """Test a DNS failure surfaces as CalendarBackendError."""
        backend = GoogleCalendarBackend(service=failing_service, timezone="America/Toronto")

        with pytest.raises(CalendarBackendError):
            await backend.list_busy(
                "cal-priya",
                datetime(2026, 1, 20, tzinfo=TZ),
                datetime(2026, 1, 21, tzinfo=TZ),
            )

    @pytest.mark.asyncio
    async def test_bad_key_file(self):
        """Test an unreadable service account key surfaces as CalendarBackendError."""
        backend = GoogleCalendarBackend(key_file="broken.json", timezone="America/Toronto")

        with patch(
            "app.infra.google_calendar.service_account.Credentials.from_service_account_file",
            side_effect=ValueError("Service account info was not in the expected format"),
        ):
            with pytest.raises(CalendarBackendError):
                await backend.list_busy(
                    "cal-priya",
                    datetime(2026, 1, 20, tzinfo=TZ),
                    datetime(2026, 1, 21, tzinfo=TZ),
                )

    @pytest.mark.asyncio
    async def test_free_slots_empty(self, gateway):
        """Test the gateway reports no slots instead of raising."""
        assert await gateway.list_free_slots(PRIYA, date(2026, 1, 20)) == []

    @pytest.mark.asyncio
    async def test_time_not_free(self, gateway):
        """Test the gateway reports the time as taken instead of raising."""
        assert not await gateway.is_time_free(PRIYA, date(2026, 1, 20), "14:00")

    @pytest.mark.asyncio
    async def test_directory_dns_failure(self, failing_service):
        """Test an unreachable sheet yields no instructors."""
        gateway = AvailabilityGateway(
            directory=SheetsInstructorDirectory(service=failing_service, spreadsheet_id="sheet-1"),
            calendar=GoogleCalendarBackend(service=failing_service, timezone="America/Toronto"),
            lesson_minutes=60,
            working_hours=(9, 18),
            timezone="America/Toronto",
        )

        assert await gateway.list_active_instructors() == []
        assert await gateway.list_free_slots_for_all(date(2026, 1, 20)) == []
