"""Tests for the HTTP surface: chat, bookings, diagnostics and health."""

import pytest
from datetime import date, datetime
from unittest.mock import AsyncMock, MagicMock, patch
from zoneinfo import ZoneInfo

import httpx
import pytest_asyncio

from app.core.agent.dispatch import ChatReply
from app.core.intelligence.session.models import SessionData
from app.core.intelligence.session.state import BookingState
from app.core.scheduling.gateway import AvailabilityGateway
from app.core.scheduling.models import BusyInterval, Instructor
from app.infra.mock_calendar import MockCalendar, MockInstructorDirectory
from app.main import app

TZ = ZoneInfo("America/Toronto")
DAY = date(2026, 1, 15)

PRIYA = Instructor(name="Priya Sharma", email="priya@example.com")
ELENA = Instructor(name="Elena Rossi", email="elena@example.com", active=False)


@pytest_asyncio.fixture
async def client():
    """HTTP client bound to the app without a network socket."""
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def dispatcher():
    """Mock dispatcher patched into the chat routes."""
    mock = MagicMock()
    mock.process = AsyncMock(
        return_value=ChatReply(reply="Hi!", session_id="abc", state="idle")
    )
    mock.list_sessions = AsyncMock(return_value=["abc"])
    mock.get_session = AsyncMock(return_value=None)
    mock.delete_session = AsyncMock(return_value=False)
    with patch("app.api.routes.chat.get_dispatcher", return_value=mock):
        yield mock


@pytest.fixture
def diagnostics():
    """Toggle the session diagnostics endpoints."""
    def toggle(enabled: bool):
        mock_settings = MagicMock()
        mock_settings.diagnostics_enabled = enabled
        return patch("app.api.routes.chat.settings", mock_settings)
    return toggle


class TestChatEndpoint:
    """Test POST /chat."""

    @pytest.mark.asyncio
    async def test_chat_reply(self, client, dispatcher):
        """Test the reply is returned with a camelCase session ID."""
        response = await client.post(
            "/chat", json={"message": "book a lesson", "sessionId": "abc"}
        )

        assert response.status_code == 200
        assert response.json() == {"reply": "Hi!", "sessionId": "abc", "state": "idle"}
        dispatcher.process.assert_awaited_once_with(message="book a lesson", session_id="abc")

    @pytest.mark.asyncio
    async def test_chat_without_session(self, client, dispatcher):
        """Test a missing session ID is passed through as None."""
        response = await client.post("/chat", json={"message": "hello"})

        assert response.status_code == 200
        dispatcher.process.assert_awaited_once_with(message="hello", session_id=None)

    @pytest.mark.asyncio
    async def test_blank_message_is_not_an_error(self, client, dispatcher):
        """Test an empty body still gets a 200 reply."""
        response = await client.post("/chat", json={})

        assert response.status_code == 200
        dispatcher.process.assert_awaited_once_with(message=None, session_id=None)

    @pytest.mark.asyncio
    async def test_message_too_long(self, client, dispatcher):
        """Test oversized messages are rejected."""
        response = await client.post("/chat", json={"message": "x" * 2001})

        assert response.status_code == 422
        assert response.json()["error"] == "Validation error"
        dispatcher.process.assert_not_called()


class TestDiagnosticsEndpoints:
    """Test session introspection routes."""

    @pytest.mark.asyncio
    async def test_hidden_when_disabled(self, client, dispatcher, diagnostics):
        """Test diagnostics return 404 outside development."""
        with diagnostics(False):
            response = await client.get("/chat/sessions")

        assert response.status_code == 404
        dispatcher.list_sessions.assert_not_called()

    @pytest.mark.asyncio
    async def test_list_sessions(self, client, dispatcher, diagnostics):
        """Test listing live sessions."""
        with diagnostics(True):
            response = await client.get("/chat/sessions")

        assert response.status_code == 200
        assert response.json() == {"sessions": ["abc"], "count": 1}

    @pytest.mark.asyncio
    async def test_get_session(self, client, dispatcher, diagnostics):
        """Test reading one session."""
        dispatcher.get_session = AsyncMock(
            return_value=SessionData(session_id="abc", state=BookingState.AWAITING_DATE)
        )

        with diagnostics(True):
            response = await client.get("/chat/session/abc")

        assert response.status_code == 200
        body = response.json()
        assert body["session_id"] == "abc"
        assert body["state"] == "awaiting_date"

    @pytest.mark.asyncio
    async def test_get_missing_session(self, client, dispatcher, diagnostics):
        """Test unknown sessions are 404."""
        with diagnostics(True):
            response = await client.get("/chat/session/nope")

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_delete_session(self, client, dispatcher, diagnostics):
        """Test deleting a session."""
        dispatcher.delete_session = AsyncMock(return_value=True)

        with diagnostics(True):
            response = await client.delete("/chat/session/abc")

        assert response.status_code == 204
        dispatcher.delete_session.assert_awaited_once_with("abc")

    @pytest.mark.asyncio
    async def test_delete_missing_session(self, client, dispatcher, diagnostics):
        """Test deleting an unknown session."""
        with diagnostics(True):
            response = await client.delete("/chat/session/nope")

        assert response.status_code == 404


class TestBookingsEndpoint:
    """Test POST /bookings over the in-memory calendar."""

    @pytest.fixture
    def calendar(self):
        """Calendar with Priya busy 10-11 on DAY."""
        return MockCalendar(
            events={
                PRIYA.calendar_id: [
                    BusyInterval(
                        start=datetime(2026, 1, 15, 10, tzinfo=TZ),
                        end=datetime(2026, 1, 15, 11, tzinfo=TZ),
                    )
                ]
            }
        )

    @pytest.fixture
    def gateway(self, calendar):
        gateway = AvailabilityGateway(
            directory=MockInstructorDirectory([PRIYA, ELENA]),
            calendar=calendar,
            lesson_minutes=60,
            working_hours=(9, 18),
            timezone="America/Toronto",
            clock=lambda: datetime(2026, 1, 14, 8, tzinfo=TZ),
        )
        with patch("app.api.routes.bookings.get_availability_gateway", return_value=gateway):
            yield gateway

    @staticmethod
    def payload(**overrides) -> dict:
        body = {
            "instructorEmail": "priya@example.com",
            "date": DAY.isoformat(),
            "startTime": "14:00",
            "endTime": "15:00",
            "studentName": "John Doe",
            "studentPhone": "416-555-1234",
        }
        body.update(overrides)
        return body

    @pytest.mark.asyncio
    async def test_successful_booking(self, client, gateway, calendar):
        """Test a free slot becomes a pending lesson."""
        response = await client.post("/bookings", json=self.payload())

        assert response.status_code == 200
        assert response.json()["success"] is True
        (request,) = calendar.pending_bookings.values()
        assert request.instructor_email == "priya@example.com"
        assert request.date == "2026-01-15"
        assert request.start_time == "14:00"

    @pytest.mark.asyncio
    async def test_inactive_instructor(self, client, gateway, calendar):
        """Test inactive instructors cannot be booked."""
        response = await client.post(
            "/bookings", json=self.payload(instructorEmail="elena@example.com")
        )

        assert response.status_code == 200
        assert response.json() == {
            "success": False,
            "message": "That instructor is not available for booking.",
        }
        assert calendar.pending_bookings == {}

    @pytest.mark.asyncio
    async def test_busy_time(self, client, gateway, calendar):
        """Test an overlapping request is refused."""
        response = await client.post(
            "/bookings", json=self.payload(startTime="10:00", endTime="11:00")
        )

        assert response.json() == {"success": False, "message": "That time is not available."}
        assert calendar.pending_bookings == {}

    @pytest.mark.asyncio
    async def test_wrong_duration(self, client, gateway, calendar):
        """Test the end time must match the lesson length."""
        response = await client.post(
            "/bookings", json=self.payload(startTime="14:00", endTime="16:00")
        )

        body = response.json()
        assert body["success"] is False
        assert body["message"] == "Lessons are 60 minutes long."

    @pytest.mark.asyncio
    async def test_outside_working_hours(self, client, gateway, calendar):
        """Test times past closing are refused."""
        response = await client.post(
            "/bookings", json=self.payload(startTime="18:00", endTime="19:00")
        )

        assert response.json()["success"] is False
        assert calendar.pending_bookings == {}

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "overrides",
        [
            {"startTime": "2pm"},
            {"date": "not-a-date"},
            {"studentName": ""},
            {"instructorEmail": None},
        ],
    )
    async def test_invalid_payload(self, client, gateway, overrides):
        """Test malformed bodies are rejected before any calendar call."""
        response = await client.post("/bookings", json=self.payload(**overrides))

        assert response.status_code == 422
        assert response.json()["error"] == "Validation error"


class TestHealthEndpoints:
    """Test health probes."""

    @pytest.mark.asyncio
    async def test_health(self, client):
        """Test basic health."""
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_live(self, client):
        """Test liveness."""
        response = await client.get("/health/live")

        assert response.status_code == 200
        assert response.json()["status"] == "alive"

    @pytest.mark.asyncio
    async def test_ready_with_memory_sessions(self, client):
        """Test readiness with no external session store."""
        mock_settings = MagicMock()
        mock_settings.session_backend = "memory"
        mock_settings.calendar_backend = "mock"

        with patch("app.api.routes.health.settings", mock_settings):
            response = await client.get("/health/ready")

        assert response.status_code == 200
        assert response.json()["checks"] == {
            "calendar_backend": "mock",
            "session_store": "memory",
        }

    @pytest.mark.asyncio
    async def test_ready_redis_down(self, client):
        """Test readiness fails when Redis does not answer."""
        mock_settings = MagicMock()
        mock_settings.session_backend = "redis"
        mock_settings.calendar_backend = "google"

        with patch("app.api.routes.health.settings", mock_settings), patch(
            "app.api.routes.health.check_redis_health",
            AsyncMock(return_value=False),
        ):
            response = await client.get("/health/ready")

        assert response.status_code == 503
        body = response.json()
        assert body["status"] == "not_ready"
        assert body["checks"]["redis"] == "failed"
