"""
Direct booking submission.

Lets a client that already knows the instructor and time create a
pending-approval lesson without going through the chat dialogue.
"""

import logging
from datetime import date

from fastapi import APIRouter, status
from pydantic import BaseModel, ConfigDict, Field

from app.core.scheduling.availability import add_minutes
from app.core.scheduling.gateway import get_availability_gateway
from app.core.scheduling.models import BookingRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bookings", tags=["Bookings"])

HHMM_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


class BookingPayload(BaseModel):
    """Pending lesson request."""

    model_config = ConfigDict(populate_by_name=True)

    instructor_email: str = Field(
        ...,
        alias="instructorEmail",
        min_length=3,
        examples=["priya@example.com"],
    )
    lesson_date: date = Field(..., alias="date", examples=["2026-03-15"])
    start_time: str = Field(
        ...,
        alias="startTime",
        pattern=HHMM_PATTERN,
        examples=["14:00"],
    )
    end_time: str = Field(
        ...,
        alias="endTime",
        pattern=HHMM_PATTERN,
        examples=["15:00"],
    )
    student_name: str = Field(
        ...,
        alias="studentName",
        min_length=1,
        max_length=120,
        examples=["John Doe"],
    )
    student_phone: str = Field(
        ...,
        alias="studentPhone",
        min_length=7,
        max_length=32,
        examples=["416-555-1234"],
    )


class BookingResponse(BaseModel):
    """Outcome of a booking submission."""

    success: bool
    message: str


@router.post(
    "",
    response_model=BookingResponse,
    status_code=status.HTTP_200_OK,
    summary="Submit a pending lesson",
    description=(
        "Create a pending-approval lesson on the instructor's calendar. "
        "The instructor must be active and the time must be free."
    ),
)
async def create_booking(payload: BookingPayload) -> BookingResponse:
    """
    Submit a lesson request.

    Checks, in order:
    - instructor is active in the directory
    - the lesson fits working hours, is in the future and is not busy
    - the calendar accepts the pending event
    """
    gateway = get_availability_gateway()

    instructor = await gateway.find_instructor(payload.instructor_email)
    if instructor is None:
        logger.info(f"Booking rejected: unknown or inactive instructor {payload.instructor_email}")
        return BookingResponse(
            success=False,
            message="That instructor is not available for booking.",
        )

    if add_minutes(payload.start_time, gateway.lesson_minutes) != payload.end_time:
        return BookingResponse(
            success=False,
            message=f"Lessons are {gateway.lesson_minutes} minutes long.",
        )

    if not await gateway.is_time_free(instructor, payload.lesson_date, payload.start_time):
        return BookingResponse(
            success=False,
            message="That time is not available.",
        )

    result = await gateway.submit_pending_booking(
        BookingRequest(
            instructor_email=instructor.email,
            date=payload.lesson_date.isoformat(),
            start_time=payload.start_time,
            end_time=payload.end_time,
            student_name=payload.student_name.strip(),
            student_phone=payload.student_phone.strip(),
        )
    )

    return BookingResponse(success=result.success, message=result.message)
