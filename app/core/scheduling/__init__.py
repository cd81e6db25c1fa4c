"""
Scheduling Module

Provides the booking domain models, the slot policy, the Availability
Gateway over the instructor directory and calendars, reply templates,
escape rules and the booking Dialogue Engine.

Usage:
    from app.core.scheduling import get_availability_gateway
    from app.core.scheduling.engine import DialogueEngine

    gateway = get_availability_gateway()
    slots = await gateway.list_free_slots_for_all(date(2026, 1, 20))

    engine = DialogueEngine()
    result = await engine.handle(session, "tomorrow")
    print(result.reply)

The engine depends on the intelligence layer, which imports the models
here, so it is imported from app.core.scheduling.engine directly.
"""

# Domain Models
from app.core.scheduling.models import (
    BookingRequest,
    BookingResult,
    BusyInterval,
    Instructor,
    Slot,
    number_slots,
)

# Slot Policy
from app.core.scheduling.availability import (
    add_minutes,
    generate_free_slots,
    within_working_hours,
)

# Availability Gateway
from app.core.scheduling.gateway import (
    AvailabilityGateway,
    CalendarBackendError,
    get_availability_gateway,
)

# Replies
from app.core.scheduling.response import (
    ResponseGenerator,
    format_time,
    get_response_generator,
)

# Escape Rules
from app.core.scheduling.escapes import (
    ESCAPE_RULES,
    EscapeAction,
    EscapeRule,
    match_escape,
)

__all__ = [
    # Models
    "BookingRequest",
    "BookingResult",
    "BusyInterval",
    "Instructor",
    "Slot",
    "number_slots",
    # Slot Policy
    "add_minutes",
    "generate_free_slots",
    "within_working_hours",
    # Gateway
    "AvailabilityGateway",
    "CalendarBackendError",
    "get_availability_gateway",
    # Replies
    "ResponseGenerator",
    "format_time",
    "get_response_generator",
    # Escape Rules
    "ESCAPE_RULES",
    "EscapeAction",
    "EscapeRule",
    "match_escape",
]
