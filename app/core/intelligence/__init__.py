"""
Intelligence Layer Module

Provides extraction (deterministic parsers backed by the Claude oracle)
and booking session management.

Usage:
    from app.core.intelligence import (
        get_extraction_adapter,
        get_session_manager,
        Resolved,
    )

    adapter = get_extraction_adapter()
    result = await adapter.extract_date("next Tuesday")
    if isinstance(result, Resolved):
        print(result.value.formatted)  # "Tuesday, January 20, 2026"

    manager = await get_session_manager()
    async with manager.turn("abc"):
        session = await manager.get_or_create("abc")
"""

# Extraction
from app.core.intelligence.extraction import (
    ContactResult,
    DateValue,
    ExtractionAdapter,
    ExtractionResult,
    Resolved,
    TimeValue,
    Unresolved,
    get_extraction_adapter,
)

# Session Management
from app.core.intelligence.session.state import (
    BookingState,
    can_transition,
    get_valid_transitions,
    is_terminal_state,
)
from app.core.intelligence.session.models import BookingData, SessionData
from app.core.intelligence.session.manager import (
    SessionBusyError,
    SessionManager,
    get_session_manager,
)

__all__ = [
    # Extraction
    "ContactResult",
    "DateValue",
    "ExtractionAdapter",
    "ExtractionResult",
    "Resolved",
    "TimeValue",
    "Unresolved",
    "get_extraction_adapter",
    # Session State
    "BookingState",
    "can_transition",
    "get_valid_transitions",
    "is_terminal_state",
    # Session Data
    "BookingData",
    "SessionData",
    "SessionBusyError",
    "SessionManager",
    "get_session_manager",
]
