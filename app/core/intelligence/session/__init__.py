"""
Session management module.

Booking sessions carry the dialogue state and the fields gathered so
far; the manager stores them with an idle TTL and serialises turns.
"""

from .state import BookingState, can_transition, is_terminal_state
from .models import BookingData, SessionData
from .manager import SessionBusyError, SessionManager, get_session_manager

__all__ = [
    # State
    "BookingState",
    "can_transition",
    "is_terminal_state",
    # Models
    "BookingData",
    "SessionData",
    # Manager
    "SessionBusyError",
    "SessionManager",
    "get_session_manager",
]
