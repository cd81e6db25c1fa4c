"""Booking state machine."""

from enum import Enum
from typing import Set


class BookingState(str, Enum):
    """States in the lesson booking dialogue."""

    # Initial
    IDLE = "idle"

    # Flow choice
    AWAITING_ACTION = "awaiting_action"

    # Instructor-first path
    AWAITING_INSTRUCTOR = "awaiting_instructor"
    AWAITING_DATE = "awaiting_date"
    AWAITING_TIME_CHECK = "awaiting_time_check"
    AWAITING_SLOT_SELECTION = "awaiting_slot_selection"
    AWAITING_SPECIFIC_TIME = "awaiting_specific_time"

    # All-slots-first path
    AWAITING_DATE_FOR_ALL_SLOTS = "awaiting_date_for_all_slots"
    AWAITING_SLOT_SELECTION_FROM_ALL = "awaiting_slot_selection_from_all"

    # Wrap-up
    AWAITING_STUDENT_INFO = "awaiting_student_info"
    AWAITING_CONFIRMATION = "awaiting_confirmation"

    # Terminal states (session removed)
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Valid state transitions. Staying in the same state is always allowed.
VALID_TRANSITIONS: dict[BookingState, Set[BookingState]] = {
    BookingState.IDLE: {
        BookingState.AWAITING_ACTION,
    },
    BookingState.AWAITING_ACTION: {
        BookingState.AWAITING_INSTRUCTOR,
        BookingState.AWAITING_DATE_FOR_ALL_SLOTS,
    },
    BookingState.AWAITING_INSTRUCTOR: {
        BookingState.AWAITING_DATE,
    },
    BookingState.AWAITING_DATE: {
        BookingState.AWAITING_TIME_CHECK,
    },
    BookingState.AWAITING_TIME_CHECK: {
        BookingState.AWAITING_SLOT_SELECTION,
        BookingState.AWAITING_SPECIFIC_TIME,
        BookingState.AWAITING_STUDENT_INFO,
        BookingState.AWAITING_DATE,  # No slots that day
    },
    BookingState.AWAITING_SLOT_SELECTION: {
        BookingState.AWAITING_STUDENT_INFO,
        BookingState.AWAITING_DATE,
    },
    BookingState.AWAITING_SPECIFIC_TIME: {
        BookingState.AWAITING_STUDENT_INFO,
        BookingState.AWAITING_SLOT_SELECTION,
        BookingState.AWAITING_DATE,
    },
    BookingState.AWAITING_DATE_FOR_ALL_SLOTS: {
        BookingState.AWAITING_SLOT_SELECTION_FROM_ALL,
    },
    BookingState.AWAITING_SLOT_SELECTION_FROM_ALL: {
        BookingState.AWAITING_STUDENT_INFO,
        BookingState.AWAITING_DATE_FOR_ALL_SLOTS,
    },
    BookingState.AWAITING_STUDENT_INFO: {
        BookingState.AWAITING_CONFIRMATION,
    },
    BookingState.AWAITING_CONFIRMATION: {
        BookingState.COMPLETED,
        BookingState.CANCELLED,
    },
    BookingState.COMPLETED: set(),  # Terminal state
    BookingState.CANCELLED: set(),  # Terminal state
}


def can_transition(from_state: BookingState, to_state: BookingState) -> bool:
    """Check if a state transition is valid."""
    if from_state == to_state:
        return True
    # Cancellation is reachable from every live state
    if to_state == BookingState.CANCELLED and not is_terminal_state(from_state):
        return True
    return to_state in VALID_TRANSITIONS.get(from_state, set())


def get_valid_transitions(state: BookingState) -> Set[BookingState]:
    """Get all valid transitions from a state."""
    return VALID_TRANSITIONS.get(state, set())


def is_terminal_state(state: BookingState) -> bool:
    """Check if state is terminal (session is removed)."""
    return state in {
        BookingState.COMPLETED,
        BookingState.CANCELLED,
    }
