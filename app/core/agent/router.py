"""
Intent Router

Entry gate for sessions that have not started a booking. Decides, from
the message alone, whether it starts the booking dialogue, cancels, or
goes to the knowledge responder. Never touches the session.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from app.core.scheduling.escapes import is_cancellation

logger = logging.getLogger(__name__)


# Plurals and simple inflections ("lessons", "booked") also match
BOOKING_KEYWORDS = (
    "book",
    "schedule",
    "appointment",
    "reserve",
    "lesson",
    "slot",
    "available",
    "instructor",
    "time",
)

BOOKING_RE = re.compile(
    r"\b(?:" + "|".join(BOOKING_KEYWORDS) + r")(?:s|es|d|ed|ing)?\b"
)


class Route(str, Enum):
    """Where an idle-session message goes."""

    EMPTY = "empty"
    CANCEL = "cancel"
    BOOKING = "booking"
    KNOWLEDGE = "knowledge"


@dataclass
class RouteResult:
    """Result from the intent router."""

    route: Route
    keyword: Optional[str] = None  # Booking keyword that matched

    @property
    def is_booking(self) -> bool:
        return self.route == Route.BOOKING


class IntentRouter:
    """Keyword router for idle sessions."""

    def route(self, message: Optional[str]) -> RouteResult:
        """
        Route a message sent while the session is idle.

        Args:
            message: Raw user text (may be None)

        Returns:
            RouteResult
        """
        text = (message or "").strip()
        if not text:
            return RouteResult(route=Route.EMPTY)

        if is_cancellation(text):
            return RouteResult(route=Route.CANCEL)

        match = BOOKING_RE.search(text.lower())
        if match:
            logger.debug(f"Booking keyword matched: {match.group(0)}")
            return RouteResult(route=Route.BOOKING, keyword=match.group(0))

        return RouteResult(route=Route.KNOWLEDGE)


# Singleton
_router: Optional[IntentRouter] = None


def get_router() -> IntentRouter:
    """Get singleton IntentRouter."""
    global _router
    if _router is None:
        _router = IntentRouter()
    return _router
