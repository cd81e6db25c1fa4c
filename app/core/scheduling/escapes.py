"""
Escape rules.

Checked before the state handler on every booking turn (except at
confirmation, where "yes" and "cancel" are answers). The first rule
whose predicate matches wins, so the tuple order is the priority order.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional


class EscapeAction(str, Enum):
    """What the dialogue does when a rule fires."""

    CANCEL = "cancel"  # Clear the session, greet again
    RESUME = "resume"  # Repeat the current prompt, no mutation
    QUESTION = "question"  # Answer via the knowledge responder, no mutation


CANCEL_RE = re.compile(
    r"\b(?:start\s+over|start\s+again|reset|restart|"
    r"cancel\s+(?:(?:my|the|this)\s+)?(?:booking|lesson|appointment)|"
    r"cancel\s+(?:it|that|everything))\b"
)
BARE_CANCEL_RE = re.compile(r"(?:cancel|quit|abort)[.!]*")

RESUME_RE = re.compile(
    r"(?:continue|yes|yeah|yep|proceed|resume|go\s+on|go\s+ahead|"
    r"carry\s+on|let'?s\s+continue|ok(?:ay)?,?\s+continue)[.!]*"
)

QUESTION_RE = re.compile(
    r"\b(?:what\s+(?:is|are|does|do|if)|what's|"
    r"how\s+(?:much|many|long|do|does|can|often)|"
    r"which\s+(?:course|courses|package|packages|car|cars|licen[cs]e|class|classes)|"
    r"do\s+you|does\s+(?:the|a|an|your)|is\s+there|are\s+there|"
    r"can\s+i\s+(?:pay|get|use|bring|take\s+the)|tell\s+me\s+about)\b"
)

# A question mentioning any of these is treated as part of the booking
SLOT_VOCABULARY_RE = re.compile(
    r"\b(?:slots?|times?|available|availability|am|pm|a\.m|p\.m|o'?clock|"
    r"noon|midday|morning|afternoon|evening|today|tomorrow|tonight|"
    r"monday|tuesday|wednesday|thursday|friday|saturday|sunday|"
    r"next\s+week|dates?)\b"
    r"|\d{1,2}:\d{2}|\d\s*(?:am|pm)\b"
)


def _normalize(text: str) -> str:
    return " ".join(text.lower().split())


def is_cancellation(text: str) -> bool:
    """Start-over / reset / cancel phrasing."""
    normalized = _normalize(text)
    return bool(CANCEL_RE.search(normalized) or BARE_CANCEL_RE.fullmatch(normalized))


def is_resume(text: str) -> bool:
    """A message that only says continue/yes/proceed."""
    return RESUME_RE.fullmatch(_normalize(text)) is not None


def is_question(text: str) -> bool:
    """Knowledge question that does not talk about slots, times or dates."""
    normalized = _normalize(text)
    return bool(QUESTION_RE.search(normalized)) and not SLOT_VOCABULARY_RE.search(normalized)


@dataclass(frozen=True)
class EscapeRule:
    """A named predicate and the action it triggers."""

    name: str
    action: EscapeAction
    predicate: Callable[[str], bool]

    def matches(self, text: str) -> bool:
        return self.predicate(text)


ESCAPE_RULES: tuple[EscapeRule, ...] = (
    EscapeRule("cancel", EscapeAction.CANCEL, is_cancellation),
    EscapeRule("resume", EscapeAction.RESUME, is_resume),
    EscapeRule("question", EscapeAction.QUESTION, is_question),
)


def match_escape(
    text: str,
    rules: tuple[EscapeRule, ...] = ESCAPE_RULES,
) -> Optional[EscapeRule]:
    """First rule matching the text, or None."""
    for rule in rules:
        if rule.matches(text):
            return rule
    return None
