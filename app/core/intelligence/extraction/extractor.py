"""
Extraction Adapter.

Turns raw user text into tagged results. Deterministic parsers run
first; Claude is consulted only when they cannot decide, and anything
it returns is validated before use. No operation raises.
"""

import json
import logging
import re
from datetime import date, datetime
from typing import Any, Callable, Optional
from zoneinfo import ZoneInfo

from app.config import settings
from app.core.scheduling.availability import add_minutes
from app.infra.claude import ClaudeClient, ClaudeClientError, get_claude_client
from .parsers import (
    format_date,
    match_option,
    normalize_phone,
    parse_contact,
    parse_date,
    parse_number,
    parse_time,
)
from .types import (
    ContactResult,
    DateValue,
    ExtractionResult,
    Resolved,
    TimeValue,
    Unresolved,
)

logger = logging.getLogger(__name__)


ORACLE_SYSTEM_PROMPT = (
    "You extract structured fields from messages sent to a driving school "
    "booking assistant. Respond with ONLY valid JSON and use null for "
    "anything the message does not state."
)

DATE_PROMPT = """Today is {today} ({weekday}).
What calendar date does this message refer to?

Message: "{message}"

Respond with: {{"date": "<YYYY-MM-DD or null>"}}"""

TIME_PROMPT = """What lesson start time does this message ask for?
Use 24-hour HH:MM. Lessons run between 09:00 and 18:00.

Message: "{message}"

Respond with: {{"time": "<HH:MM or null>"}}"""

INTENT_PROMPT = """Which one of these options does the message choose?

Options:
{options}

Message: "{message}"

Respond with: {{"option": "<one option key or null>"}}"""

NUMBER_PROMPT = """The user was shown a numbered list from {minimum} to {maximum}.
Which number did they pick?

Message: "{message}"

Respond with: {{"number": <integer or null>}}"""

CONTACT_PROMPT = """Extract the student's full name and phone number.

Message: "{message}"

Respond with: {{"name": "<full name or null>", "phone": "<phone or null>"}}"""

_JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


class ExtractionAdapter:
    """Best-effort extraction over an untrusted oracle."""

    def __init__(
        self,
        claude_client: Optional[ClaudeClient] = None,
        clock: Optional[Callable[[], date]] = None,
        lesson_minutes: Optional[int] = None,
    ):
        """Initialize adapter.

        Args:
            claude_client: Optional Claude client (for testing)
            clock: Returns "today" in the school timezone
            lesson_minutes: Lesson length used to derive end times
        """
        self._client = claude_client
        self._clock = clock or (lambda: datetime.now(ZoneInfo(settings.timezone)).date())
        self.lesson_minutes = lesson_minutes or settings.lesson_duration_minutes

    def today(self) -> date:
        """Current date in the school timezone."""
        return self._clock()

    async def _get_client(self) -> ClaudeClient:
        """Get or create Claude client."""
        if self._client is None:
            self._client = await get_claude_client()
        return self._client

    # === Operations ===

    async def extract_date(self, text: str) -> ExtractionResult[DateValue]:
        """Resolve a date expression against today."""
        today = self.today()
        resolved = parse_date(text, today)

        if resolved is None:
            data = await self._ask_oracle(
                DATE_PROMPT.format(
                    today=today.isoformat(),
                    weekday=f"{today:%A}",
                    message=text,
                ),
                operation="date",
            )
            if data is None:
                return Unresolved("oracle_unavailable")
            resolved = _valid_iso_date(data.get("date"))
            if resolved is None:
                logger.debug(f"Oracle gave no usable date for: {text!r}")
                return Unresolved("no_date")

        return Resolved(DateValue(date=resolved, formatted=format_date(resolved)))

    async def extract_time(
        self,
        text: str,
        lenient: bool = False,
    ) -> ExtractionResult[TimeValue]:
        """Resolve a clock time; end is start plus the lesson length.

        Strict mode falls back to the oracle. Lenient mode is the looser
        second pass and stays deterministic.
        """
        start = parse_time(text, lenient=lenient)

        if start is None and not lenient:
            data = await self._ask_oracle(
                TIME_PROMPT.format(message=text),
                operation="time",
            )
            if data is None:
                return Unresolved("oracle_unavailable")
            start = _valid_hhmm(data.get("time"))

        if start is None:
            return Unresolved("no_time")
        return Resolved(TimeValue(start=start, end=add_minutes(start, self.lesson_minutes)))

    def find_time(self, text: str) -> ExtractionResult[TimeValue]:
        """Deterministic-only strict time check, for messages that may not mention one."""
        start = parse_time(text)
        if start is None:
            return Unresolved("no_time")
        return Resolved(TimeValue(start=start, end=add_minutes(start, self.lesson_minutes)))

    async def classify_intent(
        self,
        text: str,
        options: dict[str, list[str]],
    ) -> ExtractionResult[str]:
        """Pick one of the option keys; phrases are examples for each key."""
        key = match_option(text, options)
        if key is not None:
            return Resolved(key)

        listing = "\n".join(
            f"- {option}: e.g. {', '.join(phrases[:4])}"
            for option, phrases in options.items()
        )
        data = await self._ask_oracle(
            INTENT_PROMPT.format(options=listing, message=text),
            operation="intent",
        )
        if data is None:
            return Unresolved("oracle_unavailable")

        choice = data.get("option")
        if isinstance(choice, str) and choice in options:
            return Resolved(choice)
        return Unresolved("no_option")

    async def extract_bounded_number(
        self,
        text: str,
        minimum: int,
        maximum: int,
    ) -> ExtractionResult[int]:
        """Resolve a list selection within [minimum, maximum]."""
        number = parse_number(text, maximum=maximum)

        if number is None:
            data = await self._ask_oracle(
                NUMBER_PROMPT.format(minimum=minimum, maximum=maximum, message=text),
                operation="number",
            )
            if data is None:
                return Unresolved("oracle_unavailable")
            value = data.get("number")
            # bool is an int subclass
            if isinstance(value, int) and not isinstance(value, bool):
                number = value

        if number is None:
            return Unresolved("no_number")
        if not minimum <= number <= maximum:
            return Unresolved("out_of_range")
        return Resolved(number)

    async def extract_contact(self, text: str) -> ContactResult:
        """Resolve student name and phone; the oracle only sees messages with neither."""
        name, phone = parse_contact(text)

        if name is None and phone is None:
            data = await self._ask_oracle(
                CONTACT_PROMPT.format(message=text),
                operation="contact",
            )
            if data is not None:
                raw_name = data.get("name")
                if isinstance(raw_name, str) and len(raw_name.split()) >= 2:
                    name = raw_name.strip()
                raw_phone = data.get("phone")
                if isinstance(raw_phone, str):
                    phone = normalize_phone(raw_phone)

        return ContactResult(
            name=Resolved(name) if name else Unresolved("no_name"),
            phone=Resolved(phone) if phone else Unresolved("no_phone"),
        )

    # === Oracle ===

    async def _ask_oracle(self, prompt: str, operation: str) -> Optional[dict[str, Any]]:
        """Run one oracle call and return its JSON object, or None."""
        try:
            client = await self._get_client()
            response = await client.generate(
                prompt=prompt,
                system_prompt=ORACLE_SYSTEM_PROMPT,
                model=settings.claude_extraction_model,
                max_tokens=100,
                temperature=0,
            )
        except ClaudeClientError as e:
            logger.warning(f"Oracle {operation} extraction failed: {e}")
            return None
        except ValueError as e:
            # No API key configured
            logger.warning(f"Oracle unavailable for {operation} extraction: {e}")
            return None

        data = self._parse_response(response.content)
        if data is None:
            logger.warning(f"Oracle {operation} response unparsable: {response.content!r}")
        else:
            logger.debug(f"Oracle {operation} extraction: {data}")
        return data

    def _parse_response(self, response: str) -> Optional[dict[str, Any]]:
        """Parse the oracle's JSON, tolerating markdown fences and chatter."""
        response = response.strip()
        if response.startswith("```"):
            lines = response.split("\n")[1:]
            if lines and lines[-1].strip() == "```":
                lines = lines[:-1]
            response = "\n".join(lines).strip()

        match = _JSON_OBJECT_RE.search(response)
        if match is None:
            return None
        try:
            data = json.loads(match.group(0))
        except json.JSONDecodeError:
            return None
        return data if isinstance(data, dict) else None


def _valid_iso_date(value: Any) -> Optional[date]:
    """Parse an oracle YYYY-MM-DD string, or None."""
    if not isinstance(value, str):
        return None
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        return None


def _valid_hhmm(value: Any) -> Optional[str]:
    """Normalize an oracle HH:MM string, or None."""
    if not isinstance(value, str):
        return None
    match = re.fullmatch(r"\s*([01]?\d|2[0-3]):([0-5]\d)\s*", value)
    if match is None:
        return None
    return f"{int(match.group(1)):02d}:{match.group(2)}"


# Singleton
_adapter: Optional[ExtractionAdapter] = None


def get_extraction_adapter() -> ExtractionAdapter:
    """Get singleton ExtractionAdapter."""
    global _adapter
    if _adapter is None:
        _adapter = ExtractionAdapter()
    return _adapter
