"""
Deterministic parsers for dates, times, selections and contact details.

Each parser returns None when it cannot decide; the extraction adapter
then decides whether to consult the oracle.
"""

import re
from datetime import date, timedelta
from typing import Iterable, Optional


WEEKDAYS = {
    "monday": 0,
    "tuesday": 1,
    "wednesday": 2,
    "thursday": 3,
    "friday": 4,
    "saturday": 5,
    "sunday": 6,
}

MONTHS = {
    "january": 1, "jan": 1,
    "february": 2, "feb": 2,
    "march": 3, "mar": 3,
    "april": 4, "apr": 4,
    "may": 5,
    "june": 6, "jun": 6,
    "july": 7, "jul": 7,
    "august": 8, "aug": 8,
    "september": 9, "sept": 9, "sep": 9,
    "october": 10, "oct": 10,
    "november": 11, "nov": 11,
    "december": 12, "dec": 12,
}

CARDINALS = {
    "one": 1, "two": 2, "three": 3, "four": 4, "five": 5,
    "six": 6, "seven": 7, "eight": 8, "nine": 9, "ten": 10,
    "eleven": 11, "twelve": 12, "thirteen": 13, "fourteen": 14,
    "fifteen": 15, "sixteen": 16, "seventeen": 17, "eighteen": 18,
    "nineteen": 19, "twenty": 20,
}

ORDINALS = {
    "first": 1, "second": 2, "third": 3, "fourth": 4, "fifth": 5,
    "sixth": 6, "seventh": 7, "eighth": 8, "ninth": 9, "tenth": 10,
    "eleventh": 11, "twelfth": 12, "thirteenth": 13, "fourteenth": 14,
    "fifteenth": 15, "sixteenth": 16, "seventeenth": 17, "eighteenth": 18,
    "nineteenth": 19, "twentieth": 20,
}

_MONTH_ALT = "|".join(sorted(MONTHS, key=len, reverse=True))
_WEEKDAY_ALT = "|".join(WEEKDAYS)
_COUNT_ALT = "|".join([r"\d{1,3}", "an?"] + list(CARDINALS))
_HOUR_ALT = "|".join([r"\d{1,2}"] + list(CARDINALS)[:12])

# Dates
_ISO_RE = re.compile(r"\b(\d{4})-(\d{1,2})-(\d{1,2})\b")
_SLASH_RE = re.compile(r"\b(\d{1,2})/(\d{1,2})(?:/(\d{4}|\d{2}))?\b")
_MONTH_DAY_RE = re.compile(
    rf"\b({_MONTH_ALT})\.?\s+(\d{{1,2}})(?:st|nd|rd|th)?\b(?:,?\s+(\d{{4}}))?"
)
_DAY_MONTH_RE = re.compile(
    rf"\b(\d{{1,2}})(?:st|nd|rd|th)?\s+(?:of\s+)?({_MONTH_ALT})\b\.?(?:,?\s+(\d{{4}}))?"
)
_OFFSET_RE = re.compile(rf"\b(?:after|in)\s+({_COUNT_ALT})\s+(days?|weeks?)\b")
_NEXT_WEEKDAY_RE = re.compile(rf"\bnext\s+({_WEEKDAY_ALT})\b")
_WEEKDAY_RE = re.compile(rf"\b({_WEEKDAY_ALT})\b")

# Times
_NOON_RE = re.compile(r"\b(?:noon|midday)\b")
_MERIDIEM_RE = re.compile(r"\b(\d{1,2})(?::([0-5]\d))?\s*([ap])\.?\s?m\b\.?")
_CLOCK_RE = re.compile(r"\b([01]?\d|2[0-3]):([0-5]\d)\b")
_LOOSE_HOUR_RE = re.compile(
    rf"^\s*(?:at\s+|around\s+|about\s+)?({_HOUR_ALT})\s*(?:o'?clock)?\s*[.!]?\s*$"
    rf"|\b(?:at|around|about|by)\s+({_HOUR_ALT})\b(?!\s*[:/\d])"
    rf"|\b({_HOUR_ALT})\s*o'?clock\b"
)

# Selections
_TIME_LIKE_RE = re.compile(r"\d\s*(?:[ap]\.?\s?m\b|:\d)|\b(?:noon|midday)\b")
_DIGIT_RE = re.compile(r"(?<![\d/:.-])(\d{1,3})(?:st|nd|rd|th)?(?![\d/:-])")

# Contact details
_PHONE_RE = re.compile(
    r"(?<!\d)(?:\+?1[\s.-]?)?\(?(\d{3})\)?[\s.-]?(\d{3})[\s.-]?(\d{4})(?!\d)"
)
_LEAD_IN_RE = re.compile(
    r"\b(?:hi|hello|hey|sure|ok(?:ay)?|yes|yeah|my\s+name\s+is|my\s+name's|"
    r"name\s+is|i\s+am|i'm|im|this\s+is|it's|call\s+me)\b",
    re.IGNORECASE,
)
_PHONE_WORDS_RE = re.compile(
    r"\b(?:my\s+)?(?:phone|cell|mobile|number|tel|telephone)"
    r"(?:\s+number)?(?:\s+is)?\b",
    re.IGNORECASE,
)
_NAME_RE = re.compile(r"\b([A-Z][a-zA-Z'-]+(?:\s+[A-Z][a-zA-Z'-]+){1,3})\b")
_PLAIN_WORDS_RE = re.compile(r"^[A-Za-z'-]+(?:\s+[A-Za-z'-]+){1,3}$")


def _to_int(token: str) -> Optional[int]:
    if token.isdigit():
        return int(token)
    if token in ("a", "an"):
        return 1
    return CARDINALS.get(token)


def _safe_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _full_year(token: Optional[str], default: int) -> int:
    if not token:
        return default
    year = int(token)
    return year + 2000 if year < 100 else year


# === Dates ===


def parse_date(text: str, today: date) -> Optional[date]:
    """Resolve a natural-language date against `today`.

    Handles today/tomorrow/day after tomorrow, "after|in N days|weeks",
    month-day in either order, MM/DD[/YYYY], ISO dates, "next <weekday>"
    (strictly after today) and "this <weekday>" or a bare weekday (on or
    after today).
    """
    lowered = " ".join(text.lower().split())

    match = _ISO_RE.search(lowered)
    if match:
        return _safe_date(*(int(part) for part in match.groups()))

    if "day after tomorrow" in lowered:
        return today + timedelta(days=2)
    if re.search(r"\b(?:tomorrow|tmrw|tmr)\b", lowered):
        return today + timedelta(days=1)
    if re.search(r"\b(?:today|tonight)\b", lowered):
        return today

    match = _OFFSET_RE.search(lowered)
    if match:
        count = _to_int(match.group(1))
        if count is not None:
            days = count * 7 if match.group(2).startswith("week") else count
            return today + timedelta(days=days)

    match = _MONTH_DAY_RE.search(lowered)
    if match:
        month_name, day, year = match.groups()
        return _safe_date(_full_year(year, today.year), MONTHS[month_name], int(day))

    match = _DAY_MONTH_RE.search(lowered)
    if match:
        day, month_name, year = match.groups()
        return _safe_date(_full_year(year, today.year), MONTHS[month_name], int(day))

    match = _SLASH_RE.search(lowered)
    if match:
        month, day, year = match.groups()
        return _safe_date(_full_year(year, today.year), int(month), int(day))

    match = _NEXT_WEEKDAY_RE.search(lowered)
    if match:
        ahead = (WEEKDAYS[match.group(1)] - today.weekday()) % 7
        return today + timedelta(days=ahead or 7)

    if re.search(r"\bnext\s+week\b", lowered):
        return today + timedelta(days=7)

    match = _WEEKDAY_RE.search(lowered)
    if match:
        ahead = (WEEKDAYS[match.group(1)] - today.weekday()) % 7
        return today + timedelta(days=ahead)

    return None


def format_date(value: date) -> str:
    """Human-readable date, e.g. 'Monday, January 20, 2026'."""
    return f"{value:%A}, {value:%B} {value.day}, {value.year}"


# === Times ===


def _hhmm(hour: int, minute: int = 0) -> str:
    return f"{hour:02d}:{minute:02d}"


def parse_time(text: str, lenient: bool = False) -> Optional[str]:
    """Resolve a clock expression to HH:MM (24-hour).

    Strict mode accepts 12-hour times with a meridiem, 24-hour HH:MM and
    noon/midday. Lenient mode also accepts bare hours ("at 3",
    "3 o'clock", "3"), reading 1-7 as afternoon hours.
    """
    lowered = " ".join(text.lower().split())

    if _NOON_RE.search(lowered):
        return "12:00"

    match = _MERIDIEM_RE.search(lowered)
    if match:
        hour, minute, half = int(match.group(1)), int(match.group(2) or 0), match.group(3)
        if 1 <= hour <= 12:
            hour = hour % 12 + (12 if half == "p" else 0)
            return _hhmm(hour, minute)

    match = _CLOCK_RE.search(lowered)
    if match:
        return _hhmm(int(match.group(1)), int(match.group(2)))

    if not lenient:
        return None

    match = _LOOSE_HOUR_RE.search(lowered)
    if match:
        token = next(group for group in match.groups() if group)
        hour = _to_int(token)
        if hour is None or not 1 <= hour <= 23:
            return None
        if hour <= 7:
            hour += 12
        return _hhmm(hour)

    return None


# === Selections ===


def parse_number(text: str, maximum: Optional[int] = None) -> Optional[int]:
    """Resolve a list selection: "5", "number 5", "5th", "fifth", "five", "last".

    Text that looks like a clock time is never read as a selection.
    """
    lowered = " ".join(text.lower().split())
    if _TIME_LIKE_RE.search(lowered):
        return None

    digits = _DIGIT_RE.findall(lowered)
    if len(digits) == 1:
        return int(digits[0])
    if digits:
        return None

    words = re.findall(r"[a-z]+", lowered)
    if "last" in words and maximum is not None:
        return maximum

    ordinals = {ORDINALS[word] for word in words if word in ORDINALS}
    if len(ordinals) == 1:
        return ordinals.pop()

    cardinals = {CARDINALS[word] for word in words if word in CARDINALS}
    if len(cardinals) == 1:
        return cardinals.pop()

    return None


def _phrase_hit(text: str, phrase: str) -> bool:
    if phrase.isdigit():
        pattern = rf"(?:option\s+|number\s+|#)?{phrase}[.)!]?"
        return re.fullmatch(pattern, text) is not None
    return re.search(rf"(?<![\w']){re.escape(phrase)}(?![\w'])", text) is not None


def match_option(text: str, options: dict[str, Iterable[str]]) -> Optional[str]:
    """Return the single option key whose phrases appear in the text.

    Numeric phrases only match when they are the whole message. If phrases
    of more than one option match, the result is ambiguous (None).
    """
    lowered = " ".join(text.lower().split())
    hits = {
        key
        for key, phrases in options.items()
        if any(_phrase_hit(lowered, phrase.lower()) for phrase in phrases)
    }
    if len(hits) == 1:
        return hits.pop()
    return None


# === Contact details ===


def normalize_phone(raw: str) -> Optional[str]:
    """Format a 10-digit North American number as 416-555-1234."""
    digits = re.sub(r"\D", "", raw)
    if len(digits) == 11 and digits.startswith("1"):
        digits = digits[1:]
    if len(digits) != 10:
        return None
    return f"{digits[:3]}-{digits[3:6]}-{digits[6:]}"


def parse_contact(text: str) -> tuple[Optional[str], Optional[str]]:
    """Pull a student name and phone number out of free text.

    Returns:
        (name, phone); either may be None
    """
    phone = None
    remainder = text
    match = _PHONE_RE.search(text)
    if match:
        phone = "-".join(match.groups())
        remainder = f"{text[:match.start()]} {text[match.end():]}"

    had_lead_in = _LEAD_IN_RE.search(remainder) is not None
    remainder = _LEAD_IN_RE.sub(" ", remainder)
    remainder = _PHONE_WORDS_RE.sub(" ", remainder)
    remainder = re.sub(r"\band\b", " ", remainder, flags=re.IGNORECASE)
    remainder = " ".join(re.sub(r"[,;:.!?()]", " ", remainder).split())

    name = None
    found = _NAME_RE.search(remainder)
    if found:
        name = found.group(1)
    elif (phone or had_lead_in) and _PLAIN_WORDS_RE.match(remainder):
        name = remainder.title()

    return name, phone
