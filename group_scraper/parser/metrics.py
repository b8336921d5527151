"""Parsers for the free-form count and time strings Facebook renders.

Both parsers are lenient: anything they do not recognize is reported as
"not found" (``0`` for counts, ``(None, False)`` for times) rather than
raising.
"""

import re
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Optional


SUFFIX_MULTIPLIERS = {
    "k": 1_000,
    "m": 1_000_000,
    "b": 1_000_000_000,
}

# 1.2K, 3M, 2.5k
SUFFIX_COUNT = re.compile(r'(\d+(?:\.\d+)?)\s?([kmb])\b', re.IGNORECASE)
# 1,234 or 12,345,678
GROUPED_COUNT = re.compile(r'\d{1,3}(?:,\d{3})+(?!\d)')
BARE_COUNT = re.compile(r'\d+')


def parse_count(text: Optional[str]) -> int:
    """Parse an engagement count such as "1.2K", "5,300" or "17 comments".

    Suffix notation wins over comma grouping, which wins over a bare
    number. Returns 0 when no number is present, so callers cannot tell
    "zero" from "not found".
    """
    if not text:
        return 0

    match = SUFFIX_COUNT.search(text)
    if match:
        try:
            value = Decimal(match.group(1)) * SUFFIX_MULTIPLIERS[match.group(2).lower()]
        except InvalidOperation:
            value = Decimal(0)
        return int(value)

    match = GROUPED_COUNT.search(text)
    if match:
        return int(match.group(0).replace(",", ""))

    match = BARE_COUNT.search(text)
    if match:
        return int(match.group(0))

    return 0


# Fixed durations; month and year are approximations
UNIT_SECONDS = {
    "second": 1,
    "minute": 60,
    "hour": 3600,
    "day": 86400,
    "week": 7 * 86400,
    "month": 30 * 86400,
    "year": 365 * 86400,
}

UNIT_ALIASES = {
    "s": "second", "sec": "second", "secs": "second", "second": "second", "seconds": "second",
    "m": "minute", "min": "minute", "mins": "minute", "minute": "minute", "minutes": "minute",
    "h": "hour", "hr": "hour", "hrs": "hour", "hour": "hour", "hours": "hour",
    "d": "day", "day": "day", "days": "day",
    "w": "week", "wk": "week", "wks": "week", "week": "week", "weeks": "week",
    "mo": "month", "mos": "month", "month": "month", "months": "month",
    "y": "year", "yr": "year", "yrs": "year", "year": "year", "years": "year",
}

_UNIT_PATTERN = "|".join(sorted(UNIT_ALIASES, key=len, reverse=True))

# "3 hours ago", "an hour ago", "2 wks ago"
RELATIVE_AGO = re.compile(rf'\b(\d+|an?|one)\s*({_UNIT_PATTERN})\s+ago\b')
# "5h", "3d", "12 mins" at the start of the text, as rendered next to a post
SHORTHAND = re.compile(rf'^(\d+)\s*({_UNIT_PATTERN})\b')
EPOCH = re.compile(r'^\d{9,13}$')
ISO_DATE = re.compile(r'^\d{4}-\d{2}-\d{2}')

WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]
WEEKDAY_PATTERN = re.compile(r'\b(' + "|".join(WEEKDAYS) + r')\b')

MONTHS = {
    "january": 1, "february": 2, "march": 3, "april": 4, "may": 5, "june": 6,
    "july": 7, "august": 8, "september": 9, "october": 10, "november": 11, "december": 12,
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "jun": 6, "jul": 7, "aug": 8,
    "sep": 9, "sept": 9, "oct": 10, "nov": 11, "dec": 12,
}
_MONTH_PATTERN = "|".join(sorted(MONTHS, key=len, reverse=True))
# "January 2", "Jan 2 at 3:04 pm", "March 14, 2023 at 10:15"
MONTH_DAY = re.compile(
    rf'\b({_MONTH_PATTERN})\.?\s+(\d{{1,2}})\b'
    r'(?:,?\s+(\d{4}))?'
    r'(?:\s+at\s+(\d{1,2}):(\d{2})\s*(am|pm)?)?'
)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_epoch(text: str) -> Optional[datetime]:
    """Parse a Unix epoch in seconds or milliseconds."""
    text = text.strip()
    if not EPOCH.match(text):
        return None
    value = int(text)
    if len(text) == 13:
        value = value / 1000
    try:
        return datetime.fromtimestamp(value, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def parse_iso(text: str) -> Optional[datetime]:
    """Parse an ISO-8601 datetime, with a trailing "Z" accepted."""
    text = text.strip()
    if not ISO_DATE.match(text):
        return None
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        return ensure_utc(datetime.fromisoformat(text))
    except ValueError:
        return None


def _unit_amount(token: str) -> int:
    if token in ("a", "an", "one"):
        return 1
    return int(token)


def _parse_month_day(text: str, now: datetime) -> Optional[datetime]:
    match = MONTH_DAY.search(text)
    if not match:
        return None

    month = MONTHS[match.group(1)]
    day = int(match.group(2))
    explicit_year = match.group(3)
    year = int(explicit_year) if explicit_year else now.year

    hour = minute = 0
    if match.group(4):
        hour = int(match.group(4))
        minute = int(match.group(5))
        meridiem = match.group(6)
        if meridiem == "pm" and hour < 12:
            hour += 12
        elif meridiem == "am" and hour == 12:
            hour = 0

    try:
        result = datetime(year, month, day, hour, minute, tzinfo=timezone.utc)
    except ValueError:
        return None

    # No year shown means "this year", unless that lands in the future
    if not explicit_year and result > now:
        try:
            result = result.replace(year=year - 1)
        except ValueError:
            return None
    return result


def parse_time(text: Optional[str], now: datetime) -> tuple[Optional[datetime], bool]:
    """Parse a relative or absolute post time.

    Recognized, in order: Unix epochs, ISO-8601, "just now", "N unit(s)
    ago", unit shorthand ("5h", "3d"), "yesterday"/"today", month-day
    dates ("January 2 at 3:04 pm") and weekday names. A weekday resolves
    to its most recent occurrence strictly before today, so today's own
    weekday name means seven days ago.

    Returns (datetime, True) on success, (None, False) otherwise. The
    caller decides what to fall back to.
    """
    if not text or not text.strip():
        return None, False

    now = ensure_utc(now)
    raw = text.strip()

    parsed = parse_epoch(raw)
    if parsed:
        return parsed, True

    parsed = parse_iso(raw)
    if parsed:
        return parsed, True

    lowered = " ".join(raw.lower().split())

    if lowered in ("just now", "now") or lowered.startswith("just now"):
        return now, True

    match = RELATIVE_AGO.search(lowered)
    if match:
        unit = UNIT_ALIASES[match.group(2)]
        seconds = _unit_amount(match.group(1)) * UNIT_SECONDS[unit]
        return now - timedelta(seconds=seconds), True

    match = SHORTHAND.match(lowered)
    if match:
        unit = UNIT_ALIASES[match.group(2)]
        return now - timedelta(seconds=int(match.group(1)) * UNIT_SECONDS[unit]), True

    if "yesterday" in lowered:
        return now - timedelta(days=1), True

    if re.search(r'\btoday\b', lowered):
        return now, True

    parsed = _parse_month_day(lowered, now)
    if parsed:
        return parsed, True

    match = WEEKDAY_PATTERN.search(lowered)
    if match:
        target = WEEKDAYS.index(match.group(1))
        days_ago = (now.weekday() - target) % 7 or 7
        return now - timedelta(days=days_ago), True

    return None, False
