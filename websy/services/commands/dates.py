"""Date and time extraction shared by command processors."""

import re
from datetime import date, time, timedelta

_TOMORROW = re.compile(r"(?<!\w)(?:mañana|tomorrow)(?!\w)", re.IGNORECASE)
_TODAY = re.compile(r"(?<!\w)(?:hoy|today)(?!\w)", re.IGNORECASE)
_ISO_DATE = re.compile(r"\b(\d{4})-(\d{1,2})-(\d{1,2})\b")
_DAY_FIRST_DATE = re.compile(r"\b(\d{1,2})/(\d{1,2})(?:/(\d{4}|\d{2}))?(?![/\d])")
_CLOCK_TIME = re.compile(r"\b(\d{1,2}):(\d{2})\s*(am|pm)?(?!\w)", re.IGNORECASE)
_MERIDIEM_TIME = re.compile(r"\b(\d{1,2})\s*(am|pm)(?!\w)", re.IGNORECASE)
# Bare hour only after a time cue, so date digits are never read as a time
_CUED_HOUR = re.compile(r"(?<!\w)(?:a\s+las?|at)\s+(\d{1,2})(?![\d:/\w])", re.IGNORECASE)


def _safe_date(year: int, month: int, day: int) -> date | None:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def explicit_date(text: str, today: date) -> date | None:
    """``yyyy-mm-dd`` or day-first ``dd/mm[/yy[yy]]``; None if absent or invalid.

    Two-digit years are read as 20yy; without a year the current one is used.
    """
    iso = _ISO_DATE.search(text)
    if iso:
        return _safe_date(int(iso.group(1)), int(iso.group(2)), int(iso.group(3)))
    day_first = _DAY_FIRST_DATE.search(text)
    if day_first:
        year_text = day_first.group(3)
        if not year_text:
            year = today.year
        elif len(year_text) == 2:
            year = 2000 + int(year_text)
        else:
            year = int(year_text)
        return _safe_date(year, int(day_first.group(2)), int(day_first.group(1)))
    return None


def relative_date(text: str, today: date) -> date | None:
    """Resolve "tomorrow"/"today" keywords (Spanish or English)."""
    if _TOMORROW.search(text):
        return today + timedelta(days=1)
    if _TODAY.search(text):
        return today
    return None


def resolve_date(text: str, today: date) -> date | None:
    """Relative keywords first, then explicit date patterns."""
    return relative_date(text, today) or explicit_date(text, today)


def resolve_time(text: str) -> time | None:
    """``H:MM [am|pm]``, ``H am|pm`` or a bare hour after "a las"/"at".

    Returns None if absent or out of range.
    """
    clock = _CLOCK_TIME.search(text)
    meridiem_only = None if clock else _MERIDIEM_TIME.search(text)
    cued = None if clock or meridiem_only else _CUED_HOUR.search(text)
    if clock:
        hour, minute, meridiem = int(clock.group(1)), int(clock.group(2)), clock.group(3)
    elif meridiem_only:
        hour, minute, meridiem = int(meridiem_only.group(1)), 0, meridiem_only.group(2)
    elif cued:
        hour, minute, meridiem = int(cued.group(1)), 0, None
    else:
        return None

    if meridiem:
        meridiem = meridiem.lower()
        if hour > 12:
            return None
        if meridiem == "pm" and hour != 12:
            hour += 12
        elif meridiem == "am" and hour == 12:
            hour = 0
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        return None
    return time(hour, minute)
