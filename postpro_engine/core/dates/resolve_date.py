from __future__ import annotations

import re
from datetime import date, datetime, timedelta
from typing import Optional

from dateutil import parser as dateutil_parser


# Sunday first, so "sunday" wins when a phrase names two days.
DAYS_OF_WEEK: tuple[str, ...] = (
    "sunday",
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
)

# Whole words only: "month" is not Monday.
_WEEKDAY_ABBREV = re.compile(r"\b(sun|mon|tue|tues|wed|thu|thur|thurs|fri|sat)\b")

_SLASH_DATE = re.compile(r"(\d{1,2})/(\d{1,2})(?:/(\d{2,4}))?")


def resolve_date(text: str, reference_date: date) -> Optional[date]:
    """Turn a relative or calendar date expression into a date.

    Recognized, first match wins:
      1) today / tomorrow / yesterday
      2) weekday names or abbreviations: next occurrence after the reference weekday
         (same weekday -> one week later), +7 days when "next" appears
      3) "next week": reference + 7 days
      4) M/D or M/D/YY[YY]: year defaults to the reference year, YY -> 20YY
      5) any other calendar date dateutil understands

    Returns None when nothing matches; the caller asks for clarification.
    """

    normalized = text.lower().strip().rstrip(".!?").strip()
    if not normalized:
        return None

    if normalized == "today":
        return reference_date
    if normalized == "tomorrow":
        return reference_date + timedelta(days=1)
    if normalized == "yesterday":
        return reference_date - timedelta(days=1)

    day_index = _weekday_index(normalized)
    if day_index is not None:
        days_to_add = day_index - _sunday_based_weekday(reference_date)
        if days_to_add <= 0:
            days_to_add += 7
        if "next" in normalized:
            days_to_add += 7
        return reference_date + timedelta(days=days_to_add)

    if "next week" in normalized:
        return reference_date + timedelta(weeks=1)

    m = _SLASH_DATE.search(normalized)
    if m:
        month = int(m.group(1))
        day = int(m.group(2))
        year_raw = m.group(3)
        if year_raw is None:
            year = reference_date.year
        elif len(year_raw) == 2:
            year = 2000 + int(year_raw)
        else:
            year = int(year_raw)
        try:
            return date(year, month, day)
        except ValueError:
            return None

    try:
        parsed = dateutil_parser.parse(
            normalized,
            default=datetime(reference_date.year, reference_date.month, reference_date.day),
        )
    except (ValueError, OverflowError):
        return None
    return parsed.date()


def format_date(d: date) -> str:
    """M/D/YYYY, the way schedules are read out on the floor."""
    return f"{d.month}/{d.day}/{d.year}"


def week_bounds(day: date) -> tuple[date, date]:
    """Sunday..Saturday week containing `day`."""
    start = day - timedelta(days=_sunday_based_weekday(day))
    return start, start + timedelta(days=6)


def _weekday_index(normalized: str) -> Optional[int]:
    """Sunday-based index of the first weekday named, full names before abbreviations."""
    for day_index, name in enumerate(DAYS_OF_WEEK):
        if name in normalized:
            return day_index
    m = _WEEKDAY_ABBREV.search(normalized)
    if m:
        return next(i for i, name in enumerate(DAYS_OF_WEEK) if name.startswith(m.group(1)[:3]))
    return None


def _sunday_based_weekday(d: date) -> int:
    # date.weekday(): Monday=0 .. Sunday=6
    return (d.weekday() + 1) % 7
