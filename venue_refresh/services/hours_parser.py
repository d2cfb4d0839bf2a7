"""Deterministic (tier 1) operating-hours parser.

Recognises the day/time lines venue sites commonly render::

    Monday: 11:00 AM - 10:00 PM
    Mon-Fri 11am-9pm | Sat 10am-11pm
    Sunday: Closed
    Open Daily 10am-8pm

A line must start at the beginning of the text, after a newline, or after a
``|``/``•``/``·`` separator, so the input should keep its line structure
(raw page text joined with newlines, *not* normalized text).

The parse only counts as a hit when at least ``min_days`` distinct weekdays
were recovered; anything less is treated as "not found" and the entity
escalates to the LLM tiers.
"""

from __future__ import annotations

import re

from venue_refresh.models.extraction import WEEKDAYS, DayHours, OperatingHours

_DAY_ALIASES = {
    "monday": "mon", "tuesday": "tue", "wednesday": "wed", "thursday": "thu",
    "friday": "fri", "saturday": "sat", "sunday": "sun",
    "mon": "mon", "tue": "tue", "wed": "wed", "thu": "thu",
    "fri": "fri", "sat": "sat", "sun": "sun",
    "tues": "tue", "weds": "wed", "thurs": "thu", "thur": "thu",
}

_DAY_TOKEN = r"(?:monday|tuesday|wednesday|thursday|friday|saturday|sunday|mon|tue|wed|thu|fri|sat|sun|tues|weds|thurs|thur)[a-z]*"
_TIME_TOKEN = r"\d{1,2}(?::\d{2})?\s*(?:am|pm)?"
_RANGE_SEP = r"[-–—to]+"
_LINE_START = r"(?:^|\n|[|•·])\s*"

_DAY_TIME_RE = re.compile(
    rf"{_LINE_START}({_DAY_TOKEN}(?:\s*{_RANGE_SEP}\s*{_DAY_TOKEN})?)\s*[:\s]+"
    rf"({_TIME_TOKEN})\s*{_RANGE_SEP}\s*({_TIME_TOKEN})",
    re.IGNORECASE,
)
_DAY_CLOSED_RE = re.compile(
    rf"{_LINE_START}({_DAY_TOKEN}(?:\s*{_RANGE_SEP}\s*{_DAY_TOKEN})?)\s*[:\s]+closed\b",
    re.IGNORECASE,
)
_OPEN_DAILY_RE = re.compile(
    rf"open\s+daily\s+({_TIME_TOKEN})\s*{_RANGE_SEP}\s*({_TIME_TOKEN})",
    re.IGNORECASE,
)
_TIME_RE = re.compile(r"^(\d{1,2})(?::(\d{2}))?(am|pm)?$")
_DAY_RANGE_RE = re.compile(r"^([a-z]+?)(?:-|–|—|to)+([a-z]+)$")


def normalize_time(value: str) -> str | None:
    """Convert ``"10pm"``, ``"10:30 PM"`` or ``"22:00"`` to ``"HH:MM"``.

    A bare hour from 1 to 6 without am/pm is read as afternoon/evening
    ("Mon 11-6" means 11:00-18:00).  Returns ``None`` for anything else.
    """
    compact = re.sub(r"\s+", "", value.strip().lower())
    match = _TIME_RE.match(compact)
    if not match:
        return None
    hour = int(match.group(1))
    minute = int(match.group(2) or 0)
    meridiem = match.group(3)
    if meridiem == "pm" and hour < 12:
        hour += 12
    elif meridiem == "am" and hour == 12:
        hour = 0
    elif meridiem is None and 1 <= hour <= 6:
        hour += 12
    if hour > 24 or minute > 59:
        return None
    return f"{hour:02d}:{minute:02d}"


def canonical_day(token: str) -> str | None:
    """Map "Monday", "tues", "Fridays" to a weekday key; ``None`` if unknown."""
    token = token.strip().lower()
    if token in _DAY_ALIASES:
        return _DAY_ALIASES[token]
    if token.endswith("s") and token[:-1] in _DAY_ALIASES:
        return _DAY_ALIASES[token[:-1]]
    return None


def parse_day_range(value: str) -> list[str]:
    """Expand ``"Mon-Fri"`` / ``"friday to sunday"`` / ``"Sat"`` to weekday keys.

    Ranges wrap around the week (``"Fri-Mon"`` is fri, sat, sun, mon).
    Unknown tokens yield an empty list.
    """
    compact = re.sub(r"\s+", "", value.strip().lower())
    single = canonical_day(compact)
    if single:
        return [single]
    match = _DAY_RANGE_RE.match(compact)
    if not match:
        return []
    start, end = canonical_day(match.group(1)), canonical_day(match.group(2))
    if not start or not end:
        return []
    si, ei = WEEKDAYS.index(start), WEEKDAYS.index(end)
    span = (ei - si) % 7
    return [WEEKDAYS[(si + offset) % 7] for offset in range(span + 1)]


class HoursParser:
    """Regex extraction of weekly hours from page text.

    Parameters
    ----------
    min_days:
        Minimum distinct weekdays that must parse for a result to count.
    """

    def __init__(self, min_days: int = 3) -> None:
        self._min_days = min_days

    @property
    def min_days(self) -> int:
        return self._min_days

    def extract_days(self, text: str) -> dict[str, DayHours | None]:
        """Return every weekday recovered from *text*, regardless of threshold.

        The first mention of a day wins; later contradicting lines (often a
        happy-hour or kitchen-hours table) are ignored.
        """
        days: dict[str, DayHours | None] = {}

        for match in _DAY_TIME_RE.finditer(text):
            weekdays = parse_day_range(match.group(1))
            opens = normalize_time(match.group(2))
            closes = normalize_time(match.group(3))
            if not weekdays or not opens or not closes:
                continue
            for day in weekdays:
                days.setdefault(day, DayHours(open=opens, close=closes))

        for match in _DAY_CLOSED_RE.finditer(text):
            for day in parse_day_range(match.group(1)):
                days.setdefault(day, None)

        if not days:
            daily = _OPEN_DAILY_RE.search(text)
            if daily:
                opens, closes = normalize_time(daily.group(1)), normalize_time(daily.group(2))
                if opens and closes:
                    days = {day: DayHours(open=opens, close=closes) for day in WEEKDAYS}

        return days

    def parse(self, text: str) -> OperatingHours | None:
        """Return hours when at least ``min_days`` weekdays were recovered.

        Raises
        ------
        TypeError
            If *text* is not a string.
        """
        if not isinstance(text, str):
            msg = f"expected str, got {type(text).__name__}"
            raise TypeError(msg)
        days = self.extract_days(text)
        if len(days) < self._min_days:
            return None
        return OperatingHours(days=days)
