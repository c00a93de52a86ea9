"""Calendar resolution - day patterns and expected teaching dates"""

import re
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import FrozenSet, List, Optional

from tutor_payroll.utils.date_utils import generate_date_range

MONDAY, TUESDAY, WEDNESDAY, THURSDAY, FRIDAY, SATURDAY, SUNDAY = range(7)
ALL_WEEKDAYS: FrozenSet[int] = frozenset(range(7))

_WEEKDAY_NAMES = {
    "monday": MONDAY, "mon": MONDAY,
    "tuesday": TUESDAY, "tue": TUESDAY, "tues": TUESDAY,
    "wednesday": WEDNESDAY, "wed": WEDNESDAY,
    "thursday": THURSDAY, "thu": THURSDAY, "thur": THURSDAY, "thurs": THURSDAY,
    "friday": FRIDAY, "fri": FRIDAY,
    "saturday": SATURDAY, "sat": SATURDAY,
    "sunday": SUNDAY, "sun": SUNDAY,
}
_ALL_DAYS_TOKENS = {"all days", "alldays", "all days package", "all"}
_FIXED3_TOKENS = {"mwf"}
_FIXED3_ALT_TOKENS = {"tts", "tth"}
_SEPARATORS = re.compile(r"[\s,/]+")


class DayPatternKind(str, Enum):
    ALL_DAYS = "all_days"
    FIXED3 = "fixed3"  # Mon, Wed, Fri
    FIXED3_ALT = "fixed3_alt"  # Tue, Thu, Sat
    EXPLICIT = "explicit"
    MISSING = "missing"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class DayPattern:
    """Weekdays a student is expected to be taught, decided once when the pattern is read"""

    kind: DayPatternKind
    weekdays: FrozenSet[int] = frozenset()
    raw: Optional[str] = None

    @property
    def is_resolved(self) -> bool:
        return self.kind not in (DayPatternKind.MISSING, DayPatternKind.UNKNOWN)


MISSING_PATTERN = DayPattern(DayPatternKind.MISSING)
CONVENTIONAL_WORKWEEK = DayPattern(
    DayPatternKind.EXPLICIT,
    frozenset({MONDAY, TUESDAY, WEDNESDAY, THURSDAY, FRIDAY}),
    raw="Mon Tue Wed Thu Fri",
)


def parse_day_pattern(text: Optional[str]) -> DayPattern:
    """
    Classify a free-text day pattern.

    Accepts "All days", "MWF", "TTS"/"TTH", or weekday names/abbreviations
    separated by spaces, commas or slashes. Matching ignores case and
    surrounding whitespace. Blank input is MISSING; anything else unrecognised
    is UNKNOWN.
    """
    if text is None or not text.strip():
        return MISSING_PATTERN

    token = " ".join(text.strip().lower().split())
    if token in _ALL_DAYS_TOKENS:
        return DayPattern(DayPatternKind.ALL_DAYS, ALL_WEEKDAYS, raw=text)
    if token in _FIXED3_TOKENS:
        return DayPattern(DayPatternKind.FIXED3, frozenset({MONDAY, WEDNESDAY, FRIDAY}), raw=text)
    if token in _FIXED3_ALT_TOKENS:
        return DayPattern(DayPatternKind.FIXED3_ALT, frozenset({TUESDAY, THURSDAY, SATURDAY}), raw=text)

    weekdays = set()
    for part in _SEPARATORS.split(token):
        if not part:
            continue
        if part not in _WEEKDAY_NAMES:
            return DayPattern(DayPatternKind.UNKNOWN, raw=text)
        weekdays.add(_WEEKDAY_NAMES[part])

    if not weekdays:
        return DayPattern(DayPatternKind.UNKNOWN, raw=text)
    return DayPattern(DayPatternKind.EXPLICIT, frozenset(weekdays), raw=text)


@dataclass(frozen=True)
class CalendarPolicy:
    """
    Calendar rules shared by every computation in one engine instance.

    include_rest_day: whether the rest weekday is ever counted as a teaching day
    unknown_pattern_as_missing: treat unparseable patterns like a missing pattern
        (every working day) instead of an empty calendar
    """

    include_rest_day: bool = False
    rest_weekday: int = SUNDAY
    unknown_pattern_as_missing: bool = False

    def is_countable(self, day: date) -> bool:
        return self.include_rest_day or day.weekday() != self.rest_weekday

    def weekdays_for(self, pattern: DayPattern) -> FrozenSet[int]:
        kind = pattern.kind
        if kind == DayPatternKind.UNKNOWN and self.unknown_pattern_as_missing:
            kind = DayPatternKind.MISSING

        if kind == DayPatternKind.MISSING:
            weekdays = ALL_WEEKDAYS
        elif kind == DayPatternKind.UNKNOWN:
            weekdays = frozenset()
        else:
            weekdays = pattern.weekdays

        if not self.include_rest_day:
            weekdays = weekdays - {self.rest_weekday}
        return weekdays


def expected_dates(pattern: DayPattern, start: date, end: date, policy: CalendarPolicy) -> List[date]:
    """Ordered dates in [start, end] on which the pattern expects a class"""
    if start > end:
        return []
    weekdays = policy.weekdays_for(pattern)
    return [day for day in generate_date_range(start, end) if day.weekday() in weekdays]


def working_day_count(start: date, end: date, policy: CalendarPolicy) -> int:
    """Generic working days in [start, end]: every day except an excluded rest day"""
    return len(expected_dates(MISSING_PATTERN, start, end, policy))
