"""Absence deductions - expected teaching days with no class-start signal"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import AbstractSet, Iterable, List, Mapping, Optional, Tuple

from tutor_payroll.domain.assignments import AssignmentSet
from tutor_payroll.domain.calendar import CONVENTIONAL_WORKWEEK, CalendarPolicy, DayPattern, DayPatternKind
from tutor_payroll.domain.models import AbsenceEntry, DeductionRuleSet
from tutor_payroll.utils.date_utils import generate_date_range

ABSENCE_REASON = "No class-start signal on expected teaching day"


@dataclass(frozen=True)
class AbsenceDeductions:
    total_cents: int
    entries: Tuple[AbsenceEntry, ...]


def effective_pattern(pattern: DayPattern, has_signals: bool, policy: CalendarPolicy) -> DayPattern:
    """Unparseable patterns fall back to the conventional workweek when the student was taught at all"""
    if pattern.kind == DayPatternKind.UNKNOWN and not policy.unknown_pattern_as_missing and has_signals:
        return CONVENTIONAL_WORKWEEK
    return pattern


def calculate_absence_deductions(
    assignment_set: AssignmentSet,
    rules: DeductionRuleSet,
    policy: CalendarPolicy,
    today: date,
    attended_days: Mapping[int, AbstractSet[date]],
    waived_days: Iterable[date] = (),
    permission_days: Iterable[date] = (),
) -> AbsenceDeductions:
    """
    Charge the package absence amount for every (day, student) the instructor owned,
    expected a class, and has no class-start signal for.

    Requirements:
    - Days after `today` are never charged
    - Excluded rest day, absence waivers and permission grants suppress the day
    - A student is only charged to the instructor holding it on that day
    - Any signal for the student that day (from any instructor) satisfies attendance
    - No per-day cap: one entry per (day, student)
    """
    period = assignment_set.period
    effective_end = min(period.end, today)
    if effective_end < period.start:
        return AbsenceDeductions(total_cents=0, entries=())

    waived = set(waived_days)
    permitted = set(permission_days)
    entries: List[AbsenceEntry] = []

    for day in generate_date_range(period.start, effective_end):
        if not policy.is_countable(day):
            continue
        if day in waived or day in permitted:
            continue

        for assignment, interval in assignment_set.owned_on(day):
            student = assignment.student
            attended = attended_days.get(student.student_id, frozenset())
            pattern = effective_pattern(interval.day_pattern, bool(attended), policy)
            if day.weekday() not in policy.weekdays_for(pattern):
                continue
            if day in attended:
                continue

            package = interval.package or student.package
            entries.append(
                AbsenceEntry(
                    day=day,
                    student_id=student.student_id,
                    student_name=student.name,
                    package=package,
                    time_slot=interval.time_slot,
                    reason=ABSENCE_REASON,
                    deduction_cents=_absence_base_cents(assignment_set.instructor_id, package, rules),
                )
            )

    return AbsenceDeductions(
        total_cents=sum(e.deduction_cents for e in entries),
        entries=tuple(entries),
    )


def _absence_base_cents(instructor_id: str, package: Optional[str], rules: DeductionRuleSet) -> int:
    configured = rules.package_deductions.get(package) if package else None
    if configured is not None:
        return configured.absence_cents

    logging.warning(
        "No absence base amount for package, using default",
        extra={
            "step": "absence_deduction",
            "instructor_id": instructor_id,
            "package": package,
            "default_cents": rules.default_absence_cents,
        },
    )
    return rules.default_absence_cents
