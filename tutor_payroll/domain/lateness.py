"""Lateness deductions - tiered penalties on the first class-start signal of each day"""

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Dict, Iterable, List, Optional, Tuple

from tutor_payroll.domain.assignments import AssignmentSet
from tutor_payroll.domain.models import (
    ClassStartSignal,
    DeductionRuleSet,
    LatenessEntry,
    LatenessTier,
    StudentAssignment,
)
from tutor_payroll.utils.money import percent_of_units

_TIME_PATTERN = re.compile(r"^\s*(\d{1,2}):(\d{2})(?::(\d{2}))?\s*([ap]m)?\s*$", re.IGNORECASE)


@dataclass(frozen=True)
class LatenessDeductions:
    total_cents: int
    entries: Tuple[LatenessEntry, ...]


def parse_time_slot(value: Optional[str]) -> Optional[time]:
    """
    Scheduled start time of a time slot.

    Accepts "14:30", "14:30:00", "2:30 PM" and ranges such as "14:30 - 15:00"
    (the start is used). Returns None when the slot cannot be read.
    """
    if not value:
        return None

    start = value.split("-", 1)[0]
    match = _TIME_PATTERN.match(start)
    if not match:
        return None

    hour, minute = int(match.group(1)), int(match.group(2))
    meridiem = (match.group(4) or "").lower()
    if meridiem:
        if not 1 <= hour <= 12:
            return None
        if meridiem == "pm" and hour != 12:
            hour += 12
        if meridiem == "am" and hour == 12:
            hour = 0

    if hour > 23 or minute > 59:
        return None
    return time(hour, minute)


def minutes_late(scheduled: datetime, actual: datetime) -> int:
    """Whole minutes between scheduled and actual start, rounded half-up"""
    seconds = (actual - scheduled).total_seconds()
    return int((seconds + 30) // 60)


def find_tier(tiers: Iterable[LatenessTier], minutes: int) -> Optional[Tuple[int, LatenessTier]]:
    """First tier (1-based position) whose inclusive range contains the lateness"""
    for position, tier in enumerate(tiers, start=1):
        if tier.contains(minutes):
            return position, tier
    return None


def earliest_signals_per_day(assignment: StudentAssignment) -> Dict[date, ClassStartSignal]:
    """Earliest signal of each calendar day; later signals that day are ignored"""
    earliest: Dict[date, ClassStartSignal] = {}
    for signal in assignment.signals:
        day = signal.sent_at.date()
        if day not in earliest or signal.sent_at < earliest[day].sent_at:
            earliest[day] = signal
    return earliest


def calculate_lateness_deductions(
    assignment_set: AssignmentSet,
    rules: DeductionRuleSet,
    waived_days: Iterable[date] = (),
) -> LatenessDeductions:
    """
    Evaluate tiered lateness penalties for an instructor's class-start signals.

    Requirements:
    - Earliest signal per student per day is the only one evaluated
    - Waived days are skipped entirely
    - Early or within the excused threshold → no penalty
    - First matching tier: round(package lateness base × percent / 100); no tier → no penalty
    """
    if not rules.tiers:
        logging.warning(
            "No lateness tiers configured",
            extra={"step": "lateness_deduction", "instructor_id": assignment_set.instructor_id},
        )
        return LatenessDeductions(total_cents=0, entries=())

    waived = set(waived_days)
    candidates = []
    for assignment in assignment_set.assignments:
        for day, signal in earliest_signals_per_day(assignment).items():
            candidates.append((day, signal.sent_at, assignment, signal))
    candidates.sort(key=lambda c: (c[0], c[1], c[2].student.student_id))

    entries: List[LatenessEntry] = []
    for day, _, assignment, signal in candidates:
        if day in waived:
            continue

        entry = _evaluate_signal(assignment_set.instructor_id, day, assignment, signal, rules)
        if entry is not None:
            entries.append(entry)

    return LatenessDeductions(
        total_cents=sum(e.deduction_cents for e in entries),
        entries=tuple(entries),
    )


def _evaluate_signal(
    instructor_id: str,
    day: date,
    assignment: StudentAssignment,
    signal: ClassStartSignal,
    rules: DeductionRuleSet,
) -> Optional[LatenessEntry]:
    student = assignment.student
    interval = assignment.interval_on(day)
    time_slot = (interval.time_slot if interval else None) or student.time_slot
    package = (interval.package if interval else None) or student.package

    scheduled_time = parse_time_slot(time_slot)
    if scheduled_time is None:
        logging.warning(
            "Unreadable time slot, lateness not evaluated",
            extra={
                "step": "lateness_deduction",
                "instructor_id": instructor_id,
                "student_id": student.student_id,
                "time_slot": time_slot,
            },
        )
        return None

    lateness = minutes_late(datetime.combine(day, scheduled_time), signal.sent_at)
    if lateness <= 0 or lateness <= rules.excused_threshold_minutes:
        return None

    match = find_tier(rules.tiers, lateness)
    if match is None:
        return None
    position, tier = match

    deduction = percent_of_units(_lateness_base_cents(instructor_id, package, rules), tier.percent)
    if deduction <= 0:
        return None

    return LatenessEntry(
        day=day,
        student_id=student.student_id,
        student_name=student.name,
        package=package,
        scheduled_time=scheduled_time.strftime("%H:%M"),
        actual_time=signal.sent_at.strftime("%H:%M"),
        minutes_late=lateness,
        tier=f"Tier {position} ({format(tier.percent.normalize(), 'f')}%) - {package or 'Unknown'}",
        deduction_cents=deduction,
    )


def _lateness_base_cents(instructor_id: str, package: Optional[str], rules: DeductionRuleSet) -> int:
    configured = rules.package_deductions.get(package) if package else None
    if configured is not None:
        return configured.lateness_cents

    logging.warning(
        "No lateness base amount for package, using default",
        extra={
            "step": "lateness_deduction",
            "instructor_id": instructor_id,
            "package": package,
            "default_cents": rules.default_lateness_cents,
        },
    )
    return rules.default_lateness_cents
