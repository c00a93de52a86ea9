"""Base earnings - one daily rate per expected teaching day that carries a class-start signal"""

from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from typing import Dict, List, Tuple

from tutor_payroll.domain.assignments import AssignmentSet
from tutor_payroll.domain.calendar import CalendarPolicy, expected_dates
from tutor_payroll.domain.models import DailyEarning, StudentEarning
from tutor_payroll.domain.rates import RateResolver
from tutor_payroll.utils.money import divide_cents


@dataclass(frozen=True)
class BaseEarnings:
    """Output of the base earnings calculation"""

    total_cents: int
    teaching_days: int
    average_daily_cents: int
    daily_earnings: Tuple[DailyEarning, ...]
    student_periods: Tuple[StudentEarning, ...]


def calculate_base_earnings(
    assignment_set: AssignmentSet,
    rates: RateResolver,
    policy: CalendarPolicy,
) -> BaseEarnings:
    """
    Build the day-by-day and student-by-student earnings ledger.

    Requirements:
    - Expected dates come from the sub-interval's day pattern
    - A date earns only if this instructor sent a signal for the student that day
    - Each earning date adds one daily rate to the student and to the daily ledger
    - Students with no matched days are left out of the breakdown
    """
    ledger: Dict[date, int] = defaultdict(int)
    student_periods: List[StudentEarning] = []

    for assignment in assignment_set.assignments:
        student = assignment.student
        signal_days = {s.sent_at.date() for s in assignment.signals}

        for interval in assignment.intervals:
            expected = expected_dates(interval.day_pattern, interval.starts_on, interval.ends_on, policy)
            taught = [day for day in expected if day in signal_days]
            if not taught:
                continue

            monthly = rates.monthly_rate_cents(interval.package, interval.monthly_rate_cents)
            daily = rates.daily_rate_cents(monthly)
            if daily > 0:
                for day in taught:
                    ledger[day] += daily

            student_periods.append(
                StudentEarning(
                    student_id=student.student_id,
                    student_name=student.name,
                    package=interval.package,
                    starts_on=interval.starts_on,
                    ends_on=interval.ends_on,
                    source=interval.source,
                    monthly_rate_cents=monthly,
                    daily_rate_cents=daily,
                    days_worked=len(taught),
                    total_cents=daily * len(taught),
                )
            )

    total = sum(ledger.values())
    teaching_days = len(ledger)

    return BaseEarnings(
        total_cents=total,
        teaching_days=teaching_days,
        average_daily_cents=divide_cents(total, teaching_days),
        daily_earnings=tuple(DailyEarning(day=day, amount_cents=ledger[day]) for day in sorted(ledger)),
        student_periods=tuple(student_periods),
    )
