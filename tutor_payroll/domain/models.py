"""Domain models - pure Python dataclasses representing business entities"""

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional, Tuple

from tutor_payroll.domain.calendar import DayPattern, MISSING_PATTERN
from tutor_payroll.utils.date_utils import month_key


@dataclass(frozen=True)
class Period:
    """Closed date interval [start, end]"""

    start: date
    end: date

    def __post_init__(self):
        if self.start > self.end:
            raise ValueError(f"Period start {self.start} is after end {self.end}")

    @property
    def month_key(self) -> str:
        return month_key(self.start)

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end


@dataclass(frozen=True)
class Instructor:
    """Instructor whose compensation is computed"""

    instructor_id: str
    name: str


@dataclass(frozen=True)
class Student:
    """Student record from the student directory"""

    student_id: int
    name: str
    package: Optional[str] = None
    day_pattern: DayPattern = MISSING_PATTERN
    time_slot: Optional[str] = None
    status: Optional[str] = None
    instructor_id: Optional[str] = None  # current pointer


class OwnershipSource(str, Enum):
    REASSIGNMENT = "reassignment"
    ASSIGNMENT = "assignment"
    CURRENT = "current"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class OwnershipInterval:
    """
    Days during which one instructor is financially responsible for one student.

    starts_on/ends_on are inclusive; None means unbounded on that side.
    """

    student_id: int
    instructor_id: str
    starts_on: Optional[date]
    ends_on: Optional[date]
    source: OwnershipSource
    time_slot: Optional[str] = None
    day_pattern: DayPattern = MISSING_PATTERN
    package: Optional[str] = None
    monthly_rate_cents: Optional[int] = None
    daily_rate_cents: Optional[int] = None

    def covers(self, day: date) -> bool:
        if self.starts_on is not None and day < self.starts_on:
            return False
        if self.ends_on is not None and day > self.ends_on:
            return False
        return True

    def is_empty(self) -> bool:
        return self.starts_on is not None and self.ends_on is not None and self.starts_on > self.ends_on

    def overlaps(self, other: "OwnershipInterval") -> bool:
        if self.is_empty() or other.is_empty():
            return False
        starts_before_other_ends = other.ends_on is None or self.starts_on is None or self.starts_on <= other.ends_on
        other_starts_before_end = self.ends_on is None or other.starts_on is None or other.starts_on <= self.ends_on
        return starts_before_other_ends and other_starts_before_end

    def clip(self, period: Period) -> Optional["OwnershipInterval"]:
        """Restrict to the period; None when nothing remains"""
        starts_on = period.start if self.starts_on is None else max(self.starts_on, period.start)
        ends_on = period.end if self.ends_on is None else min(self.ends_on, period.end)
        if starts_on > ends_on:
            return None
        return replace(self, starts_on=starts_on, ends_on=ends_on)


@dataclass(frozen=True)
class ReassignmentEvent:
    """Audited change of which instructor owns a student, effective from changed_at"""

    student_id: int
    old_instructor_id: Optional[str]
    new_instructor_id: str
    changed_at: datetime
    reason: Optional[str] = None
    time_slot: Optional[str] = None
    day_pattern: Optional[DayPattern] = None
    package: Optional[str] = None
    monthly_rate_cents: Optional[int] = None
    daily_rate_cents: Optional[int] = None
    created_by: Optional[str] = None


@dataclass(frozen=True)
class ClassStartSignal:
    """Timestamped proof that a class session began"""

    student_id: int
    instructor_id: str
    sent_at: datetime


@dataclass(frozen=True)
class LatenessTier:
    start_minute: int
    end_minute: int
    percent: Decimal

    def contains(self, minutes: int) -> bool:
        return self.start_minute <= minutes <= self.end_minute


@dataclass(frozen=True)
class PackageDeduction:
    lateness_cents: int
    absence_cents: int


@dataclass(frozen=True)
class DeductionRuleSet:
    """Lateness tiers, excused threshold and per-package base deduction amounts"""

    tiers: Tuple[LatenessTier, ...]
    excused_threshold_minutes: int
    scope: str  # global | instructor
    package_deductions: Dict[str, PackageDeduction] = field(default_factory=dict)
    default_lateness_cents: int = 0
    default_absence_cents: int = 0


class DeductionKind(str, Enum):
    LATENESS = "lateness"
    ABSENCE = "absence"


@dataclass(frozen=True)
class Waiver:
    instructor_id: str
    kind: DeductionKind
    waived_on: date
    reason: Optional[str] = None


@dataclass(frozen=True)
class PermissionGrant:
    instructor_id: str
    granted_on: date
    reason: Optional[str] = None


@dataclass(frozen=True)
class QualityBonus:
    instructor_id: str
    week_start: date
    bonus_cents: int


@dataclass(frozen=True)
class BonusRecord:
    instructor_id: str
    amount_cents: int
    created_at: datetime
    reason: Optional[str] = None


@dataclass(frozen=True)
class StudentAssignment:
    """A student the instructor is responsible for during the period"""

    student: Student
    intervals: Tuple[OwnershipInterval, ...]
    signals: Tuple[ClassStartSignal, ...] = ()

    def interval_on(self, day: date) -> Optional[OwnershipInterval]:
        for interval in self.intervals:
            if interval.covers(day):
                return interval
        return None


# Breakdown entries


@dataclass(frozen=True)
class DailyEarning:
    day: date
    amount_cents: int


@dataclass(frozen=True)
class StudentEarning:
    """Earnings for one student during one ownership sub-interval"""

    student_id: int
    student_name: str
    package: Optional[str]
    starts_on: date
    ends_on: date
    source: OwnershipSource
    monthly_rate_cents: int
    daily_rate_cents: int
    days_worked: int
    total_cents: int


@dataclass(frozen=True)
class LatenessEntry:
    day: date
    student_id: int
    student_name: str
    package: Optional[str]
    scheduled_time: str
    actual_time: str
    minutes_late: int
    tier: str
    deduction_cents: int


@dataclass(frozen=True)
class AbsenceEntry:
    day: date
    student_id: int
    student_name: str
    package: Optional[str]
    time_slot: Optional[str]
    reason: str
    deduction_cents: int


@dataclass(frozen=True)
class BonusLine:
    source: str  # quality | manual
    awarded_on: date
    amount_cents: int
    reason: Optional[str] = None


@dataclass(frozen=True)
class CompensationSummary:
    working_days: int
    teaching_days: int
    average_daily_earning_cents: int
    total_deductions_cents: int
    net_salary_cents: int


@dataclass(frozen=True)
class CompensationBreakdown:
    daily_earnings: Tuple[DailyEarning, ...]
    student_periods: Tuple[StudentEarning, ...]
    lateness: Tuple[LatenessEntry, ...]
    absences: Tuple[AbsenceEntry, ...]
    bonuses: Tuple[BonusLine, ...]
    summary: CompensationSummary


class PaymentStatus(str, Enum):
    PAID = "Paid"
    UNPAID = "Unpaid"
    UNKNOWN = "Unknown"


@dataclass(frozen=True)
class CompensationResult:
    """Compensation for one instructor and period. Built once, never mutated."""

    instructor_id: str
    instructor_name: str
    period: Period
    base_salary_cents: int
    lateness_deduction_cents: int
    absence_deduction_cents: int
    bonus_cents: int
    net_salary_cents: int
    student_count: int
    teaching_days: int
    breakdown: CompensationBreakdown
    payment_status: PaymentStatus = PaymentStatus.UNKNOWN


@dataclass(frozen=True)
class BatchCompensationResult:
    results: List[CompensationResult]
    failed_instructor_ids: List[str]
