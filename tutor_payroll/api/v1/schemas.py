"""Pydantic schemas for API request/response validation"""

from pydantic import BaseModel, ConfigDict, Field
from datetime import date, datetime
from typing import List, Optional

from tutor_payroll.domain.models import OwnershipSource, PaymentStatus


class _FromDomain(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class PeriodSchema(_FromDomain):
    start: date
    end: date


class DailyEarningSchema(_FromDomain):
    day: date
    amount_cents: int


class StudentEarningSchema(_FromDomain):
    """Earnings for one student during one ownership sub-interval"""

    student_id: int
    student_name: str
    package: Optional[str] = None
    starts_on: date
    ends_on: date
    source: OwnershipSource
    monthly_rate_cents: int
    daily_rate_cents: int
    days_worked: int
    total_cents: int


class LatenessEntrySchema(_FromDomain):
    day: date
    student_id: int
    student_name: str
    package: Optional[str] = None
    scheduled_time: str
    actual_time: str
    minutes_late: int
    tier: str
    deduction_cents: int


class AbsenceEntrySchema(_FromDomain):
    day: date
    student_id: int
    student_name: str
    package: Optional[str] = None
    time_slot: Optional[str] = None
    reason: str
    deduction_cents: int


class BonusLineSchema(_FromDomain):
    source: str
    awarded_on: date
    amount_cents: int
    reason: Optional[str] = None


class SummarySchema(_FromDomain):
    working_days: int
    teaching_days: int
    average_daily_earning_cents: int
    total_deductions_cents: int
    net_salary_cents: int


class BreakdownSchema(_FromDomain):
    daily_earnings: List[DailyEarningSchema]
    student_periods: List[StudentEarningSchema]
    lateness: List[LatenessEntrySchema]
    absences: List[AbsenceEntrySchema]
    bonuses: List[BonusLineSchema]
    summary: SummarySchema


class CompensationResponse(_FromDomain):
    """Response for GET /v1/compensation/{instructor_id}"""

    instructor_id: str
    instructor_name: str
    period: PeriodSchema
    base_salary_cents: int
    lateness_deduction_cents: int
    absence_deduction_cents: int
    bonus_cents: int
    net_salary_cents: int
    student_count: int
    teaching_days: int
    breakdown: BreakdownSchema
    payment_status: PaymentStatus


class BatchCompensationResponse(_FromDomain):
    """Response for GET /v1/compensation"""

    results: List[CompensationResponse]
    failed_instructor_ids: List[str]


class ReassignmentRequest(BaseModel):
    """Request body for POST /v1/reassignments"""

    student_id: int = Field(..., gt=0, description="Student being moved")
    old_instructor_id: Optional[str] = Field(None, description="Previous holder, if known")
    new_instructor_id: str = Field(..., min_length=1, description="New holder")
    changed_at: datetime
    reason: Optional[str] = None
    time_slot: Optional[str] = None
    day_pattern: Optional[str] = None
    package: Optional[str] = None
    monthly_rate_cents: Optional[int] = Field(None, ge=0)
    daily_rate_cents: Optional[int] = Field(None, ge=0)
    created_by: Optional[str] = None


class ReassignmentResponse(BaseModel):
    """Response for POST /v1/reassignments"""

    student_id: int
    old_instructor_id: Optional[str] = None
    new_instructor_id: str
    changed_at: datetime


class EvictionResponse(BaseModel):
    evicted: int
