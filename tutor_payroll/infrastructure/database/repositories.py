"""Data access layer - read views the compensation engine consumes"""

from datetime import timedelta
from decimal import Decimal
from typing import Dict, Iterable, List, Optional
from sqlalchemy import or_
from sqlalchemy.orm import Session
from tutor_payroll.config import settings
from tutor_payroll.domain.calendar import parse_day_pattern
from tutor_payroll.domain.models import (
    BonusRecord,
    ClassStartSignal,
    DeductionKind,
    DeductionRuleSet,
    Instructor,
    LatenessTier,
    OwnershipInterval,
    OwnershipSource,
    PackageDeduction,
    Period,
    PermissionGrant,
    QualityBonus,
    ReassignmentEvent,
    Student,
    Waiver,
)
from tutor_payroll.infrastructure.database.models import (
    BonusRecordRow,
    ClassStartSignalRecord,
    DeductionWaiverRecord,
    InstructorRecord,
    LatenessTierRecord,
    OwnershipRecord,
    PackageDeductionRecord,
    PackageRateRecord,
    PermissionGrantRecord,
    QualityAssessmentRecord,
    ReassignmentEventRecord,
    StudentRecord,
)
from tutor_payroll.utils.date_utils import day_end, day_start, last_day_before


class CompensationRepository:
    """Repository over the relational store implementing the CompensationStore protocol"""

    def __init__(
        self,
        db: Session,
        default_lateness_cents: Optional[int] = None,
        default_absence_cents: Optional[int] = None,
        default_excused_threshold: Optional[int] = None,
    ):
        self.db = db
        self.default_lateness_cents = (
            settings.default_lateness_deduction_cents if default_lateness_cents is None else default_lateness_cents
        )
        self.default_absence_cents = (
            settings.default_absence_deduction_cents if default_absence_cents is None else default_absence_cents
        )
        self.default_excused_threshold = (
            settings.default_excused_threshold_minutes if default_excused_threshold is None else default_excused_threshold
        )

    # Directory

    def get_instructor(self, instructor_id: str) -> Optional[Instructor]:
        row = self.db.query(InstructorRecord).filter(InstructorRecord.id == instructor_id).first()
        return Instructor(instructor_id=row.id, name=row.name) if row else None

    def list_instructors(self) -> List[Instructor]:
        rows = self.db.query(InstructorRecord).order_by(InstructorRecord.id).all()
        return [Instructor(instructor_id=row.id, name=row.name) for row in rows]

    def students_assigned_to(self, instructor_id: str) -> List[Student]:
        rows = (
            self.db.query(StudentRecord)
            .filter(StudentRecord.instructor_id == instructor_id)
            .order_by(StudentRecord.id)
            .all()
        )
        return [_to_student(row) for row in rows]

    def get_students(self, student_ids: Iterable[int]) -> List[Student]:
        ids = list(student_ids)
        if not ids:
            return []
        rows = self.db.query(StudentRecord).filter(StudentRecord.id.in_(ids)).order_by(StudentRecord.id).all()
        return [_to_student(row) for row in rows]

    # Ownership

    def ownership_records_for_instructor(self, instructor_id: str, period: Period) -> List[OwnershipInterval]:
        rows = (
            self.db.query(OwnershipRecord)
            .filter(
                OwnershipRecord.instructor_id == instructor_id,
                OwnershipRecord.starts_at <= day_end(period.end),
                or_(
                    OwnershipRecord.ends_at.is_(None),
                    OwnershipRecord.ends_at >= day_start(period.start + timedelta(days=1)),
                ),
            )
            .order_by(OwnershipRecord.starts_at)
            .all()
        )
        return [_to_interval(row) for row in rows]

    def ownership_records_for_students(self, student_ids: Iterable[int]) -> List[OwnershipInterval]:
        ids = list(student_ids)
        if not ids:
            return []
        rows = (
            self.db.query(OwnershipRecord)
            .filter(OwnershipRecord.student_id.in_(ids))
            .order_by(OwnershipRecord.student_id, OwnershipRecord.starts_at)
            .all()
        )
        return [_to_interval(row) for row in rows]

    def reassignment_events_for_instructor(self, instructor_id: str, period: Period) -> List[ReassignmentEvent]:
        rows = (
            self.db.query(ReassignmentEventRecord)
            .filter(
                or_(
                    ReassignmentEventRecord.old_instructor_id == instructor_id,
                    ReassignmentEventRecord.new_instructor_id == instructor_id,
                ),
                ReassignmentEventRecord.changed_at <= day_end(period.end),
            )
            .order_by(ReassignmentEventRecord.changed_at)
            .all()
        )
        return [_to_event(row) for row in rows]

    def reassignment_events_for_students(self, student_ids: Iterable[int]) -> List[ReassignmentEvent]:
        ids = list(student_ids)
        if not ids:
            return []
        rows = (
            self.db.query(ReassignmentEventRecord)
            .filter(ReassignmentEventRecord.student_id.in_(ids))
            .order_by(ReassignmentEventRecord.changed_at)
            .all()
        )
        return [_to_event(row) for row in rows]

    def append_reassignment(self, event: ReassignmentEvent) -> None:
        """Append a reassignment event and point the student at its new instructor"""
        self.db.add(
            ReassignmentEventRecord(
                student_id=event.student_id,
                old_instructor_id=event.old_instructor_id,
                new_instructor_id=event.new_instructor_id,
                changed_at=event.changed_at,
                reason=event.reason,
                time_slot=event.time_slot,
                day_pattern=event.day_pattern.raw if event.day_pattern else None,
                package=event.package,
                monthly_rate_cents=event.monthly_rate_cents,
                daily_rate_cents=event.daily_rate_cents,
                created_by=event.created_by,
            )
        )
        student = self.db.query(StudentRecord).filter(StudentRecord.id == event.student_id).first()
        if student is not None:
            student.instructor_id = event.new_instructor_id
        self.db.commit()

    # Activity

    def class_start_signals(self, instructor_id: str, period: Period) -> List[ClassStartSignal]:
        rows = (
            self.db.query(ClassStartSignalRecord)
            .filter(
                ClassStartSignalRecord.instructor_id == instructor_id,
                ClassStartSignalRecord.sent_at >= day_start(period.start),
                ClassStartSignalRecord.sent_at <= day_end(period.end),
            )
            .order_by(ClassStartSignalRecord.sent_at)
            .all()
        )
        return [_to_signal(row) for row in rows]

    def class_start_signals_for_students(self, student_ids: Iterable[int], period: Period) -> List[ClassStartSignal]:
        ids = list(student_ids)
        if not ids:
            return []
        rows = (
            self.db.query(ClassStartSignalRecord)
            .filter(
                ClassStartSignalRecord.student_id.in_(ids),
                ClassStartSignalRecord.sent_at >= day_start(period.start),
                ClassStartSignalRecord.sent_at <= day_end(period.end),
            )
            .order_by(ClassStartSignalRecord.sent_at)
            .all()
        )
        return [_to_signal(row) for row in rows]

    # Configuration

    def package_rates(self) -> Dict[str, int]:
        return {row.package: int(row.monthly_rate_cents) for row in self.db.query(PackageRateRecord).all()}

    def deduction_rules(self, instructor_id: str) -> DeductionRuleSet:
        """Instructor-specific tiers replace the global tiers entirely when present"""
        ordering = (LatenessTierRecord.tier, LatenessTierRecord.start_minute)
        rows = (
            self.db.query(LatenessTierRecord)
            .filter(LatenessTierRecord.instructor_id == instructor_id)
            .order_by(*ordering)
            .all()
        )
        scope = "instructor"
        if not rows:
            rows = (
                self.db.query(LatenessTierRecord)
                .filter(LatenessTierRecord.instructor_id.is_(None))
                .order_by(*ordering)
                .all()
            )
            scope = "global"

        thresholds = [row.excused_threshold for row in rows if row.excused_threshold is not None]
        package_deductions = {
            row.package: PackageDeduction(
                lateness_cents=int(row.lateness_base_cents),
                absence_cents=int(row.absence_base_cents),
            )
            for row in self.db.query(PackageDeductionRecord).all()
        }

        return DeductionRuleSet(
            tiers=tuple(
                LatenessTier(
                    start_minute=row.start_minute,
                    end_minute=row.end_minute,
                    percent=Decimal(str(row.deduction_percent)),
                )
                for row in rows
            ),
            excused_threshold_minutes=min(thresholds) if thresholds else self.default_excused_threshold,
            scope=scope,
            package_deductions=package_deductions,
            default_lateness_cents=self.default_lateness_cents,
            default_absence_cents=self.default_absence_cents,
        )

    def waivers(self, instructor_id: str, period: Period) -> List[Waiver]:
        rows = (
            self.db.query(DeductionWaiverRecord)
            .filter(
                DeductionWaiverRecord.instructor_id == instructor_id,
                DeductionWaiverRecord.waived_on >= period.start,
                DeductionWaiverRecord.waived_on <= period.end,
            )
            .all()
        )
        return [
            Waiver(
                instructor_id=row.instructor_id,
                kind=DeductionKind(row.kind),
                waived_on=row.waived_on,
                reason=row.reason,
            )
            for row in rows
        ]

    def permission_grants(self, instructor_id: str, period: Period) -> List[PermissionGrant]:
        rows = (
            self.db.query(PermissionGrantRecord)
            .filter(
                PermissionGrantRecord.instructor_id == instructor_id,
                PermissionGrantRecord.status == "approved",
                PermissionGrantRecord.granted_on >= period.start,
                PermissionGrantRecord.granted_on <= period.end,
            )
            .all()
        )
        return [PermissionGrant(instructor_id=row.instructor_id, granted_on=row.granted_on, reason=row.reason) for row in rows]

    # Bonuses

    def quality_bonuses(self, instructor_id: str, period: Period) -> List[QualityBonus]:
        rows = (
            self.db.query(QualityAssessmentRecord)
            .filter(
                QualityAssessmentRecord.instructor_id == instructor_id,
                QualityAssessmentRecord.manager_approved.is_(True),
                QualityAssessmentRecord.week_start >= period.start,
                QualityAssessmentRecord.week_start <= period.end,
            )
            .all()
        )
        return [
            QualityBonus(instructor_id=row.instructor_id, week_start=row.week_start, bonus_cents=int(row.bonus_awarded_cents))
            for row in rows
        ]

    def bonus_records(self, instructor_id: str, period: Period) -> List[BonusRecord]:
        rows = (
            self.db.query(BonusRecordRow)
            .filter(
                BonusRecordRow.instructor_id == instructor_id,
                BonusRecordRow.created_at >= day_start(period.start),
                BonusRecordRow.created_at <= day_end(period.end),
            )
            .all()
        )
        return [
            BonusRecord(
                instructor_id=row.instructor_id,
                amount_cents=int(row.amount_cents),
                created_at=row.created_at,
                reason=row.reason,
            )
            for row in rows
        ]


def _to_student(row: StudentRecord) -> Student:
    return Student(
        student_id=row.id,
        name=row.name,
        package=row.package,
        day_pattern=parse_day_pattern(row.day_pattern),
        time_slot=row.time_slot,
        status=row.status,
        instructor_id=row.instructor_id,
    )


def _to_interval(row: OwnershipRecord) -> OwnershipInterval:
    return OwnershipInterval(
        student_id=row.student_id,
        instructor_id=row.instructor_id,
        starts_on=row.starts_at.date(),
        ends_on=last_day_before(row.ends_at),
        source=OwnershipSource.ASSIGNMENT,
        time_slot=row.time_slot,
        day_pattern=parse_day_pattern(row.day_pattern),
    )


def _to_event(row: ReassignmentEventRecord) -> ReassignmentEvent:
    return ReassignmentEvent(
        student_id=row.student_id,
        old_instructor_id=row.old_instructor_id,
        new_instructor_id=row.new_instructor_id,
        changed_at=row.changed_at,
        reason=row.reason,
        time_slot=row.time_slot,
        day_pattern=parse_day_pattern(row.day_pattern) if row.day_pattern else None,
        package=row.package,
        monthly_rate_cents=row.monthly_rate_cents,
        daily_rate_cents=row.daily_rate_cents,
        created_by=row.created_by,
    )


def _to_signal(row: ClassStartSignalRecord) -> ClassStartSignal:
    return ClassStartSignal(student_id=row.student_id, instructor_id=row.instructor_id, sent_at=row.sent_at)
