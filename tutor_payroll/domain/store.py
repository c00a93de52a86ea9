"""Read-mostly data access interface the compensation engine depends on"""

from typing import Dict, Iterable, List, Optional, Protocol

from tutor_payroll.domain.models import (
    BonusRecord,
    ClassStartSignal,
    DeductionRuleSet,
    Instructor,
    OwnershipInterval,
    Period,
    PermissionGrant,
    QualityBonus,
    ReassignmentEvent,
    Student,
    Waiver,
)


class CompensationStore(Protocol):
    """Views over the relational store, keyed by instructor and/or student and a period"""

    def get_instructor(self, instructor_id: str) -> Optional[Instructor]:
        ...

    def list_instructors(self) -> List[Instructor]:
        ...

    def students_assigned_to(self, instructor_id: str) -> List[Student]:
        """Students whose current pointer is the instructor, any status"""
        ...

    def get_students(self, student_ids: Iterable[int]) -> List[Student]:
        ...

    def ownership_records_for_instructor(self, instructor_id: str, period: Period) -> List[OwnershipInterval]:
        ...

    def ownership_records_for_students(self, student_ids: Iterable[int]) -> List[OwnershipInterval]:
        ...

    def reassignment_events_for_instructor(self, instructor_id: str, period: Period) -> List[ReassignmentEvent]:
        """Events naming the instructor as old or new holder, changed on or before period end"""
        ...

    def reassignment_events_for_students(self, student_ids: Iterable[int]) -> List[ReassignmentEvent]:
        ...

    def class_start_signals(self, instructor_id: str, period: Period) -> List[ClassStartSignal]:
        ...

    def class_start_signals_for_students(self, student_ids: Iterable[int], period: Period) -> List[ClassStartSignal]:
        """Signals from any instructor for the given students"""
        ...

    def package_rates(self) -> Dict[str, int]:
        """Package name → monthly rate in cents"""
        ...

    def deduction_rules(self, instructor_id: str) -> DeductionRuleSet:
        """Instructor-specific rule set when one exists, otherwise the global one"""
        ...

    def waivers(self, instructor_id: str, period: Period) -> List[Waiver]:
        ...

    def permission_grants(self, instructor_id: str, period: Period) -> List[PermissionGrant]:
        ...

    def quality_bonuses(self, instructor_id: str, period: Period) -> List[QualityBonus]:
        ...

    def bonus_records(self, instructor_id: str, period: Period) -> List[BonusRecord]:
        ...

    def append_reassignment(self, event: ReassignmentEvent) -> None:
        ...

