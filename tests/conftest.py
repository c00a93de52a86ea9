"""Pytest fixtures for testing"""

import pytest
import httpx
from contextlib import nullcontext
from dataclasses import replace
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, Generator, Iterable, List, Optional
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session

from tutor_payroll.api.dependencies import get_clock, get_payment_client, get_session_factory
from tutor_payroll.api.main import create_app
from tutor_payroll.domain.assignments import AssignmentSet, FallbackPolicy
from tutor_payroll.domain.calendar import CalendarPolicy, parse_day_pattern
from tutor_payroll.domain.models import (
    BonusRecord,
    ClassStartSignal,
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
    StudentAssignment,
    Waiver,
)
from tutor_payroll.infrastructure.cache import InMemoryCompensationCache, TieredCompensationCache, process_cache
from tutor_payroll.infrastructure.clients.payments import PaymentStatusClient
from tutor_payroll.infrastructure.database.models import (
    Base,
    ClassStartSignalRecord,
    InstructorRecord,
    LatenessTierRecord,
    PackageDeductionRecord,
    PackageRateRecord,
    QualityAssessmentRecord,
    StudentRecord,
)
from tutor_payroll.services.compensation import CompensationService

# September 2026: starts on a Tuesday, 26 days excluding Sundays
SEPTEMBER = Period(date(2026, 9, 1), date(2026, 9, 30))
TODAY = date(2026, 10, 18)

# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def at(day: int, hour: int = 14, minute: int = 0, second: int = 0, month: int = 9) -> datetime:
    """Instant in 2026, September by default"""
    return datetime(2026, month, day, hour, minute, second)


def example_rules(**overrides) -> DeductionRuleSet:
    """Threshold 3, one tier [4, 7] at 10%, Gold lateness base 30.00 and absence base 25.00"""
    values = dict(
        tiers=(LatenessTier(4, 7, Decimal("10")),),
        excused_threshold_minutes=3,
        scope="global",
        package_deductions={"Gold": PackageDeduction(lateness_cents=3000, absence_cents=2500)},
        default_lateness_cents=3000,
        default_absence_cents=2500,
    )
    values.update(overrides)
    return DeductionRuleSet(**values)


def assignment_set_for(
    instructor_id: str,
    student: Student,
    signals: Iterable[datetime] = (),
    starts_on: Optional[date] = None,
    ends_on: Optional[date] = None,
    period: Period = SEPTEMBER,
) -> AssignmentSet:
    """One student held by the instructor over [starts_on, ends_on], the whole period by default"""
    interval = OwnershipInterval(
        student_id=student.student_id,
        instructor_id=instructor_id,
        starts_on=starts_on or period.start,
        ends_on=ends_on or period.end,
        source=OwnershipSource.CURRENT,
        time_slot=student.time_slot,
        day_pattern=student.day_pattern,
        package=student.package,
    )
    assignment = StudentAssignment(
        student=student,
        intervals=(interval,),
        signals=tuple(ClassStartSignal(student.student_id, instructor_id, sent_at) for sent_at in signals),
    )
    return AssignmentSet(instructor_id=instructor_id, period=period, assignments=(assignment,))


class InMemoryStore:
    """CompensationStore over plain lists, filtering the way the SQL repository does"""

    def __init__(self):
        self.instructors: Dict[str, Instructor] = {}
        self.students: Dict[int, Student] = {}
        self.records: List[OwnershipInterval] = []
        self.events: List[ReassignmentEvent] = []
        self.signals: List[ClassStartSignal] = []
        self.rates: Dict[str, int] = {}
        self.rules = example_rules()
        self.rules_by_instructor: Dict[str, DeductionRuleSet] = {}
        self.waiver_list: List[Waiver] = []
        self.grants: List[PermissionGrant] = []
        self.quality: List[QualityBonus] = []
        self.manual_bonuses: List[BonusRecord] = []
        self.instructor_lookups = 0

    # Builders

    def add_instructor(self, instructor_id: str, name: Optional[str] = None) -> Instructor:
        instructor = Instructor(instructor_id=instructor_id, name=name or f"Instructor {instructor_id}")
        self.instructors[instructor_id] = instructor
        return instructor

    def add_student(
        self,
        student_id: int,
        instructor_id: Optional[str] = None,
        package: Optional[str] = "Gold",
        pattern: Optional[str] = "MWF",
        time_slot: Optional[str] = "14:00",
        status: Optional[str] = "active",
    ) -> Student:
        student = Student(
            student_id=student_id,
            name=f"Student {student_id}",
            package=package,
            day_pattern=parse_day_pattern(pattern),
            time_slot=time_slot,
            status=status,
            instructor_id=instructor_id,
        )
        self.students[student_id] = student
        return student

    def add_signals(self, student_id: int, instructor_id: str, instants: Iterable[datetime]) -> None:
        for sent_at in instants:
            self.signals.append(ClassStartSignal(student_id=student_id, instructor_id=instructor_id, sent_at=sent_at))

    # CompensationStore

    def get_instructor(self, instructor_id):
        self.instructor_lookups += 1
        return self.instructors.get(instructor_id)

    def list_instructors(self):
        return [self.instructors[i] for i in sorted(self.instructors)]

    def students_assigned_to(self, instructor_id):
        return [s for s in self.students.values() if s.instructor_id == instructor_id]

    def get_students(self, student_ids):
        return [self.students[sid] for sid in student_ids if sid in self.students]

    def ownership_records_for_instructor(self, instructor_id, period):
        return [r for r in self.records if r.instructor_id == instructor_id and r.clip(period) is not None]

    def ownership_records_for_students(self, student_ids):
        ids = set(student_ids)
        return [r for r in self.records if r.student_id in ids]

    def reassignment_events_for_instructor(self, instructor_id, period):
        return [
            e
            for e in self.events
            if instructor_id in (e.old_instructor_id, e.new_instructor_id) and e.changed_at.date() <= period.end
        ]

    def reassignment_events_for_students(self, student_ids):
        ids = set(student_ids)
        return [e for e in self.events if e.student_id in ids]

    def class_start_signals(self, instructor_id, period):
        return [s for s in self.signals if s.instructor_id == instructor_id and period.contains(s.sent_at.date())]

    def class_start_signals_for_students(self, student_ids, period):
        ids = set(student_ids)
        return [s for s in self.signals if s.student_id in ids and period.contains(s.sent_at.date())]

    def package_rates(self):
        return dict(self.rates)

    def deduction_rules(self, instructor_id):
        return self.rules_by_instructor.get(instructor_id, self.rules)

    def waivers(self, instructor_id, period):
        return [w for w in self.waiver_list if w.instructor_id == instructor_id and period.contains(w.waived_on)]

    def permission_grants(self, instructor_id, period):
        return [g for g in self.grants if g.instructor_id == instructor_id and period.contains(g.granted_on)]

    def quality_bonuses(self, instructor_id, period):
        return [q for q in self.quality if q.instructor_id == instructor_id and period.contains(q.week_start)]

    def bonus_records(self, instructor_id, period):
        return [
            b for b in self.manual_bonuses if b.instructor_id == instructor_id and period.contains(b.created_at.date())
        ]

    def append_reassignment(self, event):
        self.events.append(event)
        student = self.students.get(event.student_id)
        if student is not None:
            self.students[event.student_id] = replace(student, instructor_id=event.new_instructor_id)


class FakePaymentClient:
    """Stands in for PaymentStatusClient; raises `error` when set"""

    def __init__(self, status=None, error=None):
        self.status = status
        self.error = error
        self.calls = 0

    async def get_status(self, instructor_id, period):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.status


@pytest.fixture(autouse=True)
def clear_process_cache():
    process_cache.invalidate_all()
    yield
    process_cache.invalidate_all()


@pytest.fixture
def store() -> InMemoryStore:
    store = InMemoryStore()
    store.rates = {"Gold": 90000, "Silver": 60000}
    return store


@pytest.fixture
def policy() -> CalendarPolicy:
    return CalendarPolicy()


def build_service(store: InMemoryStore, **overrides) -> CompensationService:
    values = dict(
        store_scope=lambda: nullcontext(store),
        cache=TieredCompensationCache(InMemoryCompensationCache(), InMemoryCompensationCache()),
        policy=CalendarPolicy(),
        eligible_statuses=["active", "pending", "not yet", "fresh"],
        fallback_policy=FallbackPolicy.FULL_PERIOD,
        clock=lambda: TODAY,
        batch_timeout=5.0,
        batch_concurrency=4,
    )
    values.update(overrides)
    return CompensationService(**values)


@pytest.fixture
def service(store: InMemoryStore) -> CompensationService:
    return build_service(store)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def payment_transport() -> httpx.MockTransport:
    """Payment service answering Paid for every instructor"""
    return httpx.MockTransport(lambda request: httpx.Response(200, json={"status": "Paid"}))


@pytest.fixture
def client(db: Session, payment_transport: httpx.MockTransport) -> TestClient:
    """Create FastAPI test client with test database and mocked payment service"""
    app = create_app()

    app.dependency_overrides[get_session_factory] = lambda: TestingSessionLocal
    app.dependency_overrides[get_payment_client] = lambda: PaymentStatusClient(
        base_url="http://payments.test", transport=payment_transport
    )
    app.dependency_overrides[get_clock] = lambda: (lambda: TODAY)
    return TestClient(app)


def seed_september(db: Session) -> None:
    """SQL twin of the in-memory September scenario: T1 teaches student 1 (Gold, MWF 14:00)"""
    db.add_all(
        [
            InstructorRecord(id="T1", name="Amina"),
            InstructorRecord(id="T2", name="Bilal"),
            StudentRecord(id=1, name="Student 1", package="Gold", day_pattern="MWF", time_slot="14:00",
                          status="active", instructor_id="T1"),
            PackageRateRecord(package="Gold", monthly_rate_cents=90000),
            PackageDeductionRecord(package="Gold", lateness_base_cents=3000, absence_base_cents=2500),
            LatenessTierRecord(instructor_id=None, tier=1, start_minute=4, end_minute=7,
                               deduction_percent=Decimal("10.00"), excused_threshold=3),
            QualityAssessmentRecord(instructor_id="T1", week_start=date(2026, 9, 7), bonus_awarded_cents=1000,
                                    manager_approved=True),
        ]
    )
    for day in [2, 4, 7, 11, 14, 16, 18, 21, 23, 25, 28, 30]:
        db.add(ClassStartSignalRecord(student_id=1, instructor_id="T1", sent_at=at(day, 14, 5 if day == 14 else 0)))
    db.commit()
