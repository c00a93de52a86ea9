"""SQLAlchemy ORM models for the tutoring operation's relational store"""

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


class InstructorRecord(Base):
    """Instructor directory entry"""

    __tablename__ = "instructors"

    id = Column(String(32), primary_key=True)
    name = Column(Text, nullable=False)
    created_at = Column(DateTime, nullable=False, server_default=func.now())

    students = relationship("StudentRecord", back_populates="instructor")


class StudentRecord(Base):
    """Student directory entry with its current instructor pointer"""

    __tablename__ = "students"

    id = Column(Integer, primary_key=True)
    name = Column(Text, nullable=False)
    package = Column(Text, nullable=True)
    day_pattern = Column(Text, nullable=True)
    time_slot = Column(Text, nullable=True)
    status = Column(Text, nullable=True)
    instructor_id = Column(String(32), ForeignKey("instructors.id"), nullable=True, index=True)

    instructor = relationship("InstructorRecord", back_populates="students")


class OwnershipRecord(Base):
    """Live assignment of a student to an instructor's time slot"""

    __tablename__ = "ownership_intervals"

    id = Column(Integer, primary_key=True, autoincrement=True)
    student_id = Column(Integer, ForeignKey("students.id"), nullable=False, index=True)
    instructor_id = Column(String(32), ForeignKey("instructors.id"), nullable=False, index=True)
    time_slot = Column(Text, nullable=True)
    day_pattern = Column(Text, nullable=True)
    starts_at = Column(DateTime, nullable=False)
    ends_at = Column(DateTime, nullable=True)


class ReassignmentEventRecord(Base):
    """Append-only log of instructor changes"""

    __tablename__ = "reassignment_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    student_id = Column(Integer, ForeignKey("students.id"), nullable=False, index=True)
    old_instructor_id = Column(String(32), nullable=True, index=True)
    new_instructor_id = Column(String(32), nullable=False, index=True)
    changed_at = Column(DateTime, nullable=False, index=True)
    reason = Column(Text, nullable=True)
    time_slot = Column(Text, nullable=True)
    day_pattern = Column(Text, nullable=True)
    package = Column(Text, nullable=True)
    monthly_rate_cents = Column(BigInteger, nullable=True)
    daily_rate_cents = Column(BigInteger, nullable=True)
    created_by = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())


class ClassStartSignalRecord(Base):
    """Class link sent to a student; proof a session began"""

    __tablename__ = "class_start_signals"

    id = Column(Integer, primary_key=True, autoincrement=True)
    student_id = Column(Integer, ForeignKey("students.id"), nullable=False, index=True)
    instructor_id = Column(String(32), nullable=False, index=True)
    sent_at = Column(DateTime, nullable=False, index=True)


class PackageRateRecord(Base):
    """Monthly rate per student for a package"""

    __tablename__ = "package_rates"

    package = Column(Text, primary_key=True)
    monthly_rate_cents = Column(BigInteger, nullable=False)


class PackageDeductionRecord(Base):
    """Base lateness and absence deduction amounts per package"""

    __tablename__ = "package_deductions"

    package = Column(Text, primary_key=True)
    lateness_base_cents = Column(BigInteger, nullable=False)
    absence_base_cents = Column(BigInteger, nullable=False)


class LatenessTierRecord(Base):
    """Lateness tier; a null instructor_id makes it part of the global rule set"""

    __tablename__ = "lateness_tiers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    instructor_id = Column(String(32), nullable=True, index=True)
    tier = Column(Integer, nullable=False)
    start_minute = Column(Integer, nullable=False)
    end_minute = Column(Integer, nullable=False)
    deduction_percent = Column(Numeric(5, 2), nullable=False)
    excused_threshold = Column(Integer, nullable=True)


class DeductionWaiverRecord(Base):
    __tablename__ = "deduction_waivers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    instructor_id = Column(String(32), nullable=False, index=True)
    kind = Column(String(16), nullable=False)  # lateness | absence
    waived_on = Column(Date, nullable=False)
    reason = Column(Text, nullable=True)


class PermissionGrantRecord(Base):
    __tablename__ = "permission_grants"

    id = Column(Integer, primary_key=True, autoincrement=True)
    instructor_id = Column(String(32), nullable=False, index=True)
    granted_on = Column(Date, nullable=False)
    status = Column(String(16), nullable=False, default="approved")
    reason = Column(Text, nullable=True)


class QualityAssessmentRecord(Base):
    """Weekly quality review; its bonus counts once a manager approves it"""

    __tablename__ = "quality_assessments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    instructor_id = Column(String(32), nullable=False, index=True)
    week_start = Column(Date, nullable=False)
    bonus_awarded_cents = Column(BigInteger, nullable=False, default=0)
    manager_approved = Column(Boolean, nullable=False, default=False)


class BonusRecordRow(Base):
    """Manually awarded bonus"""

    __tablename__ = "bonus_records"

    id = Column(Integer, primary_key=True, autoincrement=True)
    instructor_id = Column(String(32), nullable=False, index=True)
    amount_cents = Column(BigInteger, nullable=False)
    reason = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
