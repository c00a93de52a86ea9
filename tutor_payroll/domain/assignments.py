"""
Assignment resolution - which students an instructor was financially responsible
for during a period, and on which days.

Ownership is derived from the reassignment event log whenever a student has one.
The day of a change instant belongs to the new holder.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, replace
from datetime import date, timedelta
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from tutor_payroll.domain.exceptions import DataInconsistencyError
from tutor_payroll.domain.models import (
    ClassStartSignal,
    OwnershipInterval,
    OwnershipSource,
    Period,
    ReassignmentEvent,
    Student,
    StudentAssignment,
)
from tutor_payroll.domain.store import CompensationStore


class FallbackPolicy(str, Enum):
    """What to do with a student who has signals from the instructor but no ownership record"""

    FULL_PERIOD = "full_period"
    SIGNAL_BOUNDED = "signal_bounded"
    EXCLUDE = "exclude"


def _event_identity(event: ReassignmentEvent) -> tuple:
    return (event.changed_at, event.old_instructor_id, event.new_instructor_id)


def normalize_events(student_id: int, events: Iterable[ReassignmentEvent]) -> List[ReassignmentEvent]:
    """
    Order a student's events by change instant.

    Exact duplicates are dropped. Two events at the same instant naming different
    new holders cannot be ordered and raise DataInconsistencyError.
    """
    ordered: List[ReassignmentEvent] = []
    seen = set()
    for event in sorted(events, key=lambda e: e.changed_at):
        if event.student_id != student_id:
            raise DataInconsistencyError(
                f"Reassignment event for student {event.student_id} found in history of student {student_id}"
            )
        identity = _event_identity(event)
        if identity in seen:
            continue
        if ordered and ordered[-1].changed_at == event.changed_at:
            raise DataInconsistencyError(
                f"Conflicting reassignment events for student {student_id} at {event.changed_at.isoformat()}: "
                f"{ordered[-1].new_instructor_id} vs {event.new_instructor_id}"
            )
        seen.add(identity)
        ordered.append(event)
    return ordered


class OwnershipTimeline:
    """Ownership history of one student, a pure function of its reassignment events"""

    def __init__(self, student: Student, events: Sequence[ReassignmentEvent]):
        if not events:
            raise ValueError("OwnershipTimeline requires at least one reassignment event")
        self.student = student
        self.events = normalize_events(student.student_id, events)
        self._warn_on_broken_chain()

    def _warn_on_broken_chain(self) -> None:
        for previous, current in zip(self.events, self.events[1:]):
            if current.old_instructor_id and current.old_instructor_id != previous.new_instructor_id:
                logging.warning(
                    "Reassignment chain break",
                    extra={
                        "step": "assignment_resolution",
                        "student_id": self.student.student_id,
                        "expected_old_instructor_id": previous.new_instructor_id,
                        "recorded_old_instructor_id": current.old_instructor_id,
                        "changed_at": current.changed_at.isoformat(),
                    },
                )

    def _effective_events(self) -> List[ReassignmentEvent]:
        """Last event of each calendar day; it decides the holder for that day"""
        by_day: Dict[date, ReassignmentEvent] = {}
        for event in self.events:
            by_day[event.changed_at.date()] = event
        return [by_day[day] for day in sorted(by_day)]

    def holder_on(self, day: date) -> Optional[str]:
        """Instructor in effect on a day; before the first event, the earliest known old instructor"""
        holder = self.events[0].old_instructor_id
        for event in self.events:
            if event.changed_at.date() > day:
                break
            holder = event.new_instructor_id
        return holder

    def segments(self) -> List[OwnershipInterval]:
        """Ownership intervals for every holder, in chronological order, without gaps or overlaps"""
        effective = self._effective_events()
        segments: List[OwnershipInterval] = []

        first = self.events[0]
        if first.old_instructor_id:
            segments.append(
                self._interval(first.old_instructor_id, None, first.changed_at.date() - timedelta(days=1), None)
            )

        for index, event in enumerate(effective):
            following = effective[index + 1] if index + 1 < len(effective) else None
            ends_on = following.changed_at.date() - timedelta(days=1) if following else None
            segments.append(self._interval(event.new_instructor_id, event.changed_at.date(), ends_on, event))

        return segments

    def intervals_for(self, instructor_id: str, period: Period) -> List[OwnershipInterval]:
        clipped = [
            segment.clip(period)
            for segment in self.segments()
            if segment.instructor_id == instructor_id
        ]
        return [interval for interval in clipped if interval is not None]

    def _interval(
        self,
        instructor_id: str,
        starts_on: Optional[date],
        ends_on: Optional[date],
        snapshot: Optional[ReassignmentEvent],
    ) -> OwnershipInterval:
        """Interval carrying the event snapshot; the holder before the first event gets the student defaults"""
        student = self.student
        if snapshot is None:
            return OwnershipInterval(
                student_id=student.student_id,
                instructor_id=instructor_id,
                starts_on=starts_on,
                ends_on=ends_on,
                source=OwnershipSource.REASSIGNMENT,
                time_slot=student.time_slot,
                day_pattern=student.day_pattern,
                package=student.package,
            )
        return OwnershipInterval(
            student_id=student.student_id,
            instructor_id=instructor_id,
            starts_on=starts_on,
            ends_on=ends_on,
            source=OwnershipSource.REASSIGNMENT,
            time_slot=snapshot.time_slot or student.time_slot,
            day_pattern=snapshot.day_pattern if snapshot.day_pattern is not None else student.day_pattern,
            package=snapshot.package or student.package,
            monthly_rate_cents=snapshot.monthly_rate_cents,
            daily_rate_cents=snapshot.daily_rate_cents,
        )


def check_no_overlap(student_id: int, records: Sequence[OwnershipInterval]) -> None:
    """Live ownership records of one student must not overlap, whichever instructors hold them"""
    for i, first in enumerate(records):
        for second in records[i + 1:]:
            if first.overlaps(second):
                raise DataInconsistencyError(
                    f"Overlapping ownership records for student {student_id}: "
                    f"{first.instructor_id} [{first.starts_on}, {first.ends_on}] and "
                    f"{second.instructor_id} [{second.starts_on}, {second.ends_on}]"
                )


@dataclass(frozen=True)
class AssignmentSet:
    """Students an instructor is responsible for during a period"""

    instructor_id: str
    period: Period
    assignments: Tuple[StudentAssignment, ...]

    def owned_on(self, day: date) -> List[Tuple[StudentAssignment, OwnershipInterval]]:
        """Students held by the instructor on a given day, with the interval that grants it"""
        owned = []
        for assignment in self.assignments:
            interval = assignment.interval_on(day)
            if interval is not None:
                owned.append((assignment, interval))
        return owned

    @property
    def student_ids(self) -> List[int]:
        return [a.student.student_id for a in self.assignments]


class AssignmentResolver:
    """Builds the per-student ownership intervals for one instructor and period"""

    def __init__(
        self,
        store: CompensationStore,
        eligible_statuses: Iterable[str],
        fallback_policy: FallbackPolicy = FallbackPolicy.FULL_PERIOD,
    ):
        self.store = store
        self.eligible_statuses = {s.strip().lower() for s in eligible_statuses}
        self.fallback_policy = fallback_policy

    def is_eligible(self, student: Student) -> bool:
        return (student.status or "").strip().lower() in self.eligible_statuses

    def resolve(self, instructor_id: str, period: Period) -> AssignmentSet:
        """
        Resolve the students an instructor served during the period.

        Flow:
        1. Pull current eligible students, students with the instructor's live
           ownership records, and students named in the instructor's reassignment events
        2. Add students with the instructor's class-start signals but no candidacy yet
        3. Per student: event log → live records → current pointer → fallback policy
        """
        current = [s for s in self.store.students_assigned_to(instructor_id) if self.is_eligible(s)]
        records = self.store.ownership_records_for_instructor(instructor_id, period)
        events = self.store.reassignment_events_for_instructor(instructor_id, period)
        signals = self.store.class_start_signals(instructor_id, period)

        candidate_ids = _unique(
            [s.student_id for s in current]
            + [r.student_id for r in records]
            + [e.student_id for e in events]
        )
        signals_by_student: Dict[int, List[ClassStartSignal]] = defaultdict(list)
        for signal in signals:
            signals_by_student[signal.student_id].append(signal)
        all_ids = _unique(candidate_ids + list(signals_by_student))

        students: Dict[int, Student] = {s.student_id: s for s in current}
        missing = [sid for sid in all_ids if sid not in students]
        if missing:
            students.update({s.student_id: s for s in self.store.get_students(missing)})

        orphaned = sorted({e.student_id for e in events} - students.keys())
        if orphaned:
            raise DataInconsistencyError(f"Reassignment events reference unknown students: {orphaned}")

        known_ids = [sid for sid in all_ids if sid in students]
        for sid in all_ids:
            if sid not in students:
                logging.warning(
                    "Class-start signals or ownership records reference an unknown student",
                    extra={"step": "assignment_resolution", "instructor_id": instructor_id, "student_id": sid},
                )

        events_by_student: Dict[int, List[ReassignmentEvent]] = defaultdict(list)
        for event in self.store.reassignment_events_for_students(known_ids):
            events_by_student[event.student_id].append(event)

        without_events = [sid for sid in known_ids if sid not in events_by_student]
        records_by_student: Dict[int, List[OwnershipInterval]] = defaultdict(list)
        if without_events:
            for record in self.store.ownership_records_for_students(without_events):
                records_by_student[record.student_id].append(record)

        assignments = []
        for sid in known_ids:
            student = students[sid]
            intervals = self._resolve_student(
                instructor_id,
                period,
                student,
                events_by_student.get(sid, []),
                records_by_student.get(sid, []),
                signals_by_student.get(sid, []),
            )
            if intervals:
                assignments.append(
                    StudentAssignment(
                        student=student,
                        intervals=tuple(sorted(intervals, key=lambda i: i.starts_on)),
                        signals=tuple(sorted(signals_by_student.get(sid, []), key=lambda s: s.sent_at)),
                    )
                )

        return AssignmentSet(instructor_id=instructor_id, period=period, assignments=tuple(assignments))

    def _resolve_student(
        self,
        instructor_id: str,
        period: Period,
        student: Student,
        events: List[ReassignmentEvent],
        records: List[OwnershipInterval],
        signals: List[ClassStartSignal],
    ) -> List[OwnershipInterval]:
        if events:
            return OwnershipTimeline(student, events).intervals_for(instructor_id, period)

        if records:
            records = [_with_student_defaults(r, student) for r in records]
            check_no_overlap(student.student_id, records)
            own = [r.clip(period) for r in records if r.instructor_id == instructor_id]
            own = [r for r in own if r is not None]
            if own:
                return own

        if student.instructor_id == instructor_id and self.is_eligible(student):
            current = _current_interval(instructor_id, student, records)
            if current is not None:
                clipped = current.clip(period)
                return [clipped] if clipped is not None else []
            return []

        if signals and not records and student.instructor_id in (None, instructor_id):
            return self._fallback(instructor_id, period, student, signals)

        return []

    def _fallback(
        self,
        instructor_id: str,
        period: Period,
        student: Student,
        signals: List[ClassStartSignal],
    ) -> List[OwnershipInterval]:
        if self.fallback_policy == FallbackPolicy.EXCLUDE:
            return []

        if self.fallback_policy == FallbackPolicy.SIGNAL_BOUNDED:
            days = sorted(s.sent_at.date() for s in signals)
            starts_on, ends_on = days[0], days[-1]
        else:
            starts_on, ends_on = period.start, period.end

        logging.info(
            "Synthesized fallback ownership interval",
            extra={
                "step": "assignment_resolution",
                "instructor_id": instructor_id,
                "student_id": student.student_id,
                "policy": self.fallback_policy.value,
                "signal_count": len(signals),
            },
        )
        return [
            OwnershipInterval(
                student_id=student.student_id,
                instructor_id=instructor_id,
                starts_on=starts_on,
                ends_on=ends_on,
                source=OwnershipSource.FALLBACK,
                time_slot=student.time_slot,
                day_pattern=student.day_pattern,
                package=student.package,
            )
        ]


def _unique(ids: Iterable[int]) -> List[int]:
    seen = set()
    ordered = []
    for sid in ids:
        if sid not in seen:
            seen.add(sid)
            ordered.append(sid)
    return ordered


def _with_student_defaults(record: OwnershipInterval, student: Student) -> OwnershipInterval:
    return replace(
        record,
        time_slot=record.time_slot or student.time_slot,
        day_pattern=record.day_pattern if record.day_pattern.is_resolved else student.day_pattern,
        package=record.package or student.package,
    )


def _current_interval(
    instructor_id: str,
    student: Student,
    records: Sequence[OwnershipInterval],
) -> Optional[OwnershipInterval]:
    """
    Open interval for a student whose current pointer is the instructor.

    Starts after the last closed record of any other instructor. If another
    instructor still holds an open record, the live records win and no interval
    is synthesized.
    """
    starts_on = None
    for record in records:
        if record.instructor_id == instructor_id:
            continue
        if record.ends_on is None:
            logging.warning(
                "Current pointer disagrees with open ownership record",
                extra={
                    "step": "assignment_resolution",
                    "instructor_id": instructor_id,
                    "student_id": student.student_id,
                    "record_instructor_id": record.instructor_id,
                },
            )
            return None
        next_day = record.ends_on + timedelta(days=1)
        if starts_on is None or next_day > starts_on:
            starts_on = next_day

    return OwnershipInterval(
        student_id=student.student_id,
        instructor_id=instructor_id,
        starts_on=starts_on,
        ends_on=None,
        source=OwnershipSource.CURRENT,
        time_slot=student.time_slot,
        day_pattern=student.day_pattern,
        package=student.package,
    )
