"""Unit tests for ownership timelines and assignment resolution"""

import pytest
from datetime import date
from tutor_payroll.domain.assignments import (
    AssignmentResolver,
    FallbackPolicy,
    OwnershipTimeline,
    normalize_events,
)
from tutor_payroll.domain.exceptions import DataInconsistencyError
from tutor_payroll.domain.models import OwnershipInterval, OwnershipSource, ReassignmentEvent
from tutor_payroll.utils.date_utils import generate_date_range
from conftest import SEPTEMBER, at

ELIGIBLE = ["active", "pending", "not yet", "fresh"]


def event(old, new, changed_at, student_id=1, **snapshot) -> ReassignmentEvent:
    return ReassignmentEvent(
        student_id=student_id,
        old_instructor_id=old,
        new_instructor_id=new,
        changed_at=changed_at,
        **snapshot,
    )


def resolver(store, policy=FallbackPolicy.FULL_PERIOD) -> AssignmentResolver:
    return AssignmentResolver(store, ELIGIBLE, policy)


def test_timeline_segments_cover_period_without_overlap(store):
    """Every day has exactly one holder, and it is the one the timeline reports"""
    student = store.add_student(1, "C")
    timeline = OwnershipTimeline(student, [event("A", "B", at(10, 14)), event("B", "C", at(20, 9))])

    intervals = {
        instructor: timeline.intervals_for(instructor, SEPTEMBER)
        for instructor in ("A", "B", "C")
    }
    for day in generate_date_range(SEPTEMBER.start, SEPTEMBER.end):
        holders = [i for i, spans in intervals.items() if any(span.covers(day) for span in spans)]
        assert holders == [timeline.holder_on(day)]


def test_change_day_belongs_to_new_holder(store):
    """Test the day of a reassignment belongs to the new instructor"""
    student = store.add_student(1, "B")
    timeline = OwnershipTimeline(student, [event("A", "B", at(10, 23, 59))])

    assert timeline.holder_on(date(2026, 9, 9)) == "A"
    assert timeline.holder_on(date(2026, 9, 10)) == "B"
    assert timeline.intervals_for("A", SEPTEMBER)[0].ends_on == date(2026, 9, 9)
    assert timeline.intervals_for("B", SEPTEMBER)[0].starts_on == date(2026, 9, 10)


def test_last_event_of_the_day_wins(store):
    """Test only the last reassignment of a day decides its holder"""
    student = store.add_student(1, "C")
    timeline = OwnershipTimeline(student, [event("A", "B", at(10, 9)), event("B", "C", at(10, 15))])

    assert timeline.intervals_for("B", SEPTEMBER) == []
    assert timeline.intervals_for("A", SEPTEMBER)[0].ends_on == date(2026, 9, 9)
    assert timeline.intervals_for("C", SEPTEMBER)[0].starts_on == date(2026, 9, 10)


def test_segments_carry_event_snapshot(store):
    """Test segments carry the package snapshot of their event"""
    student = store.add_student(1, "B", package="Silver", time_slot="09:00")
    timeline = OwnershipTimeline(student, [event("A", "B", at(10), package="Gold", time_slot="16:00")])

    before, after = timeline.segments()
    assert (before.package, before.time_slot) == ("Silver", "09:00")
    assert (after.package, after.time_slot) == ("Gold", "16:00")


def test_duplicate_events_are_dropped():
    """Test identical events count once"""
    events = [event("A", "B", at(10)), event("A", "B", at(10)), event("B", "C", at(20))]
    assert len(normalize_events(1, events)) == 2


def test_conflicting_events_at_same_instant_raise():
    """Test contradictory events at one instant raise"""
    with pytest.raises(DataInconsistencyError):
        normalize_events(1, [event("A", "B", at(10)), event("A", "C", at(10))])


def test_current_pointer_covers_whole_period(store):
    """Test a current student with no history is held all period"""
    store.add_student(1, "X")

    assignment_set = resolver(store).resolve("X", SEPTEMBER)

    (assignment,) = assignment_set.assignments
    (interval,) = assignment.intervals
    assert interval.source == OwnershipSource.CURRENT
    assert (interval.starts_on, interval.ends_on) == (SEPTEMBER.start, SEPTEMBER.end)


def test_ineligible_current_student_is_excluded(store):
    """Test students with an ineligible status are left out"""
    store.add_student(1, "X", status="left")

    assert resolver(store).resolve("X", SEPTEMBER).assignments == ()


def test_current_interval_starts_after_other_instructors_closed_record(store):
    """Test the current holder starts after the previous holder's record closes"""
    store.add_student(1, "X")
    store.records.append(
        OwnershipInterval(1, "Y", date(2026, 8, 1), date(2026, 9, 11), OwnershipSource.ASSIGNMENT)
    )

    (assignment,) = resolver(store).resolve("X", SEPTEMBER).assignments
    assert assignment.intervals[0].starts_on == date(2026, 9, 12)


def test_live_records_clip_to_period(store):
    """Test ownership records are clipped to the period"""
    store.add_student(1, "Y")
    store.records.append(
        OwnershipInterval(1, "X", date(2026, 8, 20), date(2026, 9, 15), OwnershipSource.ASSIGNMENT)
    )

    (assignment,) = resolver(store).resolve("X", SEPTEMBER).assignments
    (interval,) = assignment.intervals
    assert (interval.starts_on, interval.ends_on) == (date(2026, 9, 1), date(2026, 9, 15))
    assert interval.package == "Gold"


def test_overlapping_live_records_raise(store):
    """Test overlapping ownership records raise"""
    store.add_student(1, "X")
    store.records += [
        OwnershipInterval(1, "X", date(2026, 9, 1), None, OwnershipSource.ASSIGNMENT),
        OwnershipInterval(1, "Y", date(2026, 9, 10), date(2026, 9, 20), OwnershipSource.ASSIGNMENT),
    ]

    with pytest.raises(DataInconsistencyError):
        resolver(store).resolve("X", SEPTEMBER)


def test_event_log_takes_precedence_over_pointer(store):
    """Test the event log wins over the current pointer"""
    store.add_student(1, "Y")
    store.events.append(event("X", "Y", at(16, 10)))

    (assignment,) = resolver(store).resolve("X", SEPTEMBER).assignments
    (interval,) = assignment.intervals
    assert interval.source == OwnershipSource.REASSIGNMENT
    assert interval.ends_on == date(2026, 9, 15)


def test_events_for_unknown_student_raise(store):
    """Test events naming an unknown student raise"""
    store.events.append(event("X", "Y", at(16), student_id=99))

    with pytest.raises(DataInconsistencyError):
        resolver(store).resolve("X", SEPTEMBER)


def test_signals_for_unknown_student_are_skipped(store):
    """Test signals for an unknown student are skipped"""
    store.add_signals(99, "X", [at(2)])

    assert resolver(store).resolve("X", SEPTEMBER).assignments == ()


@pytest.fixture
def unowned_student(store):
    """Student with four signals from X but no ownership data and no current instructor"""
    store.add_student(1, None)
    store.add_signals(1, "X", [at(2), at(4), at(8), at(9)])
    return store


def test_fallback_full_period(unowned_student):
    """Test the full-period fallback spans the whole period"""
    (assignment,) = resolver(unowned_student).resolve("X", SEPTEMBER).assignments
    (interval,) = assignment.intervals

    assert interval.source == OwnershipSource.FALLBACK
    assert (interval.starts_on, interval.ends_on) == (SEPTEMBER.start, SEPTEMBER.end)
    assert len(assignment.signals) == 4


def test_fallback_signal_bounded(unowned_student):
    """Test the signal-bounded fallback spans first to last signal"""
    (assignment,) = resolver(unowned_student, FallbackPolicy.SIGNAL_BOUNDED).resolve("X", SEPTEMBER).assignments
    (interval,) = assignment.intervals

    assert (interval.starts_on, interval.ends_on) == (date(2026, 9, 2), date(2026, 9, 9))


def test_fallback_exclude(unowned_student):
    """Test the exclude fallback drops the student"""
    assert resolver(unowned_student, FallbackPolicy.EXCLUDE).resolve("X", SEPTEMBER).assignments == ()


def test_no_fallback_when_student_belongs_to_someone_else(store):
    """Test no fallback for a student currently held by another instructor"""
    store.add_student(1, "Y")
    store.add_signals(1, "X", [at(2)])

    assert resolver(store).resolve("X", SEPTEMBER).assignments == ()


def test_owned_on_reports_holding_interval(store):
    """Test owned_on finds the interval holding a day"""
    store.add_student(1, "Y")
    store.events.append(event("X", "Y", at(16)))

    assignment_set = resolver(store).resolve("X", SEPTEMBER)

    assert [a.student.student_id for a, _ in assignment_set.owned_on(date(2026, 9, 15))] == [1]
    assert assignment_set.owned_on(date(2026, 9, 16)) == []
    assert assignment_set.student_ids == [1]
