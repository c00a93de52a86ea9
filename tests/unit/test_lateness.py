"""Unit tests for lateness deductions"""

import pytest
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from tutor_payroll.domain.lateness import (
    calculate_lateness_deductions,
    find_tier,
    minutes_late,
    parse_time_slot,
)
from tutor_payroll.domain.models import LatenessTier
from conftest import assignment_set_for, at, example_rules

STEPPED_TIERS = (
    LatenessTier(4, 7, Decimal("10")),
    LatenessTier(8, 15, Decimal("20")),
    LatenessTier(16, 60, Decimal("50")),
)


@pytest.mark.parametrize(
    "minute, expected_cents",
    [
        (5, 300),  # tier [4, 7] at 10% of 30.00
        (2, 0),  # within excused threshold
        (3, 0),  # at threshold
        (9, 0),  # beyond every tier
    ],
)
def test_lateness_example(store, minute, expected_cents):
    """Test lateness against the threshold and first tier"""
    student = store.add_student(1, "X", time_slot="14:00")

    deductions = calculate_lateness_deductions(assignment_set_for("X", student, [at(2, 14, minute)]), example_rules())

    assert deductions.total_cents == expected_cents
    assert len(deductions.entries) == (1 if expected_cents else 0)


def test_entry_details(store):
    """Test a lateness entry records its day, minutes and tier"""
    student = store.add_student(1, "X", time_slot="14:00")

    deductions = calculate_lateness_deductions(assignment_set_for("X", student, [at(2, 14, 5)]), example_rules())

    (entry,) = deductions.entries
    assert entry.day == date(2026, 9, 2)
    assert entry.scheduled_time == "14:00"
    assert entry.actual_time == "14:05"
    assert entry.minutes_late == 5
    assert entry.tier == "Tier 1 (10%) - Gold"


def test_only_earliest_signal_of_the_day_counts(store):
    """Test only the earliest signal of a day is evaluated"""
    student = store.add_student(1, "X", time_slot="14:00")
    signals = [at(2, 14, 30), at(2, 14, 5), at(2, 15, 0)]

    deductions = calculate_lateness_deductions(assignment_set_for("X", student, signals), example_rules())

    (entry,) = deductions.entries
    assert entry.minutes_late == 5


def test_early_signal_has_no_penalty(store):
    """Test an early signal is not late"""
    student = store.add_student(1, "X", time_slot="14:00")

    deductions = calculate_lateness_deductions(assignment_set_for("X", student, [at(2, 13, 50)]), example_rules())

    assert deductions.total_cents == 0


def test_waived_day_is_skipped(store):
    """Test a waived day is not charged"""
    student = store.add_student(1, "X", time_slot="14:00")
    assignment_set = assignment_set_for("X", student, [at(2, 14, 5), at(4, 14, 5)])

    deductions = calculate_lateness_deductions(assignment_set, example_rules(), waived_days={date(2026, 9, 2)})

    assert [e.day for e in deductions.entries] == [date(2026, 9, 4)]


def test_deduction_is_non_decreasing_step_function(store):
    """Test the deduction never decreases as lateness grows"""
    student = store.add_student(1, "X", time_slot="14:00")
    rules = example_rules(tiers=STEPPED_TIERS)

    amounts = []
    for minute in range(0, 61):
        signal = datetime(2026, 9, 2, 14, 0) + timedelta(minutes=minute)
        amounts.append(calculate_lateness_deductions(assignment_set_for("X", student, [signal]), rules).total_cents)

    assert amounts[:4] == [0, 0, 0, 0]
    assert amounts == sorted(amounts)
    assert set(amounts) == {0, 300, 600, 1500}


def test_missing_package_amount_uses_default(store):
    """Test a package without amounts uses the default base"""
    student = store.add_student(1, "X", package="Silver", time_slot="14:00")
    rules = example_rules(default_lateness_cents=2000)

    deductions = calculate_lateness_deductions(assignment_set_for("X", student, [at(2, 14, 5)]), rules)

    assert deductions.total_cents == 200


def test_no_tiers_means_no_deduction(store):
    """Test no configured tiers means no deduction"""
    student = store.add_student(1, "X", time_slot="14:00")

    deductions = calculate_lateness_deductions(assignment_set_for("X", student, [at(2, 14, 6)]), example_rules(tiers=()))

    assert deductions.total_cents == 0


def test_unreadable_time_slot_is_not_evaluated(store):
    """Test a student without a readable time slot is skipped"""
    student = store.add_student(1, "X", time_slot="after lunch")

    deductions = calculate_lateness_deductions(assignment_set_for("X", student, [at(2, 14, 5)]), example_rules())

    assert deductions.entries == ()


@pytest.mark.parametrize(
    "value, expected",
    [
        ("14:30", time(14, 30)),
        ("14:30:00", time(14, 30)),
        ("2:30 PM", time(14, 30)),
        ("12:15 am", time(0, 15)),
        ("14:30 - 15:30", time(14, 30)),
        ("25:00", None),
        ("", None),
        (None, None),
    ],
)
def test_parse_time_slot(value, expected):
    """Test time slot parsing"""
    assert parse_time_slot(value) == expected


def test_minutes_late_rounds_half_up():
    """Test minutes late round half up"""
    scheduled = datetime(2026, 9, 2, 14, 0)
    assert minutes_late(scheduled, datetime(2026, 9, 2, 14, 4, 29)) == 4
    assert minutes_late(scheduled, datetime(2026, 9, 2, 14, 4, 30)) == 5
    assert minutes_late(scheduled, datetime(2026, 9, 2, 13, 59)) == -1


def test_find_tier_reports_position():
    """Test tier lookup reports the tier position"""
    assert find_tier(STEPPED_TIERS, 10) == (2, STEPPED_TIERS[1])
    assert find_tier(STEPPED_TIERS, 3) is None
