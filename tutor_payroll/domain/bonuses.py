"""Bonus aggregation"""

from dataclasses import dataclass
from typing import Iterable, Tuple

from tutor_payroll.domain.models import BonusLine, BonusRecord, Period, QualityBonus


@dataclass(frozen=True)
class Bonuses:
    total_cents: int
    lines: Tuple[BonusLine, ...]


def aggregate_bonuses(
    period: Period,
    quality_bonuses: Iterable[QualityBonus],
    bonus_records: Iterable[BonusRecord],
) -> Bonuses:
    """Approved quality bonuses for weeks starting in the period plus manual awards created in it"""
    lines = [
        BonusLine(source="quality", awarded_on=q.week_start, amount_cents=q.bonus_cents)
        for q in quality_bonuses
        if period.contains(q.week_start)
    ]
    lines += [
        BonusLine(source="manual", awarded_on=r.created_at.date(), amount_cents=r.amount_cents, reason=r.reason)
        for r in bonus_records
        if period.contains(r.created_at.date())
    ]
    lines.sort(key=lambda line: (line.awarded_on, line.source))
    return Bonuses(total_cents=sum(line.amount_cents for line in lines), lines=tuple(lines))
