"""Date manipulation utilities"""

from datetime import date, datetime, time, timedelta
from typing import List, Optional


def generate_date_range(start: date, end: date) -> List[date]:
    """Generate list of dates from start to end (inclusive)"""
    days = (end - start).days + 1
    return [start + timedelta(days=i) for i in range(days)]


def day_start(day: date) -> datetime:
    """Midnight at the beginning of a calendar day"""
    return datetime.combine(day, time.min)


def day_end(day: date) -> datetime:
    """Last representable instant of a calendar day"""
    return datetime.combine(day, time.max)


def last_day_before(instant: Optional[datetime]) -> Optional[date]:
    """Inclusive last day of an interval that ends at `instant` (the day of the instant belongs to the next holder)"""
    if instant is None:
        return None
    return instant.date() - timedelta(days=1)


def month_key(day: date) -> str:
    """Payment period key in YYYY-MM format"""
    return f"{day.year:04d}-{day.month:02d}"
