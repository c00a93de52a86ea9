"""Package rate resolution - monthly and per-day rates"""

import logging
from typing import Mapping, Optional

from tutor_payroll.domain.calendar import CalendarPolicy, working_day_count
from tutor_payroll.domain.models import Period
from tutor_payroll.utils.money import divide_cents


class RateResolver:
    """Maps packages to monthly rates and derives the per-day rate for a period"""

    def __init__(self, package_rates: Mapping[str, int], working_days: int):
        self.package_rates = dict(package_rates)
        self.working_days = working_days

    @classmethod
    def for_period(cls, package_rates: Mapping[str, int], period: Period, policy: CalendarPolicy) -> "RateResolver":
        return cls(package_rates, working_day_count(period.start, period.end, policy))

    def monthly_rate_cents(self, package: Optional[str], snapshot_cents: Optional[int] = None) -> int:
        """
        Monthly rate for a package.

        The rate table wins; an interval's rate snapshot is used only for packages
        missing from the table. Unknown packages are not billable (0) and logged.
        """
        if package and package in self.package_rates:
            return self.package_rates[package]
        if snapshot_cents:
            return snapshot_cents

        logging.warning(
            "No monthly rate configured for package",
            extra={"step": "rate_resolution", "package": package},
        )
        return 0

    def daily_rate_cents(self, monthly_rate_cents: int) -> int:
        """Monthly rate ÷ working days, rounded half-up to the cent"""
        return divide_cents(monthly_rate_cents, self.working_days)
