"""Integer-cent arithmetic helpers.

All amounts inside the engine are integer cents. Rounding happens only where a
value is derived by division or percentage, always half-up.
"""

from decimal import Decimal, ROUND_HALF_UP

CENTS_PER_UNIT = 100


def divide_cents(amount_cents: int, divisor: int) -> int:
    """Divide an amount in cents, rounding half-up to the nearest cent. Zero divisor yields 0."""
    if divisor <= 0:
        return 0
    quotient = Decimal(amount_cents) / Decimal(divisor)
    return int(quotient.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def percent_of_units(amount_cents: int, percent: Decimal) -> int:
    """
    Percentage of an amount, rounded half-up to whole currency units.

    Example:
        30.00 at 10% → 3.00 (300 cents); 25.00 at 10% → 2.50 → 3.00
    """
    units = Decimal(amount_cents) / CENTS_PER_UNIT * Decimal(percent) / 100
    return int(units.quantize(Decimal("1"), rounding=ROUND_HALF_UP)) * CENTS_PER_UNIT
