"""Fixed-point helpers for currency and package hours."""

from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")
HOUR_STEP = Decimal("0.0001")
ZERO = Decimal("0")


def to_money(value: Decimal | int | str) -> Decimal:
    """Round to whole cents."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def to_hours(value: Decimal | int | str) -> Decimal:
    return Decimal(value).quantize(HOUR_STEP, rounding=ROUND_HALF_UP)


def duration_hours(minutes: int) -> Decimal:
    """Lesson length in hours."""
    return to_hours(Decimal(minutes) / Decimal(60))


def lesson_price(rate: Decimal, minutes: int) -> Decimal:
    """Hourly rate times duration, rounded to cents."""
    return to_money(Decimal(rate) * Decimal(minutes) / Decimal(60))
