"""Occurrence date generation for recurring lessons and purchases."""

from datetime import date, datetime, timedelta

from dateutil.relativedelta import relativedelta

from app.core.config import settings
from app.core.exceptions import ValidationError
from app.core.timezones import local_time
from app.models.lesson import RecurrenceFrequency


def calendar_date(value: date | datetime | str) -> date:
    """
    Extract the intended calendar date from a date, timestamp or ISO string.

    Strings keep their written date ("2025-09-30T23:30:00-05:00" is the
    30th); timestamps are read in the business timezone. The time of day
    never matters.
    """
    if isinstance(value, str):
        return date.fromisoformat(value.strip().split("T")[0][:10])
    if isinstance(value, datetime):
        return local_time(value).date()
    return value


def parse_frequency(value: RecurrenceFrequency | str | None) -> RecurrenceFrequency | None:
    """Return the frequency enum, or None for an empty or unsupported value."""
    if value is None or value == "":
        return None
    try:
        return RecurrenceFrequency(value)
    except ValueError:
        return None


def _step(start: datetime | date, frequency: RecurrenceFrequency, index: int):
    # Offsets are always taken from the series start so month-end dates do not drift
    if frequency == RecurrenceFrequency.DAILY:
        return start + timedelta(days=index)
    if frequency == RecurrenceFrequency.WEEKLY:
        return start + timedelta(weeks=index)
    if frequency == RecurrenceFrequency.MONTHLY:
        return start + relativedelta(months=index)
    return start + relativedelta(years=index)


def generate_occurrences(
    start: datetime | date,
    frequency: RecurrenceFrequency | str | None,
    end_date: date | datetime | str,
    *,
    limit: int | None = None,
) -> list:
    """
    Expand a series into its ordered, inclusive list of occurrence dates.

    Starts at ``start`` and steps by the frequency while the occurrence's
    calendar date is on or before the calendar date of ``end_date``.
    Timestamps step in local wall-clock time, so a 16:00 lesson stays at
    16:00 across daylight-saving changes. An empty or unsupported
    frequency stops after the first occurrence. Output is deterministic
    for identical input.
    """
    last_day = calendar_date(end_date)
    step = parse_frequency(frequency)
    limit = settings.MAX_SERIES_OCCURRENCES if limit is None else limit
    if isinstance(start, datetime):
        start = local_time(start)

    occurrences = []
    index = 0
    while True:
        current = _step(start, step, index) if step else start
        if calendar_date(current) > last_day:
            break
        occurrences.append(current)
        if step is None:
            break
        if len(occurrences) > limit:
            raise ValidationError(
                f"Recurring series would create more than {limit} occurrences"
            )
        index += 1

    return occurrences


def occurrences_after(
    start: datetime | date,
    frequency: RecurrenceFrequency | str | None,
    end_date: date | datetime | str,
) -> list:
    """Occurrences of the series that come strictly after ``start``."""
    return generate_occurrences(start, frequency, end_date)[1:]
