"""Series mutation engine.

A lesson is either a singleton or a member of a recurring group (rows
sharing ``recurring_group_id``). The functions here move lessons between
those states and keep a group consistent when its frequency, end date,
time of day or start date change. They flush but never commit.
"""

import logging
import uuid
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import inspect, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ValidationError
from app.core.money import lesson_price, to_money
from app.core.timezones import local_time
from app.models.lesson import Lesson, LessonStatus, RecurrenceFrequency
from app.models.student import Student
from app.services import allocation, package_ledger, reconciler
from app.services.recurrence import (
    calendar_date,
    occurrences_after,
    parse_frequency,
)

logger = logging.getLogger(__name__)

# Plain attributes copied onto every occurrence touched by an edit
_COPIED_FIELDS = ("subject", "notes", "status")


# ============== Helpers ==============


def require_recurrence(
    frequency: RecurrenceFrequency | str | None,
    end_date: date | None,
) -> RecurrenceFrequency:
    """Validate the recurrence pair of a request."""
    parsed = parse_frequency(frequency)
    if parsed is None:
        raise ValidationError("Recurring lessons require a valid frequency")
    if end_date is None:
        raise ValidationError("Recurring lessons require an end date")
    return parsed


def resolve_price(student: Student, duration: int, explicit: Decimal | None = None) -> Decimal:
    """Explicit price wins; otherwise the student's current rate times the duration."""
    if explicit is not None:
        return to_money(explicit)
    return lesson_price(student.price_per_lesson, duration)


def classify_move(old: datetime, new: datetime | None) -> tuple[bool, timedelta]:
    """
    Compare an occurrence's old and requested start.

    Returns ``(date_changed, time_delta)``. ``time_delta`` is non-zero only
    for a pure time-of-day shift on the same calendar date.
    """
    if new is None:
        return False, timedelta(0)
    if calendar_date(old) != calendar_date(new):
        return True, timedelta(0)
    return False, local_time(new) - local_time(old)


async def get_group_members(
    db: AsyncSession,
    group_id: UUID,
    user_id: UUID,
) -> list[Lesson]:
    """Every occurrence of a series, in date order."""
    result = await db.execute(
        select(Lesson)
        .where(Lesson.recurring_group_id == group_id, Lesson.user_id == user_id)
        .order_by(Lesson.date_time.asc(), Lesson.created_at.asc())
    )
    return list(result.scalars().all())


async def reprice(db: AsyncSession, lesson: Lesson, new_price: Decimal) -> None:
    """
    Change a lesson's price and cap its paid amount to it.

    The tracked paid amount is only ever lowered here; package hours
    trimmed off are credited back to their packages.
    """
    new_price = to_money(new_price)
    if new_price == lesson.price:
        return
    lesson.price = new_price
    released = await allocation.cap_allocations(db, lesson, new_price)
    await package_ledger.return_trimmed_hours(db, released)
    await allocation.refresh_paid_amount(db, lesson)


async def add_occurrence(
    db: AsyncSession,
    source: Lesson,
    when: datetime,
    price: Decimal,
) -> Lesson:
    """Create a new member next to ``source`` and charge it to packages."""
    occurrence = Lesson(
        user_id=source.user_id,
        student_id=source.student_id,
        date_time=when,
        duration=source.duration,
        subject=source.subject,
        notes=source.notes,
        status=LessonStatus.SCHEDULED,
        price=price,
        paid_amount=Decimal("0"),
        is_paid=price <= 0,
        is_recurring=True,
        recurring_frequency=source.recurring_frequency,
        recurring_end_date=source.recurring_end_date,
        recurring_group_id=source.recurring_group_id,
    )
    db.add(occurrence)
    await db.flush()
    await package_ledger.charge_lesson(db, occurrence)
    return occurrence


async def add_occurrences(
    db: AsyncSession,
    source: Lesson,
    dates: list[datetime],
    price: Decimal,
) -> list[Lesson]:
    return [await add_occurrence(db, source, when, price) for when in dates]


async def discard_occurrence(db: AsyncSession, lesson: Lesson) -> None:
    """
    Drop a member that is about to be regenerated.

    Package hours go back to their packages; payment slices are released
    so the payments become available again and spent credit returns to the
    student's balance. No new credit is created.
    """
    await package_ledger.release_lesson_hours(db, lesson)
    await allocation.clear_allocations(db, lesson)
    await db.delete(lesson)
    await db.flush()


def set_recurrence(
    lesson: Lesson,
    group_id: UUID,
    frequency: RecurrenceFrequency,
    end_date: date,
) -> None:
    lesson.is_recurring = True
    lesson.recurring_group_id = group_id
    lesson.recurring_frequency = frequency
    lesson.recurring_end_date = end_date


def clear_recurrence(lesson: Lesson) -> None:
    lesson.is_recurring = False
    lesson.recurring_group_id = None
    lesson.recurring_frequency = None
    lesson.recurring_end_date = None


async def apply_fields(
    db: AsyncSession,
    lesson: Lesson,
    changes: dict[str, Any],
    student: Student,
) -> None:
    """
    Copy plain fields, duration and price from an update onto one occurrence.

    ``date_time`` is not handled here; callers decide how dates move.
    """
    for name in _COPIED_FIELDS:
        if name in changes and changes[name] is not None:
            setattr(lesson, name, changes[name])

    explicit = changes.get("price")
    if changes.get("duration") is not None:
        lesson.duration = changes["duration"]
        await reprice(db, lesson, resolve_price(student, lesson.duration, explicit))
    elif explicit is not None:
        await reprice(db, lesson, explicit)


async def trim_series_end(db: AsyncSession, group_id: UUID, user_id: UUID) -> None:
    """Point every remaining member's end date at the last remaining occurrence."""
    members = await get_group_members(db, group_id, user_id)
    if not members:
        return
    last_day = calendar_date(members[-1].date_time)
    for member in members:
        member.recurring_end_date = last_day
    await db.flush()


# ============== State transitions ==============


async def convert_to_recurring(
    db: AsyncSession,
    lesson: Lesson,
    student: Student,
    frequency: RecurrenceFrequency | str | None,
    end_date: date | None,
    explicit_price: Decimal | None = None,
) -> list[Lesson]:
    """
    Turn a singleton into the head of a new series.

    Occurrences are generated from the step after the lesson up to the
    end date. Returns the newly created members.
    """
    step = require_recurrence(frequency, end_date)
    set_recurrence(lesson, uuid.uuid4(), step, end_date)
    await db.flush()

    dates = occurrences_after(lesson.date_time, step, end_date)
    created = await add_occurrences(
        db, lesson, dates, resolve_price(student, lesson.duration, explicit_price)
    )
    logger.info(
        "Converted lesson to recurring series",
        extra={
            "lesson_id": str(lesson.id),
            "group_id": str(lesson.recurring_group_id),
            "frequency": step.value,
            "created_count": len(created),
        },
    )
    return created


async def convert_to_single(db: AsyncSession, lesson: Lesson) -> int:
    """
    Detach a member from its series.

    Strictly later members of the group are deleted (with reconciliation);
    earlier ones are kept and their end date trimmed. Returns the number
    of deleted members.
    """
    group_id = lesson.recurring_group_id
    members = await get_group_members(db, group_id, lesson.user_id)
    doomed = [m for m in members if m.date_time > lesson.date_time]
    doomed_ids = {m.id for m in doomed}
    for member in doomed:
        await reconciler.delete_lesson(db, member, exclude_ids=doomed_ids)

    clear_recurrence(lesson)
    await db.flush()
    await trim_series_end(db, group_id, lesson.user_id)
    logger.info(
        "Detached lesson from series",
        extra={"lesson_id": str(lesson.id), "group_id": str(group_id), "deleted": len(doomed)},
    )
    return len(doomed)


async def regenerate_from_head(
    db: AsyncSession,
    head: Lesson,
    members: list[Lesson],
    student: Student,
    changes: dict[str, Any],
    frequency: RecurrenceFrequency,
    end_date: date,
) -> int:
    """
    Rebuild a whole series after its first occurrence moved to another day.

    Every non-head member is discarded and recreated from the new start;
    per-occurrence edits on those members are lost.
    """
    for member in members:
        if member.id != head.id:
            await discard_occurrence(db, member)

    head.date_time = changes["date_time"]
    await apply_fields(db, head, changes, student)
    set_recurrence(head, head.recurring_group_id, frequency, end_date)
    await db.flush()

    dates = occurrences_after(head.date_time, frequency, end_date)
    price = resolve_price(student, head.duration, changes.get("price"))
    created = await add_occurrences(db, head, dates, price)
    logger.info(
        "Regenerated series from new start",
        extra={
            "group_id": str(head.recurring_group_id),
            "start": head.date_time.isoformat(),
            "created_count": len(created),
        },
    )
    return 1 + len(created)


async def change_frequency(
    db: AsyncSession,
    lesson: Lesson,
    members: list[Lesson],
    student: Student,
    changes: dict[str, Any],
    frequency: RecurrenceFrequency,
    end_date: date,
) -> int:
    """
    Re-derive the tail of a series under a new frequency.

    The tail is regenerated from the edited occurrence. Existing later
    members that land on a regenerated day are kept, shifted by the same
    time-of-day delta as the edited occurrence; the rest are discarded
    and only missing days are created.
    """
    _, delta = classify_move(lesson.date_time, changes.get("date_time"))
    if changes.get("date_time") is not None:
        lesson.date_time = changes["date_time"]
    await apply_fields(db, lesson, changes, student)

    wanted = occurrences_after(lesson.date_time, frequency, end_date)
    wanted_by_day = {calendar_date(when): when for when in wanted}

    kept = 0
    for member in members:
        if member.date_time <= lesson.date_time and member.id != lesson.id:
            member.recurring_frequency = frequency
            member.recurring_end_date = end_date
            continue
        if member.id == lesson.id:
            continue
        shifted = member.date_time + delta
        day = calendar_date(shifted)
        if day in wanted_by_day:
            member.date_time = shifted
            member.recurring_frequency = frequency
            member.recurring_end_date = end_date
            await apply_fields(db, member, changes, student)
            del wanted_by_day[day]
            kept += 1
        else:
            await discard_occurrence(db, member)

    lesson.recurring_frequency = frequency
    lesson.recurring_end_date = end_date
    await db.flush()

    price = resolve_price(student, lesson.duration, changes.get("price"))
    created = await add_occurrences(db, lesson, sorted(wanted_by_day.values()), price)
    logger.info(
        "Changed series frequency",
        extra={
            "group_id": str(lesson.recurring_group_id),
            "frequency": frequency.value,
            "kept": kept,
            "created_count": len(created),
        },
    )
    return 1 + kept + len(created)


async def change_end_date(
    db: AsyncSession,
    lesson: Lesson,
    student: Student,
    frequency: RecurrenceFrequency,
    new_end: date,
    explicit_price: Decimal | None = None,
) -> tuple[int, int]:
    """
    Extend or shorten a series.

    Extending appends occurrences after the current last member; shortening
    deletes members now past the end date. Returns ``(created, deleted)``.
    """
    members = await get_group_members(db, lesson.recurring_group_id, lesson.user_id)
    created: list[Lesson] = []
    deleted = 0

    doomed = [m for m in members if calendar_date(m.date_time) > new_end]
    if doomed:
        doomed_ids = {m.id for m in doomed}
        for member in doomed:
            await reconciler.delete_lesson(db, member, exclude_ids=doomed_ids)
        deleted = len(doomed)
        members = [m for m in members if m.id not in doomed_ids]

    for member in members:
        member.recurring_end_date = new_end
    await db.flush()

    if members:
        last = members[-1]
        dates = occurrences_after(last.date_time, frequency, new_end)
        if dates:
            price = resolve_price(student, last.duration, explicit_price)
            created = await add_occurrences(db, last, dates, price)

    logger.info(
        "Changed series end date",
        extra={
            "group_id": str(lesson.recurring_group_id),
            "end_date": new_end.isoformat(),
            "created_count": len(created),
            "deleted": deleted,
        },
    )
    return len(created), deleted


async def update_series(
    db: AsyncSession,
    lesson: Lesson,
    student: Student,
    changes: dict[str, Any],
) -> int:
    """
    Apply an edit to ``lesson`` and the rest of its series.

    * first occurrence moved to another day: the series is regenerated;
    * frequency changed: the tail is re-derived from this occurrence;
    * otherwise a time-of-day shift and field edits apply to this and
      every later member, a day change moves only this occurrence, and a
      new end date extends or shortens the series.

    Returns the number of occurrences updated or created.
    """
    if lesson.recurring_group_id is None:
        raise ValidationError("Lesson is not part of a recurring series")
    if changes.get("date_time") is not None:
        changes = {**changes, "date_time": local_time(changes["date_time"])}

    members =await get_group_members(db, lesson.recurring_group_id, lesson.user_id)
    head = members[0]

    frequency = parse_frequency(changes.get("recurring_frequency")) or parse_frequency(
        lesson.recurring_frequency
    )
    end_date = changes.get("recurring_end_date") or lesson.recurring_end_date
    frequency = require_recurrence(frequency, end_date)
    frequency_changed = frequency != parse_frequency(lesson.recurring_frequency)
    end_changed = end_date != lesson.recurring_end_date

    new_start = changes.get("date_time")
    date_changed, delta = classify_move(lesson.date_time, new_start)

    if date_changed and lesson.id == head.id:
        return await regenerate_from_head(
            db, head, members, student, changes, frequency, end_date
        )

    if frequency_changed:
        return await change_frequency(
            db, lesson, members, student, changes, frequency, end_date
        )

    targets = [lesson] + [m for m in members if m.date_time > lesson.date_time]
    if date_changed:
        lesson.date_time = new_start
    elif delta:
        for member in targets:
            member.date_time = member.date_time + delta

    for member in targets:
        await apply_fields(db, member, changes, student)
    await db.flush()

    created = 0
    if end_changed:
        created, deleted = await change_end_date(
            db, lesson, student, frequency, end_date, changes.get("price")
        )
        targets = [m for m in targets if not inspect(m).was_deleted]

    logger.info(
        "Updated recurring lessons",
        extra={
            "lesson_id": str(lesson.id),
            "group_id": str(lesson.recurring_group_id),
            "updated": len(targets),
            "created_count": created,
        },
    )
    return len(targets) + created


async def delete_this_and_future(db: AsyncSession, lesson: Lesson) -> int:
    """
    Delete an occurrence and every later member of its series.

    Each deletion is reconciled. Earlier members remain with their end
    date trimmed to the last remaining occurrence.
    """
    if lesson.recurring_group_id is None:
        await reconciler.delete_lesson(db, lesson)
        return 1

    group_id = lesson.recurring_group_id
    user_id = lesson.user_id
    members = await get_group_members(db, group_id, user_id)
    doomed = [m for m in members if m.date_time >= lesson.date_time]
    doomed_ids = {m.id for m in doomed}
    for member in doomed:
        await reconciler.delete_lesson(db, member, exclude_ids=doomed_ids)

    await trim_series_end(db, group_id, user_id)
    logger.info(
        "Deleted lesson and future occurrences",
        extra={"group_id": str(group_id), "deleted": len(doomed)},
    )
    return len(doomed)
