"""Lesson service.

Each public coroutine is one operation: it validates ownership, drives the
series engine and the ledgers, then commits exactly once.
"""

import logging
import uuid
from datetime import datetime
from uuid import UUID

from sqlalchemy import func, inspect, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import NotFoundError, ValidationError
from app.core.money import ZERO
from app.core.timezones import local_time
from app.models.lesson import Lesson, LessonStatus
from app.models.payment import LessonPayment
from app.schemas.lesson import LessonCreate, LessonUpdate
from app.services import allocation, package_ledger, reconciler, series
from app.services import student as student_service
from app.services.recurrence import generate_occurrences
from app.services.reconciler import DeletionOutcome

logger = logging.getLogger(__name__)


def _read_changes(lesson_data: LessonUpdate) -> dict:
    """Fields the request set, with a new start read in the business timezone."""
    changes = lesson_data.model_dump(exclude_unset=True)
    if changes.get("date_time") is not None:
        changes["date_time"] = local_time(changes["date_time"])
    return changes


def _check_duration(duration: int) -> None:
    if duration < settings.MIN_LESSON_DURATION:
        raise ValidationError(
            f"Lessons must last at least {settings.MIN_LESSON_DURATION} minutes"
        )


# ============== Queries ==============


async def get_lesson(db: AsyncSession, user_id: UUID, lesson_id: UUID) -> Lesson:
    """Get a lesson owned by the account or raise ``NotFoundError``."""
    result = await db.execute(
        select(Lesson).where(Lesson.id == lesson_id, Lesson.user_id == user_id)
    )
    lesson = result.scalar_one_or_none()
    if lesson is None:
        raise NotFoundError("Lesson not found")
    return lesson


async def get_lesson_allocations(db: AsyncSession, lesson: Lesson) -> list[LessonPayment]:
    return await allocation.get_lesson_allocations(db, lesson.id)


async def get_lessons(
    db: AsyncSession,
    user_id: UUID,
    *,
    student_id: UUID | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    status: LessonStatus | None = None,
    is_paid: bool | None = None,
    skip: int = 0,
    limit: int = 50,
) -> tuple[list[Lesson], int]:
    """Get list of lessons in date order with optional filters."""
    query = select(Lesson).where(Lesson.user_id == user_id)

    if student_id is not None:
        query = query.where(Lesson.student_id == student_id)
    if start is not None:
        query = query.where(Lesson.date_time >= start)
    if end is not None:
        query = query.where(Lesson.date_time <= end)
    if status is not None:
        query = query.where(Lesson.status == status)
    if is_paid is not None:
        query = query.where(Lesson.is_paid == is_paid)

    count_query = select(func.count()).select_from(query.subquery())
    total_result = await db.execute(count_query)
    total = total_result.scalar() or 0

    query = query.order_by(Lesson.date_time.asc()).offset(skip).limit(limit)
    result = await db.execute(query)
    return list(result.scalars().all()), total


# ============== Create / update ==============


async def create_lesson(
    db: AsyncSession,
    user_id: UUID,
    lesson_data: LessonCreate,
) -> list[Lesson]:
    """
    Schedule a lesson, or every occurrence of a new series.

    Each created occurrence draws its hours from the student's packages,
    oldest purchase first. Returns the created lessons in date order.
    """
    student = await student_service.get_student(db, user_id, lesson_data.student_id)
    _check_duration(lesson_data.duration)
    price = series.resolve_price(student, lesson_data.duration, lesson_data.price)

    if lesson_data.is_recurring:
        frequency = series.require_recurrence(
            lesson_data.recurring_frequency, lesson_data.recurring_end_date
        )
        dates = generate_occurrences(
            lesson_data.date_time, frequency, lesson_data.recurring_end_date
        )
        if not dates:
            raise ValidationError("recurring_end_date is before the first lesson")
        group_id = uuid.uuid4()
    else:
        frequency = None
        dates = [local_time(lesson_data.date_time)]
        group_id = None

    lessons = []
    for when in dates:
        lesson = Lesson(
            user_id=user_id,
            student_id=student.id,
            date_time=when,
            duration=lesson_data.duration,
            subject=lesson_data.subject,
            notes=lesson_data.notes,
            status=LessonStatus.SCHEDULED,
            price=price,
            paid_amount=ZERO,
            is_paid=price <= 0,
            is_recurring=lesson_data.is_recurring,
            recurring_frequency=frequency,
            recurring_end_date=lesson_data.recurring_end_date if group_id else None,
            recurring_group_id=group_id,
        )
        db.add(lesson)
        lessons.append(lesson)
    await db.flush()

    for lesson in lessons:
        await package_ledger.charge_lesson(db, lesson)

    await db.commit()
    logger.info(
        "Created lessons",
        extra={
            "student_id": str(student.id),
            "count": len(lessons),
            "group_id": str(group_id) if group_id else None,
        },
    )
    return lessons


async def update_lesson(
    db: AsyncSession,
    lesson: Lesson,
    lesson_data: LessonUpdate,
) -> Lesson:
    """
    Update one lesson, switching it between singleton and series as asked.

    * singleton with ``is_recurring=True``: becomes the head of a new series;
    * series member with ``is_recurring=False``: later members are deleted
      and this one is detached;
    * series member with a new frequency or end date: the edit applies to
      this and future occurrences;
    * anything else only touches this occurrence.
    """
    changes = _read_changes(lesson_data)
    if changes.get("duration") is not None:
        _check_duration(changes["duration"])
    student = await student_service.get_student(db, lesson.user_id, lesson.student_id)

    wants_recurring = changes.get("is_recurring")
    in_series = lesson.recurring_group_id is not None
    frequency_changed = (
        "recurring_frequency" in changes
        and changes["recurring_frequency"] != lesson.recurring_frequency
    )
    end_changed = (
        "recurring_end_date" in changes
        and changes["recurring_end_date"] != lesson.recurring_end_date
    )

    if not in_series and wants_recurring:
        if changes.get("date_time") is not None:
            lesson.date_time = changes["date_time"]
        await series.apply_fields(db, lesson, changes, student)
        await series.convert_to_recurring(
            db,
            lesson,
            student,
            changes.get("recurring_frequency"),
            changes.get("recurring_end_date"),
            changes.get("price"),
        )
    elif in_series and wants_recurring is False:
        if changes.get("date_time") is not None:
            lesson.date_time = changes["date_time"]
        await series.apply_fields(db, lesson, changes, student)
        await series.convert_to_single(db, lesson)
    elif in_series and (frequency_changed or end_changed):
        await series.update_series(db, lesson, student, changes)
        if inspect(lesson).was_deleted:
            # The new end date fell before this occurrence
            await db.commit()
            return lesson
    else:
        if changes.get("date_time") is not None:
            lesson.date_time = changes["date_time"]
        await series.apply_fields(db, lesson, changes, student)

    await db.flush()
    await db.commit()
    await db.refresh(lesson)
    return lesson


async def update_recurring_future(
    db: AsyncSession,
    lesson: Lesson,
    lesson_data: LessonUpdate,
) -> int:
    """Apply an edit to this and every later occurrence. Returns the affected count."""
    changes = _read_changes(lesson_data)
    if changes.get("duration") is not None:
        _check_duration(changes["duration"])
    student = await student_service.get_student(db, lesson.user_id, lesson.student_id)

    affected = await series.update_series(db, lesson, student, changes)
    await db.commit()
    return affected


# ============== Delete ==============


async def delete_lesson(db: AsyncSession, lesson: Lesson) -> DeletionOutcome:
    """Delete one lesson and move the value it held on."""
    outcome = await reconciler.delete_lesson(db, lesson)
    await db.commit()
    return outcome


async def delete_recurring_future(db: AsyncSession, lesson: Lesson) -> int:
    """Delete this and every later occurrence. Returns the deleted count."""
    deleted = await series.delete_this_and_future(db, lesson)
    await db.commit()
    return deleted


# ============== Payments ==============


async def link_payment(db: AsyncSession, lesson: Lesson, payment_id: UUID) -> Lesson:
    """Apply one payment to the lesson."""
    payment = await allocation.get_funding_payment(db, lesson, payment_id)
    await allocation.link_payment(db, lesson, payment)
    await db.commit()
    await db.refresh(lesson)
    return lesson


async def unlink_payment(db: AsyncSession, lesson: Lesson, payment_id: UUID) -> Lesson:
    await allocation.unlink_payment(db, lesson, payment_id)
    await db.commit()
    await db.refresh(lesson)
    return lesson


async def set_payment_status(db: AsyncSession, lesson: Lesson, is_paid: bool) -> Lesson:
    """
    Mark a lesson paid or unpaid without naming a payment.

    Paid covers the outstanding amount with a manual override row.
    Unpaid removes every allocation, returns booked package hours to
    their packages and clears the package link.
    """
    if is_paid:
        await allocation.mark_paid(db, lesson)
    else:
        await package_ledger.release_lesson_hours(db, lesson)
        await allocation.clear_allocations(db, lesson)
        lesson.package_id = None
        await allocation.refresh_paid_amount(db, lesson)

    logger.info(
        "Set lesson payment status",
        extra={"lesson_id": str(lesson.id), "is_paid": is_paid},
    )
    await db.commit()
    await db.refresh(lesson)
    return lesson
