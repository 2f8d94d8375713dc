"""Payment allocation ledger.

Every amount counted towards a lesson's ``paid_amount`` is a
``LessonPayment`` row: a slice of a payment, of a package's hours, of the
student's credit balance, or a manual "mark as paid" override. The helpers
here keep two invariants:

* ``lesson.paid_amount`` equals the sum of the lesson's rows and never
  exceeds its price;
* the payment rows of a payment never add up to more than its amount.

Nothing in this module commits; callers own the transaction.
"""

import logging
from decimal import Decimal
from uuid import UUID

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import InsufficientFundsError, NotFoundError
from app.core.money import ZERO, to_hours, to_money
from app.models.lesson import Lesson, LessonStatus
from app.models.payment import AllocationSource, LessonPayment, Payment
from app.models.student import Student

logger = logging.getLogger(__name__)

# Order in which rows are given up when a lesson's price drops
_TRIM_ORDER = {
    AllocationSource.MANUAL: 0,
    AllocationSource.CREDIT: 1,
    AllocationSource.PAYMENT: 2,
    AllocationSource.PACKAGE: 3,
}


async def get_lesson_allocations(db: AsyncSession, lesson_id: UUID) -> list[LessonPayment]:
    """All allocation rows of a lesson, oldest first."""
    result = await db.execute(
        select(LessonPayment)
        .where(LessonPayment.lesson_id == lesson_id)
        .order_by(LessonPayment.created_at)
    )
    return list(result.scalars().all())


async def allocated_total(
    db: AsyncSession,
    payment_id: UUID,
    exclude_lesson_id: UUID | None = None,
) -> Decimal:
    """Sum already applied from a payment, optionally ignoring one lesson."""
    query = select(func.coalesce(func.sum(LessonPayment.amount), 0)).where(
        LessonPayment.payment_id == payment_id
    )
    if exclude_lesson_id is not None:
        query = query.where(LessonPayment.lesson_id != exclude_lesson_id)
    result = await db.execute(query)
    return to_money(result.scalar() or ZERO)


async def payment_available(db: AsyncSession, payment: Payment) -> Decimal:
    """Unallocated part of a payment."""
    return to_money(payment.amount - await allocated_total(db, payment.id))


async def refresh_paid_amount(db: AsyncSession, lesson: Lesson) -> Lesson:
    """Recompute ``paid_amount`` and ``is_paid`` from the allocation rows."""
    result = await db.execute(
        select(func.coalesce(func.sum(LessonPayment.amount), 0)).where(
            LessonPayment.lesson_id == lesson.id
        )
    )
    total = to_money(result.scalar() or ZERO)
    lesson.paid_amount = min(total, lesson.price)
    lesson.is_paid = lesson.paid_amount >= lesson.price
    await db.flush()
    return lesson


async def adjust_student_credit(db: AsyncSession, student_id: UUID, delta: Decimal) -> None:
    """Atomically move a student's credit balance by ``delta``."""
    if delta == 0:
        return
    await db.execute(
        update(Student)
        .where(Student.id == student_id)
        .values(credit=Student.credit + to_money(delta))
    )
    await db.flush()


async def add_allocation(
    db: AsyncSession,
    lesson: Lesson,
    amount: Decimal,
    *,
    source: AllocationSource,
    payment_id: UUID | None = None,
    package_id: UUID | None = None,
    hours: Decimal | None = None,
) -> LessonPayment:
    """
    Add ``amount`` to the lesson's row for the given source.

    Rows are merged per payment, per package, for spent credit and for the
    manual override, so a lesson holds at most one row for each. The caller
    refreshes the lesson's paid amount afterwards.
    """
    query = select(LessonPayment).where(
        LessonPayment.lesson_id == lesson.id,
        LessonPayment.source == source,
    )
    if source == AllocationSource.PAYMENT:
        query = query.where(LessonPayment.payment_id == payment_id)
    elif source == AllocationSource.PACKAGE:
        query = query.where(LessonPayment.package_id == package_id)
    result = await db.execute(query)
    row = result.scalars().first()

    if row is None:
        row = LessonPayment(
            lesson_id=lesson.id,
            payment_id=payment_id,
            package_id=package_id,
            source=source,
            amount=to_money(amount),
            hours=to_hours(hours) if hours is not None else None,
        )
        db.add(row)
    else:
        row.amount = to_money(row.amount + amount)
        if hours is not None:
            row.hours = to_hours((row.hours or ZERO) + hours)

    await db.flush()
    return row


async def cap_allocations(
    db: AsyncSession,
    lesson: Lesson,
    cap: Decimal,
) -> list[tuple[UUID, Decimal]]:
    """
    Trim the lesson's rows so they add up to at most ``cap``.

    The manual override goes first, then spent credit, then payment slices
    (newest first), then package slices. Trimmed credit goes back to the
    student's balance. Returns ``(package_id, hours)`` for every package
    slice that was reduced so the hours can be handed back.
    """
    rows = await get_lesson_allocations(db, lesson.id)
    excess = sum((row.amount for row in rows), ZERO) - cap
    released: list[tuple[UUID, Decimal]] = []
    if excess <= 0:
        return released
    credit_back = ZERO

    # Newest first within each source
    rows = sorted(reversed(rows), key=lambda row: _TRIM_ORDER[AllocationSource(row.source)])
    for row in rows:
        if excess <= 0:
            break
        take = min(row.amount, excess)
        if row.source == AllocationSource.PACKAGE and row.hours:
            hours_back = to_hours(row.hours * take / row.amount)
            row.hours = to_hours(row.hours - hours_back)
            released.append((row.package_id, hours_back))
        elif row.source == AllocationSource.CREDIT:
            credit_back += take
        row.amount = to_money(row.amount - take)
        excess -= take
        if row.amount <= 0:
            await db.delete(row)

    await db.flush()
    await adjust_student_credit(db, lesson.student_id, credit_back)
    logger.info(
        "Trimmed lesson allocations to new price",
        extra={"lesson_id": str(lesson.id), "cap": str(cap)},
    )
    return released


async def clear_allocations(
    db: AsyncSession,
    lesson: Lesson,
    refund_credit: bool = True,
) -> list[LessonPayment]:
    """
    Delete every row of the lesson and return the removed package slices.

    Spent credit goes back to the student's balance unless the caller
    moves it on itself.
    """
    rows = await get_lesson_allocations(db, lesson.id)
    package_rows = [row for row in rows if row.source == AllocationSource.PACKAGE]
    spent_credit = sum(
        (row.amount for row in rows if row.source == AllocationSource.CREDIT), ZERO
    )
    await db.execute(delete(LessonPayment).where(LessonPayment.lesson_id == lesson.id))
    await db.flush()
    if refund_credit:
        await adjust_student_credit(db, lesson.student_id, spent_credit)
    return package_rows


async def get_funding_payment(
    db: AsyncSession,
    lesson: Lesson,
    payment_id: UUID,
) -> Payment:
    """
    Find a payment that may fund the lesson.

    The lesson's own student is tried first; a payment made by the
    student's family (or by a sibling) is accepted as a fallback.
    """
    query = select(Payment).where(
        Payment.id == payment_id,
        Payment.user_id == lesson.user_id,
    )
    result = await db.execute(query.where(Payment.student_id == lesson.student_id))
    payment = result.scalar_one_or_none()
    if payment is not None:
        return payment

    student = await db.get(Student, lesson.student_id)
    if student is not None and student.family_id is not None:
        siblings = select(Student.id).where(
            Student.family_id == student.family_id,
            Student.user_id == lesson.user_id,
        )
        result = await db.execute(
            query.where(
                or_(
                    Payment.family_id == student.family_id,
                    Payment.student_id.in_(siblings),
                )
            )
        )
        payment = result.scalar_one_or_none()
        if payment is not None:
            return payment

    raise NotFoundError("Payment not found for this student")


async def link_payment(db: AsyncSession, lesson: Lesson, payment: Payment) -> Lesson:
    """
    Apply as much of ``payment`` to ``lesson`` as both allow.

    A previous slice of the same payment on this lesson is replaced, not
    stacked. Raises ``InsufficientFundsError`` when nothing can be applied.
    """
    elsewhere = await allocated_total(db, payment.id, exclude_lesson_id=lesson.id)
    available = to_money(payment.amount - elsewhere)

    result = await db.execute(
        select(LessonPayment).where(
            LessonPayment.lesson_id == lesson.id,
            LessonPayment.payment_id == payment.id,
        )
    )
    existing = result.scalar_one_or_none()
    existing_amount = existing.amount if existing is not None else ZERO

    remaining_needed = lesson.price - (lesson.paid_amount - existing_amount)
    amount_to_apply = max(ZERO, min(available, remaining_needed))

    if amount_to_apply <= 0:
        logger.warning(
            "Payment has nothing left for lesson",
            extra={
                "lesson_id": str(lesson.id),
                "payment_id": str(payment.id),
                "available": str(available),
            },
        )
        raise InsufficientFundsError(
            total=payment.amount,
            allocated=elsewhere,
            available=max(available, ZERO),
        )

    if existing is None:
        db.add(
            LessonPayment(
                lesson_id=lesson.id,
                payment_id=payment.id,
                source=AllocationSource.PAYMENT,
                amount=to_money(amount_to_apply),
            )
        )
    else:
        existing.amount = to_money(amount_to_apply)
    await db.flush()

    await refresh_paid_amount(db, lesson)
    logger.info(
        "Linked payment to lesson",
        extra={
            "lesson_id": str(lesson.id),
            "payment_id": str(payment.id),
            "amount": str(amount_to_apply),
            "paid_amount": str(lesson.paid_amount),
        },
    )
    return lesson


async def unlink_payment(db: AsyncSession, lesson: Lesson, payment_id: UUID) -> Lesson:
    """Remove a payment's slice from a lesson. Package hours are not touched."""
    result = await db.execute(
        select(LessonPayment).where(
            LessonPayment.lesson_id == lesson.id,
            LessonPayment.payment_id == payment_id,
        )
    )
    row = result.scalar_one_or_none()
    if row is None:
        raise NotFoundError("Payment is not linked to this lesson")

    await db.delete(row)
    await db.flush()
    await refresh_paid_amount(db, lesson)
    logger.info(
        "Unlinked payment from lesson",
        extra={"lesson_id": str(lesson.id), "payment_id": str(payment_id)},
    )
    return lesson


async def mark_paid(db: AsyncSession, lesson: Lesson) -> Lesson:
    """Cover whatever is still owed with a manual override row."""
    await refresh_paid_amount(db, lesson)
    outstanding = lesson.price - lesson.paid_amount
    if outstanding > 0:
        await add_allocation(db, lesson, outstanding, source=AllocationSource.MANUAL)
    return await refresh_paid_amount(db, lesson)


async def get_unpaid_lessons(
    db: AsyncSession,
    user_id: UUID,
    student_id: UUID,
    exclude_ids: set[UUID] | None = None,
) -> list[Lesson]:
    """Student's lessons that still owe money, oldest first."""
    query = select(Lesson).where(
        Lesson.user_id == user_id,
        Lesson.student_id == student_id,
        Lesson.is_paid == False,  # noqa: E712
        Lesson.status != LessonStatus.CANCELLED,
    )
    if exclude_ids:
        query = query.where(Lesson.id.not_in(exclude_ids))
    result = await db.execute(query.order_by(Lesson.date_time.asc()))
    return list(result.scalars().all())


async def apply_credit(db: AsyncSession, user_id: UUID, student_id: UUID) -> Decimal:
    """
    Spend the student's credit balance on their unpaid lessons, oldest first.

    Returns the amount spent; the balance is decremented by exactly that.
    """
    result = await db.execute(
        select(Student.credit).where(Student.id == student_id).with_for_update()
    )
    available = to_money(result.scalar() or ZERO)
    if available <= 0:
        return ZERO

    spent = ZERO
    for lesson in await get_unpaid_lessons(db, user_id, student_id):
        remaining = available - spent
        if remaining <= 0:
            break
        needed = lesson.price - lesson.paid_amount
        if needed <= 0:
            continue
        take = min(remaining, needed)
        await add_allocation(db, lesson, take, source=AllocationSource.CREDIT)
        await refresh_paid_amount(db, lesson)
        spent += take

    spent = to_money(spent)
    await adjust_student_credit(db, student_id, -spent)
    if spent > 0:
        logger.info(
            "Applied student credit to unpaid lessons",
            extra={
                "student_id": str(student_id),
                "spent": str(spent),
                "credit_left": str(to_money(available - spent)),
            },
        )
    return spent


async def apply_payment_to_lessons(
    db: AsyncSession,
    payment: Payment,
    student_id: UUID,
) -> dict:
    """
    Spread a payment over the student's unpaid lessons, oldest first.

    Whatever cannot be applied stays available on the payment.
    """
    available = await payment_available(db, payment)
    fully_paid = 0
    partially_paid = 0
    applied = ZERO

    for lesson in await get_unpaid_lessons(db, payment.user_id, student_id):
        if available <= 0:
            break
        needed = lesson.price - lesson.paid_amount
        if needed <= 0:
            continue
        take = min(available, needed)
        await add_allocation(
            db,
            lesson,
            take,
            source=AllocationSource.PAYMENT,
            payment_id=payment.id,
        )
        await refresh_paid_amount(db, lesson)
        if lesson.is_paid:
            fully_paid += 1
        else:
            partially_paid += 1
        available -= take
        applied += take

    logger.info(
        "Applied payment to unpaid lessons",
        extra={
            "payment_id": str(payment.id),
            "student_id": str(student_id),
            "applied": str(applied),
            "remaining": str(available),
        },
    )
    return {
        "lessons_paid": fully_paid,
        "lessons_partially_paid": partially_paid,
        "amount_applied": to_money(applied),
        "amount_remaining": to_money(available),
    }


async def release_payment(db: AsyncSession, payment: Payment) -> int:
    """Drop every slice of a payment and recompute the lessons it funded."""
    result = await db.execute(
        select(LessonPayment.lesson_id).where(LessonPayment.payment_id == payment.id)
    )
    lesson_ids = set(result.scalars().all())
    await db.execute(delete(LessonPayment).where(LessonPayment.payment_id == payment.id))
    await db.flush()

    for lesson_id in lesson_ids:
        lesson = await db.get(Lesson, lesson_id)
        if lesson is not None:
            await refresh_paid_amount(db, lesson)
    return len(lesson_ids)
