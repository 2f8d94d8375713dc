"""Deletion reconciler.

Removing a lesson unwinds both ledgers. Package hours booked on it go back
to their packages, and whatever the lesson held (hour value at the
package rate plus cash) is moved on: first to the student's oldest unpaid
lesson, the rest to the student's credit balance. Value in equals value
out:

    credit_added + applied_to_next == package_value_credited + cash_released
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.money import ZERO, to_money
from app.models.lesson import Lesson
from app.models.payment import AllocationSource
from app.services import allocation, package_ledger

logger = logging.getLogger(__name__)


@dataclass
class DeletionOutcome:
    """What happened to the value a deleted lesson held."""

    lesson_id: UUID
    hours_credited: Decimal = ZERO
    package_value_credited: Decimal = ZERO
    cash_released: Decimal = ZERO
    applied_to_next: Decimal = ZERO
    credit_added: Decimal = ZERO
    next_lesson_id: UUID | None = None
    package_ids: list[UUID] = field(default_factory=list)


async def delete_lesson(
    db: AsyncSession,
    lesson: Lesson,
    exclude_ids: set[UUID] | None = None,
) -> DeletionOutcome:
    """
    Delete ``lesson`` and redistribute what it held.

    ``exclude_ids`` names other lessons being deleted in the same
    operation; they are never chosen to receive funds.
    """
    outcome = DeletionOutcome(lesson_id=lesson.id)
    student_id = lesson.student_id
    user_id = lesson.user_id

    # Capture the ledger state before anything is removed
    rows = await allocation.get_lesson_allocations(db, lesson.id)
    cash_rows = [row for row in rows if row.source != AllocationSource.PACKAGE]
    outcome.cash_released = to_money(sum((row.amount for row in cash_rows), ZERO))
    freed_slices = [(row.source, row.payment_id, row.amount) for row in cash_rows]

    credits = await package_ledger.release_lesson_hours(db, lesson)
    outcome.hours_credited = sum((c.hours for c in credits), ZERO)
    outcome.package_value_credited = to_money(sum((c.value for c in credits), ZERO))
    outcome.package_ids = [c.package.id for c in credits]

    await allocation.clear_allocations(db, lesson, refund_credit=False)
    await db.delete(lesson)
    await db.flush()

    excluded = set(exclude_ids or ()) | {outcome.lesson_id}
    unpaid = await allocation.get_unpaid_lessons(db, user_id, student_id, excluded)
    target = unpaid[0] if unpaid else None

    if target is not None:
        outcome.next_lesson_id = target.id
        if credits:
            for credit in credits:
                if target.is_paid:
                    break
                _, value = await package_ledger.consume_credited_hours(
                    db, target, credit.package, credit.hours
                )
                outcome.applied_to_next += value
        elif outcome.cash_released > 0:
            for source, payment_id, amount in freed_slices:
                outstanding = target.price - target.paid_amount
                if outstanding <= 0:
                    break
                take = min(amount, outstanding)
                await allocation.add_allocation(
                    db,
                    target,
                    take,
                    source=AllocationSource(source),
                    payment_id=payment_id,
                )
                await allocation.refresh_paid_amount(db, target)
                outcome.applied_to_next += take

    outcome.applied_to_next = to_money(outcome.applied_to_next)
    outcome.credit_added = to_money(
        outcome.package_value_credited + outcome.cash_released - outcome.applied_to_next
    )
    await allocation.adjust_student_credit(db, student_id, outcome.credit_added)

    logger.info(
        "Reconciled lesson deletion",
        extra={
            "lesson_id": str(outcome.lesson_id),
            "student_id": str(student_id),
            "hours_credited": str(outcome.hours_credited),
            "package_value": str(outcome.package_value_credited),
            "cash": str(outcome.cash_released),
            "applied_to_next": str(outcome.applied_to_next),
            "next_lesson_id": str(outcome.next_lesson_id) if outcome.next_lesson_id else None,
            "credit_added": str(outcome.credit_added),
        },
    )
    return outcome
