"""Payment service."""

import logging
from datetime import date
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError, ValidationError
from app.models.payment import LessonPayment, Payment
from app.models.student import Student
from app.schemas.payment import PaymentApplication, PaymentCreate
from app.services import allocation
from app.services import student as student_service

logger = logging.getLogger(__name__)


async def get_payment(db: AsyncSession, user_id: UUID, payment_id: UUID) -> Payment:
    """Get a payment owned by the account or raise ``NotFoundError``."""
    result = await db.execute(
        select(Payment).where(Payment.id == payment_id, Payment.user_id == user_id)
    )
    payment = result.scalar_one_or_none()
    if payment is None:
        raise NotFoundError("Payment not found")
    return payment


async def get_payments(
    db: AsyncSession,
    user_id: UUID,
    *,
    student_id: UUID | None = None,
    family_id: UUID | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    skip: int = 0,
    limit: int = 20,
) -> tuple[list[Payment], int]:
    """Get list of payments, newest first."""
    query = select(Payment).where(Payment.user_id == user_id)

    if student_id is not None:
        query = query.where(Payment.student_id == student_id)
    if family_id is not None:
        query = query.where(Payment.family_id == family_id)
    if start_date is not None:
        query = query.where(Payment.date >= start_date)
    if end_date is not None:
        query = query.where(Payment.date <= end_date)

    count_query = select(func.count()).select_from(query.subquery())
    total_result = await db.execute(count_query)
    total = total_result.scalar() or 0

    query = query.order_by(Payment.date.desc(), Payment.created_at.desc())
    query = query.offset(skip).limit(limit)
    result = await db.execute(query)
    return list(result.scalars().all()), total


async def get_payment_allocations(db: AsyncSession, payment: Payment) -> list[LessonPayment]:
    result = await db.execute(
        select(LessonPayment)
        .where(LessonPayment.payment_id == payment.id)
        .order_by(LessonPayment.created_at)
    )
    return list(result.scalars().all())


async def create_payment(
    db: AsyncSession,
    user_id: UUID,
    payment_data: PaymentCreate,
) -> tuple[list[Payment], list[PaymentApplication]]:
    """
    Record money received.

    With ``apply_to_family`` one payment of the same amount is recorded for
    every non-archived member of the student's family. With ``auto_apply``
    the student's existing credit is spent first, then each payment is
    spread over its student's unpaid lessons, oldest first; any remainder
    stays available on the payment.
    """
    student = await student_service.get_student(db, user_id, payment_data.student_id)

    recipients = [student]
    if payment_data.apply_to_family:
        if student.family_id is None:
            raise ValidationError("Student does not belong to a family")
        result = await db.execute(
            select(Student)
            .where(
                Student.user_id == user_id,
                Student.family_id == student.family_id,
                Student.archived == False,  # noqa: E712
            )
            .order_by(Student.created_at)
        )
        recipients = list(result.scalars().all())

    payments: list[Payment] = []
    applications: list[PaymentApplication] = []
    for recipient in recipients:
        payment = Payment(
            user_id=user_id,
            student_id=recipient.id,
            family_id=recipient.family_id,
            amount=payment_data.amount,
            date=payment_data.date,
            method=payment_data.method,
            notes=payment_data.notes,
        )
        db.add(payment)
        await db.flush()
        payments.append(payment)

        if payment_data.auto_apply:
            credit_applied = await allocation.apply_credit(db, user_id, recipient.id)
            summary = await allocation.apply_payment_to_lessons(db, payment, recipient.id)
            applications.append(
                PaymentApplication(
                    payment_id=payment.id,
                    student_id=recipient.id,
                    credit_applied=credit_applied,
                    **summary,
                )
            )

    await db.commit()
    for payment in payments:
        await db.refresh(payment)

    logger.info(
        "Recorded payments",
        extra={
            "student_id": str(student.id),
            "count": len(payments),
            "amount": str(payment_data.amount),
        },
    )
    return payments, applications


async def delete_payment(db: AsyncSession, payment: Payment) -> int:
    """
    Delete a payment and take its money back off every lesson it funded.

    Returns the number of lessons recomputed.
    """
    affected = await allocation.release_payment(db, payment)
    await db.delete(payment)
    await db.commit()
    logger.info(
        "Deleted payment",
        extra={"payment_id": str(payment.id), "lessons_affected": affected},
    )
    return affected
