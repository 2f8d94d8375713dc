"""Report service - monthly activity of an account."""

import logging
from datetime import date, datetime
from uuid import UUID

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.money import ZERO, to_money
from app.core.timezones import local_time
from app.models.lesson import Lesson, LessonStatus
from app.models.payment import Payment
from app.models.student import Student

logger = logging.getLogger(__name__)


def month_bounds(year: int, month: int) -> tuple[date, date]:
    """First day of the month and first day of the next one."""
    first = date(year, month, 1)
    following = date(year + month // 12, month % 12 + 1, 1)
    return first, following


async def get_monthly_report(db: AsyncSession, user_id: UUID, year: int, month: int) -> dict:
    """
    Lessons and payments of one calendar month in the business timezone.

    Revenue is money received; earned is the price of completed lessons.
    Students appear when they had a lesson or a payment in the month.
    """
    first, following = month_bounds(year, month)
    start = local_time(datetime.combine(first, datetime.min.time()))
    end = local_time(datetime.combine(following, datetime.min.time()))

    lesson_query = (
        select(
            Lesson.student_id,
            func.count(Lesson.id).label("count"),
            func.coalesce(
                func.sum(case((Lesson.status == LessonStatus.COMPLETED, 1), else_=0)), 0
            ).label("completed"),
            func.coalesce(
                func.sum(case((Lesson.status == LessonStatus.CANCELLED, 1), else_=0)), 0
            ).label("cancelled"),
            func.coalesce(
                func.sum(
                    case((Lesson.status == LessonStatus.COMPLETED, Lesson.price), else_=0)
                ),
                0,
            ).label("earned"),
        )
        .where(
            Lesson.user_id == user_id,
            Lesson.date_time >= start,
            Lesson.date_time < end,
        )
        .group_by(Lesson.student_id)
    )
    lesson_rows = (await db.execute(lesson_query)).all()

    payment_query = (
        select(
            Payment.student_id,
            func.coalesce(func.sum(Payment.amount), 0).label("total"),
        )
        .where(
            Payment.user_id == user_id,
            Payment.date >= first,
            Payment.date < following,
        )
        .group_by(Payment.student_id)
    )
    revenue_by_student = {
        row.student_id: to_money(row.total) for row in await db.execute(payment_query)
    }
    lessons_by_student = {row.student_id: row.count for row in lesson_rows}

    total_lessons = sum(row.count for row in lesson_rows)
    total_earned = to_money(sum((to_money(row.earned) for row in lesson_rows), ZERO))
    total_revenue = to_money(sum(revenue_by_student.values(), ZERO))

    active_ids = (set(lessons_by_student) | set(revenue_by_student)) - {None}
    students = []
    if active_ids:
        result = await db.execute(
            select(Student)
            .where(Student.id.in_(active_ids))
            .order_by(Student.last_name, Student.first_name)
        )
        students = [
            {
                "id": student.id,
                "name": student.full_name,
                "lessons": lessons_by_student.get(student.id, 0),
                "revenue": revenue_by_student.get(student.id, to_money(ZERO)),
            }
            for student in result.scalars().all()
        ]

    logger.info(
        "Built monthly report",
        extra={"user_id": str(user_id), "year": year, "month": month},
    )
    return {
        "period": {"month": month, "year": year},
        "summary": {
            "total_lessons": total_lessons,
            "completed_lessons": sum(row.completed for row in lesson_rows),
            "cancelled_lessons": sum(row.cancelled for row in lesson_rows),
            "total_revenue": total_revenue,
            "total_earned": total_earned,
            "outstanding_balance": to_money(total_earned - total_revenue),
        },
        "students": students,
    }
