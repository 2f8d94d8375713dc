"""Student service."""

import logging
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError
from app.core.money import ZERO, to_hours, to_money
from app.models.lesson import Lesson, LessonStatus
from app.models.package import Package
from app.models.student import Student
from app.schemas.student import (
    CreditApplicationResponse,
    FamilyMember,
    FamilyResponse,
    StudentBalanceResponse,
    StudentCreate,
    StudentUpdate,
)
from app.services import allocation

logger = logging.getLogger(__name__)


async def get_student(db: AsyncSession, user_id: UUID, student_id: UUID) -> Student:
    """Get a student owned by the account or raise ``NotFoundError``."""
    result = await db.execute(
        select(Student).where(Student.id == student_id, Student.user_id == user_id)
    )
    student = result.scalar_one_or_none()
    if student is None:
        raise NotFoundError("Student not found")
    return student


async def get_students(
    db: AsyncSession,
    user_id: UUID,
    *,
    archived: bool | None = False,
    family_id: UUID | None = None,
    search: str | None = None,
    skip: int = 0,
    limit: int = 20,
) -> tuple[list[Student], int]:
    """Get list of students with optional filters."""
    query = select(Student).where(Student.user_id == user_id)

    if archived is not None:
        query = query.where(Student.archived == archived)

    if family_id is not None:
        query = query.where(Student.family_id == family_id)

    if search:
        query = query.where(
            Student.first_name.ilike(f"%{search}%")
            | Student.last_name.ilike(f"%{search}%")
            | Student.email.ilike(f"%{search}%")
            | Student.phone.ilike(f"%{search}%")
        )

    count_query = select(func.count()).select_from(query.subquery())
    total_result = await db.execute(count_query)
    total = total_result.scalar() or 0

    query = query.order_by(Student.last_name, Student.first_name).offset(skip).limit(limit)
    result = await db.execute(query)
    return list(result.scalars().all()), total


async def create_student(db: AsyncSession, user_id: UUID, student_data: StudentCreate) -> Student:
    """Create a new student."""
    student = Student(user_id=user_id, **student_data.model_dump())
    db.add(student)
    await db.commit()
    await db.refresh(student)

    logger.info("Created student", extra={"student_id": str(student.id)})
    return student


async def update_student(
    db: AsyncSession,
    student: Student,
    student_data: StudentUpdate,
) -> Student:
    """
    Update a student.

    A new hourly rate only affects prices computed from now on; existing
    lessons keep their price.
    """
    update_data = student_data.model_dump(exclude_unset=True)

    for field, value in update_data.items():
        setattr(student, field, value)

    await db.commit()
    await db.refresh(student)
    return student


async def archive_student(db: AsyncSession, student: Student) -> Student:
    """Soft delete a student by setting archived to True."""
    student.archived = True
    await db.commit()
    await db.refresh(student)
    logger.info("Archived student", extra={"student_id": str(student.id)})
    return student


async def get_families(db: AsyncSession, user_id: UUID) -> list[FamilyResponse]:
    """Group the account's active students by family id."""
    result = await db.execute(
        select(Student)
        .where(
            Student.user_id == user_id,
            Student.family_id.is_not(None),
            Student.archived == False,  # noqa: E712
        )
        .order_by(Student.family_id, Student.last_name, Student.first_name)
    )

    families: dict[UUID, list[FamilyMember]] = {}
    for student in result.scalars().all():
        families.setdefault(student.family_id, []).append(FamilyMember.model_validate(student))

    return [
        FamilyResponse(family_id=family_id, members=members)
        for family_id, members in families.items()
    ]


async def get_balance(db: AsyncSession, student: Student) -> StudentBalanceResponse:
    """Credit held, money still owed, and unused package hours."""
    owed_result = await db.execute(
        select(
            func.count(Lesson.id),
            func.coalesce(func.sum(Lesson.price - Lesson.paid_amount), 0),
        ).where(
            Lesson.student_id == student.id,
            Lesson.is_paid == False,  # noqa: E712
            Lesson.status != LessonStatus.CANCELLED,
        )
    )
    unpaid_count, outstanding = owed_result.one()

    hours_result = await db.execute(
        select(func.coalesce(func.sum(Package.total_hours - Package.hours_used), 0)).where(
            Package.student_id == student.id,
            Package.is_active == True,  # noqa: E712
        )
    )
    hours = hours_result.scalar() or ZERO

    return StudentBalanceResponse(
        student_id=student.id,
        credit=to_money(student.credit),
        outstanding=to_money(outstanding),
        unpaid_lessons=unpaid_count,
        package_hours_remaining=to_hours(hours),
    )


async def apply_credit(db: AsyncSession, student: Student) -> CreditApplicationResponse:
    """Spend the student's credit on their unpaid lessons, oldest first."""
    spent = await allocation.apply_credit(db, student.user_id, student.id)
    await db.commit()
    await db.refresh(student)
    return CreditApplicationResponse(
        student_id=student.id,
        amount_applied=spent,
        credit_remaining=to_money(student.credit),
    )
