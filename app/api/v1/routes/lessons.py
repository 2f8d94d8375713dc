"""Lesson routes."""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Query, status

from app.core.deps import CurrentUser, DbSession
from app.models.lesson import LessonStatus
from app.schemas.lesson import (
    AllocationResponse,
    LessonCreate,
    LessonDeleteResponse,
    LessonDetailResponse,
    LessonListResponse,
    LessonResponse,
    LessonSeriesResponse,
    LessonUpdate,
    PaymentStatusUpdate,
    SeriesUpdateResponse,
)
from app.services import lesson as lesson_service

router = APIRouter(prefix="/lessons", tags=["Lessons"])


@router.get("", response_model=LessonListResponse)
async def list_lessons(
    db: DbSession,
    current_user: CurrentUser,
    student_id: UUID | None = Query(None, description="Filter by student ID"),
    start: datetime | None = Query(None, description="Lessons starting at or after"),
    end: datetime | None = Query(None, description="Lessons starting at or before"),
    lesson_status: LessonStatus | None = Query(None, alias="status"),
    is_paid: bool | None = Query(None, description="Filter by payment state"),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
) -> LessonListResponse:
    """List lessons in date order."""
    lessons, total = await lesson_service.get_lessons(
        db,
        current_user.id,
        student_id=student_id,
        start=start,
        end=end,
        status=lesson_status,
        is_paid=is_paid,
        skip=skip,
        limit=limit,
    )
    return LessonListResponse(
        items=[LessonResponse.model_validate(lesson) for lesson in lessons],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.post(
    "",
    response_model=LessonResponse | LessonSeriesResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_lesson(
    lesson_data: LessonCreate,
    db: DbSession,
    current_user: CurrentUser,
) -> LessonResponse | LessonSeriesResponse:
    """
    Schedule a lesson.

    A recurring request creates every occurrence up to the end date and
    returns the series descriptor.
    """
    lessons = await lesson_service.create_lesson(db, current_user.id, lesson_data)
    if not lesson_data.is_recurring:
        return LessonResponse.model_validate(lessons[0])
    return LessonSeriesResponse(
        count=len(lessons),
        recurring_group_id=lessons[0].recurring_group_id,
        lessons=[LessonResponse.model_validate(lesson) for lesson in lessons],
    )


@router.get("/{lesson_id}", response_model=LessonDetailResponse)
async def get_lesson(
    lesson_id: UUID,
    db: DbSession,
    current_user: CurrentUser,
) -> LessonDetailResponse:
    """Get a lesson with its allocations."""
    lesson = await lesson_service.get_lesson(db, current_user.id, lesson_id)
    rows = await lesson_service.get_lesson_allocations(db, lesson)
    return LessonDetailResponse(
        **LessonResponse.model_validate(lesson).model_dump(),
        allocations=[AllocationResponse.model_validate(row) for row in rows],
    )


@router.patch("/{lesson_id}", response_model=LessonResponse)
async def update_lesson(
    lesson_id: UUID,
    lesson_data: LessonUpdate,
    db: DbSession,
    current_user: CurrentUser,
) -> LessonResponse:
    """Update a lesson; recurrence fields may turn it into or out of a series."""
    lesson = await lesson_service.get_lesson(db, current_user.id, lesson_id)
    updated = await lesson_service.update_lesson(db, lesson, lesson_data)
    return LessonResponse.model_validate(updated)


@router.patch("/{lesson_id}/recurring-future", response_model=SeriesUpdateResponse)
async def update_recurring_future(
    lesson_id: UUID,
    lesson_data: LessonUpdate,
    db: DbSession,
    current_user: CurrentUser,
) -> SeriesUpdateResponse:
    """Apply an edit to this and every later occurrence of the series."""
    lesson = await lesson_service.get_lesson(db, current_user.id, lesson_id)
    affected = await lesson_service.update_recurring_future(db, lesson, lesson_data)
    return SeriesUpdateResponse(affected=affected)


@router.delete("/{lesson_id}", response_model=LessonDeleteResponse)
async def delete_lesson(
    lesson_id: UUID,
    db: DbSession,
    current_user: CurrentUser,
) -> LessonDeleteResponse:
    """Delete a lesson; what it held moves to the next unpaid lesson or to credit."""
    lesson = await lesson_service.get_lesson(db, current_user.id, lesson_id)
    outcome = await lesson_service.delete_lesson(db, lesson)
    return LessonDeleteResponse.model_validate(outcome)


@router.delete("/{lesson_id}/recurring-future", response_model=SeriesUpdateResponse)
async def delete_recurring_future(
    lesson_id: UUID,
    db: DbSession,
    current_user: CurrentUser,
) -> SeriesUpdateResponse:
    """Delete this and every later occurrence of the series."""
    lesson = await lesson_service.get_lesson(db, current_user.id, lesson_id)
    deleted = await lesson_service.delete_recurring_future(db, lesson)
    return SeriesUpdateResponse(affected=deleted)


@router.put("/{lesson_id}/payments/{payment_id}", response_model=LessonResponse)
async def link_payment(
    lesson_id: UUID,
    payment_id: UUID,
    db: DbSession,
    current_user: CurrentUser,
) -> LessonResponse:
    """Apply a payment to the lesson."""
    lesson = await lesson_service.get_lesson(db, current_user.id, lesson_id)
    updated = await lesson_service.link_payment(db, lesson, payment_id)
    return LessonResponse.model_validate(updated)


@router.delete("/{lesson_id}/payments/{payment_id}", response_model=LessonResponse)
async def unlink_payment(
    lesson_id: UUID,
    payment_id: UUID,
    db: DbSession,
    current_user: CurrentUser,
) -> LessonResponse:
    """Remove a payment's slice from the lesson."""
    lesson = await lesson_service.get_lesson(db, current_user.id, lesson_id)
    updated = await lesson_service.unlink_payment(db, lesson, payment_id)
    return LessonResponse.model_validate(updated)


@router.put("/{lesson_id}/payment-status", response_model=LessonResponse)
async def set_payment_status(
    lesson_id: UUID,
    body: PaymentStatusUpdate,
    db: DbSession,
    current_user: CurrentUser,
) -> LessonResponse:
    """Mark a lesson paid or unpaid without naming a payment."""
    lesson = await lesson_service.get_lesson(db, current_user.id, lesson_id)
    updated = await lesson_service.set_payment_status(db, lesson, body.is_paid)
    return LessonResponse.model_validate(updated)
