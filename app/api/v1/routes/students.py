"""Student routes."""

from uuid import UUID

from fastapi import APIRouter, Query, status

from app.core.deps import CurrentUser, DbSession
from app.schemas.student import (
    CreditApplicationResponse,
    FamilyResponse,
    StudentBalanceResponse,
    StudentCreate,
    StudentListResponse,
    StudentResponse,
    StudentUpdate,
)
from app.services import student as student_service

router = APIRouter(prefix="/students", tags=["Students"])


@router.get("", response_model=StudentListResponse)
async def list_students(
    db: DbSession,
    current_user: CurrentUser,
    archived: bool | None = Query(False, description="Filter by archived status"),
    family_id: UUID | None = Query(None, description="Filter by family ID"),
    search: str | None = Query(None, description="Search by name, email or phone"),
    skip: int = Query(0, ge=0, description="Number of records to skip"),
    limit: int = Query(20, ge=1, le=100, description="Max number of records"),
) -> StudentListResponse:
    """List the account's students."""
    students, total = await student_service.get_students(
        db,
        current_user.id,
        archived=archived,
        family_id=family_id,
        search=search,
        skip=skip,
        limit=limit,
    )

    return StudentListResponse(
        items=[StudentResponse.model_validate(s) for s in students],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.post("", response_model=StudentResponse, status_code=status.HTTP_201_CREATED)
async def create_student(
    student_data: StudentCreate,
    db: DbSession,
    current_user: CurrentUser,
) -> StudentResponse:
    """Create a new student."""
    student = await student_service.create_student(db, current_user.id, student_data)
    return StudentResponse.model_validate(student)


@router.get("/families", response_model=list[FamilyResponse])
async def list_families(
    db: DbSession,
    current_user: CurrentUser,
) -> list[FamilyResponse]:
    """Active students grouped by family."""
    return await student_service.get_families(db, current_user.id)


@router.get("/{student_id}", response_model=StudentResponse)
async def get_student(
    student_id: UUID,
    db: DbSession,
    current_user: CurrentUser,
) -> StudentResponse:
    """Get a specific student by ID."""
    student = await student_service.get_student(db, current_user.id, student_id)
    return StudentResponse.model_validate(student)


@router.get("/{student_id}/balance", response_model=StudentBalanceResponse)
async def get_student_balance(
    student_id: UUID,
    db: DbSession,
    current_user: CurrentUser,
) -> StudentBalanceResponse:
    """Credit held for the student and the amount still owed."""
    student = await student_service.get_student(db, current_user.id, student_id)
    return await student_service.get_balance(db, student)


@router.post("/{student_id}/apply-credit", response_model=CreditApplicationResponse)
async def apply_student_credit(
    student_id: UUID,
    db: DbSession,
    current_user: CurrentUser,
) -> CreditApplicationResponse:
    """Spend the student's credit balance on their oldest unpaid lessons."""
    student = await student_service.get_student(db, current_user.id, student_id)
    return await student_service.apply_credit(db, student)


@router.patch("/{student_id}", response_model=StudentResponse)
async def update_student(
    student_id: UUID,
    student_data: StudentUpdate,
    db: DbSession,
    current_user: CurrentUser,
) -> StudentResponse:
    """Update a student."""
    student = await student_service.get_student(db, current_user.id, student_id)
    updated_student = await student_service.update_student(db, student, student_data)
    return StudentResponse.model_validate(updated_student)


@router.delete("/{student_id}", status_code=status.HTTP_204_NO_CONTENT)
async def archive_student(
    student_id: UUID,
    db: DbSession,
    current_user: CurrentUser,
) -> None:
    """Archive a student (soft delete)."""
    student = await student_service.get_student(db, current_user.id, student_id)
    await student_service.archive_student(db, student)
