"""Package routes."""

from uuid import UUID

from fastapi import APIRouter, Query, status

from app.core.deps import CurrentUser, DbSession
from app.schemas.package import (
    PackageCreate,
    PackageCreateResponse,
    PackageListResponse,
    PackageResponse,
)
from app.services import package as package_service

router = APIRouter(prefix="/packages", tags=["Packages"])


@router.get("", response_model=PackageListResponse)
async def list_packages(
    db: DbSession,
    current_user: CurrentUser,
    student_id: UUID | None = Query(None, description="Filter by student ID"),
    is_active: bool | None = Query(None, description="Filter by active status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
) -> PackageListResponse:
    """List packages, newest purchase first."""
    packages, total = await package_service.get_packages(
        db,
        current_user.id,
        student_id=student_id,
        is_active=is_active,
        skip=skip,
        limit=limit,
    )
    return PackageListResponse(
        items=[PackageResponse.model_validate(p) for p in packages],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.post("", response_model=PackageCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_package(
    package_data: PackageCreate,
    db: DbSession,
    current_user: CurrentUser,
) -> PackageCreateResponse:
    """Sell a package; its hours go to the oldest unpaid lessons first."""
    package, covered = await package_service.create_package(db, current_user.id, package_data)
    response = PackageCreateResponse.model_validate(package)
    response.lessons_covered = covered
    return response


@router.get("/{package_id}", response_model=PackageResponse)
async def get_package(
    package_id: UUID,
    db: DbSession,
    current_user: CurrentUser,
) -> PackageResponse:
    """Get a specific package by ID."""
    package = await package_service.get_package(db, current_user.id, package_id)
    return PackageResponse.model_validate(package)


@router.post("/{package_id}/deactivate", response_model=PackageResponse)
async def deactivate_package(
    package_id: UUID,
    db: DbSession,
    current_user: CurrentUser,
) -> PackageResponse:
    """Stop lessons from drawing on this package."""
    package = await package_service.get_package(db, current_user.id, package_id)
    updated = await package_service.deactivate_package(db, package)
    return PackageResponse.model_validate(updated)
