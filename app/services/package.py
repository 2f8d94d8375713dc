"""Package service."""

import logging
from datetime import date
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError, ValidationError
from app.core.money import to_hours
from app.models.package import Package
from app.models.payment import Payment
from app.schemas.package import PackageCreate
from app.services import package_ledger
from app.services import student as student_service

logger = logging.getLogger(__name__)


async def get_package(db: AsyncSession, user_id: UUID, package_id: UUID) -> Package:
    """Get a package owned by the account or raise ``NotFoundError``."""
    result = await db.execute(
        select(Package).where(Package.id == package_id, Package.user_id == user_id)
    )
    package = result.scalar_one_or_none()
    if package is None:
        raise NotFoundError("Package not found")
    return package


async def get_packages(
    db: AsyncSession,
    user_id: UUID,
    *,
    student_id: UUID | None = None,
    is_active: bool | None = None,
    skip: int = 0,
    limit: int = 20,
) -> tuple[list[Package], int]:
    """Get list of packages, newest purchase first."""
    query = select(Package).where(Package.user_id == user_id)

    if student_id is not None:
        query = query.where(Package.student_id == student_id)
    if is_active is not None:
        query = query.where(Package.is_active == is_active)

    count_query = select(func.count()).select_from(query.subquery())
    total_result = await db.execute(count_query)
    total = total_result.scalar() or 0

    query = query.order_by(Package.purchased_at.desc()).offset(skip).limit(limit)
    result = await db.execute(query)
    return list(result.scalars().all()), total


async def create_package(
    db: AsyncSession,
    user_id: UUID,
    package_data: PackageCreate,
) -> tuple[Package, int]:
    """
    Sell a package to a student.

    With ``record_payment`` the money received is stored as a payment of
    the student and the package points at it. The new hours are then used
    on the student's oldest unpaid lessons. Returns the package and the
    number of lessons it covered.
    """
    student = await student_service.get_student(db, user_id, package_data.student_id)
    if student.archived:
        raise ValidationError("Cannot sell a package to an archived student")

    package = Package(
        user_id=user_id,
        student_id=student.id,
        name=package_data.name,
        total_hours=to_hours(package_data.total_hours),
        price=package_data.price,
        expires_at=package_data.expires_at,
    )
    if package_data.purchased_at is not None:
        package.purchased_at = package_data.purchased_at

    if package_data.record_payment:
        payment = Payment(
            user_id=user_id,
            student_id=student.id,
            family_id=student.family_id,
            amount=package_data.price,
            date=package_data.payment_date or date.today(),
            method=package_data.payment_method,
            notes=f"Package: {package_data.name}",
        )
        db.add(payment)
        await db.flush()
        package.payment_id = payment.id

    db.add(package)
    await db.flush()

    covered = await package_ledger.apply_package_to_unpaid(db, package)
    await db.commit()
    await db.refresh(package)

    logger.info(
        "Created package",
        extra={
            "package_id": str(package.id),
            "student_id": str(student.id),
            "total_hours": str(package.total_hours),
            "lessons_covered": covered,
        },
    )
    return package, covered


async def deactivate_package(db: AsyncSession, package: Package) -> Package:
    """Stop a package from being drawn on. Hours already used stay booked."""
    package.is_active = False
    package.deactivated_manually = True
    await db.commit()
    await db.refresh(package)
    logger.info("Deactivated package", extra={"package_id": str(package.id)})
    return package
