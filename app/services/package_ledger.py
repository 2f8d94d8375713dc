"""Package hours ledger: FIFO consumption and credit-back of prepaid hours."""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.money import ZERO, duration_hours, to_hours, to_money
from app.core.timezones import local_time
from app.models.lesson import Lesson
from app.models.package import Package
from app.models.payment import AllocationSource
from app.services import allocation

logger = logging.getLogger(__name__)


@dataclass
class HoursCredit:
    """Hours handed back to one package."""

    package: Package
    hours: Decimal

    @property
    def value(self) -> Decimal:
        return to_money(self.hours * self.package.hourly_rate)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _is_expired(package: Package, now: datetime) -> bool:
    if package.expires_at is None:
        return False
    return local_time(package.expires_at) <= now


def update_activity(package: Package) -> None:
    """Deactivate a used-up package; reopen one that got hours back."""
    if package.hours_used >= package.total_hours - settings.PACKAGE_HOURS_EPSILON:
        package.is_active = False
    elif not package.deactivated_manually and not _is_expired(package, _now()):
        package.is_active = True


async def get_active_packages(
    db: AsyncSession,
    user_id: UUID,
    student_id: UUID,
) -> list[Package]:
    """Usable packages of a student, oldest purchase first. Rows are locked."""
    query = (
        select(Package)
        .where(
            Package.user_id == user_id,
            Package.student_id == student_id,
            Package.is_active == True,  # noqa: E712
            or_(Package.expires_at.is_(None), Package.expires_at > _now()),
        )
        .order_by(Package.purchased_at.asc(), Package.created_at.asc())
        .with_for_update()
    )
    result = await db.execute(query)
    return list(result.scalars().all())


async def _draw(
    db: AsyncSession,
    lesson: Lesson,
    packages: list[Package],
    hours_needed: Decimal,
) -> Decimal:
    """Take up to ``hours_needed`` from ``packages`` in order and book them on the lesson."""
    drawn = ZERO
    for package in packages:
        if hours_needed <= 0:
            break
        available = package.remaining_hours
        if available <= 0:
            continue
        take = to_hours(min(hours_needed, available))
        package.hours_used = to_hours(package.hours_used + take)
        update_activity(package)

        value = min(to_money(take * package.hourly_rate), max(lesson.price - lesson.paid_amount, ZERO))
        await allocation.add_allocation(
            db,
            lesson,
            value,
            source=AllocationSource.PACKAGE,
            package_id=package.id,
            hours=take,
        )
        if lesson.package_id is None:
            lesson.package_id = package.id
        await allocation.refresh_paid_amount(db, lesson)

        logger.info(
            "Deducted package hours",
            extra={
                "lesson_id": str(lesson.id),
                "package_id": str(package.id),
                "hours": str(take),
                "hours_used": str(package.hours_used),
                "value": str(value),
            },
        )
        hours_needed -= take
        drawn += take

    if hours_needed > 0 and drawn == 0:
        logger.debug("No package hours available", extra={"lesson_id": str(lesson.id)})
    return drawn


async def charge_lesson(db: AsyncSession, lesson: Lesson) -> Decimal:
    """
    Deduct a new lesson's hours from the student's packages, oldest first.

    Whatever the packages cannot cover is left unpaid. Returns the hours
    deducted.
    """
    packages = await get_active_packages(db, lesson.user_id, lesson.student_id)
    if not packages:
        return ZERO
    return await _draw(db, lesson, packages, duration_hours(lesson.duration))


async def apply_package_to_unpaid(db: AsyncSession, package: Package) -> int:
    """Use a freshly bought package on the student's oldest unpaid lessons."""
    covered = 0
    for lesson in await allocation.get_unpaid_lessons(db, package.user_id, package.student_id):
        if package.remaining_hours <= 0 or not package.is_active:
            break
        outstanding = lesson.price - lesson.paid_amount
        if outstanding <= 0:
            continue
        hours = min(duration_hours(lesson.duration), to_hours(outstanding / package.hourly_rate))
        if await _draw(db, lesson, [package], hours) > 0:
            covered += 1
    return covered


async def credit_hours(db: AsyncSession, package: Package, hours: Decimal) -> Decimal:
    """Return hours to a package, never below zero used. Returns hours credited."""
    new_used = max(ZERO, to_hours(package.hours_used - hours))
    credited = to_hours(package.hours_used - new_used)
    package.hours_used = new_used
    update_activity(package)
    await db.flush()
    logger.info(
        "Credited package hours",
        extra={
            "package_id": str(package.id),
            "hours": str(credited),
            "hours_used": str(package.hours_used),
        },
    )
    return credited


async def consume_credited_hours(
    db: AsyncSession,
    lesson: Lesson,
    package: Package,
    hours: Decimal,
) -> tuple[Decimal, Decimal]:
    """
    Spend up to ``hours`` of ``package`` on the lesson's open balance.

    Returns ``(hours_used, value_applied)``.
    """
    outstanding = lesson.price - lesson.paid_amount
    if outstanding <= 0 or hours <= 0:
        return ZERO, ZERO
    rate = package.hourly_rate
    take = min(hours, to_hours(outstanding / rate))
    if take <= 0:
        return ZERO, ZERO
    before = lesson.paid_amount
    await _draw(db, lesson, [package], take)
    return take, to_money(lesson.paid_amount - before)


async def release_lesson_hours(db: AsyncSession, lesson: Lesson) -> list[HoursCredit]:
    """Give back every package hour booked on a lesson."""
    credits: list[HoursCredit] = []
    rows = await allocation.get_lesson_allocations(db, lesson.id)
    package_rows = [row for row in rows if row.source == AllocationSource.PACKAGE]

    if package_rows:
        for row in package_rows:
            package = await db.get(Package, row.package_id)
            if package is None or not row.hours:
                continue
            credited = await credit_hours(db, package, row.hours)
            credits.append(HoursCredit(package=package, hours=credited))
    elif lesson.package_id is not None:
        package = await db.get(Package, lesson.package_id)
        if package is not None:
            credited = await credit_hours(db, package, duration_hours(lesson.duration))
            credits.append(HoursCredit(package=package, hours=credited))

    return credits


async def return_trimmed_hours(
    db: AsyncSession,
    released: list[tuple[UUID, Decimal]],
) -> None:
    """Credit back hours freed by ``allocation.cap_allocations``."""
    for package_id, hours in released:
        package = await db.get(Package, package_id)
        if package is not None and hours > 0:
            await credit_hours(db, package, hours)
