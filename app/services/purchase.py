"""Purchase service."""

import logging
import uuid
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError, ValidationError
from app.core.money import ZERO, to_money
from app.models.purchase import Purchase
from app.schemas.purchase import PurchaseCreate, PurchaseUpdate
from app.services.recurrence import generate_occurrences, parse_frequency

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = "Unassigned"


async def get_purchase(db: AsyncSession, user_id: UUID, purchase_id: UUID) -> Purchase:
    """Get a purchase owned by the account or raise ``NotFoundError``."""
    result = await db.execute(
        select(Purchase).where(Purchase.id == purchase_id, Purchase.user_id == user_id)
    )
    purchase = result.scalar_one_or_none()
    if purchase is None:
        raise NotFoundError("Purchase not found")
    return purchase


async def get_purchases(
    db: AsyncSession,
    user_id: UUID,
    *,
    start_date: date | None = None,
    end_date: date | None = None,
    category: str | None = None,
    search: str | None = None,
    skip: int = 0,
    limit: int = 50,
) -> tuple[list[Purchase], int, Decimal]:
    """Get list of purchases, newest first, with the total amount of the filtered set."""
    query = select(Purchase).where(Purchase.user_id == user_id)

    if start_date is not None:
        query = query.where(Purchase.date >= start_date)
    if end_date is not None:
        query = query.where(Purchase.date <= end_date)
    if category:
        query = query.where(Purchase.category == category)
    if search:
        query = query.where(
            Purchase.description.ilike(f"%{search}%") | Purchase.vendor.ilike(f"%{search}%")
        )

    filtered = query.subquery()
    totals = await db.execute(
        select(func.count(), func.coalesce(func.sum(filtered.c.amount), 0))
    )
    total, total_amount = totals.one()

    query = query.order_by(Purchase.date.desc(), Purchase.created_at.desc())
    query = query.offset(skip).limit(limit)
    result = await db.execute(query)
    return list(result.scalars().all()), total, to_money(total_amount or ZERO)


def _category(value: str | None) -> str:
    value = (value or "").strip()
    return value or DEFAULT_CATEGORY


async def create_purchase(
    db: AsyncSession,
    user_id: UUID,
    purchase_data: PurchaseCreate,
) -> list[Purchase]:
    """Record an expense, or one row per occurrence of a recurring expense."""
    data = purchase_data.model_dump(
        exclude={"is_recurring", "recurring_frequency", "recurring_end_date"}
    )
    data["category"] = _category(data.get("category"))

    if purchase_data.is_recurring:
        frequency = parse_frequency(purchase_data.recurring_frequency)
        if frequency is None or purchase_data.recurring_end_date is None:
            raise ValidationError("Recurring purchases require both frequency and end date")
        dates = generate_occurrences(
            purchase_data.date, frequency, purchase_data.recurring_end_date
        )
        if not dates:
            raise ValidationError("recurring_end_date is before the first purchase")
        group_id = uuid.uuid4()
        recurrence = {
            "is_recurring": True,
            "recurring_frequency": frequency,
            "recurring_end_date": purchase_data.recurring_end_date,
            "recurring_group_id": group_id,
        }
    else:
        dates = [purchase_data.date]
        recurrence = {"is_recurring": False}

    purchases = []
    for day in dates:
        purchase = Purchase(user_id=user_id, **{**data, "date": day}, **recurrence)
        db.add(purchase)
        purchases.append(purchase)

    await db.commit()
    for purchase in purchases:
        await db.refresh(purchase)

    logger.info(
        "Created purchases",
        extra={"count": len(purchases), "amount": str(purchase_data.amount)},
    )
    return purchases


async def update_purchase(
    db: AsyncSession,
    purchase: Purchase,
    purchase_data: PurchaseUpdate,
) -> Purchase:
    """Update a single purchase. Other members of its series are untouched."""
    update_data = purchase_data.model_dump(exclude_unset=True)
    if "category" in update_data:
        update_data["category"] = _category(update_data["category"])

    for field, value in update_data.items():
        setattr(purchase, field, value)

    await db.commit()
    await db.refresh(purchase)
    return purchase


async def delete_purchase(
    db: AsyncSession,
    purchase: Purchase,
    delete_future: bool = False,
) -> int:
    """
    Delete a purchase, or it and every later member of its series.

    Earlier members keep existing with their end date trimmed to the last
    remaining occurrence. Returns the number of deleted rows.
    """
    if not delete_future or purchase.recurring_group_id is None:
        await db.delete(purchase)
        await db.commit()
        return 1

    group = (
        Purchase.recurring_group_id == purchase.recurring_group_id,
        Purchase.user_id == purchase.user_id,
    )
    result = await db.execute(
        select(func.max(Purchase.date)).where(*group, Purchase.date < purchase.date)
    )
    last_remaining = result.scalar()

    if last_remaining is not None:
        await db.execute(
            update(Purchase)
            .where(*group, Purchase.date < purchase.date)
            .values(recurring_end_date=last_remaining)
        )

    result = await db.execute(delete(Purchase).where(*group, Purchase.date >= purchase.date))
    deleted = result.rowcount
    await db.commit()

    logger.info(
        "Deleted purchase and future occurrences",
        extra={"group_id": str(purchase.recurring_group_id), "deleted": deleted},
    )
    return deleted
