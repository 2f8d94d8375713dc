"""Purchase routes."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Query, status

from app.core.deps import CurrentUser, DbSession
from app.schemas.purchase import (
    PurchaseCreate,
    PurchaseCreateResponse,
    PurchaseListResponse,
    PurchaseResponse,
    PurchaseUpdate,
)
from app.schemas.lesson import SeriesUpdateResponse
from app.services import purchase as purchase_service

router = APIRouter(prefix="/purchases", tags=["Purchases"])


@router.get("", response_model=PurchaseListResponse)
async def list_purchases(
    db: DbSession,
    current_user: CurrentUser,
    start_date: date | None = Query(None, description="On or after"),
    end_date: date | None = Query(None, description="On or before"),
    category: str | None = Query(None, description="Filter by category"),
    search: str | None = Query(None, description="Search description or vendor"),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
) -> PurchaseListResponse:
    """List purchases with the total amount spent."""
    purchases, total, total_amount = await purchase_service.get_purchases(
        db,
        current_user.id,
        start_date=start_date,
        end_date=end_date,
        category=category,
        search=search,
        skip=skip,
        limit=limit,
    )
    return PurchaseListResponse(
        items=[PurchaseResponse.model_validate(p) for p in purchases],
        total=total,
        total_amount=total_amount,
        skip=skip,
        limit=limit,
    )


@router.post("", response_model=PurchaseCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_purchase(
    purchase_data: PurchaseCreate,
    db: DbSession,
    current_user: CurrentUser,
) -> PurchaseCreateResponse:
    """Record an expense; a recurring one creates every occurrence up to its end date."""
    purchases = await purchase_service.create_purchase(db, current_user.id, purchase_data)
    return PurchaseCreateResponse(
        count=len(purchases),
        recurring_group_id=purchases[0].recurring_group_id,
        purchases=[PurchaseResponse.model_validate(p) for p in purchases],
    )


@router.get("/{purchase_id}", response_model=PurchaseResponse)
async def get_purchase(
    purchase_id: UUID,
    db: DbSession,
    current_user: CurrentUser,
) -> PurchaseResponse:
    """Get a specific purchase by ID."""
    purchase = await purchase_service.get_purchase(db, current_user.id, purchase_id)
    return PurchaseResponse.model_validate(purchase)


@router.patch("/{purchase_id}", response_model=PurchaseResponse)
async def update_purchase(
    purchase_id: UUID,
    purchase_data: PurchaseUpdate,
    db: DbSession,
    current_user: CurrentUser,
) -> PurchaseResponse:
    """Update a single purchase."""
    purchase = await purchase_service.get_purchase(db, current_user.id, purchase_id)
    updated = await purchase_service.update_purchase(db, purchase, purchase_data)
    return PurchaseResponse.model_validate(updated)


@router.delete("/{purchase_id}", response_model=SeriesUpdateResponse)
async def delete_purchase(
    purchase_id: UUID,
    db: DbSession,
    current_user: CurrentUser,
    delete_future: bool = Query(False, description="Also delete later occurrences"),
) -> SeriesUpdateResponse:
    """Delete a purchase, optionally with the rest of its series."""
    purchase = await purchase_service.get_purchase(db, current_user.id, purchase_id)
    deleted = await purchase_service.delete_purchase(db, purchase, delete_future)
    return SeriesUpdateResponse(affected=deleted)
