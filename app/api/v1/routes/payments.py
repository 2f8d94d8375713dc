"""Payment routes."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Query, status

from app.core.deps import CurrentUser, DbSession
from app.schemas.lesson import AllocationResponse
from app.schemas.payment import (
    PaymentCreate,
    PaymentCreateResponse,
    PaymentDetailResponse,
    PaymentListResponse,
    PaymentResponse,
)
from app.services import allocation
from app.services import payment as payment_service

router = APIRouter(prefix="/payments", tags=["Payments"])


@router.get("", response_model=PaymentListResponse)
async def list_payments(
    db: DbSession,
    current_user: CurrentUser,
    student_id: UUID | None = Query(None, description="Filter by student ID"),
    family_id: UUID | None = Query(None, description="Filter by family ID"),
    start_date: date | None = Query(None, description="Paid on or after"),
    end_date: date | None = Query(None, description="Paid on or before"),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
) -> PaymentListResponse:
    """List payments, newest first."""
    payments, total = await payment_service.get_payments(
        db,
        current_user.id,
        student_id=student_id,
        family_id=family_id,
        start_date=start_date,
        end_date=end_date,
        skip=skip,
        limit=limit,
    )
    return PaymentListResponse(
        items=[PaymentResponse.model_validate(p) for p in payments],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.post("", response_model=PaymentCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_payment(
    payment_data: PaymentCreate,
    db: DbSession,
    current_user: CurrentUser,
) -> PaymentCreateResponse:
    """
    Record a payment.

    By default it is applied to the student's oldest unpaid lessons; with
    ``apply_to_family`` one payment is recorded per family member.
    """
    payments, applications = await payment_service.create_payment(
        db, current_user.id, payment_data
    )
    return PaymentCreateResponse(
        payments=[PaymentResponse.model_validate(p) for p in payments],
        applications=applications,
    )


@router.get("/{payment_id}", response_model=PaymentDetailResponse)
async def get_payment(
    payment_id: UUID,
    db: DbSession,
    current_user: CurrentUser,
) -> PaymentDetailResponse:
    """Get a payment with the lessons it funds and what is left of it."""
    payment = await payment_service.get_payment(db, current_user.id, payment_id)
    rows = await payment_service.get_payment_allocations(db, payment)
    available = await allocation.payment_available(db, payment)
    return PaymentDetailResponse(
        **PaymentResponse.model_validate(payment).model_dump(),
        allocated=payment.amount - available,
        available=available,
        allocations=[AllocationResponse.model_validate(row) for row in rows],
    )


@router.delete("/{payment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_payment(
    payment_id: UUID,
    db: DbSession,
    current_user: CurrentUser,
) -> None:
    """Delete a payment; lessons it funded are recomputed."""
    payment = await payment_service.get_payment(db, current_user.id, payment_id)
    await payment_service.delete_payment(db, payment)
