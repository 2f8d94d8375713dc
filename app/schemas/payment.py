"""Payment schemas."""

from datetime import date as Date
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.models.payment import PaymentMethod
from app.schemas.lesson import AllocationResponse
from app.schemas.validators import Money


class PaymentCreate(BaseModel):
    """Schema for recording money received."""

    student_id: UUID
    amount: Money = Field(..., gt=0)
    method: PaymentMethod
    date: Date
    notes: str | None = None

    # One payment per non-archived family member
    apply_to_family: bool = False
    # Spread over the oldest unpaid lessons right away
    auto_apply: bool = True


class PaymentResponse(BaseModel):
    """Payment response schema."""

    id: UUID
    student_id: UUID | None
    family_id: UUID | None
    amount: Decimal
    date: Date
    method: PaymentMethod
    notes: str | None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PaymentDetailResponse(PaymentResponse):
    """Payment with its allocations and unallocated remainder."""

    allocated: Decimal
    available: Decimal
    allocations: list[AllocationResponse] = []


class PaymentApplication(BaseModel):
    """Outcome of spreading one payment over unpaid lessons."""

    payment_id: UUID
    student_id: UUID
    lessons_paid: int
    lessons_partially_paid: int
    amount_applied: Decimal
    amount_remaining: Decimal
    credit_applied: Decimal = Decimal("0")


class PaymentCreateResponse(BaseModel):
    payments: list[PaymentResponse]
    applications: list[PaymentApplication] = []


class PaymentListResponse(BaseModel):
    """Paginated list of payments."""

    items: list[PaymentResponse]
    total: int
    skip: int
    limit: int


class InsufficientFundsResponse(BaseModel):
    """Body of a refused link."""

    detail: str
    total: Decimal
    allocated: Decimal
    available: Decimal
