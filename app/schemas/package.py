"""Package schemas."""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.models.payment import PaymentMethod
from app.schemas.validators import Money


class PackageCreate(BaseModel):
    """Schema for selling a block of prepaid hours."""

    student_id: UUID
    name: str = Field(..., min_length=1, max_length=255)
    total_hours: Decimal = Field(..., gt=0, decimal_places=4)
    price: Money = Field(..., gt=0)
    purchased_at: datetime | None = None
    expires_at: datetime | None = None

    # Record the money received for the package as a payment
    record_payment: bool = False
    payment_method: PaymentMethod = PaymentMethod.CASH
    payment_date: date | None = None

    @model_validator(mode="after")
    def validate_dates(self) -> "PackageCreate":
        if self.purchased_at and self.expires_at and self.expires_at <= self.purchased_at:
            raise ValueError("expires_at must be after purchased_at")
        return self


class PackageResponse(BaseModel):
    """Package response schema."""

    id: UUID
    student_id: UUID
    payment_id: UUID | None
    name: str
    total_hours: Decimal
    hours_used: Decimal
    remaining_hours: Decimal
    price: Decimal
    purchased_at: datetime
    expires_at: datetime | None
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PackageCreateResponse(PackageResponse):
    lessons_covered: int = 0


class PackageListResponse(BaseModel):
    """Paginated list of packages."""

    items: list[PackageResponse]
    total: int
    skip: int
    limit: int
