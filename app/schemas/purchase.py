"""Purchase schemas."""

from datetime import date as Date
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.models.lesson import RecurrenceFrequency
from app.models.payment import PaymentMethod
from app.schemas.validators import Money


class PurchaseCreate(BaseModel):
    """Schema for recording a business expense."""

    date: Date
    description: str = Field(..., min_length=1)
    amount: Money = Field(..., gt=0)
    category: str = Field(default="Unassigned", max_length=100)
    vendor: str | None = Field(None, max_length=255)
    payment_method: PaymentMethod | None = None
    notes: str | None = None

    is_recurring: bool = False
    recurring_frequency: RecurrenceFrequency | None = None
    recurring_end_date: Date | None = None

    @model_validator(mode="after")
    def validate_recurrence(self) -> "PurchaseCreate":
        """A series needs both a frequency and an end date."""
        if self.is_recurring:
            if self.recurring_frequency is None:
                raise ValueError("recurring_frequency is required for recurring purchases")
            if self.recurring_end_date is None:
                raise ValueError("recurring_end_date is required for recurring purchases")
        return self


class PurchaseUpdate(BaseModel):
    """Schema for updating a single purchase."""

    date: Date | None = None
    description: str | None = Field(None, min_length=1)
    amount: Money | None = Field(None, gt=0)
    category: str | None = Field(None, max_length=100)
    vendor: str | None = Field(None, max_length=255)
    payment_method: PaymentMethod | None = None
    notes: str | None = None


class PurchaseResponse(BaseModel):
    """Purchase response schema."""

    id: UUID
    date: Date
    description: str
    amount: Decimal
    category: str
    vendor: str | None
    payment_method: PaymentMethod | None
    notes: str | None
    is_recurring: bool
    recurring_frequency: RecurrenceFrequency | None
    recurring_end_date: Date | None
    recurring_group_id: UUID | None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PurchaseCreateResponse(BaseModel):
    count: int
    recurring_group_id: UUID | None
    purchases: list[PurchaseResponse]


class PurchaseListResponse(BaseModel):
    """Paginated list of purchases with the total spent."""

    items: list[PurchaseResponse]
    total: int
    total_amount: Decimal
    skip: int
    limit: int
