"""Lesson schemas."""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.models.lesson import LessonStatus, RecurrenceFrequency
from app.models.payment import AllocationSource
from app.schemas.validators import Money


class LessonCreate(BaseModel):
    """Schema for scheduling a lesson or a recurring series."""

    student_id: UUID
    date_time: datetime
    duration: int = Field(..., gt=0, description="Minutes")
    subject: str = Field(..., min_length=1, max_length=255)
    notes: str | None = None
    price: Money | None = Field(None, gt=0, description="Defaults to rate x duration")

    is_recurring: bool = False
    recurring_frequency: RecurrenceFrequency | None = None
    recurring_end_date: date | None = None

    @model_validator(mode="after")
    def validate_recurrence(self) -> "LessonCreate":
        """A series needs both a frequency and an end date."""
        if self.is_recurring:
            if self.recurring_frequency is None:
                raise ValueError("recurring_frequency is required for recurring lessons")
            if self.recurring_end_date is None:
                raise ValueError("recurring_end_date is required for recurring lessons")
        return self


class LessonUpdate(BaseModel):
    """Schema for updating a lesson (and optionally its series)."""

    date_time: datetime | None = None
    duration: int | None = Field(None, gt=0)
    subject: str | None = Field(None, min_length=1, max_length=255)
    notes: str | None = None
    status: LessonStatus | None = None
    price: Money | None = Field(None, gt=0)

    is_recurring: bool | None = None
    recurring_frequency: RecurrenceFrequency | None = None
    recurring_end_date: date | None = None


class AllocationResponse(BaseModel):
    """One slice of money counted towards a lesson."""

    id: UUID
    source: AllocationSource
    payment_id: UUID | None
    package_id: UUID | None
    amount: Decimal
    hours: Decimal | None

    model_config = ConfigDict(from_attributes=True)


class LessonResponse(BaseModel):
    """Lesson response schema."""

    id: UUID
    student_id: UUID
    date_time: datetime
    duration: int
    subject: str
    notes: str | None
    status: LessonStatus
    price: Decimal
    paid_amount: Decimal
    is_paid: bool
    package_id: UUID | None
    is_recurring: bool
    recurring_frequency: RecurrenceFrequency | None
    recurring_end_date: date | None
    recurring_group_id: UUID | None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class LessonDetailResponse(LessonResponse):
    """Lesson with its allocation rows."""

    allocations: list[AllocationResponse] = []


class LessonListResponse(BaseModel):
    """Paginated list of lessons."""

    items: list[LessonResponse]
    total: int
    skip: int
    limit: int


class LessonSeriesResponse(BaseModel):
    """Result of creating a recurring series."""

    count: int
    recurring_group_id: UUID
    lessons: list[LessonResponse]


class SeriesUpdateResponse(BaseModel):
    """Result of a this-and-future edit or delete."""

    affected: int


class PaymentStatusUpdate(BaseModel):
    is_paid: bool


class LessonDeleteResponse(BaseModel):
    """Where the value of a deleted lesson went."""

    lesson_id: UUID
    hours_credited: Decimal
    package_value_credited: Decimal
    cash_released: Decimal
    applied_to_next: Decimal
    next_lesson_id: UUID | None
    credit_added: Decimal

    model_config = ConfigDict(from_attributes=True)
