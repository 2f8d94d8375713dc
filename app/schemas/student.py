"""Student schemas."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.validators import Money, PhoneNumber


class StudentCreate(BaseModel):
    """Schema for creating a new student."""

    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: str | None = Field(None, max_length=255)
    phone: PhoneNumber | None = None
    family_id: UUID | None = None

    price_per_lesson: Money = Field(..., ge=0, description="Hourly rate")
    use_packages: bool = False
    price_per_package: Money | None = Field(None, gt=0)


class StudentUpdate(BaseModel):
    """Schema for updating a student."""

    first_name: str | None = Field(None, min_length=1, max_length=100)
    last_name: str | None = Field(None, min_length=1, max_length=100)
    email: str | None = Field(None, max_length=255)
    phone: PhoneNumber | None = None
    family_id: UUID | None = None

    price_per_lesson: Money | None = Field(None, ge=0)
    use_packages: bool | None = None
    price_per_package: Money | None = Field(None, gt=0)
    archived: bool | None = None


class StudentResponse(BaseModel):
    """Student response schema."""

    id: UUID
    first_name: str
    last_name: str
    email: str | None
    phone: str | None
    family_id: UUID | None
    price_per_lesson: Decimal
    use_packages: bool
    price_per_package: Decimal | None
    credit: Decimal
    archived: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class StudentListResponse(BaseModel):
    """Paginated list of students."""

    items: list[StudentResponse]
    total: int
    skip: int
    limit: int


class FamilyMember(BaseModel):
    id: UUID
    first_name: str
    last_name: str

    model_config = ConfigDict(from_attributes=True)


class FamilyResponse(BaseModel):
    """Students sharing one family id."""

    family_id: UUID
    members: list[FamilyMember]


class StudentBalanceResponse(BaseModel):
    """What a student owes and what is held for them."""

    student_id: UUID
    credit: Decimal
    outstanding: Decimal = Field(description="Unpaid part of non-cancelled lessons")
    unpaid_lessons: int
    package_hours_remaining: Decimal


class CreditApplicationResponse(BaseModel):
    """Credit spent on a student's unpaid lessons."""

    student_id: UUID
    amount_applied: Decimal
    credit_remaining: Decimal
