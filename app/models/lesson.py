"""Lesson model."""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, Date, ForeignKey, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import BaseModel, UTCDateTime


class RecurrenceFrequency(str, Enum):
    """Step between occurrences of a series."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class LessonStatus(str, Enum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Lesson(BaseModel):
    """One occurrence of a lesson, standalone or part of a recurring series."""

    __tablename__ = "lessons"

    user_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    student_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("students.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    date_time: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        index=True,
    )
    duration: Mapped[int] = mapped_column(Integer, nullable=False)  # Minutes
    subject: Mapped[str] = mapped_column(String(255), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)
    status: Mapped[LessonStatus] = mapped_column(
        String(20),
        default=LessonStatus.SCHEDULED,
        server_default="scheduled",
    )

    # Money
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    paid_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        default=Decimal("0"),
        server_default="0",
        nullable=False,
    )  # Always the sum of this lesson's allocations
    is_paid: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        server_default="false",
        index=True,
    )
    package_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("packages.id", ondelete="SET NULL"),
        nullable=True,
    )  # Package currently credited for this lesson

    # Recurrence
    is_recurring: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        server_default="false",
    )
    recurring_frequency: Mapped[RecurrenceFrequency | None] = mapped_column(String(20))
    recurring_end_date: Mapped[date | None] = mapped_column(Date)  # Inclusive
    recurring_group_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        nullable=True,
        index=True,
    )

    # Relationships
    student: Mapped["Student"] = relationship("Student", back_populates="lessons")
    package: Mapped["Package | None"] = relationship("Package")
    allocations: Mapped[list["LessonPayment"]] = relationship(
        "LessonPayment",
        back_populates="lesson",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def remaining_amount(self) -> Decimal:
        """Part of the price not yet covered."""
        return self.price - self.paid_amount

    def __repr__(self) -> str:
        return f"<Lesson(id={self.id}, date_time={self.date_time}, paid={self.paid_amount}/{self.price})>"
