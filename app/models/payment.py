"""Payment and allocation models."""

import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Numeric, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import BaseModel


class PaymentMethod(str, Enum):
    """How payment was received."""

    CASH = "cash"
    CARD = "card"
    TRANSFER = "transfer"
    VENMO = "venmo"
    ZELLE = "zelle"
    CHECK = "check"


class AllocationSource(str, Enum):
    """Where the money on an allocation row came from."""

    PAYMENT = "payment"
    PACKAGE = "package"
    MANUAL = "manual"  # "Mark as paid" override without a payment record
    CREDIT = "credit"  # Spent from the student's credit balance


class Payment(BaseModel):
    """Money received from a student or a family."""

    __tablename__ = "payments"

    user_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    student_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("students.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    family_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        nullable=True,
        index=True,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    date: Mapped[datetime.date] = mapped_column(Date, nullable=False)
    method: Mapped[PaymentMethod] = mapped_column(String(20), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)

    # Relationships
    allocations: Mapped[list["LessonPayment"]] = relationship(
        "LessonPayment",
        back_populates="payment",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Payment(id={self.id}, amount={self.amount})>"


class LessonPayment(BaseModel):
    """Portion of a payment, package or manual override applied to a lesson."""

    __tablename__ = "lesson_payments"
    __table_args__ = (
        UniqueConstraint("lesson_id", "payment_id", name="uq_lesson_payment"),
    )

    lesson_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("lessons.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    payment_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("payments.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    package_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("packages.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    source: Mapped[AllocationSource] = mapped_column(
        String(20),
        default=AllocationSource.PAYMENT,
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    hours: Mapped[Decimal | None] = mapped_column(Numeric(10, 4))  # Package rows only

    # Relationships
    lesson: Mapped["Lesson"] = relationship("Lesson", back_populates="allocations")
    payment: Mapped["Payment | None"] = relationship("Payment", back_populates="allocations")

    def __repr__(self) -> str:
        return f"<LessonPayment(lesson={self.lesson_id}, source={self.source}, amount={self.amount})>"
