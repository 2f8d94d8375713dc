"""Purchase model."""

import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, Date, ForeignKey, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import BaseModel
from app.models.lesson import RecurrenceFrequency
from app.models.payment import PaymentMethod


class Purchase(BaseModel):
    """Business expense, optionally repeated on a schedule."""

    __tablename__ = "purchases"

    user_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    date: Mapped[datetime.date] = mapped_column(Date, nullable=False, index=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    category: Mapped[str] = mapped_column(
        String(100),
        default="Unassigned",
        server_default="Unassigned",
    )
    vendor: Mapped[str | None] = mapped_column(String(255))
    payment_method: Mapped[PaymentMethod | None] = mapped_column(String(20))
    notes: Mapped[str | None] = mapped_column(Text)

    is_recurring: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        server_default="false",
    )
    recurring_frequency: Mapped[RecurrenceFrequency | None] = mapped_column(String(20))
    recurring_end_date: Mapped[datetime.date | None] = mapped_column(Date)
    recurring_group_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        nullable=True,
        index=True,
    )

    def __repr__(self) -> str:
        return f"<Purchase(id={self.id}, date={self.date}, amount={self.amount})>"
