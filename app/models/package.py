"""Package model."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Numeric, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import BaseModel, UTCDateTime


class Package(BaseModel):
    """Block of prepaid lesson hours bought by a student."""

    __tablename__ = "packages"

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
    payment_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("payments.id", ondelete="SET NULL"),
        nullable=True,
    )  # Payment that funded the purchase

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    total_hours: Mapped[Decimal] = mapped_column(Numeric(10, 4), nullable=False)
    hours_used: Mapped[Decimal] = mapped_column(
        Numeric(10, 4),
        default=Decimal("0"),
        server_default="0",
        nullable=False,
    )
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    purchased_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        server_default=func.now(),
        nullable=False,
    )
    expires_at: Mapped[datetime | None] = mapped_column(UTCDateTime())

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        server_default="true",
    )
    deactivated_manually: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        server_default="false",
    )

    # Relationships
    student: Mapped["Student"] = relationship("Student", back_populates="packages")

    @property
    def remaining_hours(self) -> Decimal:
        return self.total_hours - self.hours_used

    @property
    def hourly_rate(self) -> Decimal:
        """Value of one package hour."""
        return self.price / self.total_hours

    def __repr__(self) -> str:
        return f"<Package(id={self.id}, used={self.hours_used}/{self.total_hours})>"
