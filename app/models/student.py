"""Student model."""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Numeric, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import BaseModel


class Student(BaseModel):
    """Student billed per lesson hour, optionally grouped into a family."""

    __tablename__ = "students"

    user_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255))
    phone: Mapped[str | None] = mapped_column(String(50))

    # Co-billed group; students sharing it can be funded by one payment
    family_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        nullable=True,
        index=True,
    )

    # Billing
    price_per_lesson: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
    )  # Hourly rate
    use_packages: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        server_default="false",
    )
    price_per_package: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    credit: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        default=Decimal("0"),
        server_default="0",
        nullable=False,
    )  # Money owed to the student

    archived: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        server_default="false",
    )

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="students")
    lessons: Mapped[list["Lesson"]] = relationship("Lesson", back_populates="student")
    packages: Mapped[list["Package"]] = relationship("Package", back_populates="student")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def __repr__(self) -> str:
        return f"<Student(id={self.id}, name={self.full_name})>"
