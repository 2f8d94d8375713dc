"""Tests for reports API."""

from datetime import date, datetime, timezone
from decimal import Decimal

from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.lesson import LessonStatus
from app.models.student import Student
from app.models.user import User
from app.services.report import month_bounds
from tests.conftest import auth_header, make_lesson, make_payment

MONTHLY = "/api/v1/reports/monthly"


class TestMonthBounds:
    """Tests for month boundaries."""

    def test_mid_year(self):
        assert month_bounds(2025, 9) == (date(2025, 9, 1), date(2025, 10, 1))

    def test_december_rolls_into_next_year(self):
        assert month_bounds(2025, 12)[1] == date(2026, 1, 1)


class TestMonthlyReport:
    """Tests for the monthly report."""

    async def test_totals_for_month(
        self, client: AsyncClient, db: AsyncSession, user: User, student: Student
    ):
        """Test only September lessons and payments are counted."""
        completed = await make_lesson(db, student, datetime(2025, 9, 1, 16, tzinfo=timezone.utc))
        cancelled = await make_lesson(db, student, datetime(2025, 9, 30, 16, tzinfo=timezone.utc))
        await make_lesson(db, student, datetime(2025, 10, 1, 16, tzinfo=timezone.utc))
        completed.status = LessonStatus.COMPLETED
        cancelled.status = LessonStatus.CANCELLED
        await db.commit()
        await make_payment(db, student, "60.00")

        response = await client.get(
            MONTHLY, headers=auth_header(user), params={"month": 9, "year": 2025}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["period"] == {"month": 9, "year": 2025}
        summary = data["summary"]
        assert summary["total_lessons"] == 2
        assert summary["completed_lessons"] == 1
        assert summary["cancelled_lessons"] == 1
        assert Decimal(summary["total_revenue"]) == Decimal("60.00")
        assert Decimal(summary["total_earned"]) == Decimal("110.00")
        assert Decimal(summary["outstanding_balance"]) == Decimal("50.00")
        [row] = data["students"]
        assert row["id"] == str(student.id)
        assert row["name"] == "Sam Student"
        assert row["lessons"] == 2
        assert Decimal(row["revenue"]) == Decimal("60.00")

    async def test_empty_month(self, client: AsyncClient, user: User, student: Student):
        response = await client.get(
            MONTHLY, headers=auth_header(user), params={"month": 2, "year": 2025}
        )

        data = response.json()
        assert data["summary"]["total_lessons"] == 0
        assert Decimal(data["summary"]["total_revenue"]) == Decimal("0")
        assert data["students"] == []

    async def test_other_account_sees_nothing(
        self, client: AsyncClient, db: AsyncSession, other_user: User, student: Student
    ):
        await make_lesson(db, student, datetime(2025, 9, 1, 16, tzinfo=timezone.utc))

        response = await client.get(
            MONTHLY, headers=auth_header(other_user), params={"month": 9, "year": 2025}
        )

        assert response.json()["summary"]["total_lessons"] == 0

    async def test_invalid_month_rejected(self, client: AsyncClient, user: User):
        response = await client.get(
            MONTHLY, headers=auth_header(user), params={"month": 13, "year": 2025}
        )

        assert response.status_code == 422
