"""Tests for packages API."""

from datetime import datetime, timezone
from decimal import Decimal

from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.student import Student
from app.models.user import User
from tests.conftest import auth_header, make_lesson

PACKAGES = "/api/v1/packages"


def package_payload(student: Student, **overrides) -> dict:
    payload = {
        "student_id": str(student.id),
        "name": "Ten hours",
        "total_hours": "10",
        "price": "1000.00",
    }
    payload.update(overrides)
    return payload


class TestCreatePackage:
    """Tests for selling packages."""

    async def test_covers_unpaid_lessons(
        self, client: AsyncClient, db: AsyncSession, user: User, student: Student
    ):
        lesson = await make_lesson(
            db, student, datetime(2025, 9, 1, 16, tzinfo=timezone.utc), price="100.00"
        )

        response = await client.post(
            PACKAGES, headers=auth_header(user), json=package_payload(student)
        )

        assert response.status_code == 201
        data = response.json()
        assert data["lessons_covered"] == 1
        assert Decimal(data["hours_used"]) == Decimal("1")
        assert Decimal(data["remaining_hours"]) == Decimal("9")
        assert data["is_active"] is True

        detail = await client.get(f"/api/v1/lessons/{lesson.id}", headers=auth_header(user))
        assert detail.json()["is_paid"] is True
        assert detail.json()["package_id"] == data["id"]

    async def test_record_payment(self, client: AsyncClient, user: User, student: Student):
        response = await client.post(
            PACKAGES,
            headers=auth_header(user),
            json=package_payload(student, record_payment=True, payment_date="2025-09-01"),
        )
        payment_id = response.json()["payment_id"]

        payment = await client.get(f"/api/v1/payments/{payment_id}", headers=auth_header(user))

        assert payment.status_code == 200
        assert payment.json()["notes"] == "Package: Ten hours"
        assert Decimal(payment.json()["amount"]) == Decimal("1000.00")

    async def test_archived_student_rejected(
        self, client: AsyncClient, db: AsyncSession, user: User, student: Student
    ):
        student.archived = True
        await db.commit()

        response = await client.post(
            PACKAGES, headers=auth_header(user), json=package_payload(student)
        )

        assert response.status_code == 422

    async def test_expiry_before_purchase_rejected(
        self, client: AsyncClient, user: User, student: Student
    ):
        response = await client.post(
            PACKAGES,
            headers=auth_header(user),
            json=package_payload(
                student,
                purchased_at="2025-09-01T00:00:00Z",
                expires_at="2025-08-01T00:00:00Z",
            ),
        )

        assert response.status_code == 422


class TestDeactivatePackage:
    """Tests for manual deactivation."""

    async def test_deactivated_package_is_not_drawn(
        self, client: AsyncClient, user: User, student: Student
    ):
        package = (
            await client.post(PACKAGES, headers=auth_header(user), json=package_payload(student))
        ).json()

        response = await client.post(
            f"{PACKAGES}/{package['id']}/deactivate", headers=auth_header(user)
        )
        lesson = await client.post(
            "/api/v1/lessons",
            headers=auth_header(user),
            json={
                "student_id": str(student.id),
                "date_time": "2025-09-01T16:00:00Z",
                "duration": 60,
                "subject": "Math",
            },
        )

        assert response.json()["is_active"] is False
        assert lesson.json()["package_id"] is None
        assert Decimal(lesson.json()["paid_amount"]) == Decimal("0")
