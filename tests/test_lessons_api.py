"""Tests for lessons API."""

from decimal import Decimal
from uuid import uuid4

from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.student import Student
from app.models.user import User
from tests.conftest import auth_header, make_payment

LESSONS = "/api/v1/lessons"


def lesson_payload(student: Student, **overrides) -> dict:
    payload = {
        "student_id": str(student.id),
        "date_time": "2025-09-01T16:00:00Z",
        "duration": 60,
        "subject": "Math",
    }
    payload.update(overrides)
    return payload


class TestAccountHeader:
    """Tests for resolving the calling account."""

    async def test_missing_header_is_unauthorized(self, client: AsyncClient, student: Student):
        response = await client.get(LESSONS)

        assert response.status_code == 401

    async def test_unknown_account_is_unauthorized(self, client: AsyncClient, student: Student):
        response = await client.get(LESSONS, headers={"X-User-ID": str(uuid4())})

        assert response.status_code == 401

    async def test_inactive_account_is_forbidden(
        self, client: AsyncClient, db: AsyncSession, user: User
    ):
        user.is_active = False
        await db.commit()

        response = await client.get(LESSONS, headers=auth_header(user))

        assert response.status_code == 403


class TestCreateLesson:
    """Tests for scheduling lessons."""

    async def test_single_lesson_priced_from_rate(
        self, client: AsyncClient, user: User, student: Student
    ):
        """Test 45 minutes at $110/h costs $82.50."""
        response = await client.post(
            LESSONS, headers=auth_header(user), json=lesson_payload(student, duration=45)
        )

        assert response.status_code == 201
        data = response.json()
        assert Decimal(data["price"]) == Decimal("82.50")
        assert data["is_paid"] is False
        assert data["recurring_group_id"] is None

    async def test_explicit_price_wins(self, client: AsyncClient, user: User, student: Student):
        response = await client.post(
            LESSONS, headers=auth_header(user), json=lesson_payload(student, price="90.00")
        )

        assert response.status_code == 201
        assert Decimal(response.json()["price"]) == Decimal("90.00")

    async def test_zero_price_rejected(self, client: AsyncClient, user: User, student: Student):
        response = await client.post(
            LESSONS, headers=auth_header(user), json=lesson_payload(student, price="0")
        )

        assert response.status_code == 422

    async def test_zero_price_update_rejected(
        self, client: AsyncClient, user: User, student: Student
    ):
        lesson = (
            await client.post(LESSONS, headers=auth_header(user), json=lesson_payload(student))
        ).json()

        response = await client.patch(
            f"{LESSONS}/{lesson['id']}", headers=auth_header(user), json={"price": "0.00"}
        )

        assert response.status_code == 422

    async def test_weekly_series(self, client: AsyncClient, user: User, student: Student):
        response = await client.post(
            LESSONS,
            headers=auth_header(user),
            json=lesson_payload(
                student,
                is_recurring=True,
                recurring_frequency="weekly",
                recurring_end_date="2025-09-30",
            ),
        )

        assert response.status_code == 201
        data = response.json()
        assert data["count"] == 5
        assert {lesson["recurring_group_id"] for lesson in data["lessons"]} == {
            data["recurring_group_id"]
        }

    async def test_series_without_end_date_rejected(
        self, client: AsyncClient, user: User, student: Student
    ):
        response = await client.post(
            LESSONS,
            headers=auth_header(user),
            json=lesson_payload(student, is_recurring=True, recurring_frequency="weekly"),
        )

        assert response.status_code == 422

    async def test_other_accounts_student_not_found(
        self, client: AsyncClient, other_user: User, student: Student
    ):
        response = await client.post(
            LESSONS, headers=auth_header(other_user), json=lesson_payload(student)
        )

        assert response.status_code == 404


class TestLessonPayments:
    """Tests for linking payments and the payment status override."""

    async def test_get_lesson_with_allocations(
        self, client: AsyncClient, db: AsyncSession, user: User, student: Student
    ):
        lesson = (
            await client.post(LESSONS, headers=auth_header(user), json=lesson_payload(student))
        ).json()
        payment = await make_payment(db, student, "60.00")
        await client.put(
            f"{LESSONS}/{lesson['id']}/payments/{payment.id}", headers=auth_header(user)
        )

        response = await client.get(f"{LESSONS}/{lesson['id']}", headers=auth_header(user))

        assert response.status_code == 200
        data = response.json()
        assert data["id"] == lesson["id"]
        assert Decimal(data["price"]) == Decimal("110.00")
        assert Decimal(data["paid_amount"]) == Decimal("60.00")
        [row] = data["allocations"]
        assert row["payment_id"] == str(payment.id)
        assert Decimal(row["amount"]) == Decimal("60.00")

    async def test_link_and_unlink(
        self, client: AsyncClient, db: AsyncSession, user: User, student: Student
    ):
        lesson = (
            await client.post(LESSONS, headers=auth_header(user), json=lesson_payload(student))
        ).json()
        payment = await make_payment(db, student, "100.00")

        linked = await client.put(
            f"{LESSONS}/{lesson['id']}/payments/{payment.id}", headers=auth_header(user)
        )
        assert linked.status_code == 200
        assert Decimal(linked.json()["paid_amount"]) == Decimal("100.00")

        detail = await client.get(f"{LESSONS}/{lesson['id']}", headers=auth_header(user))
        assert [row["source"] for row in detail.json()["allocations"]] == ["payment"]

        unlinked = await client.delete(
            f"{LESSONS}/{lesson['id']}/payments/{payment.id}", headers=auth_header(user)
        )
        assert unlinked.status_code == 200
        assert Decimal(unlinked.json()["paid_amount"]) == Decimal("0")

    async def test_exhausted_payment_returns_amounts(
        self, client: AsyncClient, db: AsyncSession, user: User, student: Student
    ):
        first = (
            await client.post(LESSONS, headers=auth_header(user), json=lesson_payload(student))
        ).json()
        second = (
            await client.post(
                LESSONS,
                headers=auth_header(user),
                json=lesson_payload(student, date_time="2025-09-08T16:00:00Z"),
            )
        ).json()
        payment = await make_payment(db, student, "110.00")
        await client.put(
            f"{LESSONS}/{first['id']}/payments/{payment.id}", headers=auth_header(user)
        )

        response = await client.put(
            f"{LESSONS}/{second['id']}/payments/{payment.id}", headers=auth_header(user)
        )

        assert response.status_code == 400
        data = response.json()
        assert Decimal(data["total"]) == Decimal("110.00")
        assert Decimal(data["allocated"]) == Decimal("110.00")
        assert Decimal(data["available"]) == Decimal("0")

    async def test_mark_paid_then_unpaid(self, client: AsyncClient, user: User, student: Student):
        lesson = (
            await client.post(LESSONS, headers=auth_header(user), json=lesson_payload(student))
        ).json()
        url = f"{LESSONS}/{lesson['id']}/payment-status"

        paid = await client.put(url, headers=auth_header(user), json={"is_paid": True})
        assert paid.json()["is_paid"] is True
        assert Decimal(paid.json()["paid_amount"]) == Decimal("110.00")

        unpaid = await client.put(url, headers=auth_header(user), json={"is_paid": False})
        assert unpaid.json()["is_paid"] is False
        assert Decimal(unpaid.json()["paid_amount"]) == Decimal("0")


class TestDeleteLesson:
    """Tests for deleting lessons."""

    async def test_delete_reports_credit(
        self, client: AsyncClient, db: AsyncSession, user: User, student: Student
    ):
        lesson = (
            await client.post(LESSONS, headers=auth_header(user), json=lesson_payload(student))
        ).json()
        payment = await make_payment(db, student, "110.00")
        await client.put(
            f"{LESSONS}/{lesson['id']}/payments/{payment.id}", headers=auth_header(user)
        )

        response = await client.delete(f"{LESSONS}/{lesson['id']}", headers=auth_header(user))

        assert response.status_code == 200
        data = response.json()
        assert Decimal(data["cash_released"]) == Decimal("110.00")
        assert Decimal(data["credit_added"]) == Decimal("110.00")
        assert data["next_lesson_id"] is None

        missing = await client.get(f"{LESSONS}/{lesson['id']}", headers=auth_header(user))
        assert missing.status_code == 404

    async def test_recurring_future_endpoints(
        self, client: AsyncClient, user: User, student: Student
    ):
        created = (
            await client.post(
                LESSONS,
                headers=auth_header(user),
                json=lesson_payload(
                    student,
                    is_recurring=True,
                    recurring_frequency="weekly",
                    recurring_end_date="2025-09-30",
                ),
            )
        ).json()
        third = created["lessons"][2]["id"]

        updated = await client.patch(
            f"{LESSONS}/{third}/recurring-future",
            headers=auth_header(user),
            json={"subject": "Physics"},
        )
        assert updated.json() == {"affected": 3}

        deleted = await client.delete(
            f"{LESSONS}/{third}/recurring-future", headers=auth_header(user)
        )
        assert deleted.json() == {"affected": 3}

        listing = await client.get(LESSONS, headers=auth_header(user))
        assert listing.json()["total"] == 2
        assert {item["subject"] for item in listing.json()["items"]} == {"Math"}
