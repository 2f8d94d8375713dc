"""Tests for the payment allocation ledger."""

import uuid
from datetime import datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import InsufficientFundsError, NotFoundError
from app.models.payment import AllocationSource
from app.models.student import Student
from app.services import allocation
from tests.conftest import make_lesson, make_payment


def at(day: int, hour: int = 16) -> datetime:
    return datetime(2025, 9, day, hour, 0, tzinfo=timezone.utc)


class TestLinkPayment:
    """Tests for applying one payment to one lesson."""

    async def test_two_payments_cap_at_price(self, db: AsyncSession, student: Student):
        """$100 then $50 on a $110 lesson: paid 110, second payment keeps $40."""
        lesson = await make_lesson(db, student, at(1))
        first = await make_payment(db, student, "100.00")
        second = await make_payment(db, student, "50.00")

        await allocation.link_payment(db, lesson, first)
        assert lesson.paid_amount == Decimal("100.00")
        assert lesson.is_paid is False

        await allocation.link_payment(db, lesson, second)
        assert lesson.paid_amount == Decimal("110.00")
        assert lesson.is_paid is True
        assert await allocation.payment_available(db, second) == Decimal("40.00")

    async def test_relink_replaces_slice(self, db: AsyncSession, student: Student):
        lesson = await make_lesson(db, student, at(1))
        payment = await make_payment(db, student, "60.00")

        await allocation.link_payment(db, lesson, payment)
        await allocation.link_payment(db, lesson, payment)

        rows = await allocation.get_lesson_allocations(db, lesson.id)
        assert len(rows) == 1
        assert rows[0].amount == Decimal("60.00")
        assert lesson.paid_amount == Decimal("60.00")

    async def test_exhausted_payment_reports_amounts(self, db: AsyncSession, student: Student):
        first = await make_lesson(db, student, at(1))
        second = await make_lesson(db, student, at(8))
        payment = await make_payment(db, student, "110.00")
        await allocation.link_payment(db, first, payment)

        with pytest.raises(InsufficientFundsError) as exc_info:
            await allocation.link_payment(db, second, payment)

        assert exc_info.value.total == Decimal("110.00")
        assert exc_info.value.allocated == Decimal("110.00")
        assert exc_info.value.available == Decimal("0.00")
        assert second.paid_amount == Decimal("0")

    async def test_fully_paid_lesson_refuses_more(self, db: AsyncSession, student: Student):
        lesson = await make_lesson(db, student, at(1))
        await allocation.link_payment(db, lesson, await make_payment(db, student, "110.00"))

        with pytest.raises(InsufficientFundsError):
            await allocation.link_payment(db, lesson, await make_payment(db, student, "20.00"))

    async def test_payment_never_over_allocated(self, db: AsyncSession, student: Student):
        payment = await make_payment(db, student, "150.00")
        lessons = [await make_lesson(db, student, at(day)) for day in (1, 8)]

        for lesson in lessons:
            await allocation.link_payment(db, lesson, payment)

        assert await allocation.allocated_total(db, payment.id) == Decimal("150.00")
        assert [lesson.paid_amount for lesson in lessons] == [
            Decimal("110.00"),
            Decimal("40.00"),
        ]


class TestFundingPayment:
    """Tests for finding a payment that may fund a lesson."""

    async def test_family_payment_is_accepted(self, db: AsyncSession, student: Student):
        family_id = uuid.uuid4()
        student.family_id = family_id
        sibling = Student(
            user_id=student.user_id,
            first_name="Sib",
            last_name="Student",
            price_per_lesson=Decimal("80.00"),
            family_id=family_id,
        )
        db.add(sibling)
        await db.commit()

        lesson = await make_lesson(db, student, at(1))
        payment = await make_payment(db, sibling, "50.00", family_id=family_id)

        found = await allocation.get_funding_payment(db, lesson, payment.id)
        assert found.id == payment.id

    async def test_unrelated_payment_is_rejected(self, db: AsyncSession, student: Student):
        stranger = Student(
            user_id=student.user_id,
            first_name="Stranger",
            last_name="Danger",
            price_per_lesson=Decimal("80.00"),
        )
        db.add(stranger)
        await db.commit()
        lesson = await make_lesson(db, student, at(1))
        payment = await make_payment(db, stranger, "50.00")

        with pytest.raises(NotFoundError):
            await allocation.get_funding_payment(db, lesson, payment.id)


class TestUnlinkAndMarkPaid:
    """Tests for unlinking and the manual override."""

    async def test_unlink_recomputes(self, db: AsyncSession, student: Student):
        lesson = await make_lesson(db, student, at(1))
        first = await make_payment(db, student, "100.00")
        second = await make_payment(db, student, "50.00")
        await allocation.link_payment(db, lesson, first)
        await allocation.link_payment(db, lesson, second)

        await allocation.unlink_payment(db, lesson, first.id)

        assert lesson.paid_amount == Decimal("10.00")
        assert lesson.is_paid is False
        assert await allocation.payment_available(db, first) == Decimal("100.00")

    async def test_unlink_unknown_pair(self, db: AsyncSession, student: Student):
        lesson = await make_lesson(db, student, at(1))
        with pytest.raises(NotFoundError):
            await allocation.unlink_payment(db, lesson, uuid.uuid4())

    async def test_mark_paid_adds_manual_row(self, db: AsyncSession, student: Student):
        lesson = await make_lesson(db, student, at(1))
        await allocation.link_payment(db, lesson, await make_payment(db, student, "30.00"))

        await allocation.mark_paid(db, lesson)

        rows = await allocation.get_lesson_allocations(db, lesson.id)
        manual = [row for row in rows if row.source == AllocationSource.MANUAL]
        assert lesson.is_paid is True
        assert manual[0].amount == Decimal("80.00")
        assert sum(row.amount for row in rows) == lesson.paid_amount


class TestApplyPayment:
    """Tests for spreading a payment over unpaid lessons."""

    async def test_oldest_first_with_remainder(self, db: AsyncSession, student: Student):
        newer = await make_lesson(db, student, at(8))
        older = await make_lesson(db, student, at(1))
        payment = await make_payment(db, student, "250.00")

        summary = await allocation.apply_payment_to_lessons(db, payment, student.id)

        assert summary["lessons_paid"] == 2
        assert summary["amount_applied"] == Decimal("220.00")
        assert summary["amount_remaining"] == Decimal("30.00")
        assert older.is_paid and newer.is_paid

    async def test_release_payment(self, db: AsyncSession, student: Student):
        lesson = await make_lesson(db, student, at(1))
        payment = await make_payment(db, student, "110.00")
        await allocation.apply_payment_to_lessons(db, payment, student.id)

        affected = await allocation.release_payment(db, payment)

        assert affected == 1
        assert lesson.paid_amount == Decimal("0.00")
        assert lesson.is_paid is False


class TestApplyCredit:
    """Tests for spending a student's credit balance."""

    async def test_credit_pays_oldest_first(self, db: AsyncSession, student: Student):
        """Test $150 of credit pays the older lesson and $40 of the newer one."""
        newer = await make_lesson(db, student, at(8))
        older = await make_lesson(db, student, at(1))
        student.credit = Decimal("150.00")
        await db.commit()

        spent = await allocation.apply_credit(db, student.user_id, student.id)

        await db.refresh(student)
        assert spent == Decimal("150.00")
        assert student.credit == Decimal("0.00")
        assert older.is_paid is True
        assert newer.paid_amount == Decimal("40.00")
        rows = await allocation.get_lesson_allocations(db, newer.id)
        assert [row.source for row in rows] == [AllocationSource.CREDIT]

    async def test_leftover_credit_is_kept(self, db: AsyncSession, student: Student):
        lesson = await make_lesson(db, student, at(1))
        student.credit = Decimal("200.00")
        await db.commit()

        spent = await allocation.apply_credit(db, student.user_id, student.id)

        await db.refresh(student)
        assert spent == Decimal("110.00")
        assert student.credit == Decimal("90.00")
        assert lesson.is_paid is True

    async def test_no_credit_spends_nothing(self, db: AsyncSession, student: Student):
        lesson = await make_lesson(db, student, at(1))

        assert await allocation.apply_credit(db, student.user_id, student.id) == Decimal("0")
        assert lesson.paid_amount == Decimal("0")

    async def test_cleared_credit_returns_to_balance(self, db: AsyncSession, student: Student):
        """Test clearing a lesson puts the credit it used back on the student."""
        lesson = await make_lesson(db, student, at(1))
        student.credit = Decimal("110.00")
        await db.commit()
        await allocation.apply_credit(db, student.user_id, student.id)

        await allocation.clear_allocations(db, lesson)
        await allocation.refresh_paid_amount(db, lesson)

        await db.refresh(student)
        assert student.credit == Decimal("110.00")
        assert lesson.is_paid is False

    async def test_trimmed_credit_returns_to_balance(self, db: AsyncSession, student: Student):
        lesson = await make_lesson(db, student, at(1))
        student.credit = Decimal("110.00")
        await db.commit()
        await allocation.apply_credit(db, student.user_id, student.id)

        lesson.price = Decimal("80.00")
        await allocation.cap_allocations(db, lesson, Decimal("80.00"))
        await allocation.refresh_paid_amount(db, lesson)

        await db.refresh(student)
        assert student.credit == Decimal("30.00")
        assert lesson.paid_amount == Decimal("80.00")
