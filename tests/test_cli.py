"""Tests for management commands."""

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from app import cli
from app.models.student import Student
from app.services import allocation
from tests.conftest import make_lesson, make_payment, test_session_maker


class TestRecalculatePaidAmounts:
    """Tests for repairing stored paid amounts."""

    async def test_fixes_drifted_lesson(self, db: AsyncSession, student: Student):
        lesson = await make_lesson(db, student, datetime(2025, 9, 1, 16, tzinfo=timezone.utc))
        await allocation.link_payment(db, lesson, await make_payment(db, student, "60.00"))
        lesson.paid_amount = Decimal("110.00")
        lesson.is_paid = True
        await db.commit()

        fixed = await cli.recalculate_paid_amounts(test_session_maker)

        await db.refresh(lesson)
        assert fixed == 1
        assert lesson.paid_amount == Decimal("60.00")
        assert lesson.is_paid is False

    async def test_consistent_ledger_is_untouched(self, db: AsyncSession, student: Student):
        await make_lesson(db, student, datetime(2025, 9, 1, 16, tzinfo=timezone.utc))

        assert await cli.recalculate_paid_amounts(test_session_maker) == 0

    async def test_empty_database(self, db: AsyncSession):
        """Test the command runs against freshly created tables."""
        assert await cli.recalculate_paid_amounts(test_session_maker) == 0
