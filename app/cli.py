"""CLI commands for management tasks."""

import asyncio
import logging
import sys

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.core.database import Base, async_session_maker, engine
from app.core.logging import setup_logging
from app.models.lesson import Lesson
from app.models.user import User
from app.services import allocation

logger = logging.getLogger(__name__)


async def init_db() -> None:
    """Create every table that does not exist yet."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    print("✓ Tables created")


async def create_user(email: str, first_name: str, last_name: str) -> None:
    """Create a tutoring-business account."""
    async with async_session_maker() as db:
        result = await db.execute(select(User).where(User.email == email))
        if result.scalar_one_or_none():
            print(f"Error: Email {email} is already registered!")
            sys.exit(1)

        user = User(email=email, first_name=first_name, last_name=last_name)
        db.add(user)
        await db.commit()
        await db.refresh(user)

        print("✓ User created successfully!")
        print(f"  ID: {user.id}")
        print(f"  Name: {user.full_name}")
        print(f"  Email: {user.email}")


async def recalculate_paid_amounts(
    session_maker: async_sessionmaker = async_session_maker,
) -> int:
    """
    Recompute every lesson's paid amount from its allocation rows.

    Returns the number of lessons whose stored values were wrong.
    """
    fixed = 0
    async with session_maker() as db:
        result = await db.execute(select(Lesson).order_by(Lesson.date_time))
        for lesson in result.scalars().all():
            before = (lesson.paid_amount, lesson.is_paid)
            await allocation.refresh_paid_amount(db, lesson)
            if (lesson.paid_amount, lesson.is_paid) != before:
                fixed += 1
                logger.warning(
                    "Corrected lesson paid amount",
                    extra={
                        "lesson_id": str(lesson.id),
                        "old": str(before[0]),
                        "new": str(lesson.paid_amount),
                    },
                )
        await db.commit()

    print(f"✓ Checked lessons, fixed {fixed}")
    return fixed


def main() -> None:
    """CLI entry point."""
    setup_logging()

    if len(sys.argv) < 2:
        print("Usage: python -m app.cli <command>")
        print("Commands:")
        print("  init-db")
        print("  create-user <email> <first_name> <last_name>")
        print("  recalculate-paid-amounts")
        sys.exit(1)

    command = sys.argv[1]

    if command == "init-db":
        asyncio.run(init_db())
    elif command == "create-user":
        if len(sys.argv) != 5:
            print("Usage: python -m app.cli create-user <email> <first_name> <last_name>")
            sys.exit(1)

        _, _, email, first_name, last_name = sys.argv
        asyncio.run(create_user(email, first_name, last_name))
    elif command == "recalculate-paid-amounts":
        asyncio.run(recalculate_paid_amounts())
    else:
        print(f"Unknown command: {command}")
        sys.exit(1)


if __name__ == "__main__":
    main()
