"""Test configuration and fixtures."""

from collections.abc import AsyncGenerator
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.core.config import settings
from app.core.database import Base, get_db
from app.models.lesson import Lesson
from app.models.package import Package
from app.models.payment import Payment, PaymentMethod
from app.models.student import Student
from app.models.user import User
from main import app

# In-memory SQLite by default so the suite needs no database server
test_engine = create_async_engine(
    settings.TEST_DATABASE_URL,
    echo=False,
    poolclass=StaticPool,  # One shared connection keeps the in-memory database alive
    connect_args={"check_same_thread": False},
)
test_session_maker = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


@event.listens_for(test_engine.sync_engine, "connect")
def _enable_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
    """Override database dependency for tests."""
    async with test_session_maker() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def setup_database() -> AsyncGenerator[None, None]:
    """Create test database tables before each test that needs it."""
    app.dependency_overrides[get_db] = override_get_db

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    app.dependency_overrides.pop(get_db, None)


@pytest_asyncio.fixture
async def db(setup_database: None) -> AsyncGenerator[AsyncSession, None]:
    """Get database session for tests."""
    async with test_session_maker() as session:
        yield session


@pytest_asyncio.fixture
async def client(setup_database: None) -> AsyncGenerator[AsyncClient, None]:
    """Get async HTTP client."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest_asyncio.fixture
async def user(db: AsyncSession) -> User:
    """Create a tutoring account for tests."""
    user = User(email="tutor@example.com", first_name="Tina", last_name="Tutor")
    db.add(user)
    await db.commit()
    await db.refresh(user)
    yield user


@pytest_asyncio.fixture
async def other_user(db: AsyncSession) -> User:
    """A second account whose data must stay invisible."""
    user = User(email="other@example.com", first_name="Otto", last_name="Other")
    db.add(user)
    await db.commit()
    await db.refresh(user)
    yield user


def auth_header(user: User) -> dict[str, str]:
    """Create the account header forwarded by the host application."""
    return {"X-User-ID": str(user.id)}


@pytest_asyncio.fixture
async def student(db: AsyncSession, user: User) -> Student:
    """Student billed $110 per hour."""
    student = Student(
        user_id=user.id,
        first_name="Sam",
        last_name="Student",
        price_per_lesson=Decimal("110.00"),
    )
    db.add(student)
    await db.commit()
    await db.refresh(student)
    yield student


async def make_package(
    db: AsyncSession,
    student: Student,
    *,
    total_hours: str = "10",
    hours_used: str = "0",
    price: str = "1000.00",
    purchased_at: datetime | None = None,
) -> Package:
    """Create a package directly, bypassing the sale flow."""
    package = Package(
        user_id=student.user_id,
        student_id=student.id,
        name="Test package",
        total_hours=Decimal(total_hours),
        hours_used=Decimal(hours_used),
        price=Decimal(price),
        purchased_at=purchased_at or datetime(2025, 1, 1, tzinfo=timezone.utc),
    )
    db.add(package)
    await db.commit()
    await db.refresh(package)
    return package


async def make_lesson(
    db: AsyncSession,
    student: Student,
    when: datetime,
    *,
    duration: int = 60,
    price: str = "110.00",
) -> Lesson:
    """Create an unpaid lesson without touching packages."""
    lesson = Lesson(
        user_id=student.user_id,
        student_id=student.id,
        date_time=when,
        duration=duration,
        subject="Math",
        price=Decimal(price),
        paid_amount=Decimal("0"),
        is_paid=False,
    )
    db.add(lesson)
    await db.commit()
    await db.refresh(lesson)
    return lesson


async def make_payment(
    db: AsyncSession,
    student: Student,
    amount: str,
    *,
    student_id=None,
    family_id=None,
) -> Payment:
    payment = Payment(
        user_id=student.user_id,
        student_id=student_id or student.id,
        family_id=family_id,
        amount=Decimal(amount),
        date=date(2025, 9, 1),
        method=PaymentMethod.CASH,
    )
    db.add(payment)
    await db.commit()
    await db.refresh(payment)
    return payment
