"""Report schemas."""

from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field


class ReportPeriod(BaseModel):
    month: int
    year: int


class MonthlySummary(BaseModel):
    """Totals for one calendar month."""

    total_lessons: int
    completed_lessons: int
    cancelled_lessons: int
    total_revenue: Decimal = Field(description="Payments received in the month")
    total_earned: Decimal = Field(description="Price of lessons completed in the month")
    outstanding_balance: Decimal = Field(description="Earned minus received")


class StudentMonthlyTotals(BaseModel):
    """One student's activity in the month."""

    id: UUID
    name: str
    lessons: int
    revenue: Decimal


class MonthlyReport(BaseModel):
    """Lessons and payments of one month."""

    period: ReportPeriod
    summary: MonthlySummary
    students: list[StudentMonthlyTotals]
