"""Report API routes."""

from fastapi import APIRouter, Query

from app.core.deps import CurrentUser, DbSession
from app.schemas.report import MonthlyReport
from app.services import report as report_service

router = APIRouter(prefix="/reports", tags=["Reports"])


@router.get("/monthly", response_model=MonthlyReport)
async def get_monthly_report(
    db: DbSession,
    current_user: CurrentUser,
    month: int = Query(..., ge=1, le=12, description="Calendar month"),
    year: int = Query(..., ge=2000, le=2100, description="Calendar year"),
) -> MonthlyReport:
    """
    Get the account's activity for one month.

    Returns lesson counts, money received against money earned, and
    per-student lesson and payment totals.
    """
    report = await report_service.get_monthly_report(db, current_user.id, year, month)
    return MonthlyReport(**report)
