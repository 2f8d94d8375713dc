"""API v1 router aggregating all route modules."""

from fastapi import APIRouter

from app.api.v1.routes import (
    lessons,
    packages,
    payments,
    purchases,
    reports,
    students,
)

api_router = APIRouter()

api_router.include_router(students.router)
api_router.include_router(lessons.router)
api_router.include_router(packages.router)
api_router.include_router(payments.router)
api_router.include_router(purchases.router)
api_router.include_router(reports.router)
