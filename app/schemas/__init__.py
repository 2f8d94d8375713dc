"""Pydantic schemas."""

from app.schemas.lesson import (
    AllocationResponse,
    LessonCreate,
    LessonDeleteResponse,
    LessonDetailResponse,
    LessonResponse,
    LessonUpdate,
)
from app.schemas.package import PackageCreate, PackageResponse
from app.schemas.payment import PaymentCreate, PaymentDetailResponse, PaymentResponse
from app.schemas.purchase import PurchaseCreate, PurchaseResponse, PurchaseUpdate
from app.schemas.student import StudentCreate, StudentResponse, StudentUpdate

__all__ = [
    # Student
    "StudentCreate",
    "StudentUpdate",
    "StudentResponse",
    # Lesson
    "LessonCreate",
    "LessonUpdate",
    "LessonResponse",
    "LessonDetailResponse",
    "LessonDeleteResponse",
    "AllocationResponse",
    # Package
    "PackageCreate",
    "PackageResponse",
    # Payment
    "PaymentCreate",
    "PaymentResponse",
    "PaymentDetailResponse",
    # Purchase
    "PurchaseCreate",
    "PurchaseUpdate",
    "PurchaseResponse",
]
