# Database models

from app.models.user import User
from app.models.student import Student
from app.models.lesson import Lesson, LessonStatus, RecurrenceFrequency
from app.models.package import Package
from app.models.payment import AllocationSource, LessonPayment, Payment, PaymentMethod
from app.models.purchase import Purchase

__all__ = [
    "User",
    "Student",
    "Lesson",
    "LessonStatus",
    "RecurrenceFrequency",
    "Package",
    "AllocationSource",
    "LessonPayment",
    "Payment",
    "PaymentMethod",
    "Purchase",
]
