"""Domain exceptions raised by the service layer."""

from decimal import Decimal


class DomainError(Exception):
    """Base class for errors a caller can recover from."""

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class NotFoundError(DomainError):
    """Entity is absent or owned by another account."""

    pass


class ValidationError(DomainError):
    """Request is inconsistent (missing end date, bad duration, ...)."""

    pass


class ConflictError(DomainError):
    """Operation would break a paid-amount or package-hours invariant."""

    pass


class InsufficientFundsError(DomainError):
    """Payment has nothing left to allocate to this lesson."""

    def __init__(self, total: Decimal, allocated: Decimal, available: Decimal) -> None:
        super().__init__(
            f"Payment has no remaining amount to apply "
            f"(total {total}, allocated {allocated}, available {available})"
        )
        self.total = total
        self.allocated = allocated
        self.available = available
