"""Custom validators and types."""

import re
from decimal import Decimal
from typing import Annotated

from pydantic import AfterValidator, Field

from app.core.money import to_money

# Optional leading +, then 7 to 15 digits (E.164 length)
PHONE_PATTERN = re.compile(r"^\+?[0-9]{7,15}$")


def validate_phone_number(value: str) -> str:
    """
    Validate and normalize a phone number.

    Accepts formats:
    - +15551234567
    - +1 555 123 4567
    - (555) 123-4567

    Returns the digits with an optional leading ``+``: +15551234567
    """
    normalized = re.sub(r"[\s\-\(\)\.]", "", value)

    if not PHONE_PATTERN.match(normalized):
        raise ValueError("Invalid phone number. Use 7 to 15 digits, optionally starting with +")

    return normalized


def validate_money(value: Decimal) -> Decimal:
    """Reject sub-cent precision instead of silently rounding it away."""
    if to_money(value) != value:
        raise ValueError("Amounts are limited to whole cents")
    return to_money(value)


# Annotated type for phone number validation
PhoneNumber = Annotated[
    str,
    Field(min_length=7, max_length=25),
    AfterValidator(validate_phone_number),
]

Money = Annotated[Decimal, AfterValidator(validate_money)]
