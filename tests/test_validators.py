"""Tests for custom validators."""

from decimal import Decimal

import pytest

from app.schemas.validators import validate_money, validate_phone_number


class TestPhoneValidator:
    """Tests for phone number validation."""

    def test_valid_phone_formats(self):
        """Test various valid phone formats."""
        assert validate_phone_number("+15551234567") == "+15551234567"
        assert validate_phone_number("+1 555 123 4567") == "+15551234567"
        assert validate_phone_number("(555) 123-4567") == "5551234567"
        assert validate_phone_number("555.123.4567") == "5551234567"

    def test_invalid_phone_formats(self):
        """Test invalid phone formats raise errors."""
        with pytest.raises(ValueError):
            validate_phone_number("12345")  # Too short

        with pytest.raises(ValueError):
            validate_phone_number("+1234567890123456")  # Too long

        with pytest.raises(ValueError):
            validate_phone_number("phone")


class TestMoneyValidator:
    def test_whole_cents_pass(self):
        assert validate_money(Decimal("110")) == Decimal("110.00")
        assert validate_money(Decimal("0.5")) == Decimal("0.50")

    def test_sub_cent_rejected(self):
        with pytest.raises(ValueError):
            validate_money(Decimal("10.005"))
