"""
Unit tests for validation helpers.

Tests verify:
- Strict (+254) versus permissive phone rules
- Email and website checks
- Age bracket parsing and matching
"""

from datetime import date

import pytest

from src.domain.validation import (
    calculate_age,
    format_phone_number,
    get_age_group,
    get_valid_age_groups,
    normalize_phone_number,
    parse_age_group,
    validate_age_for_age_group,
    validate_email,
    validate_email_strict,
    validate_email_with_details,
    validate_phone_number,
    validate_phone_permissive,
    validate_phone_strict,
    validate_phone_with_details,
    validate_website,
)


class TestPhoneValidation:
    """Tests for the phone number rules."""

    def test_strict_accepts_plus_254_and_nine_digits(self) -> None:
        """+254 followed by exactly 9 digits is accepted."""
        assert validate_phone_strict("+254712345678") is True

    @pytest.mark.parametrize(
        "phone", ["0712345678", "+25471234567", "+2547123456789", "+254 712345678", ""]
    )
    def test_strict_rejects_everything_else(self, phone: str) -> None:
        """Local format, wrong length and separators all fail the strict rule."""
        assert validate_phone_strict(phone) is False

    def test_permissive_strips_non_digits(self) -> None:
        """Separators are ignored; 7 to 15 digits pass."""
        assert validate_phone_permissive("(020) 123-4567") is True
        assert validate_phone_permissive("123456") is False
        assert validate_phone_permissive("1234567890123456") is False

    def test_permissive_accepts_local_and_international(self) -> None:
        """Both forms pass once non-digits are stripped."""
        assert validate_phone_permissive("+254712345678") is True
        assert validate_phone_permissive("0712345678") is True

    @pytest.mark.parametrize(
        "phone", ["0712345678", "0112345678", "+254712345678", "+1 234 567 8901", "071-234-5678"]
    )
    def test_phone_number_accepts_kenyan_and_international(self, phone: str) -> None:
        assert validate_phone_number(phone) is True

    def test_phone_number_rejects_blank(self) -> None:
        assert validate_phone_number("   ") is False

    def test_phone_with_details_reports_reason(self) -> None:
        """Missing and malformed numbers carry different messages."""
        assert validate_phone_with_details("").error_message == "Phone number is required"
        result = validate_phone_with_details("12345")
        assert result.is_valid is False
        assert "Invalid phone number format" in result.error_message

    def test_normalize_converts_local_prefix(self) -> None:
        assert normalize_phone_number("0712 345 678") == "+254712345678"
        assert normalize_phone_number("+254712345678") == "+254712345678"
        assert normalize_phone_number("") == ""

    def test_format_groups_digits(self) -> None:
        assert format_phone_number("+254712345678") == "+254 712 345 678"
        assert format_phone_number("+1 555 0100") == "+1 555 0100"


class TestEmailValidation:
    """Tests for email checks."""

    def test_simple_check_needs_at_and_dot(self) -> None:
        assert validate_email("user@example.com") is True
        assert validate_email("user@example") is False
        assert validate_email("user example@x.com") is False

    def test_strict_check_requires_tld(self) -> None:
        assert validate_email_strict("  user@example.co.ke ") is True
        assert validate_email_strict("user@example.c") is False

    def test_details_distinguish_missing_from_invalid(self) -> None:
        assert validate_email_with_details("").error_message == "Email is required"
        assert "valid email" in validate_email_with_details("nope").error_message
        assert validate_email_with_details("user@example.com").is_valid is True


class TestWebsiteValidation:
    def test_requires_scheme_and_dot(self) -> None:
        assert validate_website("https://www.example.com") is True
        assert validate_website("www.example.com") is False


class TestAgeGroups:
    """Tests for age bracket parsing and matching."""

    def test_calculate_age_before_birthday(self) -> None:
        """Age is one less until the birthday has passed."""
        assert calculate_age("2010-06-15", today=date(2024, 6, 14)) == 13
        assert calculate_age(date(2010, 6, 15), today=date(2024, 6, 15)) == 14

    @pytest.mark.parametrize(
        "label,bounds",
        [
            ("U12", (0, 12)),
            ("12-14", (12, 14)),
            ("Under 12", (0, 11)),
            ("51+", (51, 100)),
            ("Seniors", None),
        ],
    )
    def test_parse_age_group(self, label: str, bounds) -> None:
        assert parse_age_group(label) == bounds

    def test_age_within_u12_is_valid(self) -> None:
        """An 11-year-old fits U12."""
        assert validate_age_for_age_group(11, "U12").is_valid is True

    def test_age_outside_u10_is_invalid(self) -> None:
        """An 11-year-old does not fit U10."""
        result = validate_age_for_age_group(11, "U10")
        assert result.is_valid is False
        assert result.error_message == "Student age 11 does not match age group U10 (0-10 years)"

    def test_table_label_wins_over_parsing(self) -> None:
        """U13 in the bracket table means 12-13, not 0-13."""
        assert validate_age_for_age_group(9, "U13").is_valid is False

    def test_alternative_table(self) -> None:
        """The alternative table's "Under 12" bracket includes 12."""
        assert validate_age_for_age_group(12, "Under 12", use_alt_format=True).is_valid is True
        assert validate_age_for_age_group(12, "Under 12").is_valid is False

    def test_unknown_label(self) -> None:
        result = validate_age_for_age_group(20, "Veterans")
        assert result.is_valid is False
        assert result.error_message == "Invalid age group: Veterans"

    def test_get_age_group(self) -> None:
        assert get_age_group(16).label == "U17"
        assert get_age_group(101) is None

    def test_overlapping_alt_groups(self) -> None:
        """Age 12 sits in two alternative brackets."""
        labels = [g.label for g in get_valid_age_groups(12, use_alt_format=True)]
        assert labels == ["Under 12", "12-14"]
