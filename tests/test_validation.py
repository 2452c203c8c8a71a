"""Tests for shared validators and normalizers."""

from datetime import date

import pytest

from practice_dashboard.validation import (
    calculate_age,
    clean_npi,
    format_phone,
    is_blank,
    is_valid_date,
    is_valid_email,
    is_valid_npi,
    is_valid_phone,
    is_valid_ssn,
    normalize_date,
    normalize_phone,
    normalize_state,
    sanitize_string,
    split_list,
)


class TestFormatValidators:
    """Tests for the regex validators."""

    def test_email(self):
        assert is_valid_email("patient@example.com")
        assert not is_valid_email("not-an-email")
        assert not is_valid_email("two words@example.com")
        assert not is_valid_email("")

    def test_phone(self):
        assert is_valid_phone("(555) 123-4567")
        assert is_valid_phone("+1 555 123 4567")
        assert not is_valid_phone("abc")
        assert not is_valid_phone("")

    def test_ssn(self):
        assert is_valid_ssn("123-45-6789")
        assert not is_valid_ssn("123456789")

    def test_date(self):
        assert is_valid_date("2024-02-29")
        assert not is_valid_date("2023-02-29")
        assert not is_valid_date("01/15/1990")

    def test_npi_strips_non_digits(self):
        assert clean_npi("123-456-7893") == "1234567893"
        assert is_valid_npi("123 456 7893")
        assert not is_valid_npi("12345")


class TestIsBlank:
    """Tests for required-field blank detection."""

    @pytest.mark.parametrize("value", [None, "", "   ", "\t\n", []])
    def test_blank_values(self, value):
        assert is_blank(value)

    @pytest.mark.parametrize("value", ["x", " a ", 0, ["item"]])
    def test_non_blank_values(self, value):
        assert not is_blank(value)


class TestCalculateAge:
    """Tests for whole-year age calculation."""

    def test_before_birthday(self):
        assert calculate_age("1990-01-15", date(2024, 1, 14)) == 33

    def test_on_birthday(self):
        assert calculate_age("1990-01-15", date(2024, 1, 15)) == 34

    def test_future_date_of_birth_is_zero(self):
        assert calculate_age("2030-06-01", date(2024, 1, 1)) == 0

    def test_invalid_or_missing_is_zero(self):
        assert calculate_age("", date(2024, 1, 1)) == 0
        assert calculate_age(None, date(2024, 1, 1)) == 0
        assert calculate_age("not a date", date(2024, 1, 1)) == 0

    def test_leap_day_birthday(self):
        assert calculate_age("2000-02-29", date(2023, 2, 28)) == 22
        assert calculate_age("2000-02-29", date(2023, 3, 1)) == 23


class TestNormalizers:
    """Tests for normalizers used by imports and forms."""

    def test_normalize_date(self):
        assert normalize_date("03/15/1985") == "1985-03-15"
        assert normalize_date("3-5-1985") == "1985-03-05"
        assert normalize_date("1985-03-15") == "1985-03-15"
        assert normalize_date("") is None

    def test_normalize_phone(self):
        assert normalize_phone("(555) 123-4567") == "5551234567"
        assert normalize_phone("+1 555 123 4567") == "5551234567"
        assert normalize_phone("abc") is None

    def test_format_phone(self):
        assert format_phone("5551234567") == "(555) 123-4567"
        assert format_phone("12345") == "12345"

    def test_normalize_state(self):
        assert normalize_state("california") == "CA"
        assert normalize_state(" ny ") == "NY"
        assert normalize_state("District of Columbia") == "DC"
        assert normalize_state(None) is None

    def test_split_list(self):
        assert split_list("Penicillin, Peanuts ,, Latex") == ["Penicillin", "Peanuts", "Latex"]
        assert split_list("") == []

    def test_sanitize_string(self):
        assert sanitize_string('<script>alert(1)</script>') == "scriptalert(1)/script"
        assert sanitize_string("javascript:doThing()") == "doThing()"
        assert sanitize_string('img onerror=boom') == "img boom"
