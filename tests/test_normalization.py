"""Tests for identity normalization and name similarity."""

import pytest

from contactcore.normalization import (
    normalize_email,
    normalize_name,
    normalize_phone,
    sanitize_phone,
    similar_text,
    similar_text_percent,
)


class TestNormalizePhone:
    """Test phone identity normalization."""

    @pytest.mark.parametrize("raw,expected", [
        ("+1 (555) 123-4567", "+15551234567"),
        ("15551234567", "15551234567"),
        ("  +44 20 7946 0000 ", "+442079460000"),
        ("555.123.4567 ext", "5551234567"),
        ("", ""),
        (None, ""),
    ])
    def test_normalize_phone(self, raw, expected):
        assert normalize_phone(raw) == expected

    def test_plus_prefix_changes_identity(self):
        """A leading plus is part of the number's identity."""
        assert normalize_phone("+1 (555) 123-4567") != normalize_phone("15551234567")

    def test_formatting_does_not_change_identity(self):
        assert normalize_phone("+1 555 123 4567") == normalize_phone("+15551234567")

    @pytest.mark.parametrize("raw", ["+1 (555) 123-4567", "555-1111", "+", "abc", " 0044 1 "])
    def test_idempotent(self, raw):
        once = normalize_phone(raw)
        assert normalize_phone(once) == once


class TestSanitizePhone:
    """Test display sanitizing of phone values."""

    def test_keeps_separators(self):
        assert sanitize_phone("+1 (555) 123-4567") == "+1 (555) 123-4567"

    def test_strips_other_characters(self):
        assert sanitize_phone("tel.555/123#4567x") == "5551234567"

    def test_none(self):
        assert sanitize_phone(None) == ""


class TestNormalizeName:
    """Test name identity normalization."""

    def test_lowercase_trim_collapse(self):
        assert normalize_name("  Jane \t  DOE ") == "jane doe"

    def test_honorifics_are_kept(self):
        assert normalize_name("Mrs Adegboyega") != normalize_name("Mr Adegboyega")

    @pytest.mark.parametrize("raw", ["Jane  Doe", " MR   X ", "", "a\nb"])
    def test_idempotent(self, raw):
        once = normalize_name(raw)
        assert normalize_name(once) == once


class TestNormalizeEmail:
    """Test email normalization."""

    def test_trim_and_lowercase(self):
        assert normalize_email("  Jane.Doe@Example.COM ") == "jane.doe@example.com"

    def test_idempotent(self):
        once = normalize_email(" A@B.C ")
        assert normalize_email(once) == once

    def test_empty(self):
        assert normalize_email(None) == ""


class TestSimilarText:
    """Test the recursive longest-common-substring similarity."""

    def test_identical(self):
        assert similar_text("jane", "jane") == 4
        assert similar_text_percent("jane", "jane") == 100

    def test_recurses_into_remainders(self):
        # "Wor" then "d" on the right side
        assert similar_text("World", "Word") == 4

    def test_single_character_matches(self):
        assert similar_text("Hello", "World") == 2

    def test_no_overlap(self):
        assert similar_text("abc", "xyz") == 0
        assert similar_text_percent("abc", "xyz") == 0

    def test_percent_rounds_half_up(self):
        # 7 shared characters over 16 total: 87.5
        assert similar_text_percent("jane doe", "jane doh") == 88

    def test_empty_strings(self):
        assert similar_text("", "abc") == 0
        assert similar_text_percent("", "") == 0
