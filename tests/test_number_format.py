"""
Tests for locale-aware number parsing and formatting.
"""

from decimal import Decimal

import pytest
from hypothesis import given, strategies as st

from qrm.number_format import NumberFormat, NumberFormatError


class TestParse:
    """Test NumberFormat.parse."""

    def test_plain_numbers(self):
        fmt = NumberFormat("###.0#")
        assert fmt.parse("12") == Decimal("12")
        assert fmt.parse(" 3.25 ") == Decimal("3.25")
        assert fmt.parse("-1.5") == Decimal("-1.5")
        assert fmt.parse(".5") == Decimal("0.5")

    def test_grouping_separator_is_ignored(self):
        assert NumberFormat("#######").parse("1,234,567") == Decimal("1234567")

    def test_german_decimal_comma(self):
        fmt = NumberFormat("###.0#", "de-DE")
        assert fmt.parse("3,5") == Decimal("3.5")
        assert fmt.parse("1.234,5") == Decimal("1234.5")

    def test_french_rejects_point_decimal(self):
        """A '.' is neither separator in French and is rejected."""
        fmt = NumberFormat("###.0#", "fr-FR")
        with pytest.raises(NumberFormatError):
            fmt.parse("3.5")

    @pytest.mark.parametrize("text", ["", "abc", "1.2.3", "--1", "1e5", "NaN"])
    def test_garbage(self, text):
        with pytest.raises(NumberFormatError):
            NumberFormat("###.0#").parse(text)


class TestFormat:
    """Test NumberFormat.format."""

    def test_integer_pattern(self):
        assert NumberFormat("###").format(Decimal("42")) == "42"

    def test_fraction_digits(self):
        fmt = NumberFormat("###.0#")
        assert fmt.format(Decimal("10")) == "10.0"
        assert fmt.format(Decimal("2.5")) == "2.5"
        assert fmt.format(Decimal("2.555")) == "2.56"

    def test_locale_separator(self):
        assert NumberFormat("###.0#", "de").format(Decimal("2.5")) == "2,5"

    def test_no_negative_zero(self):
        assert NumberFormat("###").format(Decimal("-0.2")) == "0"

    def test_huge_bound_does_not_overflow(self):
        """The decimal type maximum exceeds the decimal context precision."""
        text = NumberFormat("############.0#").format(Decimal("1.7976931348623157E+308"))
        assert text.startswith("17976931348623157")

    @given(st.integers(min_value=-10**9, max_value=10**9))
    def test_integers_round_trip(self, n):
        fmt = NumberFormat("############")
        assert fmt.parse(fmt.format(Decimal(n))) == Decimal(n)
