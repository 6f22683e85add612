"""
Locale-aware number formatting and parsing.

Patterns follow the familiar ICU subset used by questionnaire inputs:
    "####"      integer, no fraction
    "###.0#"    at least one, at most two fraction digits

Only the fraction part of the pattern influences formatting. Parsing is
lenient about digit counts; range checking belongs to the answer model.
"""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_EVEN
from typing import Dict, Tuple


class NumberFormatError(ValueError):
    """Raised when text cannot be parsed as a number."""
    pass


# language -> (decimal separator, grouping separator)
_SYMBOLS: Dict[str, Tuple[str, str]] = {
    "en": (".", ","),
    "de": (",", "."),
    "es": (",", "."),
    "it": (",", "."),
    "nl": (",", "."),
    "pt": (",", "."),
    "fr": (",", " "),
}

_NUMBER_RE = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)$")


class NumberFormat:
    """Format/parse numbers per pattern and locale."""

    def __init__(self, pattern: str, locale: str = "en-US"):
        self.pattern = pattern
        self.locale = locale
        language = locale.replace("_", "-").split("-")[0].lower()
        self.decimal_separator, self.grouping_separator = _SYMBOLS.get(language, _SYMBOLS["en"])

        fraction = pattern.split(".", 1)[1] if "." in pattern else ""
        self.max_fraction_digits = len(fraction)
        self.min_fraction_digits = fraction.count("0")

    def parse(self, text: str) -> Decimal:
        """Parse text into a Decimal, raising NumberFormatError when unparsable."""
        if text is None:
            raise NumberFormatError("cannot parse None")
        cleaned = text.strip()
        for sep in {self.grouping_separator, " ", " ", " "}:
            if sep != self.decimal_separator:
                cleaned = cleaned.replace(sep, "")
        if self.decimal_separator != ".":
            if "." in cleaned:
                raise NumberFormatError(f"unexpected '.' in {text!r}")
            cleaned = cleaned.replace(self.decimal_separator, ".")
        if not _NUMBER_RE.match(cleaned):
            raise NumberFormatError(f"not a number: {text!r}")
        try:
            return Decimal(cleaned)
        except InvalidOperation as e:
            raise NumberFormatError(f"not a number: {text!r}") from e

    def format(self, value: Decimal) -> str:
        """Render a number with the pattern's fraction digits and locale separator."""
        number = value if isinstance(value, Decimal) else Decimal(str(value))
        quantum = Decimal(1).scaleb(-self.max_fraction_digits)
        try:
            rounded = number.quantize(quantum, rounding=ROUND_HALF_EVEN)
        except InvalidOperation:
            # Beyond decimal context precision (e.g. the float max bound)
            rounded = number.to_integral_value()
        text = format(rounded, "f")
        if "." in text:
            integer, fraction = text.split(".")
            fraction = fraction.rstrip("0")
            if len(fraction) < self.min_fraction_digits:
                fraction = fraction.ljust(self.min_fraction_digits, "0")
            text = f"{integer}{self.decimal_separator}{fraction}" if fraction else integer
        if text in ("-0", f"-0{self.decimal_separator}0"):
            text = text[1:]
        return text


__all__ = ["NumberFormat", "NumberFormatError"]
