"""
Localized diagnostic and display strings.

The engine never hard-codes user-facing text. It asks a DiagnosticMessages
instance, which callers may subclass or replace. The bundled implementation
ships English and German tables and falls back to English.
"""

from __future__ import annotations

from typing import Dict


_MESSAGES: Dict[str, Dict[str, str]] = {
    "en": {
        "validator_nan": "Enter a number.",
        "validator_max_value": "Enter a number up to {value}.",
        "validator_min_value": "Enter a number {value}, or higher.",
        "validator_date": "Enter a valid date.",
        "validator_date_time": "Enter a valid date and time.",
        "validator_time": "Enter a valid time.",
        "validator_url": "Enter a valid URL.",
        "validator_max_length": "Enter up to {value} characters.",
        "validator_min_length": "Enter at least {value} characters.",
        "validator_regex": "Enter a value in the expected format.",
        "yes": "Yes",
        "no": "No",
        "not_answered": "-",
        "total_score": "Total score",
    },
    "de": {
        "validator_nan": "Geben Sie eine Zahl ein.",
        "validator_max_value": "Geben Sie eine Zahl bis {value} ein.",
        "validator_min_value": "Geben Sie eine Zahl ab {value} ein.",
        "validator_date": "Geben Sie ein gültiges Datum ein.",
        "validator_date_time": "Geben Sie ein gültiges Datum mit Uhrzeit ein.",
        "validator_time": "Geben Sie eine gültige Uhrzeit ein.",
        "validator_url": "Geben Sie eine gültige URL ein.",
        "validator_max_length": "Geben Sie bis zu {value} Zeichen ein.",
        "validator_min_length": "Geben Sie mindestens {value} Zeichen ein.",
        "validator_regex": "Geben Sie einen Wert im erwarteten Format ein.",
        "yes": "Ja",
        "no": "Nein",
        "not_answered": "-",
        "total_score": "Gesamtpunktzahl",
    },
}


class DiagnosticMessages:
    """Message lookup for one locale."""

    def __init__(self, locale: str = "en-US"):
        self.locale = locale
        language = locale.replace("_", "-").split("-")[0].lower()
        self._table = _MESSAGES.get(language, _MESSAGES["en"])

    def lookup(self, key: str, **params: object) -> str:
        template = self._table.get(key) or _MESSAGES["en"][key]
        return template.format(**params) if params else template

    def validator_nan(self) -> str:
        return self.lookup("validator_nan")

    def validator_max_value(self, value: str) -> str:
        return self.lookup("validator_max_value", value=value)

    def validator_min_value(self, value: str) -> str:
        return self.lookup("validator_min_value", value=value)


__all__ = ["DiagnosticMessages"]
