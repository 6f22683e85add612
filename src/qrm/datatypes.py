"""
Immutable FHIR value types used across QRM.

Only the handful of FHIR R4 datatypes the engine actually touches are
modelled here:
    - Extension (url + exactly one typed value)
    - Coding (system, code, display, userSelected, extensions)
    - Quantity (value, unit, system, code, extensions)

ARCHITECTURAL RULE:
    These objects are frozen.
    Updates derive a new instance via `dataclasses.replace`.
    Observers therefore only ever see complete values.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, Optional, Tuple


def json_number(value: Decimal) -> Any:
    if value == value.to_integral_value():
        return int(value)
    return float(value)


def to_decimal(value: Any) -> Optional[Decimal]:
    """
    Convert a JSON number (or numeric string) into a Decimal.

    Booleans are rejected even though Python treats them as ints.
    Returns None when the value cannot be interpreted.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value
    try:
        # str() first so that 0.1 stays 0.1 instead of its binary expansion
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    if not result.is_finite():
        return None
    return result


@dataclass(frozen=True)
class Extension:
    """
    A FHIR extension carrying exactly one typed value.

    Properties:
        url: Extension identifier
        value_type: FHIR value[x] suffix, e.g. "Decimal", "Coding", "Boolean"
        value: The value itself (Coding for value_type "Coding")
    """

    url: str
    value_type: str
    value: Any

    def to_dict(self) -> Dict[str, Any]:
        value = self.value
        if isinstance(value, Coding):
            value = value.to_dict()
        elif isinstance(value, Decimal):
            value = json_number(value)
        return {"url": self.url, f"value{self.value_type}": value}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Extension":
        for key, value in d.items():
            if key.startswith("value") and len(key) > 5:
                value_type = key[5:]
                if value_type == "Coding" and isinstance(value, dict):
                    value = Coding.from_dict(value)
                elif value_type == "Decimal":
                    value = to_decimal(value)
                return cls(url=d.get("url", ""), value_type=value_type, value=value)
        # Complex extensions (nested "extension") keep no value
        return cls(url=d.get("url", ""), value_type="", value=None)


def extensions_from_list(items: Optional[Iterable[Dict[str, Any]]]) -> Tuple[Extension, ...]:
    return tuple(Extension.from_dict(e) for e in (items or []) if isinstance(e, dict))


def find_extension(extensions: Iterable[Extension], url: str) -> Optional[Extension]:
    for ext in extensions:
        if ext.url == url:
            return ext
    return None


def extensions_to_list(extensions: Iterable[Extension]) -> list:
    return [e.to_dict() for e in extensions]


@dataclass(frozen=True)
class Coding:
    """
    A (system, code, display) triple identifying one enumerated concept.

    Either `code` or `display` must be present for a Coding to be usable
    as a choice; that check belongs to the option layer, not here.
    """

    system: Optional[str] = None
    code: Optional[str] = None
    display: Optional[str] = None
    user_selected: Optional[bool] = None
    extensions: Tuple[Extension, ...] = field(default_factory=tuple)

    def extension(self, url: str) -> Optional[Extension]:
        return find_extension(self.extensions, url)

    def matches(self, other: "Coding") -> bool:
        """Same concept: code and system both equal."""
        return self.code == other.code and self.system == other.system

    def label(self) -> str:
        return self.display or self.code or ""

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {}
        if self.extensions:
            d["extension"] = extensions_to_list(self.extensions)
        if self.system is not None:
            d["system"] = self.system
        if self.code is not None:
            d["code"] = self.code
        if self.display is not None:
            d["display"] = self.display
        if self.user_selected is not None:
            d["userSelected"] = self.user_selected
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Coding":
        return cls(
            system=d.get("system"),
            code=d.get("code"),
            display=d.get("display"),
            user_selected=d.get("userSelected"),
            extensions=extensions_from_list(d.get("extension")),
        )


@dataclass(frozen=True)
class Quantity:
    """
    A measured amount, optionally with a unit.

    Numerical answers of every numeric item type are held as a Quantity
    internally; the declared item type decides the response representation.
    """

    value: Optional[Decimal] = None
    unit: Optional[str] = None
    system: Optional[str] = None
    code: Optional[str] = None
    extensions: Tuple[Extension, ...] = field(default_factory=tuple)

    @property
    def has_unit(self) -> bool:
        return self.unit is not None or self.code is not None

    def extension(self, url: str) -> Optional[Extension]:
        return find_extension(self.extensions, url)

    def copy_with(self, **changes: Any) -> "Quantity":
        return replace(self, **changes)

    def to_dict(self, include_extensions: bool = True) -> Dict[str, Any]:
        d: Dict[str, Any] = {}
        if include_extensions and self.extensions:
            d["extension"] = extensions_to_list(self.extensions)
        if self.value is not None:
            d["value"] = json_number(self.value)
        if self.unit is not None:
            d["unit"] = self.unit
        if self.system is not None:
            d["system"] = self.system
        if self.code is not None:
            d["code"] = self.code
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Quantity":
        return cls(
            value=to_decimal(d.get("value")),
            unit=d.get("unit"),
            system=d.get("system"),
            code=d.get("code"),
            extensions=extensions_from_list(d.get("extension")),
        )


__all__ = [
    "Extension",
    "Coding",
    "Quantity",
    "to_decimal",
    "find_extension",
    "extensions_from_list",
    "extensions_to_list",
]
