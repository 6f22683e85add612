"""
Numerical answers for integer, decimal and quantity items.

The value is always an immutable Quantity, whatever the declared type. The
declared type only decides which representation goes into the response:

    integer   -> valueInteger (rounded)
    decimal   -> valueDecimal
    quantity  -> valueQuantity

Every mutation (unit change, value change, text commit) derives a new
Quantity and keeps the fields it does not touch.
"""

from __future__ import annotations

import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Iterable, Optional

from .. import extensions as ext
from ..datatypes import Coding, Extension, Quantity, extensions_from_list, extensions_to_list, to_decimal
from ..errors import AnswerValidationError, QuestionnaireFormatException, QuestionnaireStateError
from ..model import ItemType, NUMERIC_TYPES, NumericConstraints
from ..number_format import NumberFormat, NumberFormatError
from .base import AnswerContext, AnswerModel

logger = logging.getLogger(__name__)

_DATA_ABSENT = Extension(url=ext.DATA_ABSENT_REASON, value_type="Code", value=ext.DATA_ABSENT_REASON_AS_TEXT)


def _without_data_absent(extensions: Iterable[Extension]) -> tuple:
    return tuple(e for e in extensions if e.url != ext.DATA_ABSENT_REASON)


class NumericalAnswerModel(AnswerModel):
    """Models numerical answers."""

    accepted_types = NUMERIC_TYPES

    def __init__(self, item, context: Optional[AnswerContext] = None):
        super().__init__(item, context)
        self.constraints: NumericConstraints = item.numeric
        self.number_format = NumberFormat(self.constraints.number_pattern, self.context.locale)

        self._units: Dict[str, Coding] = {}
        units_uri = item.config.unit_value_set
        if units_uri is not None:
            self.context.resolver.resolve(units_uri, self._add_unit_choice)

    # ── configuration ───────────────────────────────────────────────

    @property
    def min_value(self) -> Decimal:
        return self.constraints.min_value

    @property
    def max_value(self) -> Decimal:
        return self.constraints.max_value

    @property
    def max_decimal(self) -> int:
        return self.constraints.max_decimal

    @property
    def is_sliding(self) -> bool:
        return self.constraints.is_slider

    @property
    def slider_divisions(self) -> Optional[int]:
        return self.constraints.slider_divisions

    # ── units ───────────────────────────────────────────────────────

    def _add_unit_choice(self, coding: Coding) -> None:
        if not self.is_alive:
            return
        self._units[self.key_for_unit_choice(coding)] = coding

    @staticmethod
    def key_for_unit_choice(coding: Coding) -> str:
        choice = coding.code if coding.code is not None else coding.display
        if choice is None:
            raise QuestionnaireFormatException(f"Insufficient info for key string in {coding}", coding)
        return choice

    @property
    def has_unit(self) -> bool:
        return self.value is not None and self.value.has_unit

    @property
    def has_unit_choices(self) -> bool:
        return bool(self._units)

    @property
    def has_single_unit_choice(self) -> bool:
        return len(self._units) == 1

    @property
    def unit_choices(self):
        return list(self._units.values())

    def unit_choice_by_key(self, key: Optional[str]) -> Optional[Coding]:
        return self._units.get(key) if key is not None else None

    @property
    def key_of_unit(self) -> Optional[str]:
        """Unique slug for the current unit."""
        if not self.has_unit:
            return None
        return self.key_for_unit_choice(Coding(system=self.value.system, code=self.value.code, display=self.value.unit))

    # ── value derivation ────────────────────────────────────────────

    def _check_value(self, new_value: Any) -> None:
        if new_value is not None and not isinstance(new_value, Quantity):
            raise QuestionnaireStateError(f"{self.link_id}: numerical item cannot hold {new_value!r}")

    def copy_with_unit(self, unit_choice_key: Optional[str]) -> Quantity:
        """Keeps the numerical value, updates the unit."""
        unit = self.unit_choice_by_key(unit_choice_key)
        changes = dict(
            unit=unit.display if unit else None,
            system=unit.system if unit else None,
            code=unit.code if unit else None,
        )
        return self.value.copy_with(**changes) if self.value is not None else Quantity(**changes)

    def copy_with_value(self, new_value: Optional[Decimal]) -> Quantity:
        """Updates the numerical value, keeps the unit."""
        return self.value.copy_with(value=new_value) if self.value is not None else Quantity(value=new_value)

    def copy_with_text_input(self, text_input: str) -> Optional[Quantity]:
        """
        Updates the numerical value from text, keeps the unit.

        Invalid input still produces a value, marked with a
        data-absent-reason extension.
        """
        if not text_input or not text_input.strip():
            if self.value is None:
                return None
            return self.value.copy_with(value=None, extensions=_without_data_absent(self.value.extensions))

        valid = self.validate_input(text_input) is None
        try:
            number = self.number_format.parse(text_input)
        except NumberFormatError:
            number = None

        kept = _without_data_absent(self.value.extensions) if self.value is not None else ()
        extensions = kept if valid else kept + (_DATA_ABSENT,)
        if self.value is None:
            return Quantity(value=number, extensions=extensions)
        return self.value.copy_with(value=number, extensions=extensions)

    def validate_input(self, text: Optional[str]) -> Optional[str]:
        if text is None or not text.strip():
            return None
        try:
            number = self.number_format.parse(text)
        except NumberFormatError:
            return self.messages.validator_nan()
        if number > self.max_value:
            return self.messages.validator_max_value(self.number_format.format(self.max_value))
        if number < self.min_value:
            return self.messages.validator_min_value(self.number_format.format(self.min_value))
        return None

    # ── mutations ───────────────────────────────────────────────────

    def commit_text(self, text: str, strict: bool = False) -> Optional[str]:
        """
        Validate and store text input.

        Returns the diagnostic (or None). With strict=True a diagnostic is
        raised as AnswerValidationError after the value has been stored.
        """
        previous_error = self.error
        previous_value = self.value
        self.error = self.validate_input(text)
        self.value = self.copy_with_text_input(text)
        if self.value == previous_value and self.error != previous_error:
            self._changed()
        if strict and self.error is not None:
            raise AnswerValidationError(self.error, self.link_id)
        return self.error

    def set_unit(self, unit_choice_key: Optional[str]) -> None:
        self.value = self.copy_with_unit(unit_choice_key)

    def set_number(self, number: Any) -> None:
        self.error = None
        self.value = self.copy_with_value(to_decimal(number))

    # ── contract ────────────────────────────────────────────────────

    def populate(self, answer: Dict[str, Any]) -> None:
        if not isinstance(answer, dict):
            return self._ignore(answer)
        answer_extensions = extensions_from_list(answer.get("extension"))
        item_type = self.item.type

        if item_type == ItemType.QUANTITY and isinstance(answer.get("valueQuantity"), dict):
            quantity = Quantity.from_dict(answer["valueQuantity"])
            self.value = quantity.copy_with(extensions=quantity.extensions + answer_extensions)
            return
        if item_type == ItemType.DECIMAL and "valueDecimal" in answer:
            number = to_decimal(answer["valueDecimal"])
        elif item_type in (ItemType.DECIMAL, ItemType.INTEGER) and isinstance(answer.get("valueInteger"), int):
            number = to_decimal(answer["valueInteger"])
        else:
            return self._ignore(answer)

        if number is None:
            return self._ignore(answer)
        unit_ext = next((e for e in answer_extensions if e.url == ext.UNIT and isinstance(e.value, Coding)), None)
        unit = unit_ext.value if unit_ext else None
        self.value = Quantity(
            value=number,
            unit=unit.display if unit else None,
            system=unit.system if unit else None,
            code=unit.code if unit else None,
            extensions=answer_extensions,
        )

    def populate_from_computed_value(self, result: Any) -> None:
        if result is None:
            self.value = None
            return
        number = to_decimal(result)
        if number is None:
            raise QuestionnaireStateError(f"{self.link_id}: computed value {result!r} is not a number")

        unit = self.item.config.computable_unit
        unit_extension = ()
        if unit is not None and self.item.type in (ItemType.DECIMAL, ItemType.INTEGER):
            unit_extension = (Extension(url=ext.UNIT, value_type="Coding", value=unit),)
        self.error = None
        self.value = Quantity(
            value=number,
            unit=unit.display if unit else None,
            system=unit.system if unit else None,
            code=unit.code if unit else None,
            extensions=unit_extension,
        )

    def to_response_representation(self) -> Optional[Dict[str, Any]]:
        if self.value is None:
            return None
        value = self.value
        item_type = self.item.type

        if value.value is None:
            # A quantity keeps its unit and data-absent-reason without a number
            if item_type != ItemType.QUANTITY or not (value.extensions or value.unit or value.code):
                return None
            representation: Dict[str, Any] = {"valueQuantity": value.to_dict(include_extensions=False)}
        elif item_type == ItemType.DECIMAL:
            number = value.value
            representation = {"valueDecimal": int(number) if number == number.to_integral_value() else float(number)}
        elif item_type == ItemType.INTEGER:
            representation = {"valueInteger": int(value.value.to_integral_value(rounding=ROUND_HALF_UP))}
        elif item_type == ItemType.QUANTITY:
            representation = {"valueQuantity": value.to_dict(include_extensions=False)}
        else:
            raise QuestionnaireStateError(f"item.type cannot be {item_type}")

        if value.extensions:
            representation["extension"] = extensions_to_list(value.extensions)
        return representation

    @property
    def is_answered(self) -> bool:
        return self.value is not None and self.value.value is not None

    @property
    def display(self) -> str:
        if not self.is_answered:
            return self.messages.lookup("not_answered")
        text = self.number_format.format(self.value.value)
        return f"{text} {self.value.unit}" if self.value.unit else text
