"""
Choice answers for choice and open-choice items.

Options come either from inline answerOptions or from a resolved value set,
never both. They are kept in a key -> AnswerOption map in insertion order.

The value is a tuple of selected codings (None when nothing is selected).
Open-choice items may additionally hold free text.

Toggle semantics (multiple choice):
    - toggling an unselected exclusive option replaces the selection with it
    - toggling an unselected non-exclusive option adds it and drops any
      selected exclusive options
    - toggling a selected option removes it
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from .. import extensions as ext
from ..datatypes import Coding, to_decimal
from ..errors import QuestionnaireFormatException, QuestionnaireStateError
from ..model import CHOICE_TYPES, AnswerOption, ItemType
from .base import AnswerContext, AnswerModel

logger = logging.getLogger(__name__)


def _coding_key(coding: Coding) -> Optional[str]:
    return coding.code if coding.code is not None else coding.display


class ChoiceAnswerModel(AnswerModel):
    accepted_types = CHOICE_TYPES

    def __init__(self, item, context: Optional[AnswerContext] = None):
        super().__init__(item, context)
        self._options: Dict[str, AnswerOption] = {}
        self._open_text: Optional[str] = None

        if item.answer_value_set:
            self.context.resolver.resolve(item.answer_value_set, self._add_value_set_coding)
        else:
            for option in item.answer_options:
                self._options[option.key] = option

    # ── options ─────────────────────────────────────────────────────

    @property
    def options(self) -> List[AnswerOption]:
        return list(self._options.values())

    def option(self, key: str) -> Optional[AnswerOption]:
        return self._options.get(key)

    def _require_option(self, key: str) -> AnswerOption:
        option = self._options.get(key)
        if option is None:
            raise QuestionnaireStateError(f"{self.link_id}: no option with key {key!r}")
        return option

    def _add_value_set_coding(self, coding: Coding) -> None:
        if not self.is_alive:
            logger.debug("discarding late option for disposed item %s", self.link_id)
            return
        try:
            option = AnswerOption.from_coding(coding)
        except QuestionnaireFormatException as e:
            logger.warning("skipping option of %s: %s", self.link_id, e)
            return
        if option.key in self._options:
            logger.info("option %r of %s replaced by value set", option.key, self.link_id)
        self._options[option.key] = option

        # Late arrival: re-normalize a matching selection instead of discarding it
        if self.value and any(_coding_key(c) == option.key for c in self.value):
            self.value = self._ordered(
                tuple(option.coding if _coding_key(c) == option.key else c for c in self.value)
            )

    @property
    def is_multiple_choice(self) -> bool:
        return self.item.repeats or self.item.config.item_control == "check-box"

    # ── value ───────────────────────────────────────────────────────

    def _check_value(self, new_value: Any) -> None:
        if new_value is None:
            return
        if not isinstance(new_value, tuple) or not all(isinstance(c, Coding) for c in new_value):
            raise QuestionnaireStateError(f"{self.link_id}: choice item cannot hold {new_value!r}")

    def _ordered(self, codings: Tuple[Coding, ...]) -> Optional[Tuple[Coding, ...]]:
        """Option order first, unknown codings after them in their current order."""
        if not codings:
            return None
        positions = {key: index for index, key in enumerate(self._options)}
        fallback = len(positions)
        return tuple(sorted(codings, key=lambda c: positions.get(_coding_key(c), fallback)))

    @property
    def selected_keys(self) -> List[str]:
        return [_coding_key(c) for c in self.value or ()]

    def is_selected(self, key: str) -> bool:
        return key in self.selected_keys

    def _is_exclusive(self, coding: Coding) -> bool:
        option = self._options.get(_coding_key(coding))
        return option is not None and option.exclusive

    @property
    def open_text(self) -> Optional[str]:
        return self._open_text

    # ── mutations ───────────────────────────────────────────────────

    def select(self, key: Optional[str]) -> None:
        """Single choice: replace the selection (None clears it)."""
        if key is None:
            self.value = None
            return
        self.value = (self._require_option(key).coding,)

    def toggle(self, key: str) -> None:
        """Multiple choice: turn the option with `key` on or off."""
        if not self.is_multiple_choice:
            raise QuestionnaireStateError(f"{self.link_id}: toggle requires a repeating choice item")
        option = self._require_option(key)
        current = self.value or ()
        logger.debug("toggle %s on %s, selected=%s", key, self.link_id, self.selected_keys)

        if key not in self.selected_keys:
            if option.exclusive:
                selection = (option.coding,)
            else:
                selection = tuple(c for c in current if not self._is_exclusive(c)) + (option.coding,)
        else:
            selection = tuple(c for c in current if _coding_key(c) != key)
        self.value = self._ordered(selection)

    def set_open_text(self, text: Optional[str]) -> None:
        if self.item.type != ItemType.OPEN_CHOICE:
            raise QuestionnaireStateError(f"{self.link_id}: free text requires an open-choice item")
        text = text.strip() if text and text.strip() else None
        if text == self._open_text:
            return
        self._open_text = text
        self._changed()

    def clear(self) -> None:
        text_cleared = self._open_text is not None
        self._open_text = None
        self.error = None
        if self.value is not None:
            self.value = None
        elif text_cleared:
            self._changed()

    def select_initial(self) -> None:
        """Apply answerOption.initialSelected flags."""
        initial = tuple(o.coding for o in self._options.values() if o.initial_selected)
        if initial:
            self.value = initial if self.is_multiple_choice else initial[:1]

    # ── contract ────────────────────────────────────────────────────

    def _add_selected(self, coding: Coding) -> None:
        key = _coding_key(coding)
        if key is None:
            return
        option = self._options.get(key)
        selected = option.coding if option is not None else coding
        if not self.is_multiple_choice:
            self.value = (selected,)
        elif key not in self.selected_keys:
            self.value = self._ordered((self.value or ()) + (selected,))

    def populate(self, answer: Dict[str, Any]) -> None:
        if not isinstance(answer, dict):
            return self._ignore(answer)
        if isinstance(answer.get("valueCoding"), dict):
            coding = Coding.from_dict(answer["valueCoding"])
            if _coding_key(coding) is None:
                return self._ignore(answer)
            if coding.code is not None and coding.code not in self._options:
                logger.debug("%s: keeping coding %r until its option is known", self.link_id, coding.code)
            self._add_selected(coding)
            return
        if isinstance(answer.get("valueString"), str):
            text = answer["valueString"]
            if text in self._options:
                self._add_selected(self._options[text].coding)
            elif self.item.type == ItemType.OPEN_CHOICE:
                self.set_open_text(text)
            else:
                self._ignore(answer)
            return
        self._ignore(answer)

    def populate_answers(self, answers: List[Dict[str, Any]]) -> None:
        for answer in answers or []:
            self.populate(answer)

    def populate_from_computed_value(self, result: Any) -> None:
        if result is None:
            self.clear()
        elif isinstance(result, Coding):
            option = self._options.get(_coding_key(result))
            self.value = (option.coding if option is not None else result,)
        elif isinstance(result, str):
            self.value = (self._require_option(result).coding,)
        else:
            raise QuestionnaireStateError(f"{self.link_id}: computed value {result!r} is not a choice")

    def to_response_representation(self) -> Optional[List[Dict[str, Any]]]:
        if not self.is_answered:
            return None
        answers: List[Dict[str, Any]] = []
        for coding in self.value or ():
            option = self._options.get(_coding_key(coding))
            answers.append({"valueCoding": (option.coding if option else coding).to_dict()})
        if self._open_text is not None:
            answers.append({"valueString": self._open_text})
        return answers

    def to_response_answers(self) -> List[Dict[str, Any]]:
        return self.to_response_representation() or []

    @property
    def is_answered(self) -> bool:
        return bool(self.value) or self._open_text is not None

    def ordinal_total(self) -> Decimal:
        """Sum of answer-level ordinal values over the selection."""
        total = Decimal(0)
        for coding in self.value or ():
            ordinal = coding.extension(ext.ANSWER_ORDINAL_VALUE)
            number = to_decimal(ordinal.value) if ordinal is not None else None
            if number is not None:
                total += number
        return total

    @property
    def display(self) -> str:
        parts = []
        for coding in self.value or ():
            option = self._options.get(_coding_key(coding))
            parts.append(option.display if option else coding.label())
        if self._open_text is not None:
            parts.append(self._open_text)
        return ", ".join(parts) if parts else self.messages.lookup("not_answered")
