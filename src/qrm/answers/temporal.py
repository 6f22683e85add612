"""Answers for date, dateTime and time items."""

from __future__ import annotations

from datetime import date, datetime, time
from typing import Any, Dict, Optional, Union

from ..errors import AnswerValidationError, QuestionnaireStateError
from ..model import ItemType
from .base import AnswerModel


Temporal = Union[date, datetime, time]

_REPRESENTATION_KEY = {
    ItemType.DATE: "valueDate",
    ItemType.DATE_TIME: "valueDateTime",
    ItemType.TIME: "valueTime",
}

_DIAGNOSTIC_KEY = {
    ItemType.DATE: "validator_date",
    ItemType.DATE_TIME: "validator_date_time",
    ItemType.TIME: "validator_time",
}


def _is_kind(value: Any, item_type: ItemType) -> bool:
    # datetime is a subclass of date, so the date check must exclude it
    if item_type == ItemType.DATE:
        return isinstance(value, date) and not isinstance(value, datetime)
    if item_type == ItemType.DATE_TIME:
        return isinstance(value, datetime)
    return isinstance(value, time)


def parse_temporal(text: str, item_type: ItemType) -> Optional[Temporal]:
    """Parse an ISO-8601 string for the given item type, or return None."""
    if not isinstance(text, str) or not text.strip():
        return None
    text = text.strip()
    try:
        if item_type == ItemType.DATE:
            return date.fromisoformat(text)
        if item_type == ItemType.DATE_TIME:
            if text.endswith("Z"):
                text = text[:-1] + "+00:00"
            if "T" not in text:
                # A bare date is a valid (imprecise) dateTime
                return datetime.combine(date.fromisoformat(text), time())
            return datetime.fromisoformat(text)
        return time.fromisoformat(text)
    except ValueError:
        return None


class DateTimeAnswerModel(AnswerModel):
    accepted_types = frozenset(_REPRESENTATION_KEY)

    def _check_value(self, new_value: Any) -> None:
        if new_value is not None and not _is_kind(new_value, self.item.type):
            raise QuestionnaireStateError(f"{self.link_id}: {self.item.type.value} item cannot hold {new_value!r}")

    @property
    def representation_key(self) -> str:
        return _REPRESENTATION_KEY[self.item.type]

    def validate_input(self, text: Optional[str]) -> Optional[str]:
        if text is None or not text.strip():
            return None
        if parse_temporal(text, self.item.type) is None:
            return self.messages.lookup(_DIAGNOSTIC_KEY[self.item.type])
        return None

    def commit_text(self, text: str, strict: bool = False) -> Optional[str]:
        previous_error = self.error
        previous_value = self.value
        self.error = self.validate_input(text)
        self.value = parse_temporal(text, self.item.type) if self.error is None else None
        if self.value == previous_value and self.error != previous_error:
            self._changed()
        if strict and self.error is not None:
            raise AnswerValidationError(self.error, self.link_id)
        return self.error

    def populate(self, answer: Dict[str, Any]) -> None:
        raw = answer.get(self.representation_key) if isinstance(answer, dict) else None
        parsed = parse_temporal(raw, self.item.type) if raw is not None else None
        if parsed is None:
            return self._ignore(answer)
        self.value = parsed

    def populate_from_computed_value(self, result: Any) -> None:
        if isinstance(result, str):
            parsed = parse_temporal(result, self.item.type)
            if parsed is None:
                raise QuestionnaireStateError(f"{self.link_id}: {result!r} is not a {self.item.type.value}")
            result = parsed
        self.error = None
        self.value = result

    def to_response_representation(self) -> Optional[Dict[str, Any]]:
        if self.value is None:
            return None
        return {self.representation_key: self.value.isoformat()}

    @property
    def is_answered(self) -> bool:
        return self.value is not None

    @property
    def display(self) -> str:
        if self.value is None:
            return self.messages.lookup("not_answered")
        return self.value.isoformat()
