"""Free-text answers for string, text and url items."""

from __future__ import annotations

import re
from typing import Any, Dict, Optional
from urllib.parse import urlparse

from ..errors import AnswerValidationError, QuestionnaireStateError
from ..model import ItemType
from .base import AnswerModel


class StringAnswerModel(AnswerModel):
    accepted_types = frozenset({ItemType.STRING, ItemType.TEXT, ItemType.URL})

    def _check_value(self, new_value: Any) -> None:
        if new_value is not None and not isinstance(new_value, str):
            raise QuestionnaireStateError(f"{self.link_id}: text item cannot hold {new_value!r}")

    @property
    def representation_key(self) -> str:
        return "valueUri" if self.item.type == ItemType.URL else "valueString"

    def validate_input(self, text: Optional[str]) -> Optional[str]:
        if text is None or not text.strip():
            return None
        max_length = self.item.max_length
        if max_length is not None and len(text) > max_length:
            return self.messages.lookup("validator_max_length", value=max_length)
        min_length = self.item.config.min_length
        if min_length is not None and len(text) < min_length:
            return self.messages.lookup("validator_min_length", value=min_length)
        if self.item.config.regex and re.fullmatch(self.item.config.regex, text) is None:
            return self.messages.lookup("validator_regex")
        if self.item.type == ItemType.URL:
            parsed = urlparse(text.strip())
            if not parsed.scheme or not parsed.netloc:
                return self.messages.lookup("validator_url")
        return None

    def commit_text(self, text: Optional[str], strict: bool = False) -> Optional[str]:
        previous_error = self.error
        previous_value = self.value
        self.error = self.validate_input(text)
        self.value = text if text and text.strip() else None
        if self.value == previous_value and self.error != previous_error:
            self._changed()
        if strict and self.error is not None:
            raise AnswerValidationError(self.error, self.link_id)
        return self.error

    def populate(self, answer: Dict[str, Any]) -> None:
        raw = answer.get(self.representation_key) if isinstance(answer, dict) else None
        if not isinstance(raw, str):
            return self._ignore(answer)
        self.value = raw

    def populate_from_computed_value(self, result: Any) -> None:
        self.error = None
        self.value = None if result is None else str(result)

    def to_response_representation(self) -> Optional[Dict[str, Any]]:
        if self.value is None:
            return None
        return {self.representation_key: self.value}

    @property
    def is_answered(self) -> bool:
        return self.value is not None

    @property
    def display(self) -> str:
        return self.value if self.value is not None else self.messages.lookup("not_answered")
