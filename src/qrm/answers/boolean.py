"""Tri-state boolean answers: True, False, or not answered (None)."""

from __future__ import annotations

from typing import Any, Dict, Optional

from ..errors import QuestionnaireStateError
from ..model import ItemType
from .base import AnswerModel


class BooleanAnswerModel(AnswerModel):
    accepted_types = frozenset({ItemType.BOOLEAN})

    def _check_value(self, new_value: Any) -> None:
        if new_value is not None and not isinstance(new_value, bool):
            raise QuestionnaireStateError(f"{self.link_id}: boolean item cannot hold {new_value!r}")

    def populate(self, answer: Dict[str, Any]) -> None:
        value = answer.get("valueBoolean") if isinstance(answer, dict) else None
        if isinstance(value, bool):
            self.value = value
        else:
            self._ignore(answer)

    def populate_from_computed_value(self, result: Any) -> None:
        self.value = result

    def to_response_representation(self) -> Optional[Dict[str, Any]]:
        if self.value is None:
            return None
        return {"valueBoolean": self.value}

    @property
    def is_answered(self) -> bool:
        return self.value is not None

    @property
    def display(self) -> str:
        if self.value is None:
            return self.messages.lookup("not_answered")
        return self.messages.lookup("yes" if self.value else "no")
