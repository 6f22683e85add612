"""
Answer Model base class.

An AnswerModel holds the current value for one response item instance.
Values are immutable; every change assigns a new value through the `value`
property, which type-checks it and notifies the owning instance.

Common contract:
    populate(answer)                      hydrate from one recorded answer
    populate_answers(answers)             hydrate from all recorded answers
    populate_from_computed_value(result)  precomputed value, no validation
    validate_input(text)                  None when valid, else a diagnostic
    to_response_representation()          None or the typed representation
    is_answered                           core payload present
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, FrozenSet, List, Optional

from ..config import FillerConfig
from ..errors import QuestionnaireStateError
from ..l10n import DiagnosticMessages
from ..model import ItemDefinition, ItemType
from ..valueset import InMemoryValueSetResolver, ValueSetResolver

logger = logging.getLogger(__name__)


@dataclass
class AnswerContext:
    """Collaborators shared by all answer models of one response tree."""

    config: FillerConfig = field(default_factory=FillerConfig)
    messages: Optional[DiagnosticMessages] = None
    resolver: ValueSetResolver = field(default_factory=InMemoryValueSetResolver)

    def __post_init__(self):
        if self.messages is None:
            self.messages = DiagnosticMessages(self.config.locale)

    @property
    def locale(self) -> str:
        return self.config.locale


class AnswerModel:
    """Base of the answer model family; one subclass per data kind."""

    accepted_types: FrozenSet[ItemType] = frozenset()

    def __init__(self, item: ItemDefinition, context: Optional[AnswerContext] = None):
        if item.type not in self.accepted_types:
            raise QuestionnaireStateError(f"item.type cannot be {item.type} for {type(self).__name__}")
        self.item = item
        self.context = context or AnswerContext()
        self.error: Optional[str] = None
        self._value: Any = None
        self._alive = True
        self._listener: Optional[Callable[["AnswerModel"], None]] = None

    # ── value & notification ────────────────────────────────────────

    @property
    def value(self) -> Any:
        return self._value

    @value.setter
    def value(self, new_value: Any) -> None:
        self._check_value(new_value)
        if new_value == self._value:
            return
        self._value = new_value
        self._changed()

    def _check_value(self, new_value: Any) -> None:
        """Raise QuestionnaireStateError when new_value is not a permitted kind."""
        raise NotImplementedError

    def _changed(self) -> None:
        if self._listener is not None and self._alive:
            self._listener(self)

    def bind(self, listener: Optional[Callable[["AnswerModel"], None]]) -> None:
        self._listener = listener

    @property
    def link_id(self) -> str:
        return self.item.link_id

    @property
    def messages(self) -> DiagnosticMessages:
        return self.context.messages

    # ── lifecycle ───────────────────────────────────────────────────

    @property
    def is_alive(self) -> bool:
        return self._alive

    def dispose(self) -> None:
        self._alive = False
        self._listener = None

    # ── contract ────────────────────────────────────────────────────

    def populate(self, answer: Dict[str, Any]) -> None:
        raise NotImplementedError

    def populate_answers(self, answers: List[Dict[str, Any]]) -> None:
        """Scalar models take the first answer that fits their type."""
        for answer in answers or []:
            self.populate(answer)
            if self.is_answered:
                return

    def populate_from_computed_value(self, result: Any) -> None:
        raise NotImplementedError

    def validate_input(self, text: Optional[str]) -> Optional[str]:
        return None

    def to_response_representation(self) -> Any:
        raise NotImplementedError

    def to_response_answers(self) -> List[Dict[str, Any]]:
        representation = self.to_response_representation()
        return [representation] if representation is not None else []

    @property
    def is_answered(self) -> bool:
        raise NotImplementedError

    @property
    def display(self) -> str:
        raise NotImplementedError

    def clear(self) -> None:
        self.error = None
        self.value = None

    def _ignore(self, answer: Dict[str, Any]) -> None:
        logger.debug(
            "ignoring answer %s for %s item %s",
            sorted(answer) if isinstance(answer, dict) else type(answer).__name__,
            self.item.type.value,
            self.link_id,
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.link_id!r}, value={self._value!r})"


__all__ = ["AnswerModel", "AnswerContext"]
