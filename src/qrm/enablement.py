"""
Enablement Evaluator: decides which response item instances are visible.

Each item carries a flat list of enableWhen conditions joined by its
enableBehavior. Only two operators are evaluated:

    exists   source instance has any answer (expected value ignored)
    =        a selected coding of the source matches the expected coding
             by code and system

Every other operator, an unrecognized operator, and `=` against a
non-coding expected value evaluate as satisfied. A form must never get
stuck because a rule could not be evaluated.

IMPORTANT: This evaluator is stateless. It reads the current answers of
the tree on every call and caches nothing between calls.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, List

from .conditions import EnableBehavior, EnableWhen, EnableWhenOperator
from .datatypes import Coding

if TYPE_CHECKING:
    from .response import ResponseItemInstance, ResponseTree

logger = logging.getLogger(__name__)


class EnablementEvaluator:
    def __init__(self, tree: "ResponseTree"):
        self.tree = tree

    def is_enabled(self, instance: "ResponseItemInstance") -> bool:
        """
        Evaluate visibility of one instance.

        An instance is hidden when any ancestor is hidden, otherwise its own
        conditions decide. Items without conditions are always enabled.
        """
        if instance.parent is not None and not self.is_enabled(instance.parent):
            return False
        conditions = instance.item.enable_when
        if not conditions:
            return True

        results = (self.evaluate(condition, instance) for condition in conditions)
        if instance.item.enable_behavior == EnableBehavior.ALL:
            return all(results)
        return any(results)

    def evaluate(self, condition: EnableWhen, instance: "ResponseItemInstance") -> bool:
        """Evaluate a single condition in the context of `instance`."""
        operator = condition.operator
        if operator == EnableWhenOperator.EXISTS:
            return any(
                source.model is not None and source.model.is_answered
                for source in self.sources(condition.question, instance)
            )

        if operator == EnableWhenOperator.EQUALS:
            if not isinstance(condition.answer, Coding):
                logger.debug(
                    "%s: '=' against %s answer is not evaluated, treating as enabled",
                    instance.link_id,
                    condition.answer_type,
                )
                return True
            return any(
                condition.answer.matches(coding)
                for source in self.sources(condition.question, instance)
                for coding in _selected_codings(source)
            )

        logger.debug(
            "%s: operator %s is not evaluated, treating as enabled",
            instance.link_id,
            operator.value if operator is not None else "<unknown>",
        )
        return True

    def sources(self, link_id: str, instance: "ResponseItemInstance") -> List["ResponseItemInstance"]:
        """
        Find the instances a condition refers to.

        The nearest match wins: the subtree of the closest ancestor that
        contains `link_id` is searched first, so conditions inside a
        repeating group refer to the same repetition. Falls back to every
        instance with that linkId.
        """
        ancestor = instance.parent
        while ancestor is not None:
            found = [i for i in ancestor.iter_tree() if i.link_id == link_id and i is not instance]
            if found:
                return found
            ancestor = ancestor.parent
        return self.tree.instances(link_id)


def _selected_codings(source: "ResponseItemInstance") -> List[Coding]:
    value = source.model.value if source.model is not None else None
    if isinstance(value, tuple):
        return [c for c in value if isinstance(c, Coding)]
    return []


__all__ = ["EnablementEvaluator"]
