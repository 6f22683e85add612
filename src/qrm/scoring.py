"""
Score Aggregator.

Sums the ordinal values of selected choice answers and writes the total
into every score sink. Only integer, decimal and quantity items can be
sinks. Such an item is a sink when any of these holds:

    1. it carries an sdc-questionnaire-calculatedExpression extension
    2. it carries a cqf-expression extension
    3. it is read-only and its questionnaire-unit code is exactly "{score}"

Expression contents are never parsed. Presence alone makes a sink.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import TYPE_CHECKING, List, Optional

from . import extensions as ext
from .answers.choice import ChoiceAnswerModel
from .model import ItemDefinition

if TYPE_CHECKING:
    from .response import ResponseItemInstance, ResponseTree

logger = logging.getLogger(__name__)


def is_score_sink(item: ItemDefinition) -> bool:
    # Choice items are score sources, never sinks
    if not item.is_question or item.is_choice:
        return False
    config = item.config
    expression = config.has_calculated_expression or config.has_cqf_expression
    if not item.is_numeric:
        if expression:
            logger.debug("expression on %s item %s is not scored", item.type.value, item.link_id)
        return False
    if expression:
        return True
    unit = config.computable_unit
    return item.read_only and unit is not None and unit.code == ext.SCORE_UNIT_CODE


class ScoreAggregator:
    """Recomputes score sinks of a ResponseTree."""

    def total(self, tree: "ResponseTree") -> Decimal:
        """Sum of ordinal values over enabled choice instances; unanswered counts as 0."""
        total = Decimal(0)
        for instance in tree.instances():
            if instance.enabled and isinstance(instance.model, ChoiceAnswerModel):
                total += instance.model.ordinal_total()
        return total

    def sinks(self, tree: "ResponseTree") -> List["ResponseItemInstance"]:
        return [i for i in tree.instances() if i.model is not None and is_score_sink(i.item)]

    def recompute(self, tree: "ResponseTree") -> Optional[Decimal]:
        """
        Write the current total into every enabled sink.

        Returns the total, or None when the tree has no enabled sink.
        """
        sinks = [i for i in self.sinks(tree) if i.enabled]
        if not sinks:
            return None
        total = self.total(tree)
        for sink in sinks:
            logger.debug("score %s -> %s", total, sink.link_id)
            sink.model.populate_from_computed_value(total)
        return total


__all__ = ["ScoreAggregator", "is_score_sink"]
