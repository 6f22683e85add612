"""Answer Model family: one model per data kind."""

from typing import Dict, Optional, Type

from ..model import ItemDefinition, ItemType
from .base import AnswerContext, AnswerModel
from .boolean import BooleanAnswerModel
from .choice import ChoiceAnswerModel
from .numerical import NumericalAnswerModel
from .temporal import DateTimeAnswerModel
from .text import StringAnswerModel

_MODEL_BY_TYPE: Dict[ItemType, Type[AnswerModel]] = {
    ItemType.BOOLEAN: BooleanAnswerModel,
    ItemType.INTEGER: NumericalAnswerModel,
    ItemType.DECIMAL: NumericalAnswerModel,
    ItemType.QUANTITY: NumericalAnswerModel,
    ItemType.DATE: DateTimeAnswerModel,
    ItemType.DATE_TIME: DateTimeAnswerModel,
    ItemType.TIME: DateTimeAnswerModel,
    ItemType.STRING: StringAnswerModel,
    ItemType.TEXT: StringAnswerModel,
    ItemType.URL: StringAnswerModel,
    ItemType.CHOICE: ChoiceAnswerModel,
    ItemType.OPEN_CHOICE: ChoiceAnswerModel,
}


def create_answer_model(item: ItemDefinition, context: Optional[AnswerContext] = None) -> Optional[AnswerModel]:
    """
    Build the answer model for a question item.

    Returns None for groups, display items and broken items.
    """
    if item.is_broken:
        return None
    model_class = _MODEL_BY_TYPE.get(item.type)
    return model_class(item, context) if model_class else None


__all__ = [
    "AnswerContext",
    "AnswerModel",
    "BooleanAnswerModel",
    "ChoiceAnswerModel",
    "NumericalAnswerModel",
    "DateTimeAnswerModel",
    "StringAnswerModel",
    "create_answer_model",
]
