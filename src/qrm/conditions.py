"""
enableWhen condition types.

Every enablement rule on an item is a flat list of conditions joined by a
single combinator. Conditions are data, never strings of code.

ARCHITECTURAL RULE:
    No expression language lives here.
    The operator set is fixed and small; evaluation belongs to
    qrm.enablement, which decides how each operator behaves.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from .datatypes import Coding, Quantity, to_decimal
from .errors import QuestionnaireFormatException


class EnableWhenOperator(Enum):
    """
    Operators a definition may use.

    Only EXISTS and EQUALS are actually evaluated. The remaining operators
    are recognized so that definitions load, and evaluate as satisfied.
    """

    EXISTS = "exists"
    EQUALS = "="
    NOT_EQUALS = "!="
    GREATER_THAN = ">"
    LESS_THAN = "<"
    GREATER_EQUAL = ">="
    LESS_EQUAL = "<="


class EnableBehavior(Enum):
    """How multiple conditions combine."""
    ANY = "any"
    ALL = "all"


_ANSWER_KEYS = (
    "answerBoolean",
    "answerDecimal",
    "answerInteger",
    "answerDate",
    "answerDateTime",
    "answerTime",
    "answerString",
    "answerCoding",
    "answerQuantity",
    "answerReference",
)


@dataclass(frozen=True)
class EnableWhen:
    """
    One condition: (source item, operator, expected answer).

    Properties:
        question: linkId of the source item
        operator: EnableWhenOperator, or None for an unrecognized operator
        answer: expected value (Coding, bool, Decimal, str, Quantity or None)
        answer_type: the answer[x] suffix the definition used, e.g. "Coding"

    IMPORTANT:
        This object is immutable.
        It does NOT evaluate itself.
    """

    question: str
    operator: Optional[EnableWhenOperator]
    answer: Any = None
    answer_type: Optional[str] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "EnableWhen":
        question = d.get("question")
        if not question:
            raise QuestionnaireFormatException("enableWhen without question", d)
        try:
            operator = EnableWhenOperator(d.get("operator"))
        except ValueError:
            # Kept so that evaluation can fail open on it
            operator = None

        answer = None
        answer_type = None
        for key in _ANSWER_KEYS:
            if key in d:
                answer_type = key[len("answer"):]
                raw = d[key]
                if answer_type == "Coding":
                    answer = Coding.from_dict(raw)
                elif answer_type == "Quantity":
                    answer = Quantity.from_dict(raw)
                elif answer_type in ("Decimal", "Integer"):
                    answer = to_decimal(raw)
                else:
                    answer = raw
                break

        return cls(question=question, operator=operator, answer=answer, answer_type=answer_type)
