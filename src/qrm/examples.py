"""
Example questionnaire builder for a scored depression screening (PHQ-2 style).

Builds a two-question screening group whose answers carry ordinal values,
a read-only score item (unit "{score}") that receives their sum, a
multiple-choice item with an exclusive "none of these" option, and a
comment field enabled only when that item is answered.
"""
from typing import Any, Dict, List

from qrm import extensions as ext
from qrm.model import Questionnaire

LOINC = "http://loinc.org"
UCUM = "http://unitsofmeasure.org"

PHQ_ANSWERS = [
    ("LA6568-5", "Not at all", 0),
    ("LA6569-3", "Several days", 1),
    ("LA6570-1", "More than half the days", 2),
    ("LA6571-9", "Nearly every day", 3),
]


def _scored_options() -> List[Dict[str, Any]]:
    return [
        {
            "extension": [{"url": ext.ORDINAL_VALUE, "valueDecimal": score}],
            "valueCoding": {"system": LOINC, "code": code, "display": display},
        }
        for code, display, score in PHQ_ANSWERS
    ]


def build_example_phq_definition(title: str = "PHQ-2 Depression Screening") -> Dict[str, Any]:
    """Return the example as a Questionnaire resource dict."""
    return {
        "resourceType": "Questionnaire",
        "id": "phq-2-example",
        "url": "http://example.org/Questionnaire/phq-2-example",
        "title": title,
        "status": "active",
        "item": [
            {
                "linkId": "phq",
                "type": "group",
                "text": "Over the last 2 weeks, how often have you been bothered by the following problems?",
                "item": [
                    {
                        "linkId": "phq-1",
                        "type": "choice",
                        "prefix": "1.",
                        "text": "Little interest or pleasure in doing things",
                        "required": True,
                        "answerOption": _scored_options(),
                    },
                    {
                        "linkId": "phq-2",
                        "type": "choice",
                        "prefix": "2.",
                        "text": "Feeling down, depressed, or hopeless",
                        "required": True,
                        "answerOption": _scored_options(),
                    },
                    {
                        "linkId": "phq-score",
                        "type": "quantity",
                        "text": "PHQ-2 total score",
                        "readOnly": True,
                        "extension": [
                            {
                                "url": ext.UNIT,
                                "valueCoding": {"system": UCUM, "code": ext.SCORE_UNIT_CODE, "display": "score"},
                            }
                        ],
                    },
                ],
            },
            {
                "linkId": "concerns",
                "type": "choice",
                "text": "Which of these apply to you?",
                "repeats": True,
                "answerOption": [
                    {"valueCoding": {"code": "sleep", "display": "Trouble sleeping"}},
                    {"valueCoding": {"code": "appetite", "display": "Poor appetite"}},
                    {
                        "extension": [{"url": ext.OPTION_EXCLUSIVE, "valueBoolean": True}],
                        "valueCoding": {"code": "none", "display": "None of these"},
                    },
                ],
            },
            {
                "linkId": "comments",
                "type": "text",
                "text": "Anything else you would like to tell us?",
                "enableWhen": [{"question": "concerns", "operator": "exists", "answerBoolean": True}],
            },
        ],
    }


def build_example_phq_questionnaire(title: str = "PHQ-2 Depression Screening") -> Questionnaire:
    return Questionnaire.from_dict(build_example_phq_definition(title))


__all__ = ["build_example_phq_definition", "build_example_phq_questionnaire", "PHQ_ANSWERS", "LOINC"]
