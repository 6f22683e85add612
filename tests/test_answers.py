"""
Tests for the scalar Answer Models (boolean, numerical, date/time, string).

These tests verify:
    - populate / populate_from_computed_value / validate_input contracts
    - Type guarding of values and item types
    - Response representations per declared type
    - Data-absent-reason marking of invalid numeric input
"""

from datetime import date, datetime, time, timezone
from decimal import Decimal

import pytest
from hypothesis import given, settings, strategies as st

from qrm import extensions as ext
from qrm.answers import (
    AnswerContext,
    BooleanAnswerModel,
    DateTimeAnswerModel,
    NumericalAnswerModel,
    StringAnswerModel,
    create_answer_model,
)
from qrm.config import FillerConfig
from qrm.datatypes import Coding, Quantity
from qrm.errors import AnswerValidationError, QuestionnaireFormatException, QuestionnaireStateError
from qrm.model import ItemDefinition
from qrm.valueset import InMemoryValueSetResolver

UCUM = "http://unitsofmeasure.org"
DATA_ABSENT = {"url": ext.DATA_ABSENT_REASON, "valueCode": ext.DATA_ABSENT_REASON_AS_TEXT}


def _definition(item_type, **fields):
    node = {"linkId": "q", "type": item_type}
    node.update(fields)
    return ItemDefinition.from_dict(node)


def _bounded(item_type, max_value, min_value=None):
    extensions = [{"url": ext.MAX_VALUE, f"value{'Integer' if item_type == 'integer' else 'Decimal'}": max_value}]
    if min_value is not None:
        extensions.append({"url": ext.MIN_VALUE, "valueDecimal": min_value})
    return _definition(item_type, extension=extensions)


class TestFactory:
    """Test create_answer_model."""

    def test_model_per_type(self):
        assert isinstance(create_answer_model(_definition("boolean")), BooleanAnswerModel)
        assert isinstance(create_answer_model(_definition("quantity")), NumericalAnswerModel)
        assert isinstance(create_answer_model(_definition("dateTime")), DateTimeAnswerModel)
        assert isinstance(create_answer_model(_definition("url")), StringAnswerModel)

    def test_no_model_for_group_and_display(self):
        assert create_answer_model(_definition("group")) is None
        assert create_answer_model(_definition("display")) is None

    def test_wrong_item_type_is_a_state_error(self):
        with pytest.raises(QuestionnaireStateError):
            NumericalAnswerModel(_definition("boolean"))


class TestBooleanAnswer:
    """Test the tri-state boolean model."""

    @pytest.mark.parametrize("answer", [True, False])
    def test_round_trip(self, answer):
        """serialize -> populate -> serialize is stable."""
        model = BooleanAnswerModel(_definition("boolean"))
        model.value = answer
        first = model.to_response_answers()

        restored = BooleanAnswerModel(_definition("boolean"))
        restored.populate_answers(first)
        assert restored.to_response_answers() == first == [{"valueBoolean": answer}]

    def test_not_answered_round_trip(self):
        """The third state (null) survives a round trip."""
        model = BooleanAnswerModel(_definition("boolean"))
        assert model.to_response_representation() is None
        restored = BooleanAnswerModel(_definition("boolean"))
        restored.populate_answers(model.to_response_answers())
        assert restored.value is None
        assert restored.to_response_representation() is None

    def test_mismatched_prefill_is_ignored(self):
        model = BooleanAnswerModel(_definition("boolean"))
        model.populate({"valueString": "true"})
        assert not model.is_answered

    def test_wrong_kind_is_a_state_error(self):
        model = BooleanAnswerModel(_definition("boolean"))
        with pytest.raises(QuestionnaireStateError):
            model.value = "yes"

    def test_display(self):
        model = BooleanAnswerModel(_definition("boolean"))
        assert model.display == "-"
        model.value = False
        assert model.display == "No"


class TestNumericalValidation:
    """Test validate_input check order."""

    def test_not_a_number(self):
        model = NumericalAnswerModel(_bounded("integer", 10))
        assert model.validate_input("abc") == "Enter a number."

    def test_above_max(self):
        model = NumericalAnswerModel(_bounded("integer", 10))
        assert model.validate_input("11") == "Enter a number up to 10."

    def test_below_min(self):
        model = NumericalAnswerModel(_bounded("decimal", 10, min_value=1))
        assert model.validate_input("0.5") == "Enter a number 1.0, or higher."

    def test_valid_and_empty(self):
        model = NumericalAnswerModel(_bounded("integer", 10))
        assert model.validate_input("7") is None
        assert model.validate_input("") is None

    def test_localized_messages(self):
        context = AnswerContext(config=FillerConfig(locale="de-DE"))
        model = NumericalAnswerModel(_bounded("integer", 10), context)
        assert model.validate_input("x") == "Geben Sie eine Zahl ein."

    @settings(max_examples=50)
    @given(st.integers(min_value=101, max_value=10**9))
    def test_above_max_is_marked_data_absent(self, n):
        """Any number above max gives a diagnostic and a data-absent-reason marker."""
        model = NumericalAnswerModel(_bounded("integer", 100))
        assert model.validate_input(str(n)) is not None

        model.commit_text(str(n))
        assert model.error is not None
        assert model.value.extension(ext.DATA_ABSENT_REASON) is not None
        assert DATA_ABSENT in model.to_response_representation()["extension"]

    @settings(max_examples=50)
    @given(st.decimals(min_value=Decimal("10.01"), max_value=Decimal("100000"), places=2))
    def test_decimal_above_max(self, number):
        model = NumericalAnswerModel(_bounded("decimal", 10))
        assert model.validate_input(str(number)) is not None


class TestNumericalCommit:
    """Test text commits and derived values."""

    def test_valid_commit(self):
        model = NumericalAnswerModel(_bounded("decimal", 100))
        assert model.commit_text("12.5") is None
        assert model.value == Quantity(value=Decimal("12.5"))
        assert model.to_response_representation() == {"valueDecimal": 12.5}

    def test_correction_drops_marker(self):
        model = NumericalAnswerModel(_bounded("integer", 10))
        model.commit_text("99")
        model.commit_text("9")
        assert model.error is None
        assert model.value.extensions == ()
        assert model.to_response_representation() == {"valueInteger": 9}

    def test_unparsable_text_is_not_answered(self):
        model = NumericalAnswerModel(_bounded("integer", 10))
        model.commit_text("abc")
        assert not model.is_answered
        assert model.to_response_representation() is None

    def test_strict_commit_raises(self):
        model = NumericalAnswerModel(_bounded("integer", 10))
        with pytest.raises(AnswerValidationError) as info:
            model.commit_text("11", strict=True)
        assert info.value.link_id == "q"
        assert model.value.value == Decimal(11)

    def test_error_only_change_notifies(self):
        model = NumericalAnswerModel(_bounded("integer", 10))
        calls = []
        model.bind(calls.append)
        model.commit_text("11")
        model.commit_text("11")
        assert len(calls) == 1

    def test_clearing_text(self):
        model = NumericalAnswerModel(_bounded("integer", 10))
        model.commit_text("5")
        model.commit_text("")
        assert not model.is_answered


class TestNumericalRepresentation:
    """Test one representation per declared type."""

    def test_integer_rounds(self):
        model = NumericalAnswerModel(_definition("integer"))
        model.populate_from_computed_value(Decimal("2.5"))
        assert model.to_response_representation() == {"valueInteger": 3}

    def test_decimal_prefill(self):
        model = NumericalAnswerModel(_definition("decimal"))
        model.populate({"valueDecimal": 2.25})
        assert model.to_response_representation() == {"valueDecimal": 2.25}

    def test_decimal_accepts_integer_prefill(self):
        model = NumericalAnswerModel(_definition("decimal"))
        model.populate({"valueInteger": 4})
        assert model.to_response_representation() == {"valueDecimal": 4}

    def test_integer_ignores_decimal_prefill(self):
        """Mismatched representation kinds leave the item unanswered."""
        model = NumericalAnswerModel(_definition("integer"))
        model.populate({"valueDecimal": 2.5})
        assert not model.is_answered

    def test_quantity_prefill(self):
        model = NumericalAnswerModel(_definition("quantity"))
        q = {"value": 70, "unit": "kg", "system": UCUM, "code": "kg"}
        model.populate({"valueQuantity": q})
        assert model.to_response_representation() == {"valueQuantity": q}
        assert model.display == "70.0 kg"

    def test_computed_value_carries_unit(self):
        unit = {"system": UCUM, "code": "{score}", "display": "score"}
        model = NumericalAnswerModel(
            _definition("decimal", readOnly=True, extension=[{"url": ext.UNIT, "valueCoding": unit}])
        )
        model.populate_from_computed_value(Decimal(3))
        assert model.to_response_representation() == {
            "valueDecimal": 3,
            "extension": [{"url": ext.UNIT, "valueCoding": unit}],
        }

    def test_computed_none_clears(self):
        model = NumericalAnswerModel(_definition("decimal"))
        model.populate_from_computed_value(1)
        model.populate_from_computed_value(None)
        assert model.value is None

    def test_computed_non_number_is_a_state_error(self):
        model = NumericalAnswerModel(_definition("decimal"))
        with pytest.raises(QuestionnaireStateError):
            model.populate_from_computed_value("three")

    def test_unit_alone_is_not_answered(self):
        model = NumericalAnswerModel(_definition("quantity"))
        model.value = Quantity(unit="kg", code="kg")
        assert model.has_unit
        assert not model.is_answered
        assert model.to_response_representation() == {"valueQuantity": {"unit": "kg", "code": "kg"}}

    def test_invalid_quantity_keeps_data_absent_reason(self):
        """Unparsable text still produces a quantity answer marked as absent."""
        model = NumericalAnswerModel(_definition("quantity"))
        model.commit_text("abc")
        assert not model.is_answered
        assert model.to_response_answers() == [
            {
                "valueQuantity": {},
                "extension": [{"url": ext.DATA_ABSENT_REASON, "valueCode": ext.DATA_ABSENT_REASON_AS_TEXT}],
            }
        ]

    def test_empty_value_without_marker_is_omitted(self):
        for item_type in ("integer", "decimal", "quantity"):
            model = NumericalAnswerModel(_definition(item_type))
            model.value = Quantity()
            assert model.to_response_representation() is None


class TestUnitChoices:
    """Test unit value set handling."""

    UNITS = {
        "resourceType": "ValueSet",
        "id": "units",
        "compose": {
            "include": [
                {
                    "system": UCUM,
                    "concept": [{"code": "kg", "display": "kilogram"}, {"code": "[lb_av]", "display": "pound"}],
                }
            ]
        },
    }

    def _model(self):
        context = AnswerContext(resolver=InMemoryValueSetResolver({"units": self.UNITS}))
        item = _definition("quantity", extension=[{"url": ext.UNIT_VALUE_SET, "valueCanonical": "#units"}])
        return NumericalAnswerModel(item, context)

    def test_choices_are_keyed_by_code(self):
        model = self._model()
        assert model.has_unit_choices
        assert not model.has_single_unit_choice
        assert model.unit_choice_by_key("[lb_av]").display == "pound"

    def test_unit_then_value_keeps_both(self):
        model = self._model()
        model.set_unit("kg")
        model.set_number(70)
        assert model.key_of_unit == "kg"
        assert model.to_response_representation() == {
            "valueQuantity": {"value": 70, "unit": "kilogram", "system": UCUM, "code": "kg"}
        }

    def test_value_then_unit_keeps_both(self):
        model = self._model()
        model.commit_text("12.5")
        model.set_unit("[lb_av]")
        assert model.value.value == Decimal("12.5")
        assert model.value.code == "[lb_av]"

    def test_key_requires_code_or_display(self):
        with pytest.raises(QuestionnaireFormatException):
            NumericalAnswerModel.key_for_unit_choice(Coding(system=UCUM))


class TestDateTimeAnswer:
    """Test date, dateTime and time items."""

    def test_date(self):
        model = DateTimeAnswerModel(_definition("date"))
        assert model.commit_text("2024-02-29") is None
        assert model.value == date(2024, 2, 29)
        assert model.to_response_representation() == {"valueDate": "2024-02-29"}

    def test_invalid_date(self):
        model = DateTimeAnswerModel(_definition("date"))
        assert model.commit_text("2023-02-29") == "Enter a valid date."
        assert not model.is_answered

    def test_date_time_with_zulu(self):
        model = DateTimeAnswerModel(_definition("dateTime"))
        model.populate({"valueDateTime": "2024-01-02T03:04:05Z"})
        assert model.value == datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)

    def test_time(self):
        model = DateTimeAnswerModel(_definition("time"))
        model.populate({"valueTime": "08:30:00"})
        assert model.value == time(8, 30)
        assert model.to_response_representation() == {"valueTime": "08:30:00"}

    def test_mismatched_prefill(self):
        model = DateTimeAnswerModel(_definition("date"))
        model.populate({"valueDateTime": "2024-01-02T03:04:05Z"})
        assert not model.is_answered

    def test_datetime_is_not_a_date(self):
        model = DateTimeAnswerModel(_definition("date"))
        with pytest.raises(QuestionnaireStateError):
            model.value = datetime(2024, 1, 1)


class TestStringAnswer:
    """Test string, text and url items."""

    def test_max_length(self):
        model = StringAnswerModel(_definition("string", maxLength=3))
        assert model.validate_input("abcd") == "Enter up to 3 characters."
        assert model.validate_input("abc") is None

    def test_min_length_and_regex(self):
        model = StringAnswerModel(
            _definition(
                "string",
                extension=[
                    {"url": ext.MIN_LENGTH, "valueInteger": 2},
                    {"url": ext.REGEX, "valueString": "[a-z]+"},
                ],
            )
        )
        assert model.validate_input("a") == "Enter at least 2 characters."
        assert model.validate_input("AB") == "Enter a value in the expected format."
        assert model.validate_input("ab") is None

    def test_url(self):
        model = StringAnswerModel(_definition("url"))
        assert model.validate_input("not a url") == "Enter a valid URL."
        model.commit_text("https://example.org/x")
        assert model.to_response_representation() == {"valueUri": "https://example.org/x"}

    def test_text_prefill(self):
        model = StringAnswerModel(_definition("text"))
        model.populate({"valueString": "hello"})
        assert model.to_response_representation() == {"valueString": "hello"}
        model.populate_from_computed_value(None)
        assert not model.is_answered
