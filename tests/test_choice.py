"""
Tests for the choice Answer Model.

These tests verify:
    - Single and multiple selection
    - Exclusive option toggling
    - Option sources (inline, value set, late arrival)
    - Open-choice free text
    - Ordinal totals and response representation
"""

from decimal import Decimal

import pytest
from hypothesis import given, strategies as st

from qrm import extensions as ext
from qrm.answers import AnswerContext, ChoiceAnswerModel
from qrm.datatypes import Coding, Extension
from qrm.errors import QuestionnaireStateError
from qrm.model import ItemDefinition
from qrm.valueset import DeferredValueSetResolver, InMemoryValueSetResolver

SYSTEM = "http://example.org/answers"
KEYS = ["a", "b", "c", "none"]


def _option(code, ordinal=None, exclusive=False):
    extensions = []
    if ordinal is not None:
        extensions.append({"url": ext.ORDINAL_VALUE, "valueDecimal": ordinal})
    if exclusive:
        extensions.append({"url": ext.OPTION_EXCLUSIVE, "valueBoolean": True})
    return {"extension": extensions, "valueCoding": {"system": SYSTEM, "code": code, "display": code.upper()}}


def _item(item_type="choice", repeats=True, **fields):
    node = {
        "linkId": "c",
        "type": item_type,
        "repeats": repeats,
        "answerOption": [_option("a", 1), _option("b", 2), _option("c", 3), _option("none", 0, exclusive=True)],
    }
    node.update(fields)
    return ItemDefinition.from_dict(node)


def _value_set_item():
    return ItemDefinition.from_dict({"linkId": "c", "type": "choice", "answerValueSet": "#vs"})


def _vs_coding(code, ordinal):
    return Coding(
        system=SYSTEM,
        code=code,
        display=code.upper(),
        extensions=(Extension(url=ext.ORDINAL_VALUE, value_type="Decimal", value=Decimal(ordinal)),),
    )


class TestSelection:
    """Test select / toggle / clear."""

    def test_single_select_replaces(self):
        model = ChoiceAnswerModel(_item(repeats=False))
        model.select("a")
        model.select("b")
        assert model.selected_keys == ["b"]
        model.select(None)
        assert not model.is_answered

    def test_select_unknown_key(self):
        model = ChoiceAnswerModel(_item(repeats=False))
        with pytest.raises(QuestionnaireStateError):
            model.select("zzz")

    def test_toggle_requires_multiple_choice(self):
        model = ChoiceAnswerModel(_item(repeats=False))
        with pytest.raises(QuestionnaireStateError):
            model.toggle("a")

    def test_check_box_control_is_multiple(self):
        control = {"url": ext.ITEM_CONTROL, "valueCodeableConcept": {"coding": [{"code": "check-box"}]}}
        model = ChoiceAnswerModel(_item(repeats=False, extension=[control]))
        model.toggle("a")
        model.toggle("b")
        assert model.selected_keys == ["a", "b"]

    def test_toggle_keeps_option_order(self):
        model = ChoiceAnswerModel(_item())
        model.toggle("c")
        model.toggle("a")
        assert model.selected_keys == ["a", "c"]

    def test_non_exclusive_drops_exclusive(self):
        model = ChoiceAnswerModel(_item())
        model.toggle("none")
        model.toggle("b")
        assert model.selected_keys == ["b"]

    def test_toggle_selected_removes(self):
        model = ChoiceAnswerModel(_item())
        model.toggle("a")
        model.toggle("a")
        assert model.value is None

    def test_clear_notifies_once(self):
        model = ChoiceAnswerModel(_item(item_type="open-choice"))
        model.toggle("a")
        model.set_open_text("other")
        calls = []
        model.bind(calls.append)
        model.clear()
        assert len(calls) == 1
        assert not model.is_answered

    @given(st.lists(st.sampled_from(KEYS), max_size=12))
    def test_exclusive_toggle_yields_only_exclusive(self, toggles):
        """Toggling the exclusive option on from any state leaves exactly that option."""
        model = ChoiceAnswerModel(_item())
        for key in toggles:
            model.toggle(key)
        if model.is_selected("none"):
            model.toggle("none")
        model.toggle("none")
        assert model.selected_keys == ["none"]

    @given(st.lists(st.sampled_from(KEYS), max_size=12), st.sampled_from(KEYS))
    def test_toggle_off_and_on_restores(self, toggles, key):
        """Toggling a selected option off and on again restores the selection."""
        model = ChoiceAnswerModel(_item())
        for k in toggles:
            model.toggle(k)
        if not model.is_selected(key):
            return
        before = model.value
        model.toggle(key)
        model.toggle(key)
        assert model.value == before


class TestRepresentation:
    """Test response output and ordinals."""

    def test_coding_is_user_selected_with_answer_ordinal(self):
        model = ChoiceAnswerModel(_item())
        model.toggle("b")
        [answer] = model.to_response_answers()
        coding = answer["valueCoding"]
        assert coding["userSelected"] is True
        assert coding["code"] == "b"
        assert coding["extension"] == [{"url": ext.ANSWER_ORDINAL_VALUE, "valueDecimal": 2}]

    def test_unanswered(self):
        model = ChoiceAnswerModel(_item())
        assert model.to_response_representation() is None
        assert model.to_response_answers() == []

    def test_ordinal_total(self):
        model = ChoiceAnswerModel(_item())
        model.toggle("a")
        model.toggle("c")
        assert model.ordinal_total() == Decimal(4)

    def test_display_uses_option_labels(self):
        model = ChoiceAnswerModel(_item())
        model.toggle("a")
        model.toggle("b")
        assert model.display == "A, B"


class TestPrefill:
    """Test populate and computed values."""

    def test_coding_prefill_maps_to_option(self):
        model = ChoiceAnswerModel(_item())
        model.populate_answers([{"valueCoding": {"system": SYSTEM, "code": "a"}}, {"valueCoding": {"code": "c"}}])
        assert model.selected_keys == ["a", "c"]
        assert model.value[0].user_selected is True

    def test_mismatched_prefill_is_ignored(self):
        model = ChoiceAnswerModel(_item())
        model.populate({"valueBoolean": True})
        assert not model.is_answered

    def test_string_prefill_matching_key(self):
        model = ChoiceAnswerModel(_item(repeats=False))
        model.populate({"valueString": "b"})
        assert model.selected_keys == ["b"]

    def test_string_prefill_on_closed_choice_is_ignored(self):
        model = ChoiceAnswerModel(_item(repeats=False))
        model.populate({"valueString": "something else"})
        assert not model.is_answered

    def test_computed_value(self):
        model = ChoiceAnswerModel(_item(repeats=False))
        model.populate_from_computed_value("c")
        assert model.selected_keys == ["c"]
        model.populate_from_computed_value(None)
        assert not model.is_answered
        with pytest.raises(QuestionnaireStateError):
            model.populate_from_computed_value(3)

    def test_initial_selected(self):
        node = {
            "linkId": "c",
            "type": "choice",
            "answerOption": [{"valueCoding": {"code": "x"}}, {"valueCoding": {"code": "y"}, "initialSelected": True}],
        }
        model = ChoiceAnswerModel(ItemDefinition.from_dict(node))
        model.select_initial()
        assert model.selected_keys == ["y"]


class TestOpenChoice:
    """Test open-choice free text."""

    def test_free_text_prefill_and_output(self):
        model = ChoiceAnswerModel(_item(item_type="open-choice"))
        model.populate_answers([{"valueCoding": {"code": "a"}}, {"valueString": "Something else"}])
        assert model.open_text == "Something else"
        answers = model.to_response_answers()
        assert answers[-1] == {"valueString": "Something else"}
        assert answers[0]["valueCoding"]["code"] == "a"

    def test_free_text_alone_is_answered(self):
        model = ChoiceAnswerModel(_item(item_type="open-choice", repeats=False))
        model.set_open_text("  mine  ")
        assert model.is_answered
        assert model.open_text == "mine"

    def test_free_text_requires_open_choice(self):
        model = ChoiceAnswerModel(_item())
        with pytest.raises(QuestionnaireStateError):
            model.set_open_text("nope")


class TestValueSetOptions:
    """Test options delivered by a value set."""

    def test_contained_value_set(self):
        vs = {
            "resourceType": "ValueSet",
            "id": "vs",
            "compose": {
                "include": [
                    {
                        "system": SYSTEM,
                        "concept": [
                            {
                                "code": "x",
                                "display": "Ex",
                                "extension": [
                                    {"url": ext.ORDINAL_VALUE, "valueDecimal": 5},
                                    {"url": ext.VALUESET_LABEL, "valueString": "1)"},
                                ],
                            },
                            {"code": "y", "display": "Why"},
                        ],
                    }
                ]
            },
        }
        context = AnswerContext(resolver=InMemoryValueSetResolver({"vs": vs}))
        model = ChoiceAnswerModel(_value_set_item(), context)
        assert [o.key for o in model.options] == ["x", "y"]
        assert model.option("x").prefix == "1)"
        model.select("x")
        assert model.ordinal_total() == Decimal(5)

    def test_unknown_value_set_gives_zero_options(self):
        model = ChoiceAnswerModel(_value_set_item())
        assert model.options == []

    def test_late_options_keep_matching_selection(self):
        """A prefilled coding survives and is re-normalized when its option arrives."""
        resolver = DeferredValueSetResolver()
        model = ChoiceAnswerModel(_value_set_item(), AnswerContext(resolver=resolver))
        assert resolver.pending_references == ["#vs"]

        model.populate({"valueCoding": {"system": SYSTEM, "code": "b"}})
        assert model.selected_keys == ["b"]
        assert model.ordinal_total() == Decimal(0)

        assert resolver.complete("#vs", [_vs_coding("a", 1), _vs_coding("b", 2)]) == 1
        assert model.selected_keys == ["b"]
        assert model.value[0].user_selected is True
        assert model.ordinal_total() == Decimal(2)

    def test_disposed_model_ignores_late_options(self):
        resolver = DeferredValueSetResolver()
        model = ChoiceAnswerModel(_value_set_item(), AnswerContext(resolver=resolver))
        model.dispose()
        resolver.complete("#vs", [_vs_coding("a", 1)])
        assert model.options == []

    def test_duplicate_value_set_key_replaces(self):
        resolver = DeferredValueSetResolver()
        model = ChoiceAnswerModel(_value_set_item(), AnswerContext(resolver=resolver))
        resolver.complete("#vs", [_vs_coding("a", 1), _vs_coding("a", 7)])
        assert len(model.options) == 1
        assert model.option("a").ordinal == Decimal(7)

    def test_value_set_coding_without_key_is_skipped(self):
        resolver = DeferredValueSetResolver()
        model = ChoiceAnswerModel(_value_set_item(), AnswerContext(resolver=resolver))
        resolver.complete("#vs", [Coding(system=SYSTEM), _vs_coding("a", 1)])
        assert [o.key for o in model.options] == ["a"]
