"""
Tests for the XHTML narrative backend.
"""

from qrm import extensions as ext
from qrm.backends import generate_narrative, save_narrative_file
from qrm.examples import build_example_phq_questionnaire
from qrm.model import Questionnaire
from qrm.response import ResponseTree


def _tree(*items, title=None):
    d = {"resourceType": "Questionnaire", "item": list(items)}
    if title:
        d["title"] = title
    return ResponseTree(Questionnaire.from_dict(d))


class TestGenerateNarrative:
    """Test the generated div."""

    def test_wrapper_and_title(self):
        div = generate_narrative(_tree({"linkId": "a", "type": "string", "text": "Name"}, title="Intake"))
        lines = div.split("\n")
        assert lines[0] == f'<div xmlns="{ext.XHTML_NAMESPACE}">'
        assert lines[1] == "  <h2>Intake</h2>"
        assert lines[-1] == "</div>"

    def test_question_and_answer(self):
        tree = _tree({"linkId": "a", "type": "string", "text": "Name", "prefix": "1."})
        tree.model("a").commit_text("Ada")
        assert "<p><b>1. Name</b>: Ada</p>" in generate_narrative(tree)

    def test_text_is_escaped(self):
        tree = _tree({"linkId": "a", "type": "string", "text": "A & B <c>"})
        tree.model("a").commit_text('"quoted"')
        div = generate_narrative(tree)
        assert "A &amp; B &lt;c&gt;" in div
        assert "&quot;quoted&quot;" in div

    def test_hidden_items_are_omitted(self):
        tree = _tree(
            {"linkId": "gate", "type": "boolean", "text": "Gate"},
            {
                "linkId": "secret",
                "type": "string",
                "text": "Secret",
                "enableWhen": [{"question": "gate", "operator": "exists", "answerBoolean": True}],
            },
        )
        assert "Secret" not in generate_narrative(tree)
        tree.model("gate").value = True
        assert "Secret" in generate_narrative(tree)

    def test_groups_become_headings(self):
        tree = _tree({"linkId": "g", "type": "group", "text": "Section", "item": [{"linkId": "a", "type": "string"}]})
        div = generate_narrative(tree)
        assert "<h4>Section</h4>" in div

    def test_total_score_line(self):
        tree = ResponseTree(build_example_phq_questionnaire())
        tree.model("phq-1").select("LA6570-1")
        tree.model("phq-2").select("LA6569-3")
        assert "<p><b>Total score</b>: 3</p>" in generate_narrative(tree)

    def test_no_score_line_without_sinks(self):
        assert "Total score" not in generate_narrative(_tree({"linkId": "a", "type": "string"}))


def test_save_narrative_file(tmp_path):
    tree = _tree({"linkId": "a", "type": "string", "text": "Name"})
    path = tmp_path / "response.html"
    save_narrative_file(tree, str(path))
    assert path.read_text(encoding="utf-8") == generate_narrative(tree)
