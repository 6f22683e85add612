"""
XHTML narrative generator for QuestionnaireResponses.

Converts a ResponseTree into the human-readable `text.div` of the
response resource:
    - groups become headings wrapping their children
    - questions become question / answer paragraphs
    - display items become plain paragraphs
    - a total score line closes the narrative when the tree has score sinks

Hidden instances never appear.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List

from ..extensions import XHTML_NAMESPACE
from ..datatypes import json_number

if TYPE_CHECKING:
    from ..response import ResponseItemInstance, ResponseTree


def _escape_xhtml(s: str) -> str:
    """Escape text content for XHTML."""
    if not s:
        return ""
    # Ampersand first
    s = s.replace("&", "&amp;")
    s = s.replace("<", "&lt;")
    s = s.replace(">", "&gt;")
    return s.replace('"', "&quot;")


def _label(instance: "ResponseItemInstance") -> str:
    item = instance.item
    text = item.text or item.link_id
    return f"{item.prefix} {text}" if item.prefix else text


def _instance_lines(instance: "ResponseItemInstance", depth: int) -> List[str]:
    if not instance.enabled:
        return []
    indent = "  " * depth
    label = _escape_xhtml(_label(instance))
    lines: List[str] = []

    if instance.is_broken:
        lines.append(f"{indent}<p>{label}</p>")
    elif instance.item.is_group:
        heading = min(6, 3 + depth)
        lines.append(f"{indent}<div>")
        lines.append(f"{indent}  <h{heading}>{label}</h{heading}>")
        for child in instance.children:
            lines.extend(_instance_lines(child, depth + 1))
        lines.append(f"{indent}</div>")
        return lines
    elif instance.model is not None:
        answer = _escape_xhtml(instance.model.display)
        lines.append(f"{indent}<p><b>{label}</b>: {answer}</p>")
    else:
        lines.append(f"{indent}<p>{label}</p>")

    for child in instance.children:
        lines.extend(_instance_lines(child, depth))
    return lines


def generate_narrative(tree: "ResponseTree") -> str:
    """
    Generate the XHTML narrative for a response tree.

    Args:
        tree: ResponseTree to summarize

    Returns:
        String containing a single <div> in the XHTML namespace
    """
    lines = [f'<div xmlns="{XHTML_NAMESPACE}">']

    title = tree.questionnaire.title
    if title:
        lines.append(f"  <h2>{_escape_xhtml(title)}</h2>")

    for root in tree.roots:
        lines.extend(_instance_lines(root, 1))

    if any(sink.enabled for sink in tree.score_sinks()):
        caption = _escape_xhtml(tree.context.messages.lookup("total_score"))
        lines.append(f"  <p><b>{caption}</b>: {json_number(tree.total_score())}</p>")

    lines.append("</div>")
    return "\n".join(lines)


def save_narrative_file(tree: "ResponseTree", filename: str) -> None:
    """
    Generate the narrative and save it to a file.

    Args:
        tree: ResponseTree to summarize
        filename: Output file path (.html extension recommended)
    """
    narrative = generate_narrative(tree)
    with open(filename, "w", encoding="utf-8") as f:
        f.write(narrative)


__all__ = ["generate_narrative", "save_narrative_file"]
