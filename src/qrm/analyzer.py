"""
Questionnaire Analyzer: Early diagnostics and inventory of definitions.

This module provides lightweight analysis of Questionnaire objects:
    - Item inventory by type
    - Dangling enableWhen references
    - Items whose enablement depends on themselves or a descendant
    - Enablement dependency cycles
    - Broken items and choice items without options
    - Score sinks and the ordinal sources feeding them

IMPORTANT: This is read-only. It does NOT modify the questionnaire.
It only produces reports.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

from qrm.conditions import EnableWhenOperator
from qrm.model import ItemDefinition, ItemType, Questionnaire
from qrm.scoring import is_score_sink


def _find_cycles_dfs(graph: Dict[str, List[str]], start: str, visited: Set[str],
                     rec_stack: Set[str], path: List[str]) -> Optional[List[str]]:
    """DFS to find a cycle starting from a node."""
    visited.add(start)
    rec_stack.add(start)
    path.append(start)

    for neighbor in graph.get(start, []):
        if neighbor not in visited:
            cycle = _find_cycles_dfs(graph, neighbor, visited, rec_stack, path[:])
            if cycle:
                return cycle
        elif neighbor in rec_stack:
            cycle_start_idx = path.index(neighbor)
            return path[cycle_start_idx:] + [neighbor]

    rec_stack.remove(start)
    return None


@dataclass
class QuestionnaireReport:
    """Analysis report for one questionnaire."""

    title: str
    total_items: int = 0
    items_by_type: Dict[str, int] = field(default_factory=dict)

    # Enablement
    conditional_items: int = 0
    dangling_references: Dict[str, List[str]] = field(default_factory=dict)   # item -> missing sources
    self_references: List[str] = field(default_factory=list)                 # depends on itself or a descendant
    unevaluated_operators: Dict[str, List[str]] = field(default_factory=dict)  # item -> operators that fail open
    has_cycles: bool = False
    cycle_example: Optional[List[str]] = None

    # Structure
    broken_items: Dict[str, str] = field(default_factory=dict)
    choice_items_without_options: List[str] = field(default_factory=list)

    # Scoring
    score_sinks: List[str] = field(default_factory=list)
    ordinal_sources: List[str] = field(default_factory=list)

    warnings: List[str] = field(default_factory=list)

    def add_warning(self, msg: str) -> None:
        """Add a warning to the report."""
        if msg not in self.warnings:
            self.warnings.append(msg)


def analyze_questionnaire(questionnaire: Questionnaire) -> QuestionnaireReport:
    """
    Perform analysis of a Questionnaire.

    Checks for:
    - enableWhen references to unknown items
    - enablement on the item itself or its descendants
    - cycles between enablement conditions
    - broken items, and choice items that may end up without options
    - score sinks with no ordinal-valued sources

    Returns a QuestionnaireReport with metrics and warnings.
    """
    report = QuestionnaireReport(title=questionnaire.title or questionnaire.id or "Questionnaire")

    items = list(questionnaire.iter_items())
    item_by_id: Dict[str, ItemDefinition] = {i.link_id: i for i in items if i.link_id}

    # =========================================================================
    # 1. INVENTORY
    # =========================================================================

    report.total_items = len(items)
    by_type: Dict[str, int] = defaultdict(int)
    for item in items:
        by_type[item.type.value if item.type else "unknown"] += 1
    report.items_by_type = dict(by_type)

    # =========================================================================
    # 2. ENABLEMENT REFERENCES
    # =========================================================================

    # item -> sources it depends on
    depends_on: Dict[str, List[str]] = defaultdict(list)

    for item in items:
        if not item.enable_when:
            continue
        report.conditional_items += 1
        descendants = {d.link_id for d in item.iter_tree()}

        for condition in item.enable_when:
            source = condition.question
            if source not in item_by_id:
                report.dangling_references.setdefault(item.link_id, []).append(source)
                continue
            if source in descendants and item.link_id not in report.self_references:
                report.self_references.append(item.link_id)
            depends_on[item.link_id].append(source)

            if condition.operator not in (EnableWhenOperator.EXISTS, EnableWhenOperator.EQUALS):
                op = condition.operator.value if condition.operator else "<unknown>"
                report.unevaluated_operators.setdefault(item.link_id, []).append(op)

    # =========================================================================
    # 3. CYCLE DETECTION
    # =========================================================================

    visited: Set[str] = set()
    for link_id in list(depends_on.keys()):
        if link_id not in visited:
            cycle = _find_cycles_dfs(depends_on, link_id, visited, set(), [])
            if cycle:
                report.has_cycles = True
                report.cycle_example = cycle
                break

    # =========================================================================
    # 4. STRUCTURE
    # =========================================================================

    for item in items:
        if item.is_broken:
            report.broken_items[item.link_id or "<no linkId>"] = item.error.message
        elif (
            item.is_choice
            and not item.answer_options
            and item.answer_value_set
            and item.answer_value_set.startswith("#")
            and item.answer_value_set[1:] not in questionnaire.contained
        ):
            report.choice_items_without_options.append(item.link_id)

    # =========================================================================
    # 5. SCORING
    # =========================================================================

    for item in items:
        if is_score_sink(item):
            report.score_sinks.append(item.link_id)
        elif item.is_choice and any(o.ordinal is not None for o in item.answer_options):
            report.ordinal_sources.append(item.link_id)

    # =========================================================================
    # 6. WARNING FLAGS
    # =========================================================================

    for link_id, missing in report.dangling_references.items():
        report.add_warning(f"Item {link_id} has enableWhen on unknown item(s): {', '.join(missing)}")

    if report.self_references:
        report.add_warning(
            f"Enablement depends on the item itself or a descendant: {', '.join(report.self_references)}"
        )

    for link_id, ops in report.unevaluated_operators.items():
        report.add_warning(f"Item {link_id} uses operator(s) {', '.join(ops)} which always evaluate as enabled")

    if report.has_cycles:
        report.add_warning(f"Enablement cycle detected: {' -> '.join(report.cycle_example)}")

    if report.broken_items:
        report.add_warning(f"Broken items: {', '.join(sorted(report.broken_items))}")

    if report.choice_items_without_options:
        report.add_warning(
            f"Choice items referencing missing contained value sets: {', '.join(report.choice_items_without_options)}"
        )

    if report.score_sinks and not report.ordinal_sources and not any(
        i.answer_value_set for i in items if i.type in (ItemType.CHOICE, ItemType.OPEN_CHOICE)
    ):
        report.add_warning(f"Score sinks without ordinal sources: {', '.join(report.score_sinks)}")

    return report


__all__ = ["QuestionnaireReport", "analyze_questionnaire"]
