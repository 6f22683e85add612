"""
Response Tree: the filling session for one questionnaire.

A ResponseTree owns one ResponseItemInstance per occurrence of an item
definition, each holding at most one AnswerModel. Instances carry a small
state machine:

    HIDDEN  <->  VISIBLE_UNANSWERED  <->  VISIBLE_ANSWERED  <->  VISIBLE_INVALID

ARCHITECTURAL RULE:
    Every mutation (answer change, prefill, repeat added or removed) runs
    exactly one recompute pass, in this order:
        (a) enablement for all instances
        (b) invalid flags from the visible answer models
        (c) triggered scores
        (d) observers notified once
    Observers never see the tree mid-pass. `batch()` groups several
    mutations into a single pass.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, Iterator, List, Optional, Set, Union

from .answers import AnswerContext, AnswerModel, ChoiceAnswerModel, create_answer_model
from .backends.narrative import generate_narrative
from .config import FillerConfig
from .enablement import EnablementEvaluator
from .errors import QuestionnaireFormatException, QuestionnaireStateError
from .l10n import DiagnosticMessages
from .model import ItemDefinition, Questionnaire
from .scoring import ScoreAggregator, is_score_sink
from .valueset import InMemoryValueSetResolver, ValueSetResolver

logger = logging.getLogger(__name__)

RESPONSE_STATUSES = frozenset({"in-progress", "completed", "amended", "entered-in-error", "stopped"})


class ItemState(Enum):
    HIDDEN = "hidden"
    VISIBLE_UNANSWERED = "visible-unanswered"
    VISIBLE_ANSWERED = "visible-answered"
    VISIBLE_INVALID = "visible-invalid"


@dataclass(frozen=True)
class ResponseChange:
    """Published to observers once per recompute pass."""
    revision: int
    link_ids: FrozenSet[str]


@dataclass(frozen=True)
class Progress:
    answered: int
    total: int

    @property
    def ratio(self) -> float:
        return self.answered / self.total if self.total else 1.0


class ResponseItemInstance:
    """
    One occurrence of an ItemDefinition inside a ResponseTree.

    Properties:
        item: The definition this instance answers
        parent: Enclosing instance, None at top level
        index: Position among repetitions of the same item
        model: AnswerModel for questions, None for groups, display and broken items
        children: Ordered child instances
        enabled / invalid: Flags written by the recompute pass
        error: Construction error of a broken placeholder
    """

    def __init__(self, item: ItemDefinition, parent: Optional["ResponseItemInstance"] = None, index: int = 0):
        self.item = item
        self.parent = parent
        self.index = index
        self.model: Optional[AnswerModel] = None
        self.children: List[ResponseItemInstance] = []
        self.enabled = True
        self.invalid = False
        self.error: Optional[QuestionnaireFormatException] = item.error

    @property
    def link_id(self) -> str:
        return self.item.link_id

    @property
    def is_broken(self) -> bool:
        return self.error is not None

    @property
    def is_answered(self) -> bool:
        if self.model is not None:
            return self.model.is_answered
        return any(child.is_answered for child in self.children)

    @property
    def is_answerable(self) -> bool:
        """Visible, editable question with a working answer model."""
        return self.enabled and self.model is not None and not self.item.read_only

    @property
    def state(self) -> ItemState:
        if not self.enabled:
            return ItemState.HIDDEN
        if self.invalid:
            return ItemState.VISIBLE_INVALID
        if self.is_answered:
            return ItemState.VISIBLE_ANSWERED
        return ItemState.VISIBLE_UNANSWERED

    def iter_tree(self) -> Iterator["ResponseItemInstance"]:
        """This instance followed by all descendants, depth-first."""
        yield self
        for child in self.children:
            yield from child.iter_tree()

    def dispose(self) -> None:
        for instance in self.iter_tree():
            if instance.model is not None:
                instance.model.dispose()

    def __repr__(self) -> str:
        return f"ResponseItemInstance({self.link_id!r}, index={self.index}, state={self.state.value})"


Observer = Callable[[ResponseChange], None]


class ResponseTree:
    """
    Owns the instances, recompute pass and serialization of one response.

    Args:
        questionnaire: Parsed Questionnaire
        resolver: Value set resolver, defaults to the questionnaire's contained value sets
        config: FillerConfig
        messages: DiagnosticMessages, defaults to the configured locale
        clock: Callable returning the `authored` timestamp
    """

    def __init__(
        self,
        questionnaire: Questionnaire,
        resolver: Optional[ValueSetResolver] = None,
        config: Optional[FillerConfig] = None,
        messages: Optional[DiagnosticMessages] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.questionnaire = questionnaire
        self.config = config or FillerConfig()
        self.context = AnswerContext(
            config=self.config,
            messages=messages,
            resolver=resolver or InMemoryValueSetResolver(questionnaire.contained),
        )
        self.enablement = EnablementEvaluator(self)
        self.scoring = ScoreAggregator()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

        self._observers: List[Observer] = []
        self._revision = 0
        self._batch_depth = 0
        self._recomputing = False
        self._dirty: Set[str] = set()

        with self.batch():
            self.roots: List[ResponseItemInstance] = [
                self._build_instance(item, None, 0) for item in questionnaire.items
            ]
            self._dirty.update(i.link_id for i in self.instances())

    # =========================================================================
    # CONSTRUCTION
    # =========================================================================

    def _build_instance(
        self, item: ItemDefinition, parent: Optional[ResponseItemInstance], index: int
    ) -> ResponseItemInstance:
        instance = ResponseItemInstance(item, parent, index)
        if item.is_broken:
            return instance

        if item.is_question:
            try:
                instance.model = create_answer_model(item, self.context)
            except QuestionnaireFormatException as e:
                logger.warning("cannot create answer model for %s: %s", item.link_id, e)
                instance.error = e
                return instance
            if instance.model is not None:
                self._apply_initial(instance.model)
                instance.model.bind(lambda _model, inst=instance: self._on_model_changed(inst))

        instance.children = [self._build_instance(child, instance, 0) for child in item.children]
        return instance

    @staticmethod
    def _apply_initial(model: AnswerModel) -> None:
        if model.item.initial:
            model.populate_answers(list(model.item.initial))
        elif isinstance(model, ChoiceAnswerModel):
            model.select_initial()

    # =========================================================================
    # RECOMPUTE PASS
    # =========================================================================

    @contextmanager
    def batch(self):
        """Group mutations; the pass runs once when the outermost batch exits."""
        self._batch_depth += 1
        try:
            yield self
        finally:
            self._batch_depth -= 1
            if self._batch_depth == 0:
                self._run_pass()

    def _on_model_changed(self, instance: ResponseItemInstance) -> None:
        self._dirty.add(instance.link_id)
        if self._recomputing or self._batch_depth > 0:
            return
        self._run_pass()

    def refresh(self) -> None:
        """Run a pass without a prior mutation, e.g. after late value set options."""
        with self.batch():
            pass

    def _run_pass(self) -> None:
        instances = list(self.instances())
        before = {id(i): i.state for i in instances}

        self._recomputing = True
        try:
            # (a) enablement
            for instance in instances:
                instance.enabled = self.enablement.is_enabled(instance)
            # (b) invalid flags
            for instance in instances:
                instance.invalid = self._is_invalid(instance)
            # (c) scores; a computed value clears the sink's diagnostic
            if self.scoring.recompute(self) is not None:
                for sink in self.scoring.sinks(self):
                    sink.invalid = self._is_invalid(sink)
        finally:
            self._recomputing = False

        changed = set(self._dirty)
        self._dirty.clear()
        changed.update(i.link_id for i in instances if before[id(i)] != i.state)

        self._revision += 1
        change = ResponseChange(revision=self._revision, link_ids=frozenset(changed))
        logger.debug("pass %d changed %s", change.revision, sorted(change.link_ids))
        # (d) notify
        for observer in list(self._observers):
            observer(change)

    @staticmethod
    def _is_invalid(instance: ResponseItemInstance) -> bool:
        return instance.enabled and instance.model is not None and instance.model.error is not None

    @property
    def revision(self) -> int:
        return self._revision

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Register an observer; returns a callable that unsubscribes it."""
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    # =========================================================================
    # TRAVERSAL
    # =========================================================================

    def instances(self, link_id: Optional[str] = None) -> List[ResponseItemInstance]:
        """All instances in definition order, optionally filtered by linkId."""
        result = []
        for root in self.roots:
            for instance in root.iter_tree():
                if link_id is None or instance.link_id == link_id:
                    result.append(instance)
        return result

    def find(self, link_id: str) -> Optional[ResponseItemInstance]:
        """First instance with `link_id`, or None."""
        found = self.instances(link_id)
        return found[0] if found else None

    def model(self, link_id: str) -> AnswerModel:
        """
        Answer model of the first instance with `link_id`.

        Raises:
            KeyError: if there is no such instance or it has no answer model
        """
        instance = self.find(link_id)
        if instance is None or instance.model is None:
            raise KeyError(link_id)
        return instance.model

    def answerable_instances(self) -> List[ResponseItemInstance]:
        return [i for i in self.instances() if i.is_answerable]

    def progress(self) -> Progress:
        answerable = self.answerable_instances()
        return Progress(answered=sum(1 for i in answerable if i.model.is_answered), total=len(answerable))

    def first_unanswered_or_invalid(self) -> Optional[ResponseItemInstance]:
        for instance in self.answerable_instances():
            if instance.invalid or not instance.model.is_answered:
                return instance
        return None

    def missing_required(self) -> List[ResponseItemInstance]:
        return [i for i in self.answerable_instances() if i.item.required and not i.model.is_answered]

    def total_score(self) -> Decimal:
        return self.scoring.total(self)

    def score_sinks(self) -> List[ResponseItemInstance]:
        return [i for i in self.instances() if i.model is not None and is_score_sink(i.item)]

    # =========================================================================
    # REPEATS
    # =========================================================================

    def _siblings(self, instance: ResponseItemInstance) -> List[ResponseItemInstance]:
        return instance.parent.children if instance.parent is not None else self.roots

    def add_repeat(self, target: Union[str, ResponseItemInstance]) -> ResponseItemInstance:
        """
        Append a repetition after the last instance of the same item.

        Repeating choice items hold several selections in one instance, so
        they cannot be repeated structurally.

        Raises:
            KeyError: unknown linkId
            QuestionnaireStateError: item does not repeat
        """
        if isinstance(target, str):
            found = self.instances(target)
            if not found:
                raise KeyError(target)
            target = found[-1]
        item = target.item
        if not item.repeats or item.is_choice or item.is_broken:
            raise QuestionnaireStateError(f"{item.link_id}: item does not repeat")

        siblings = self._siblings(target)
        same = [i for i in siblings if i.item is item]
        with self.batch():
            instance = self._build_instance(item, target.parent, len(same))
            siblings.insert(siblings.index(same[-1]) + 1, instance)
            self._dirty.add(item.link_id)
        return instance

    def remove_repeat(self, instance: ResponseItemInstance) -> None:
        """
        Remove one repetition and dispose its answer models.

        Raises:
            QuestionnaireStateError: item does not repeat, or this is its last instance
        """
        siblings = self._siblings(instance)
        same = [i for i in siblings if i.item is instance.item]
        if not instance.item.repeats or instance not in same:
            raise QuestionnaireStateError(f"{instance.link_id}: not a removable repetition")
        if len(same) == 1:
            raise QuestionnaireStateError(f"{instance.link_id}: cannot remove the last repetition")

        with self.batch():
            siblings.remove(instance)
            instance.dispose()
            for index, sibling in enumerate(i for i in same if i is not instance):
                sibling.index = index
            self._dirty.add(instance.link_id)

    # =========================================================================
    # PREFILL
    # =========================================================================

    def populate(self, response: Dict[str, Any]) -> None:
        """
        Prefill answers from a prior QuestionnaireResponse.

        Nodes are matched by linkId level by level. Answers of a kind that
        does not fit the item's declared type are ignored.
        """
        with self.batch():
            self._populate_level(self.roots, None, (response or {}).get("item") or [])

    def _populate_level(
        self,
        siblings: List[ResponseItemInstance],
        parent: Optional[ResponseItemInstance],
        nodes: List[Dict[str, Any]],
    ) -> None:
        grouped: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
        for node in nodes:
            if isinstance(node, dict) and node.get("linkId"):
                grouped[node["linkId"]].append(node)

        for link_id, group in grouped.items():
            existing = [i for i in siblings if i.link_id == link_id]
            if not existing:
                logger.debug("prior response item %s has no counterpart", link_id)
                continue
            first = existing[0]
            if first.is_broken:
                continue

            if first.model is not None and first.item.repeats and not first.item.is_choice:
                # One node carries the answers of every repetition
                answers = [a for node in group for a in node.get("answer") or []]
                while len(existing) < len(answers):
                    existing.append(self.add_repeat(existing[-1]))
                for instance, answer in zip(existing, answers):
                    instance.model.populate_answers([answer])
                self._populate_repeated_children(existing, group, answers)
                continue

            if first.item.is_group and first.item.repeats:
                while len(existing) < len(group):
                    existing.append(self.add_repeat(existing[-1]))

            for instance, node in zip(existing, group):
                if instance.model is not None:
                    instance.model.populate_answers(node.get("answer") or [])
                self._populate_children(instance, [node])

    def _populate_children(self, instance: ResponseItemInstance, nodes: List[Dict[str, Any]]) -> None:
        child_nodes: List[Dict[str, Any]] = []
        for node in nodes:
            child_nodes.extend(node.get("item") or [])
            # Questions may nest their children under answer.item
            for answer in node.get("answer") or []:
                if isinstance(answer, dict):
                    child_nodes.extend(answer.get("item") or [])
        if child_nodes:
            self._populate_level(instance.children, instance, child_nodes)

    def _populate_repeated_children(
        self,
        existing: List[ResponseItemInstance],
        nodes: List[Dict[str, Any]],
        answers: List[Dict[str, Any]],
    ) -> None:
        """
        Hand children of a merged repeating question back to their repetitions.

        The k-th repetition takes the children nested under the k-th answer
        and the k-th node-level occurrence of each child linkId.
        """
        per_instance: List[List[Dict[str, Any]]] = [[] for _ in existing]
        for index, answer in enumerate(answers):
            if isinstance(answer, dict):
                per_instance[index].extend(answer.get("item") or [])

        occurrences: Dict[str, int] = defaultdict(int)
        for node in nodes:
            for child in node.get("item") or []:
                if not isinstance(child, dict):
                    continue
                link_id = child.get("linkId")
                per_instance[min(occurrences[link_id], len(existing) - 1)].append(child)
                occurrences[link_id] += 1

        for instance, child_nodes in zip(existing, per_instance):
            if child_nodes:
                self._populate_level(instance.children, instance, child_nodes)

    # =========================================================================
    # SERIALIZATION
    # =========================================================================

    def to_response(self, status: str = "in-progress") -> Dict[str, Any]:
        """
        Build the QuestionnaireResponse resource.

        Raises:
            ValueError: unknown status
        """
        if status not in RESPONSE_STATUSES:
            raise ValueError(f"Unknown QuestionnaireResponse status {status!r}")
        response: Dict[str, Any] = {"resourceType": "QuestionnaireResponse", "status": status}
        if self.questionnaire.canonical:
            response["questionnaire"] = self.questionnaire.canonical
        response["authored"] = self._clock().isoformat()
        if self.config.narrative:
            response["text"] = {"status": "generated", "div": generate_narrative(self)}
        response["item"] = self._nodes(self.roots)
        return response

    def _nodes(self, instances: List[ResponseItemInstance]) -> List[Dict[str, Any]]:
        nodes: List[Dict[str, Any]] = []
        merged: Dict[int, Dict[str, Any]] = {}
        for instance in instances:
            if not instance.enabled:
                continue
            item = instance.item
            merge = instance.model is not None and item.repeats and not item.is_choice
            if merge and id(item) in merged:
                node = merged[id(item)]
                node.setdefault("answer", []).extend(instance.model.to_response_answers())
                children = self._nodes(instance.children)
                if children:
                    node.setdefault("item", []).extend(children)
                continue

            node = self._node(instance)
            if merge:
                merged[id(item)] = node
            nodes.append(node)

        for node in nodes:
            if "answer" in node and not node["answer"]:
                del node["answer"]
        return nodes

    def _node(self, instance: ResponseItemInstance) -> Dict[str, Any]:
        node: Dict[str, Any] = {"linkId": instance.link_id}
        if instance.item.text is not None:
            node["text"] = instance.item.text
        if instance.is_broken:
            return node
        if instance.model is not None:
            node["answer"] = instance.model.to_response_answers()
        children = self._nodes(instance.children)
        if children:
            node["item"] = children
        return node


__all__ = [
    "ItemState",
    "Progress",
    "ResponseChange",
    "ResponseItemInstance",
    "ResponseTree",
    "RESPONSE_STATUSES",
]
