"""
Item Definition Model

Turns the nodes of a Questionnaire definition into normalized, immutable
configuration objects:
    - ItemConfig (recognized extensions, typed)
    - NumericConstraints (bounds, precision, slider divisions, pattern)
    - AnswerOption (normalized choice option)
    - ItemDefinition (one node of the definition tree)
    - Questionnaire (root container)

ARCHITECTURAL RULE:
    These objects:
        - Are derived once, at load time
        - Are frozen
        - Know nothing about answers, rendering or response state
    Value-set resolution is deferred to the response layer.
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass, field, replace
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple

from . import extensions as ext
from .conditions import EnableBehavior, EnableWhen
from .config import FillerConfig
from .datatypes import Coding, Extension, extensions_from_list, find_extension, to_decimal
from .errors import QuestionnaireFormatException


logger = logging.getLogger(__name__)

INTEGER_MAX = Decimal(2147483647)
DECIMAL_MAX = Decimal(str(sys.float_info.max))


class ItemType(Enum):
    """Definition node types."""

    GROUP = "group"
    DISPLAY = "display"
    BOOLEAN = "boolean"
    INTEGER = "integer"
    DECIMAL = "decimal"
    QUANTITY = "quantity"
    DATE = "date"
    DATE_TIME = "dateTime"
    TIME = "time"
    STRING = "string"
    TEXT = "text"
    URL = "url"
    CHOICE = "choice"
    OPEN_CHOICE = "open-choice"
    ATTACHMENT = "attachment"
    REFERENCE = "reference"


NUMERIC_TYPES = frozenset({ItemType.INTEGER, ItemType.DECIMAL, ItemType.QUANTITY})
CHOICE_TYPES = frozenset({ItemType.CHOICE, ItemType.OPEN_CHOICE})
UNSUPPORTED_TYPES = frozenset({ItemType.ATTACHMENT, ItemType.REFERENCE})


def _number(extension: Optional[Extension]) -> Optional[Decimal]:
    if extension is None:
        return None
    if extension.value_type in ("Decimal", "Integer"):
        return to_decimal(extension.value)
    return None


def _integer(extension: Optional[Extension]) -> Optional[int]:
    if extension is None or extension.value is None:
        return None
    value = extension.value
    if extension.value_type != "Integer" or isinstance(value, bool) or not isinstance(value, int):
        raise QuestionnaireFormatException(f"Extension {extension.url} requires valueInteger", extension.to_dict())
    return value


def _item_control_code(extension: Optional[Extension]) -> Optional[str]:
    if extension is None or not isinstance(extension.value, dict):
        return None
    for coding in extension.value.get("coding") or []:
        if coding.get("code"):
            return coding["code"]
    return None


@dataclass(frozen=True)
class ItemConfig:
    """
    Closed, typed view of the extensions QRM understands.

    Unknown extensions never make it into this struct.
    """

    min_value: Optional[Decimal] = None
    max_value: Optional[Decimal] = None
    max_decimal_places: Optional[int] = None
    slider_step_value: Optional[Decimal] = None
    item_control: Optional[str] = None
    unit_value_set: Optional[str] = None
    computable_unit: Optional[Coding] = None
    has_calculated_expression: bool = False
    has_cqf_expression: bool = False
    min_length: Optional[int] = None
    regex: Optional[str] = None
    hidden: bool = False

    @property
    def is_slider(self) -> bool:
        return self.item_control == "slider"

    @classmethod
    def from_extensions(cls, extensions: Tuple[Extension, ...]) -> "ItemConfig":
        max_decimal = find_extension(extensions, ext.MAX_DECIMAL_PLACES)
        unit = find_extension(extensions, ext.UNIT)
        unit_value_set = find_extension(extensions, ext.UNIT_VALUE_SET)
        min_length = find_extension(extensions, ext.MIN_LENGTH)
        regex = find_extension(extensions, ext.REGEX)
        hidden = find_extension(extensions, ext.HIDDEN)

        return cls(
            min_value=_number(find_extension(extensions, ext.MIN_VALUE)),
            max_value=_number(find_extension(extensions, ext.MAX_VALUE)),
            max_decimal_places=_integer(max_decimal),
            slider_step_value=_number(find_extension(extensions, ext.SLIDER_STEP_VALUE)),
            item_control=_item_control_code(find_extension(extensions, ext.ITEM_CONTROL)),
            unit_value_set=unit_value_set.value if unit_value_set else None,
            computable_unit=unit.value if unit and isinstance(unit.value, Coding) else None,
            has_calculated_expression=find_extension(extensions, ext.CALCULATED_EXPRESSION) is not None,
            has_cqf_expression=find_extension(extensions, ext.CQF_EXPRESSION) is not None,
            min_length=_integer(min_length),
            regex=regex.value if regex else None,
            hidden=bool(hidden.value) if hidden else False,
        )


@dataclass(frozen=True)
class NumericConstraints:
    """
    Bounds and precision of a numeric item.

    Properties:
        min_value: lower bound (defaults to 0)
        max_value: upper bound (type max, or the slider default when sliding)
        max_decimal: permitted fraction digits (0 for integer items)
        slider_divisions: round((max - min) / step), only with a slider step
        number_pattern: input pattern handed to the number formatter
    """

    min_value: Decimal
    max_value: Decimal
    max_decimal: int
    is_slider: bool = False
    slider_step_value: Optional[Decimal] = None
    slider_divisions: Optional[int] = None
    number_pattern: str = "############"

    @classmethod
    def for_item(cls, item_type: ItemType, config: ItemConfig, defaults: FillerConfig) -> "NumericConstraints":
        type_max = INTEGER_MAX if item_type == ItemType.INTEGER else DECIMAL_MAX
        min_value = config.min_value if config.min_value is not None else Decimal(0)
        if config.max_value is not None:
            max_value = config.max_value
        elif config.is_slider:
            max_value = to_decimal(defaults.slider_max_value)
        else:
            max_value = type_max

        step = config.slider_step_value if config.is_slider else None
        divisions = None
        if step:
            divisions = int(((max_value - min_value) / step).to_integral_value(rounding=ROUND_HALF_UP))

        if item_type == ItemType.INTEGER:
            max_decimal = 0
        elif config.max_decimal_places is not None:
            max_decimal = config.max_decimal_places
        else:
            max_decimal = defaults.max_decimal

        if max_value != type_max:
            integer_digits = "#" * min(12, len(str(int(max_value))))
        else:
            integer_digits = "#" * 12
        fraction_digits = ".0" + "#" * (max_decimal - 1) if max_decimal > 0 else ""

        return cls(
            min_value=min_value,
            max_value=max_value,
            max_decimal=max_decimal,
            is_slider=config.is_slider,
            slider_step_value=step,
            slider_divisions=divisions,
            number_pattern=f"{integer_digits}{fraction_digits}",
        )


def option_key(coding: Coding) -> str:
    """
    Derive the stable key of a choice from its coding.

    Code is preferred over display. Raises QuestionnaireFormatException when
    neither is present.
    """
    key = coding.code if coding.code is not None else coding.display
    if key is None:
        raise QuestionnaireFormatException(f"Insufficient info for key string in {coding}", coding)
    return key


def _answer_ordinal(ordinal: Optional[Decimal]) -> Tuple[Extension, ...]:
    if ordinal is None:
        return ()
    return (Extension(url=ext.ANSWER_ORDINAL_VALUE, value_type="Decimal", value=ordinal),)


@dataclass(frozen=True)
class AnswerOption:
    """
    A normalized choice option.

    The coding is a copy of the source coding with:
        - userSelected set to true
        - the definition's ordinalValue re-attached as the answer-level
          iso21090-CO-value extension (the only one scoring reads)
    A valueset-label on the source becomes the option prefix.
    """

    key: str
    coding: Coding
    ordinal: Optional[Decimal] = None
    prefix: Optional[str] = None
    exclusive: bool = False
    initial_selected: bool = False

    @property
    def display(self) -> str:
        label = self.coding.label()
        return f"{self.prefix} {label}" if self.prefix else label

    @classmethod
    def from_coding(cls, coding: Coding) -> "AnswerOption":
        """Normalize a coding delivered by a value set."""
        key = option_key(coding)
        ordinal = _number(coding.extension(ext.ORDINAL_VALUE))
        label = coding.extension(ext.VALUESET_LABEL)
        exclusive = coding.extension(ext.OPTION_EXCLUSIVE)
        return cls(
            key=key,
            coding=replace(coding, user_selected=True, extensions=_answer_ordinal(ordinal)),
            ordinal=ordinal,
            prefix=label.value if label else None,
            exclusive=bool(exclusive and exclusive.value is True),
        )

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "AnswerOption":
        """Normalize an inline answerOption."""
        option_extensions = extensions_from_list(d.get("extension"))
        if "valueCoding" in d:
            source = Coding.from_dict(d["valueCoding"])
        elif "valueString" in d:
            # Only valueCoding is allowed for choice, real-world definitions use valueString too
            source = Coding(display=d["valueString"])
        else:
            scalar = next((v for k, v in d.items() if k.startswith("value")), None)
            source = Coding(display=str(scalar) if scalar is not None else None)
        key = option_key(source)

        ordinal = _number(find_extension(option_extensions, ext.ORDINAL_VALUE))
        if ordinal is None:
            ordinal = _number(source.extension(ext.ORDINAL_VALUE))
        prefix = find_extension(option_extensions, ext.OPTION_PREFIX) or find_extension(
            option_extensions, ext.VALUESET_LABEL
        ) or source.extension(ext.VALUESET_LABEL)
        exclusive = find_extension(option_extensions, ext.OPTION_EXCLUSIVE)

        return cls(
            key=key,
            coding=replace(source, user_selected=True, extensions=_answer_ordinal(ordinal)),
            ordinal=ordinal,
            prefix=prefix.value if prefix else None,
            exclusive=bool(exclusive and exclusive.value is True),
            initial_selected=bool(d.get("initialSelected", False)),
        )


@dataclass(frozen=True)
class ItemDefinition:
    """
    One node of the definition tree (question, group or display).

    Properties:
        link_id: Stable identifier, unique within the questionnaire
        type: ItemType, None only for broken items whose type was unreadable
        text / prefix: Question text and label
        required / repeats / read_only: Structural flags
        max_length: Maximum text length
        answer_options: Inline options (choice items)
        answer_value_set: Value set reference (choice items)
        enable_when / enable_behavior: Conditional visibility
        initial: Raw initial answers, applied to new instances
        config: ItemConfig
        numeric: NumericConstraints for numeric items
        children: Ordered child definitions
        error: QuestionnaireFormatException for broken items

    INVARIANTS:
        - answer_options and answer_value_set are mutually exclusive
        - a broken item has no children and no options
    """

    link_id: str
    type: Optional[ItemType]
    text: Optional[str] = None
    prefix: Optional[str] = None
    required: bool = False
    repeats: bool = False
    read_only: bool = False
    max_length: Optional[int] = None
    answer_options: Tuple[AnswerOption, ...] = field(default_factory=tuple)
    answer_value_set: Optional[str] = None
    enable_when: Tuple[EnableWhen, ...] = field(default_factory=tuple)
    enable_behavior: EnableBehavior = EnableBehavior.ANY
    initial: Tuple[Dict[str, Any], ...] = field(default_factory=tuple)
    config: ItemConfig = field(default_factory=ItemConfig)
    numeric: Optional[NumericConstraints] = None
    children: Tuple["ItemDefinition", ...] = field(default_factory=tuple)
    error: Optional[QuestionnaireFormatException] = None

    @property
    def is_broken(self) -> bool:
        return self.error is not None

    @property
    def is_group(self) -> bool:
        return self.type == ItemType.GROUP

    @property
    def is_display(self) -> bool:
        return self.type == ItemType.DISPLAY

    @property
    def is_question(self) -> bool:
        return not self.is_broken and self.type not in (ItemType.GROUP, ItemType.DISPLAY)

    @property
    def is_choice(self) -> bool:
        return self.type in CHOICE_TYPES

    @property
    def is_numeric(self) -> bool:
        return self.type in NUMERIC_TYPES

    def iter_tree(self) -> Iterator["ItemDefinition"]:
        """This item followed by all descendants, depth-first."""
        yield self
        for child in self.children:
            yield from child.iter_tree()

    @classmethod
    def broken(cls, node: Dict[str, Any], error: QuestionnaireFormatException) -> "ItemDefinition":
        try:
            item_type = ItemType(node.get("type"))
        except ValueError:
            item_type = None
        return cls(
            link_id=str(node.get("linkId") or ""),
            type=item_type,
            text=node.get("text"),
            prefix=node.get("prefix"),
            error=error,
        )

    @classmethod
    def from_dict(cls, node: Dict[str, Any], defaults: Optional[FillerConfig] = None) -> "ItemDefinition":
        """
        Build an ItemDefinition from a Questionnaire.item node.

        Children are parsed with per-item isolation: a malformed child becomes
        a broken placeholder instead of failing this item.

        Raises:
            QuestionnaireFormatException: if this node itself is malformed
        """
        defaults = defaults or FillerConfig()
        if not isinstance(node, dict):
            raise QuestionnaireFormatException("Questionnaire item must be an object", node)
        link_id = node.get("linkId")
        if not link_id:
            raise QuestionnaireFormatException("Questionnaire item without linkId", node)
        try:
            item_type = ItemType(node.get("type"))
        except ValueError:
            raise QuestionnaireFormatException(f"Item {link_id} has unknown type {node.get('type')!r}", node)
        if item_type in UNSUPPORTED_TYPES:
            raise QuestionnaireFormatException(f"Item {link_id}: type {item_type.value} is not supported", node)

        config = ItemConfig.from_extensions(extensions_from_list(node.get("extension")))

        options: List[AnswerOption] = []
        seen_keys = set()
        for raw in node.get("answerOption") or []:
            option = AnswerOption.from_dict(raw)
            if option.key in seen_keys:
                raise QuestionnaireFormatException(f"Item {link_id}: duplicate option key {option.key!r}", raw)
            seen_keys.add(option.key)
            options.append(option)
        value_set = node.get("answerValueSet")

        if item_type in CHOICE_TYPES and not options and not value_set:
            raise QuestionnaireFormatException(
                f"Choice item {link_id} has neither answerOption nor answerValueSet", node
            )
        if options and value_set:
            raise QuestionnaireFormatException(
                f"Item {link_id} declares both answerOption and answerValueSet", node
            )
        if (
            item_type == ItemType.QUANTITY
            and (config.has_calculated_expression or config.has_cqf_expression)
            and config.computable_unit is None
        ):
            raise QuestionnaireFormatException(
                f"Calculated quantity item {link_id} lacks a questionnaire-unit", node
            )

        behavior_raw = node.get("enableBehavior") or EnableBehavior.ANY.value
        try:
            behavior = EnableBehavior(behavior_raw)
        except ValueError:
            raise QuestionnaireFormatException(f"Item {link_id} has unknown enableBehavior {behavior_raw!r}", node)

        numeric = NumericConstraints.for_item(item_type, config, defaults) if item_type in NUMERIC_TYPES else None
        if numeric is not None:
            logger.debug("input format for %s: %r", link_id, numeric.number_pattern)

        return cls(
            link_id=link_id,
            type=item_type,
            text=node.get("text"),
            prefix=node.get("prefix"),
            required=bool(node.get("required", False)),
            repeats=bool(node.get("repeats", False)),
            read_only=bool(node.get("readOnly", False)),
            max_length=node.get("maxLength"),
            answer_options=tuple(options),
            answer_value_set=value_set,
            enable_when=tuple(EnableWhen.from_dict(ew) for ew in node.get("enableWhen") or []),
            enable_behavior=behavior,
            initial=tuple(node.get("initial") or []),
            config=config,
            numeric=numeric,
            children=parse_items(node.get("item"), defaults),
        )


def parse_items(nodes: Optional[List[Dict[str, Any]]], defaults: FillerConfig) -> Tuple[ItemDefinition, ...]:
    """Parse sibling nodes, isolating format errors per item."""
    items: List[ItemDefinition] = []
    for node in nodes or []:
        try:
            items.append(ItemDefinition.from_dict(node, defaults))
        except QuestionnaireFormatException as e:
            logger.warning("broken questionnaire item %s: %s", node.get("linkId") if isinstance(node, dict) else node, e)
            items.append(ItemDefinition.broken(node if isinstance(node, dict) else {}, e))
    return tuple(items)


@dataclass(frozen=True)
class Questionnaire:
    """
    Root container of a definition.

    Properties:
        url / id / title / status: Resource metadata
        items: Top-level ItemDefinitions
        contained: Contained resources by id (value sets live here)

    INVARIANTS:
        - linkIds are unique across the whole tree
    """

    items: Tuple[ItemDefinition, ...] = field(default_factory=tuple)
    url: Optional[str] = None
    id: Optional[str] = None
    title: Optional[str] = None
    status: Optional[str] = None
    contained: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    def iter_items(self) -> Iterator[ItemDefinition]:
        for item in self.items:
            yield from item.iter_tree()

    def get_item(self, link_id: str) -> Optional[ItemDefinition]:
        """
        Retrieve an item by linkId.

        Returns:
            ItemDefinition or None if not found
        """
        for item in self.iter_items():
            if item.link_id == link_id:
                return item
        return None

    @property
    def canonical(self) -> Optional[str]:
        return self.url or (f"Questionnaire/{self.id}" if self.id else None)

    @classmethod
    def from_dict(cls, d: Dict[str, Any], defaults: Optional[FillerConfig] = None) -> "Questionnaire":
        """
        Load a Questionnaire resource.

        Raises:
            QuestionnaireFormatException: if the resource is not a Questionnaire
                or linkIds collide
        """
        if not isinstance(d, dict):
            raise QuestionnaireFormatException("Questionnaire must be an object", d)
        resource_type = d.get("resourceType", "Questionnaire")
        if resource_type != "Questionnaire":
            raise QuestionnaireFormatException(f"Expected a Questionnaire, got {resource_type}", d)

        questionnaire = cls(
            items=parse_items(d.get("item"), defaults or FillerConfig()),
            url=d.get("url"),
            id=d.get("id"),
            title=d.get("title"),
            status=d.get("status"),
            contained={r["id"]: r for r in d.get("contained") or [] if isinstance(r, dict) and r.get("id")},
        )

        seen = set()
        for item in questionnaire.iter_items():
            if not item.link_id:
                continue
            if item.link_id in seen:
                raise QuestionnaireFormatException(f"Duplicate linkId {item.link_id!r}", item.link_id)
            seen.add(item.link_id)
        return questionnaire


__all__ = [
    "ItemType",
    "ItemConfig",
    "NumericConstraints",
    "AnswerOption",
    "ItemDefinition",
    "Questionnaire",
    "option_key",
    "parse_items",
    "INTEGER_MAX",
    "DECIMAL_MAX",
]
