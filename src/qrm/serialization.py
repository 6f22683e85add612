"""
Serialization helpers for QRM resources (Questionnaire in, QuestionnaireResponse out).

Provides JSON/YAML loading of definitions and dumping of responses via the
intermediate FHIR dict representation.
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from qrm.config import FillerConfig
from qrm.errors import QuestionnaireFormatException
from qrm.model import Questionnaire
from qrm.response import ResponseTree


def questionnaire_from_dict(d: Dict[str, Any], config: Optional[FillerConfig] = None) -> Questionnaire:
    return Questionnaire.from_dict(d, config)


def questionnaire_from_json(s: str, config: Optional[FillerConfig] = None) -> Questionnaire:
    try:
        d = json.loads(s)
    except json.JSONDecodeError as e:
        raise QuestionnaireFormatException(f"Questionnaire is not valid JSON: {e}") from e
    return questionnaire_from_dict(d, config)


def questionnaire_from_yaml(s: str, config: Optional[FillerConfig] = None) -> Questionnaire:
    try:
        d = yaml.safe_load(s)
    except yaml.YAMLError as e:
        raise QuestionnaireFormatException(f"Questionnaire is not valid YAML: {e}") from e
    return questionnaire_from_dict(d, config)


def load_questionnaire(path: Union[str, Path], config: Optional[FillerConfig] = None) -> Questionnaire:
    path = Path(path)
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() in (".yaml", ".yml"):
        return questionnaire_from_yaml(text, config)
    return questionnaire_from_json(text, config)


def response_to_dict(tree: ResponseTree, status: str = "in-progress") -> Dict[str, Any]:
    return tree.to_response(status)


def dump_response_json(tree: ResponseTree, status: str = "in-progress", indent: Optional[int] = 2) -> str:
    return json.dumps(response_to_dict(tree, status), indent=indent, ensure_ascii=False)


def dump_response_yaml(tree: ResponseTree, status: str = "in-progress") -> str:
    return yaml.safe_dump(response_to_dict(tree, status), sort_keys=False, allow_unicode=True)


def response_from_json(s: str) -> Dict[str, Any]:
    d = json.loads(s)
    if not isinstance(d, dict) or d.get("resourceType") != "QuestionnaireResponse":
        raise QuestionnaireFormatException("Expected a QuestionnaireResponse", d)
    return d


def response_from_yaml(s: str) -> Dict[str, Any]:
    d = yaml.safe_load(s)
    if not isinstance(d, dict) or d.get("resourceType") != "QuestionnaireResponse":
        raise QuestionnaireFormatException("Expected a QuestionnaireResponse", d)
    return d


def prefill_from_file(tree: ResponseTree, path: Union[str, Path]) -> None:
    path = Path(path)
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() in (".yaml", ".yml"):
        tree.populate(response_from_yaml(text))
    else:
        tree.populate(response_from_json(text))


__all__ = [
    "questionnaire_from_dict",
    "questionnaire_from_json",
    "questionnaire_from_yaml",
    "load_questionnaire",
    "response_to_dict",
    "dump_response_json",
    "dump_response_yaml",
    "response_from_json",
    "response_from_yaml",
    "prefill_from_file",
]
