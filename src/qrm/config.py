"""Configuration for the questionnaire filler.

Rules:
- Base values come from an optional YAML file (``qrm.yaml`` or an explicit path).
- Environment variables override file values.
- Validation: Pydantic enforces value constraints.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, field_validator


DEFAULT_CONFIG_FILE = Path("qrm.yaml")
logger = logging.getLogger(__name__)


class FillerConfig(BaseModel):
    """Implementation constants the item and answer models fall back on."""

    locale: str = Field(default="en-US")
    slider_max_value: float = Field(default=100.0, gt=0)
    max_decimal: int = Field(default=2, ge=0, le=15)
    narrative: bool = Field(default=True)

    @field_validator("locale")
    @classmethod
    def locale_must_be_non_empty(cls, v: str) -> str:
        if not isinstance(v, str) or not v.strip():
            raise ValueError("locale must be a non-empty language tag")
        return v.strip().replace("_", "-")


def _read_yaml_file(path: Path) -> Dict[str, Any]:
    try:
        if path.exists():
            data = yaml.safe_load(path.read_text(encoding="utf-8"))
            return data if isinstance(data, dict) else {}
    except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
        logger.error("Failed to read YAML config %s: %s", path, e)
    return {}


def _env(key: str) -> Optional[str]:
    value = os.environ.get(key)
    return value.strip() if value is not None and value.strip() else None


def load_config(path: Union[str, Path, None] = None) -> FillerConfig:
    """Load configuration with validation.

    Precedence (highest first):
    1) Environment variables (QRM_LOCALE, QRM_SLIDER_MAX_VALUE, QRM_MAX_DECIMAL, QRM_NARRATIVE)
    2) YAML file (explicit ``path`` or ``qrm.yaml`` in the working directory)
    3) Defaults
    """
    base = _read_yaml_file(Path(path) if path is not None else DEFAULT_CONFIG_FILE)

    values: Dict[str, Any] = {k: v for k, v in base.items() if k in FillerConfig.model_fields}
    overrides = {
        "locale": _env("QRM_LOCALE"),
        "slider_max_value": _env("QRM_SLIDER_MAX_VALUE"),
        "max_decimal": _env("QRM_MAX_DECIMAL"),
        "narrative": _env("QRM_NARRATIVE"),
    }
    for key, value in overrides.items():
        if value is not None:
            values[key] = value

    try:
        return FillerConfig(**values)
    except PydanticValidationError as e:
        logger.error("Invalid filler configuration: %s", e)
        raise


__all__ = ["FillerConfig", "load_config", "DEFAULT_CONFIG_FILE"]
