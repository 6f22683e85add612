"""
Recognized extension identifiers.

This is the fixed, versioned set of extension URLs that QRM reads from a
Questionnaire (or writes into a QuestionnaireResponse). Anything not listed
here is ignored at load time.
"""

from __future__ import annotations

FHIR_SD = "http://hl7.org/fhir/StructureDefinition/"
SDC_SD = "http://hl7.org/fhir/uv/sdc/StructureDefinition/"

# ── Numeric constraints ────────────────────────────────────────────

MIN_VALUE = FHIR_SD + "minValue"
MAX_VALUE = FHIR_SD + "maxValue"
MAX_DECIMAL_PLACES = FHIR_SD + "maxDecimalPlaces"
SLIDER_STEP_VALUE = FHIR_SD + "questionnaire-sliderStepValue"

# ── Text constraints ───────────────────────────────────────────────

MIN_LENGTH = FHIR_SD + "minLength"
REGEX = FHIR_SD + "regex"

# ── Rendering hints ────────────────────────────────────────────────

ITEM_CONTROL = FHIR_SD + "questionnaire-itemControl"
HIDDEN = FHIR_SD + "questionnaire-hidden"

# ── Units ──────────────────────────────────────────────────────────

UNIT = FHIR_SD + "questionnaire-unit"
UNIT_VALUE_SET = FHIR_SD + "questionnaire-unitValueSet"

# ── Choice options ─────────────────────────────────────────────────

OPTION_EXCLUSIVE = FHIR_SD + "questionnaire-optionExclusive"
OPTION_PREFIX = FHIR_SD + "questionnaire-optionPrefix"
ORDINAL_VALUE = FHIR_SD + "ordinalValue"
VALUESET_LABEL = FHIR_SD + "valueset-label"

# Answer-level ordinal identifier; scoring reads only this one.
ANSWER_ORDINAL_VALUE = FHIR_SD + "iso21090-CO-value"

# ── Score triggers ─────────────────────────────────────────────────

CALCULATED_EXPRESSION = SDC_SD + "sdc-questionnaire-calculatedExpression"
CQF_EXPRESSION = FHIR_SD + "cqf-expression"

SCORE_UNIT_CODE = "{score}"

# ── Response markers ───────────────────────────────────────────────

DATA_ABSENT_REASON = FHIR_SD + "data-absent-reason"
DATA_ABSENT_REASON_AS_TEXT = "astext"

XHTML_NAMESPACE = "http://www.w3.org/1999/xhtml"
